"""Pytest configuration and synthetic cutout fixtures."""

import math

import cv2
import numpy as np
import pytest


def make_cutout(width, height, polygon, color=(200, 120, 40)):
    """RGBA image, transparent except for a filled polygon."""
    image = np.zeros((height, width, 4), dtype=np.uint8)
    pts = np.array(polygon, dtype=np.int32).reshape(-1, 1, 2)
    cv2.fillPoly(image, [pts], (*color, 255))
    return image


def tilted_polygon(angle_degrees, left=60, right=340, top=40, base=200):
    """Flat top, bottom edge dropping by tan(angle) per pixel to the right."""
    drop = math.tan(math.radians(angle_degrees)) * (right - left)
    return [(left, top), (right, top), (right, int(round(base + drop))), (left, base)]


def encode_png(image):
    """Encode an RGB(A) array to PNG bytes."""
    if image.ndim == 3 and image.shape[2] == 4:
        bgr = cv2.cvtColor(image, cv2.COLOR_RGBA2BGRA)
    else:
        bgr = cv2.cvtColor(image, cv2.COLOR_RGB2BGR)
    ok, buffer = cv2.imencode(".png", bgr)
    assert ok
    return buffer.tobytes()


@pytest.fixture
def straight_cutout():
    return make_cutout(400, 300, tilted_polygon(0))


@pytest.fixture
def tilted_cutout():
    return make_cutout(400, 300, tilted_polygon(5))


@pytest.fixture
def extreme_cutout():
    return make_cutout(400, 420, tilted_polygon(30))


@pytest.fixture
def noisy_cutout():
    """5 degree base with pinholes and a detached tag below the product."""
    image = make_cutout(400, 320, tilted_polygon(5))
    rng = np.random.default_rng(7)
    ys = rng.integers(60, 180, size=40)
    xs = rng.integers(80, 320, size=40)
    image[ys, xs, 3] = 0
    image[270:300, 100:130] = (10, 10, 10, 255)
    return image


@pytest.fixture
def solid_backdrop():
    backdrop = np.zeros((200, 200, 3), dtype=np.uint8)
    backdrop[:] = (0, 0, 0)
    return backdrop


@pytest.fixture
def white_square():
    return np.full((40, 40, 4), 255, dtype=np.uint8)
