import numpy as np
import pytest
from PIL import Image

import utils
from utils.exceptions import ImageUnreadableError, SurfaceUnavailableError
from utils.image_utils import ensure_surface, get_image_dimensions, load_image, to_pil

from .conftest import encode_png


def test_package_exports_resolve():
    for name in utils.__all__:
        assert callable(getattr(utils, name))


def test_load_png_bytes_keeps_alpha(white_square):
    rgba = load_image(encode_png(white_square))
    assert rgba.shape == (40, 40, 4)
    assert rgba.dtype == np.uint8
    assert np.array_equal(rgba, white_square)


@pytest.mark.parametrize("shape", [(10, 20), (10, 20, 3), (10, 20, 4)])
def test_load_array_normalizes_to_rgba(shape):
    rgba = load_image(np.full(shape, 7, dtype=np.uint8))
    assert rgba.shape == (10, 20, 4)
    assert get_image_dimensions(rgba) == (20, 10)


def test_load_rgb_array_keeps_channel_order():
    rgb = np.zeros((2, 2, 3), dtype=np.uint8)
    rgb[:] = (255, 0, 0)
    assert tuple(load_image(rgb)[0, 0]) == (255, 0, 0, 255)


def test_load_pil_image():
    rgba = load_image(Image.new("RGB", (6, 4), (0, 0, 255)))
    assert rgba.shape == (4, 6, 4)
    assert tuple(rgba[0, 0]) == (0, 0, 255, 255)


def test_load_path(tmp_path, white_square):
    path = tmp_path / "cutout.png"
    path.write_bytes(encode_png(white_square))
    assert load_image(path).shape == (40, 40, 4)


@pytest.mark.parametrize("source", [b"", b"not an image", "missing/file.png", np.zeros((4, 4, 2))])
def test_unreadable_sources(source):
    with pytest.raises(ImageUnreadableError):
        load_image(source)


def test_to_pil_round_trip(white_square):
    image = to_pil(white_square)
    assert image.mode == "RGBA"
    assert image.size == (40, 40)


@pytest.mark.parametrize("size", [(0, 10), (10, -1), (20000, 20000)])
def test_ensure_surface_rejects(size):
    with pytest.raises(SurfaceUnavailableError):
        ensure_surface(*size)


def test_ensure_surface_accepts_normal_canvas():
    ensure_surface(3000, 2250)
