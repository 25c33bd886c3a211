"""
Image utility functions for decoding and format conversion
"""

import cv2
import numpy as np
from pathlib import Path
from typing import Union, Tuple
from PIL import Image
from loguru import logger

from utils.exceptions import ImageUnreadableError, SurfaceUnavailableError

ImageSource = Union[bytes, bytearray, str, Path, np.ndarray, Image.Image]

# Largest surface we agree to allocate (roughly 16k x 16k)
MAX_SURFACE_PIXELS = 268_435_456


def _describe(source: ImageSource) -> str:
    if isinstance(source, (bytes, bytearray)):
        return f"<{len(source)} bytes>"
    if isinstance(source, np.ndarray):
        return f"<array {source.shape}>"
    if isinstance(source, Image.Image):
        return f"<PIL {source.mode} {source.size}>"
    return str(source)


def _decoded_to_rgba(img: np.ndarray) -> np.ndarray:
    """Normalize an OpenCV-decoded buffer (BGR/BGRA/gray, 8 or 16 bit) to RGBA uint8"""
    if img.dtype == np.uint16:
        img = (img / 257).astype(np.uint8)
    elif img.dtype != np.uint8:
        img = np.clip(img, 0, 255).astype(np.uint8)

    if img.ndim == 2:
        return cv2.cvtColor(img, cv2.COLOR_GRAY2RGBA)
    if img.shape[2] == 3:
        return cv2.cvtColor(img, cv2.COLOR_BGR2RGBA)
    return cv2.cvtColor(img, cv2.COLOR_BGRA2RGBA)


def _array_to_rgba(img: np.ndarray) -> np.ndarray:
    """Accept an in-memory RGB(A) or grayscale array without touching the caller's buffer"""
    if img.ndim == 2:
        return cv2.cvtColor(img.astype(np.uint8), cv2.COLOR_GRAY2RGBA)
    if img.ndim == 3 and img.shape[2] == 3:
        return cv2.cvtColor(img.astype(np.uint8), cv2.COLOR_RGB2RGBA)
    if img.ndim == 3 and img.shape[2] == 4:
        return img if img.dtype == np.uint8 else img.astype(np.uint8)
    raise ImageUnreadableError(_describe(img), f"Unsupported array shape {img.shape}")


def load_image(source: ImageSource) -> np.ndarray:
    """
    Load an image into an RGBA uint8 array

    Args:
        source: Encoded bytes, file path, numpy array (RGB/RGBA/gray) or PIL image

    Returns:
        Image as numpy array (H, W, 4) in RGBA order

    Raises:
        ImageUnreadableError: If the source cannot be decoded
    """
    if isinstance(source, np.ndarray):
        rgba = _array_to_rgba(source)
    elif isinstance(source, Image.Image):
        rgba = np.array(source.convert("RGBA"))
    else:
        if isinstance(source, (bytes, bytearray)):
            buffer = np.frombuffer(bytes(source), dtype=np.uint8)
        else:
            image_path = Path(source)
            if not image_path.exists():
                raise ImageUnreadableError(str(image_path), f"Image not found: {image_path}")
            buffer = np.fromfile(str(image_path), dtype=np.uint8)

        if buffer.size == 0:
            raise ImageUnreadableError(_describe(source), "Empty image buffer")

        decoded = cv2.imdecode(buffer, cv2.IMREAD_UNCHANGED)
        if decoded is None:
            raise ImageUnreadableError(_describe(source), f"Failed to decode image: {_describe(source)}")
        rgba = _decoded_to_rgba(decoded)

    if rgba.shape[0] == 0 or rgba.shape[1] == 0:
        raise ImageUnreadableError(_describe(source), "Image has zero size")

    logger.debug(f"Loaded {_describe(source)} -> {rgba.shape[1]}x{rgba.shape[0]}")
    return rgba


def to_pil(image: np.ndarray) -> Image.Image:
    """Wrap an RGBA/RGB array as a PIL image"""
    return Image.fromarray(np.ascontiguousarray(image, dtype=np.uint8))


def get_image_dimensions(image: np.ndarray) -> Tuple[int, int]:
    """
    Get image dimensions

    Args:
        image: Image array

    Returns:
        (width, height)
    """
    return int(image.shape[1]), int(image.shape[0])


def ensure_surface(width: int, height: int) -> None:
    """
    Check that a width x height surface can be allocated

    Raises:
        SurfaceUnavailableError: If the size is non-positive or too large
    """
    if width <= 0 or height <= 0 or width * height > MAX_SURFACE_PIXELS:
        raise SurfaceUnavailableError(width, height)
