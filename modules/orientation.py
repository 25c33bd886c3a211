"""
Orientation - Apply EXIF orientation codes to decoded images
"""

import io
from typing import Tuple, Union

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError
from loguru import logger

from utils.image_utils import ensure_surface

EXIF_ORIENTATION_TAG = 0x0112

# (a, b, c, d, e, f): x' = a*x + c*y + e, y' = b*x + d*y + f
# width/height placeholders are filled in by orientation_matrix()
ORIENTATION_TRANSFORMS = {
    1: "identity",
    2: "flip horizontal",
    3: "rotate 180",
    4: "flip vertical",
    5: "transpose",
    6: "rotate 90 cw",
    7: "transverse",
    8: "rotate 90 ccw",
}


def orientation_matrix(code: int, width: int, height: int) -> np.ndarray:
    """
    2x3 affine that maps source pixels to their upright position

    Args:
        code: EXIF orientation 1-8 (anything else is treated as 1)
        width, height: Source image size

    Returns:
        float64 array [[a, c, e], [b, d, f]]
    """
    w, h = width, height
    coefficients = {
        2: (-1, 0, 0, 1, w, 0),
        3: (-1, 0, 0, -1, w, h),
        4: (1, 0, 0, -1, 0, h),
        5: (0, 1, 1, 0, 0, 0),
        6: (0, 1, -1, 0, h, 0),
        7: (0, -1, -1, 0, h, w),
        8: (0, -1, 1, 0, 0, w),
    }.get(code, (1, 0, 0, 1, 0, 0))

    a, b, c, d, e, f = coefficients
    return np.array([[a, c, e], [b, d, f]], dtype=np.float64)


def oriented_size(code: int, width: int, height: int) -> Tuple[int, int]:
    """Output (width, height); codes 5-8 swap the axes"""
    if 5 <= code <= 8:
        return height, width
    return width, height


def correct_orientation(image: np.ndarray, code: int) -> np.ndarray:
    """
    Return an upright copy of a decoded image

    Args:
        image: Image array (any channel count)
        code: EXIF orientation 1-8

    Returns:
        New array; a plain copy for code 1 or unknown codes
    """
    if code not in ORIENTATION_TRANSFORMS or code == 1:
        return image.copy()

    h, w = image.shape[:2]
    out_w, out_h = oriented_size(code, w, h)
    ensure_surface(out_w, out_h)

    # Pixel centers sit at +0.5; shift so integer grids map onto each other
    matrix = orientation_matrix(code, w, h)
    linear = matrix[:, :2]
    matrix[:, 2] += linear @ np.array([0.5, 0.5]) - 0.5

    logger.debug(f"[ORIENTATION] Applying {ORIENTATION_TRANSFORMS[code]} ({w}x{h} -> {out_w}x{out_h})")
    return cv2.warpAffine(image, matrix, (out_w, out_h), flags=cv2.INTER_NEAREST)


def read_orientation(data: Union[bytes, bytearray]) -> int:
    """
    EXIF orientation of an encoded image

    Returns:
        1-8, or 1 when the tag is absent or the data is unparseable
    """
    try:
        with Image.open(io.BytesIO(bytes(data))) as img:
            orientation = img.getexif().get(EXIF_ORIENTATION_TAG, 1)
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        logger.debug(f"[ORIENTATION] No EXIF orientation: {e}")
        return 1

    if orientation not in ORIENTATION_TRANSFORMS:
        logger.warning(f"[ORIENTATION] Invalid EXIF value {orientation}, assuming 1")
        return 1
    return int(orientation)
