import io

import numpy as np
import pytest
from PIL import Image

from modules.orientation import (
    correct_orientation,
    orientation_matrix,
    oriented_size,
    read_orientation,
)


@pytest.fixture
def image():
    # Non-square, every pixel distinct
    return np.arange(3 * 5 * 4, dtype=np.uint8).reshape(3, 5, 4)


EXPECTED = {
    2: lambda a: a[:, ::-1],
    3: lambda a: a[::-1, ::-1],
    4: lambda a: a[::-1, :],
    5: lambda a: a.transpose(1, 0, 2),
    6: lambda a: np.rot90(a, -1),
    7: lambda a: a[::-1, ::-1].transpose(1, 0, 2),
    8: lambda a: np.rot90(a, 1),
}


@pytest.mark.parametrize("code", sorted(EXPECTED))
def test_correct_orientation(image, code):
    corrected = correct_orientation(image, code)
    assert np.array_equal(corrected, EXPECTED[code](image))


@pytest.mark.parametrize("code", [1, 0, 9])
def test_identity_codes_return_copy(image, code):
    corrected = correct_orientation(image, code)
    assert np.array_equal(corrected, image)
    assert corrected is not image


@pytest.mark.parametrize(
    "code, size",
    [(1, (5, 3)), (2, (5, 3)), (4, (5, 3)), (5, (3, 5)), (6, (3, 5)), (8, (3, 5))],
)
def test_oriented_size(code, size):
    assert oriented_size(code, 5, 3) == size


@pytest.mark.parametrize(
    "code, coefficients",
    [
        (1, (1, 0, 0, 1, 0, 0)),
        (2, (-1, 0, 0, 1, 5, 0)),
        (3, (-1, 0, 0, -1, 5, 3)),
        (4, (1, 0, 0, -1, 0, 3)),
        (5, (0, 1, 1, 0, 0, 0)),
        (6, (0, 1, -1, 0, 3, 0)),
        (7, (0, -1, -1, 0, 3, 5)),
        (8, (0, -1, 1, 0, 0, 5)),
    ],
)
def test_orientation_matrix_table(code, coefficients):
    a, b, c, d, e, f = coefficients
    expected = np.array([[a, c, e], [b, d, f]], dtype=np.float64)
    assert np.array_equal(orientation_matrix(code, 5, 3), expected)


def jpeg_with_orientation(code):
    buffer = io.BytesIO()
    exif = Image.Exif()
    exif[0x0112] = code
    Image.new("RGB", (4, 2), (255, 0, 0)).save(buffer, format="JPEG", exif=exif.tobytes())
    return buffer.getvalue()


@pytest.mark.parametrize("code", [1, 3, 6, 8])
def test_read_orientation(code):
    assert read_orientation(jpeg_with_orientation(code)) == code


def test_read_orientation_without_exif():
    buffer = io.BytesIO()
    Image.new("RGBA", (4, 2)).save(buffer, format="PNG")
    assert read_orientation(buffer.getvalue()) == 1


def test_read_orientation_garbage():
    assert read_orientation(b"\xff\xd8 truncated jpeg") == 1
