import cv2
import numpy as np
import pytest

from ppocr_pipeline.errors import ImageFormatError
from ppocr_pipeline.image_adapter import Bitmap, PixelFormat, to_inference_image


def _rgba(height=4, width=5):
    rng = np.random.default_rng(0)
    return rng.integers(0, 256, size=(height, width, 4), dtype=np.uint8)


def test_rgba_array_drops_alpha():
    rgba = _rgba()
    image = to_inference_image(Bitmap.from_array(rgba))

    assert (image.width, image.height) == (5, 4)
    assert image.pixels.shape == (4, 5, 3)
    assert image.pixels.dtype == np.uint8
    np.testing.assert_array_equal(image.pixels, rgba[:, :, :3])


def test_image_is_read_only():
    image = to_inference_image(Bitmap.from_array(_rgba()))

    with pytest.raises(ValueError):
        image.pixels[0, 0, 0] = 1


@pytest.mark.parametrize(
    "pixel_format",
    [PixelFormat.RGB_565, PixelFormat.RGBA_F16, PixelFormat.ALPHA_8, PixelFormat.RGB_888],
)
def test_non_rgba_formats_rejected(pixel_format):
    bitmap = Bitmap(width=2, height=2, format=pixel_format, pixels=bytes(16))

    with pytest.raises(ImageFormatError):
        to_inference_image(bitmap)


def test_three_channel_array_is_not_rgba():
    bitmap = Bitmap.from_array(np.zeros((3, 3, 3), dtype=np.uint8))

    assert bitmap.format == PixelFormat.RGB_888
    with pytest.raises(ImageFormatError):
        to_inference_image(bitmap)


def test_raw_buffer_with_row_padding():
    rgba = _rgba(height=3, width=2)
    stride = 2 * 4 + 4
    padded = np.zeros((3, stride), dtype=np.uint8)
    padded[:, :8] = rgba.reshape(3, 8)
    padded[:, 8:] = 77

    bitmap = Bitmap(
        width=2,
        height=3,
        format=PixelFormat.RGBA_8888,
        pixels=padded.tobytes(),
        stride=stride,
    )
    image = to_inference_image(bitmap)

    np.testing.assert_array_equal(image.pixels, rgba[:, :, :3])


def test_short_buffer_rejected():
    bitmap = Bitmap(width=4, height=4, format=PixelFormat.RGBA_8888, pixels=bytes(20))

    with pytest.raises(ImageFormatError):
        to_inference_image(bitmap)


def test_stride_smaller_than_row_rejected():
    bitmap = Bitmap(
        width=4, height=1, format=PixelFormat.RGBA_8888, pixels=bytes(16), stride=8
    )

    with pytest.raises(ImageFormatError):
        to_inference_image(bitmap)


def test_mismatched_array_shape_rejected():
    bitmap = Bitmap(width=10, height=10, format=PixelFormat.RGBA_8888, pixels=_rgba())

    with pytest.raises(ImageFormatError):
        to_inference_image(bitmap)


def test_from_file_converts_to_rgb_order(tmp_path):
    bgr = np.zeros((2, 3, 3), dtype=np.uint8)
    bgr[:, :] = (0, 0, 255)
    path = tmp_path / "red.png"
    cv2.imwrite(str(path), bgr)

    bitmap = Bitmap.from_file(path)
    assert bitmap.format == PixelFormat.RGBA_8888

    image = to_inference_image(bitmap)
    assert tuple(image.pixels[0, 0]) == (255, 0, 0)


def test_from_file_missing(tmp_path):
    with pytest.raises(ValueError):
        Bitmap.from_file(tmp_path / "nope.png")
