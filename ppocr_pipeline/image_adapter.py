"""
Image Adapter

Converts a caller-supplied bitmap into the RGB buffer the pipeline
consumes. Only 32-bit RGBA (RGBA_8888) is accepted; the alpha channel is
dropped and width, height and row-major pixel order are preserved.
No color conversion or normalization happens here.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union

import cv2
import numpy as np

from .errors import ImageFormatError


class PixelFormat(Enum):
    """Bitmap pixel formats a host can hand over"""
    RGBA_8888 = "rgba_8888"
    RGB_565 = "rgb_565"
    RGBA_F16 = "rgba_f16"
    ALPHA_8 = "alpha_8"
    RGB_888 = "rgb_888"


@dataclass(frozen=True)
class Bitmap:
    """
    Host pixel buffer

    `pixels` is either raw bytes (rows of `stride` bytes each) or a
    uint8 array already shaped (height, width, channels).
    """
    width: int
    height: int
    format: PixelFormat
    pixels: Union[bytes, bytearray, memoryview, np.ndarray]
    stride: Optional[int] = None

    @classmethod
    def from_array(cls, array: np.ndarray) -> "Bitmap":
        """
        Wrap a (H, W, 4) uint8 RGBA array

        Arrays with 3 channels are tagged RGB_888 and will be rejected
        by to_inference_image(), as a host bitmap in that format would be.
        """
        if array.ndim != 3 or array.shape[2] not in (3, 4):
            raise ValueError(f"Expected (H, W, 3|4) array, got shape {array.shape}")

        pixel_format = PixelFormat.RGBA_8888 if array.shape[2] == 4 else PixelFormat.RGB_888
        return cls(
            width=array.shape[1],
            height=array.shape[0],
            format=pixel_format,
            pixels=array,
        )

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "Bitmap":
        """
        Decode an image file into an RGBA_8888 bitmap

        Args:
            path: Any format OpenCV can decode

        Returns:
            Bitmap in RGBA_8888
        """
        image = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
        if image is None:
            raise ValueError(f"Failed to decode image: {path}")

        if image.dtype != np.uint8:
            image = cv2.convertScaleAbs(image, alpha=255.0 / max(float(image.max()), 1.0))

        if image.ndim == 2:
            rgba = cv2.cvtColor(image, cv2.COLOR_GRAY2RGBA)
        elif image.shape[2] == 4:
            rgba = cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA)
        else:
            rgba = cv2.cvtColor(image, cv2.COLOR_BGR2RGBA)

        return cls.from_array(rgba)


@dataclass(frozen=True)
class Image:
    """Immutable RGB image, pixels shaped (height, width, 3) uint8"""
    width: int
    height: int
    pixels: np.ndarray


def to_inference_image(bitmap: Bitmap) -> Image:
    """
    Convert an RGBA_8888 bitmap into an RGB Image

    Args:
        bitmap: Host bitmap

    Returns:
        Image with the alpha channel dropped

    Raises:
        ImageFormatError: Wrong pixel format or inconsistent buffer
    """
    if bitmap.format != PixelFormat.RGBA_8888:
        raise ImageFormatError(f"Unsupported bitmap format: {bitmap.format.value}")

    if bitmap.width <= 0 or bitmap.height <= 0:
        raise ImageFormatError(f"Invalid bitmap size {bitmap.width}x{bitmap.height}")

    if isinstance(bitmap.pixels, np.ndarray):
        rgba = _rgba_from_array(bitmap)
    else:
        rgba = _rgba_from_buffer(bitmap)

    rgb = np.ascontiguousarray(rgba[:, :, :3])
    rgb.setflags(write=False)

    return Image(width=bitmap.width, height=bitmap.height, pixels=rgb)


def _rgba_from_array(bitmap: Bitmap) -> np.ndarray:
    array = bitmap.pixels
    expected = (bitmap.height, bitmap.width, 4)
    if array.dtype != np.uint8 or array.shape != expected:
        raise ImageFormatError(
            f"Pixel array must be uint8 {expected}, got {array.dtype} {array.shape}"
        )
    return array


def _rgba_from_buffer(bitmap: Bitmap) -> np.ndarray:
    row_bytes = bitmap.width * 4
    stride = bitmap.stride if bitmap.stride is not None else row_bytes
    if stride < row_bytes:
        raise ImageFormatError(f"Row stride {stride} smaller than {row_bytes} bytes")

    buffer = np.frombuffer(bitmap.pixels, dtype=np.uint8)
    # Last row may omit its stride padding
    required = stride * (bitmap.height - 1) + row_bytes
    if buffer.size < required:
        raise ImageFormatError(
            f"Pixel buffer holds {buffer.size} bytes, {required} required"
        )

    rows = np.lib.stride_tricks.as_strided(
        buffer,
        shape=(bitmap.height, row_bytes),
        strides=(stride, 1),
    )
    return rows.reshape(bitmap.height, bitmap.width, 4)
