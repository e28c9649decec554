"""
Raw frame buffers and the frame format validator.

A RawFrame is an owned, fixed-size buffer of packed pixel samples. Packed
YUYV frames are stored as (height, width, 2) uint8 arrays, the layout
OpenCV's YUYV color conversions expect: byte 0 of every pixel is luma,
byte 1 alternates U and V across pixel pairs.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from ..config.pipeline_config import FrameContract, PixelFormat
from ..errors import FormatMismatch

logger = logging.getLogger(__name__)


@dataclass
class RawFrame:
    """Frame buffer plus its declared geometry and encoding."""

    width: int
    height: int
    pixel_format: PixelFormat
    data: np.ndarray
    index: int = 0

    @property
    def stride(self) -> int:
        """Bytes per row."""
        return self.width * self.pixel_format.bytes_per_pixel

    @property
    def nbytes(self) -> int:
        return self.stride * self.height

    def describe(self) -> str:
        return f"{self.width}x{self.height} {self.pixel_format.value}"

    def copy(self) -> 'RawFrame':
        return RawFrame(self.width, self.height, self.pixel_format, self.data.copy(), self.index)


def expected_array_shape(width: int, height: int, pixel_format: PixelFormat) -> tuple:
    """Array shape a frame of this geometry must have."""
    if pixel_format == PixelFormat.GREY:
        return (height, width)
    return (height, width, pixel_format.bytes_per_pixel)


def allocate_frame(contract: FrameContract, index: int = 0) -> RawFrame:
    """Allocate a zeroed frame for a contract."""
    shape = expected_array_shape(contract.width, contract.height, contract.pixel_format)
    return RawFrame(
        width=contract.width,
        height=contract.height,
        pixel_format=contract.pixel_format,
        data=np.zeros(shape, dtype=np.uint8),
        index=index,
    )


def make_yuyv_frame(width: int, height: int, y: int = 16, u: int = 128,
                    v: int = 128, index: int = 0) -> RawFrame:
    """
    Create a uniform YUYV frame.

    Defaults produce black (video-range luma 16, neutral chroma).
    """
    data = np.empty((height, width, 2), dtype=np.uint8)
    data[:, :, 0] = y
    data[:, 0::2, 1] = u
    data[:, 1::2, 1] = v
    return RawFrame(width, height, PixelFormat.YUYV, data, index)


def validate_frame(frame: RawFrame, expected_width: int, expected_height: int,
                   expected_format: PixelFormat, name: str = "input") -> RawFrame:
    """
    Check that a frame matches the exact declared width, height and format.

    Args:
        frame: Frame to check
        expected_width: Required width in pixels
        expected_height: Required height in pixels
        expected_format: Required pixel encoding
        name: Frame role for error messages ("input" or "output")

    Returns:
        The same frame, unchanged

    Raises:
        FormatMismatch: if the declared geometry or the backing buffer differs
    """
    expected = f"{expected_width}x{expected_height} {expected_format.value}"

    if (frame.width, frame.height, frame.pixel_format) != (expected_width, expected_height, expected_format):
        logger.critical(f"Incorrect {name} frame: {frame.describe()}, require {expected}")
        raise FormatMismatch(name, expected, frame.describe())

    shape = expected_array_shape(expected_width, expected_height, expected_format)
    if frame.data.shape != shape or frame.data.dtype != np.uint8:
        actual = f"buffer {frame.data.shape} {frame.data.dtype}"
        logger.critical(f"Incorrect {name} buffer: {actual}, require {shape} uint8")
        raise FormatMismatch(name, f"buffer {shape} uint8", actual)

    return frame


def validate_contract(frame: RawFrame, contract: FrameContract, name: str = "input") -> RawFrame:
    """Validate a frame against a FrameContract."""
    return validate_frame(frame, contract.width, contract.height, contract.pixel_format, name)


def frame_from_array(data: np.ndarray, pixel_format: PixelFormat = PixelFormat.YUYV,
                     index: int = 0) -> RawFrame:
    """Wrap an existing array as a frame, deriving width and height from its shape."""
    height, width = data.shape[:2]
    return RawFrame(width, height, pixel_format, data, index)


def crop_frame(frame: RawFrame, x: int, y: int, width: int, height: int,
               index: Optional[int] = None, copy: bool = True) -> RawFrame:
    """Cut a rectangular window out of a frame. With copy=False the data is a view."""
    data = frame.data[y:y + height, x:x + width]
    if copy:
        data = data.copy()
    return RawFrame(width, height, frame.pixel_format, data,
                    frame.index if index is None else index)
