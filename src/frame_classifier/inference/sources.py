# src/frame_classifier/inference/sources.py
"""
Frame sources and sinks.

A source hands out input frames with a blocking acquire() and takes them
back with release(); a sink hands out writable output frames with acquire()
and takes them back with commit(). Every acquire is matched by exactly one
release/commit; the in-memory implementations enforce it.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Union

import cv2
import numpy as np

from ..config.pipeline_config import FrameContract, PixelFormat
from .frames import RawFrame, allocate_frame, frame_from_array
from .yuyv import bgr_to_yuyv, yuyv_to_bgr

logger = logging.getLogger(__name__)


class FrameSource(ABC):
    """Supplies input frames of a fixed contract."""

    def __init__(self, contract: FrameContract):
        self.contract = contract

    @property
    @abstractmethod
    def exhausted(self) -> bool:
        """True when no more frames will ever arrive."""

    @abstractmethod
    def acquire(self, timeout: Optional[float] = None) -> Optional[RawFrame]:
        """
        Wait for the next frame.

        Returns:
            The frame, or None if nothing arrived in time (transient stall)
        """

    @abstractmethod
    def release(self, frame: RawFrame):
        """Give a frame back. Mandatory, exactly once per acquired frame."""

    def close(self):
        """Release underlying resources."""


class FrameSink(ABC):
    """Supplies writable output frames of a fixed contract."""

    def __init__(self, contract: FrameContract):
        self.contract = contract

    @abstractmethod
    def acquire(self) -> RawFrame:
        """Get the next output buffer."""

    @abstractmethod
    def commit(self, frame: RawFrame):
        """Send a finished output frame. Mandatory, exactly once per acquire."""

    def close(self):
        """Release underlying resources."""


class _OwnershipTracker:
    """Detects frames returned twice or never handed out."""

    def __init__(self, role: str):
        self.role = role
        self.outstanding = set()
        self.returned = 0

    def hand_out(self, frame: RawFrame):
        self.outstanding.add(id(frame))

    def take_back(self, frame: RawFrame):
        if id(frame) not in self.outstanding:
            raise RuntimeError(f"{self.role}: frame {frame.index} returned twice or never acquired")
        self.outstanding.discard(id(frame))
        self.returned += 1


class ArrayFrameSource(FrameSource):
    """
    Replays frames from memory.

    Items may be RawFrames, packed YUYV arrays or None; None simulates an
    acquisition stall.
    """

    def __init__(self, frames: Iterable[Union[RawFrame, np.ndarray, None]],
                 contract: Optional[FrameContract] = None):
        super().__init__(contract or FrameContract())
        self._pending: List[Union[RawFrame, np.ndarray, None]] = list(frames)
        self._next_index = 0
        self._tracker = _OwnershipTracker("source")
        self.acquired = 0

    @property
    def exhausted(self) -> bool:
        return not self._pending

    @property
    def released(self) -> int:
        return self._tracker.returned

    @property
    def outstanding(self) -> int:
        return len(self._tracker.outstanding)

    def acquire(self, timeout: Optional[float] = None) -> Optional[RawFrame]:
        if not self._pending:
            return None

        item = self._pending.pop(0)
        if item is None:
            return None

        if isinstance(item, np.ndarray):
            item = frame_from_array(item, self.contract.pixel_format)

        item.index = self._next_index
        self._next_index += 1
        self._tracker.hand_out(item)
        self.acquired += 1
        return item

    def release(self, frame: RawFrame):
        self._tracker.take_back(frame)


class VideoCaptureSource(FrameSource):
    """
    Camera or video file through OpenCV, re-encoded to packed YUYV.

    OpenCV delivers BGR; frames are converted to the capture contract's
    YUYV encoding. With fit_to_contract the image is first resized to the
    contract size; otherwise a camera delivering another size fails
    frame validation downstream.

    A camera that fails max_read_failures reads in a row is treated as
    disconnected and the source reports itself exhausted.
    """

    def __init__(self, source: Union[int, str], contract: Optional[FrameContract] = None,
                 fit_to_contract: bool = False, max_read_failures: int = 30,
                 capture: Optional[cv2.VideoCapture] = None):
        super().__init__(contract or FrameContract())
        if self.contract.pixel_format != PixelFormat.YUYV:
            raise ValueError("VideoCaptureSource only produces YUYV frames")

        if isinstance(source, str) and source.isdigit():
            source = int(source)
        self.source = source
        self.is_camera = isinstance(source, int)
        self.fit_to_contract = fit_to_contract
        self.max_read_failures = max_read_failures

        self.cap = capture if capture is not None else cv2.VideoCapture(source)
        if not self.cap.isOpened():
            raise ValueError(f"Cannot open video source: {source}")

        if self.is_camera:
            self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.contract.width)
            self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.contract.height)

        self._exhausted = False
        self._read_failures = 0
        self._next_index = 0
        self._tracker = _OwnershipTracker("source")
        logger.info(f"VideoCaptureSource opened: {source}")

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    def acquire(self, timeout: Optional[float] = None) -> Optional[RawFrame]:
        ret, bgr = self.cap.read()
        if not ret:
            if not self.is_camera:
                self._exhausted = True
                return None

            self._read_failures += 1
            if self._read_failures >= self.max_read_failures:
                logger.error(f"Camera {self.source} failed {self._read_failures} reads in a row, giving up")
                self._exhausted = True
            else:
                logger.debug(f"No frame from camera {self.source}")
                if timeout:
                    time.sleep(timeout)
            return None

        self._read_failures = 0

        if self.fit_to_contract and bgr.shape[:2] != (self.contract.height, self.contract.width):
            bgr = cv2.resize(bgr, (self.contract.width, self.contract.height),
                             interpolation=cv2.INTER_AREA)
        if bgr.shape[1] % 2:
            bgr = bgr[:, :-1]

        data = bgr_to_yuyv(bgr)
        frame = RawFrame(data.shape[1], data.shape[0], PixelFormat.YUYV, data, self._next_index)
        self._next_index += 1
        self._tracker.hand_out(frame)
        return frame

    def release(self, frame: RawFrame):
        self._tracker.take_back(frame)

    def close(self):
        if self.cap.isOpened():
            self.cap.release()
        logger.info(f"VideoCaptureSource closed: {self.source}")


class CollectingFrameSink(FrameSink):
    """Keeps committed frames in memory."""

    def __init__(self, contract: Optional[FrameContract] = None, max_frames: Optional[int] = None):
        super().__init__(contract or FrameContract())
        self.max_frames = max_frames
        self.frames: List[RawFrame] = []
        self._tracker = _OwnershipTracker("sink")
        self._next_index = 0
        self.acquired = 0

    @property
    def committed(self) -> int:
        return self._tracker.returned

    @property
    def outstanding(self) -> int:
        return len(self._tracker.outstanding)

    def acquire(self) -> RawFrame:
        frame = allocate_frame(self.contract, self._next_index)
        self._next_index += 1
        self._tracker.hand_out(frame)
        self.acquired += 1
        return frame

    def commit(self, frame: RawFrame):
        self._tracker.take_back(frame)
        self.frames.append(frame)
        if self.max_frames is not None and len(self.frames) > self.max_frames:
            self.frames.pop(0)


class VideoWriterSink(FrameSink):
    """Writes committed YUYV frames to a video file as BGR."""

    def __init__(self, path: str, contract: Optional[FrameContract] = None,
                 fps: float = 7.5, fourcc: str = "mp4v"):
        super().__init__(contract or FrameContract())
        self.path = path
        self.writer = cv2.VideoWriter(
            path,
            cv2.VideoWriter_fourcc(*fourcc),
            fps,
            (self.contract.width, self.contract.height),
        )
        if not self.writer.isOpened():
            raise ValueError(f"Cannot open video writer: {path}")

        self._tracker = _OwnershipTracker("sink")
        self._next_index = 0
        logger.info(f"VideoWriterSink writing to {path}")

    def acquire(self) -> RawFrame:
        frame = allocate_frame(self.contract, self._next_index)
        self._next_index += 1
        self._tracker.hand_out(frame)
        return frame

    def commit(self, frame: RawFrame):
        self._tracker.take_back(frame)
        self.writer.write(yuyv_to_bgr(frame.data))

    def close(self):
        self.writer.release()
        logger.info(f"VideoWriterSink closed: {self.path}")
