# src/frame_classifier/inference/preprocessing.py
"""
Tensor preprocessing for the frame classifier.

Converts a validated packed-YUYV frame into the exact tensor the classifier
was trained on:
1. YUYV -> RGB decode (fixed by the capture format)
2. Area-averaging resize to the network input size
3. Affine map of every 8-bit sample v to v * 2/255 - 1, i.e. [0, 255] -> [-1, 1]

Two strategies share the normalization step: whole-frame and fixed ROI crop.
"""

import logging
from abc import ABC, abstractmethod
from typing import Tuple

import cv2
import numpy as np
import torch

from ..config.pipeline_config import PreprocessingConfig, PreprocessingMode, RoiConfig
from ..errors import ConfigurationError, ShapeContractViolation
from .frames import RawFrame, crop_frame
from .yuyv import yuyv_to_rgb

logger = logging.getLogger(__name__)

NETWORK_INPUT_WINDOW = "Input image to network"


def normalize_pixels(pixels: np.ndarray) -> torch.Tensor:
    """
    Map uint8 samples linearly to [-1, 1] and flatten channel-major.

    Args:
        pixels: (H, W, C) uint8 image

    Returns:
        Flat float32 tensor of length C*H*W in (C, H, W) order
    """
    tensor = torch.from_numpy(np.ascontiguousarray(pixels)).permute(2, 0, 1).float()
    tensor = tensor * (2.0 / 255.0) - 1.0
    return tensor.reshape(-1)


class Preprocessor(ABC):
    """
    Preprocessing strategy interface.

    Subclasses choose which pixels reach the network; decoding, resizing and
    normalization are shared.
    """

    def __init__(self, target_size: Tuple[int, int], channels: int = 3,
                 show_network_input: bool = False):
        """
        Args:
            target_size: Network input (width, height)
            channels: Network input channels
            show_network_input: Display the resized RGB input for debugging
        """
        self.target_width, self.target_height = target_size
        self.channels = channels
        self.show_network_input = show_network_input

        if channels != 3:
            raise ConfigurationError(f"YUYV decode produces 3 channels, network wants {channels}")

    @property
    def tensor_length(self) -> int:
        return self.channels * self.target_width * self.target_height

    @abstractmethod
    def select_region(self, frame: RawFrame) -> np.ndarray:
        """Return the packed YUYV pixels that feed the network."""

    def preprocess(self, frame: RawFrame) -> torch.Tensor:
        """
        Convert a frame into the classifier input tensor.

        Raises:
            ShapeContractViolation: if the tensor length differs from
                channels * width * height
        """
        region = self.select_region(frame)
        rgb = yuyv_to_rgb(region)
        resized = cv2.resize(rgb, (self.target_width, self.target_height),
                             interpolation=cv2.INTER_AREA)

        if self.show_network_input:
            cv2.imshow(NETWORK_INPUT_WINDOW, cv2.cvtColor(resized, cv2.COLOR_RGB2BGR))
            cv2.waitKey(1)

        tensor = normalize_pixels(resized)
        if tensor.numel() != self.tensor_length:
            raise ShapeContractViolation(self.tensor_length, tensor.numel())
        return tensor


class WholeFramePreprocessor(Preprocessor):
    """Resize the entire frame."""

    def select_region(self, frame: RawFrame) -> np.ndarray:
        return frame.data


class RoiPreprocessor(Preprocessor):
    """Crop a fixed window before resizing."""

    def __init__(self, roi: RoiConfig, target_size: Tuple[int, int], channels: int = 3,
                 show_network_input: bool = False):
        super().__init__(target_size, channels, show_network_input)
        self.roi = roi

    def check_fits(self, width: int, height: int):
        if not self.roi.fits_in(width, height):
            raise ConfigurationError(
                f"ROI {self.roi.width}x{self.roi.height}+{self.roi.x}+{self.roi.y} "
                f"lies outside {width}x{height} frame"
            )

    def select_region(self, frame: RawFrame) -> np.ndarray:
        return np.ascontiguousarray(self.window(frame).data)

    def window(self, frame: RawFrame) -> RawFrame:
        """Raw ROI window as a view into the frame. Copy it before the frame is released."""
        self.check_fits(frame.width, frame.height)
        r = self.roi
        return crop_frame(frame, r.x, r.y, r.width, r.height, copy=False)


def create_preprocessor(config: PreprocessingConfig, target_size: Tuple[int, int],
                        channels: int = 3) -> Preprocessor:
    """
    Build the preprocessing strategy selected by configuration.

    Args:
        config: Preprocessing configuration
        target_size: Network input (width, height)
        channels: Network input channels
    """
    if config.mode == PreprocessingMode.ROI:
        preprocessor = RoiPreprocessor(config.roi, target_size, channels, config.show_network_input)
    else:
        preprocessor = WholeFramePreprocessor(target_size, channels, config.show_network_input)

    logger.info(f"{type(preprocessor).__name__} initialized "
                f"(network input: {channels}x{target_size[1]}x{target_size[0]})")
    return preprocessor
