"""
Pipeline configuration for the frame classifier.
Contains all settings for frame contracts, preprocessing, the classifier,
the decision engine and the annotated output.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from .base_config import BaseConfig
from .categories import CIFAR10_CATEGORIES
from ..errors import ConfigurationError


class PixelFormat(Enum):
    """Pixel encodings a frame can carry."""
    YUYV = "YUYV"    # packed 4:2:2, two bytes per pixel
    RGB24 = "RGB3"
    BGR24 = "BGR3"
    GREY = "GREY"

    @property
    def bytes_per_pixel(self) -> int:
        return {"YUYV": 2, "RGB3": 3, "BGR3": 3, "GREY": 1}[self.value]


class PreprocessingMode(Enum):
    """Preprocessing strategies."""
    WHOLE_FRAME = "whole_frame"
    ROI = "roi"


class LoadFailurePolicy(Enum):
    """What to do when classifier parameters cannot be loaded."""
    FATAL = "fatal"          # halt at startup
    DEGRADED = "degraded"    # continue with a placeholder classifier, log loudly


@dataclass
class FrameContract(BaseConfig):
    """Exact width, height and pixel encoding a frame must carry."""

    width: int = 640
    height: int = 480
    pixel_format: PixelFormat = PixelFormat.YUYV

    def validate(self):
        if self.width <= 0 or self.height <= 0:
            raise ConfigurationError(f"Frame size must be positive, got {self.width}x{self.height}")

    def describe(self) -> str:
        return f"{self.width}x{self.height} {self.pixel_format.value}"


@dataclass
class RoiConfig(BaseConfig):
    """Fixed region-of-interest window, in capture-frame pixels."""

    x: int = 256
    y: int = 176
    width: int = 128
    height: int = 128

    def validate(self):
        if self.width <= 0 or self.height <= 0:
            raise ConfigurationError("ROI width and height must be positive")
        if self.x < 0 or self.y < 0:
            raise ConfigurationError("ROI origin must be non-negative")
        # YUYV stores chroma per pixel pair
        if self.x % 2 or self.width % 2:
            raise ConfigurationError(
                f"ROI x ({self.x}) and width ({self.width}) must be even for packed YUYV"
            )

    def fits_in(self, width: int, height: int) -> bool:
        return self.x + self.width <= width and self.y + self.height <= height


@dataclass
class PreprocessingConfig(BaseConfig):
    """Preprocessing configuration."""

    mode: PreprocessingMode = PreprocessingMode.WHOLE_FRAME
    """Whole-frame resize or fixed ROI crop before resize."""

    roi: RoiConfig = field(default_factory=RoiConfig)
    """ROI window, used only in ROI mode."""

    show_network_input: bool = False
    """Show the decoded network input in an OpenCV window (debugging)."""


@dataclass
class ClassifierConfig(BaseConfig):
    """Classifier and parameter-store configuration."""

    weights_path: Optional[str] = None
    """Serialized state_dict, absolute or relative to the config file."""

    on_load_failure: LoadFailurePolicy = LoadFailurePolicy.FATAL
    """Explicit policy when weights are missing or corrupt."""

    input_channels: int = 3
    input_height: int = 32
    input_width: int = 32

    output_bounds: Tuple[float, float] = (0.0, 1.0)
    """Native output range of the final activation (softmax), used to rescale to 0-100."""

    category_names: Tuple[str, ...] = CIFAR10_CATEGORIES
    category_file: Optional[str] = None
    """Optional label file overriding category_names."""

    num_threads: Optional[int] = None
    """Intra-op threads for the forward pass. None keeps the torch default."""

    def validate(self):
        if min(self.input_channels, self.input_height, self.input_width) <= 0:
            raise ConfigurationError("Classifier input shape must be positive")
        lo, hi = self.output_bounds
        if hi <= lo:
            raise ConfigurationError(f"Invalid output bounds {self.output_bounds}")
        if not self.category_names:
            raise ConfigurationError("Category table must not be empty")

    @property
    def input_shape(self) -> Tuple[int, int, int]:
        return (self.input_channels, self.input_height, self.input_width)

    @property
    def num_classes(self) -> int:
        return len(self.category_names)


@dataclass
class DecisionConfig(BaseConfig):
    """Margin test thresholds, in rescaled 0-100 units."""

    high_threshold: float = 90.0
    low_threshold: float = 60.0
    top_k: int = 3

    def validate(self):
        if self.top_k < 1:
            raise ConfigurationError("top_k must be at least 1")


@dataclass
class AnnotationConfig(BaseConfig):
    """Layout of the annotated output frame. Colors are packed YUYV words."""

    banner_y: int = 410
    banner_color: int = 0x8000    # black
    text_color: int = 0x80FF      # white
    text_scale: float = 0.45
    text_thickness: int = 1

    scores_origin: Tuple[int, int] = (3, 426)
    line_spacing: int = 18
    label_origin: Tuple[int, int] = (350, 440)
    fps_origin: Tuple[int, int] = (350, 467)

    roi_outline_color: int = 0x80FF
    patch_slot: Optional[Tuple[int, int]] = None
    """Top-left of the confirmed patch slot. None places it top-right."""

    def validate(self):
        if self.line_spacing <= 0 or self.text_thickness <= 0:
            raise ConfigurationError("line_spacing and text_thickness must be positive")
        if self.patch_slot is not None and self.patch_slot[0] % 2:
            raise ConfigurationError(f"patch_slot x must be even for packed YUYV, got {self.patch_slot[0]}")


@dataclass
class PipelineConfig(BaseConfig):
    """Complete pipeline configuration."""

    capture: FrameContract = field(default_factory=FrameContract)
    render: FrameContract = field(default_factory=FrameContract)
    preprocessing: PreprocessingConfig = field(default_factory=PreprocessingConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    decision: DecisionConfig = field(default_factory=DecisionConfig)
    annotation: AnnotationConfig = field(default_factory=AnnotationConfig)

    frame_rate: float = 7.5
    """Camera frame rate; one frame period is the soft deadline."""

    timer_window: int = 100
    log_interval: int = 100

    def validate(self):
        if self.frame_rate <= 0:
            raise ConfigurationError("frame_rate must be positive")
        if self.timer_window < 1:
            raise ConfigurationError("timer_window must be at least 1")
        if self.render.width < self.capture.width or self.render.height < self.capture.height:
            raise ConfigurationError(
                f"Render contract {self.render.describe()} cannot hold "
                f"capture contract {self.capture.describe()}"
            )
        if self.preprocessing.mode == PreprocessingMode.ROI:
            if not self.preprocessing.roi.fits_in(self.capture.width, self.capture.height):
                raise ConfigurationError("ROI window lies outside the capture frame")

    @property
    def frame_period(self) -> float:
        return 1.0 / self.frame_rate

    @classmethod
    def whole_frame(cls, **overrides) -> 'PipelineConfig':
        """Whole-frame deployment: margin test 90 / 60."""
        config = cls(
            preprocessing=PreprocessingConfig(mode=PreprocessingMode.WHOLE_FRAME),
            decision=DecisionConfig(high_threshold=90.0, low_threshold=60.0),
            classifier=ClassifierConfig(on_load_failure=LoadFailurePolicy.FATAL),
        )
        for key, value in overrides.items():
            setattr(config, key, value)
        config.validate()
        return config

    @classmethod
    def roi(cls, **overrides) -> 'PipelineConfig':
        """ROI deployment: margin test 90 / 20, confirmed patch cached."""
        config = cls(
            preprocessing=PreprocessingConfig(mode=PreprocessingMode.ROI),
            decision=DecisionConfig(high_threshold=90.0, low_threshold=20.0),
            classifier=ClassifierConfig(on_load_failure=LoadFailurePolicy.DEGRADED),
        )
        for key, value in overrides.items():
            setattr(config, key, value)
        config.validate()
        return config
