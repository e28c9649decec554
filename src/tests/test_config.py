#!/usr/bin/env python3
"""
Configuration tests.
Tests include:
1. Deployment presets
2. Validation of frame contracts, ROI and layout
3. YAML/JSON round trips and the shipped config files
4. Category tables
"""

import os
import shutil
import sys
import tempfile
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from frame_classifier.config import (
    PipelineConfig, FrameContract, RoiConfig, PreprocessingConfig, ClassifierConfig,
    DecisionConfig, AnnotationConfig, PixelFormat, PreprocessingMode, LoadFailurePolicy,
    CIFAR10_CATEGORIES, load_category_names, load_config,
)
from frame_classifier.errors import ConfigurationError

CONFIG_DIR = Path(__file__).parent.parent.parent / "configs"


class TestPresets:
    """Test the two deployment presets."""

    def test_whole_frame_preset(self):
        config = PipelineConfig.whole_frame()

        assert config.preprocessing.mode == PreprocessingMode.WHOLE_FRAME
        assert config.decision.high_threshold == 90.0
        assert config.decision.low_threshold == 60.0
        assert config.classifier.on_load_failure == LoadFailurePolicy.FATAL
        print("✓ Whole-frame preset uses 90/60 and a fatal load policy")

    def test_roi_preset(self):
        config = PipelineConfig.roi()

        assert config.preprocessing.mode == PreprocessingMode.ROI
        assert config.decision.high_threshold == 90.0
        assert config.decision.low_threshold == 20.0
        assert config.classifier.on_load_failure == LoadFailurePolicy.DEGRADED
        print("✓ ROI preset uses 90/20 and a degraded load policy")

    def test_preset_overrides(self):
        config = PipelineConfig.whole_frame(frame_rate=15.0)
        assert config.frame_rate == 15.0
        assert config.frame_period == pytest.approx(1.0 / 15.0)

    def test_defaults(self):
        config = PipelineConfig()

        assert config.capture.describe() == "640x480 YUYV"
        assert config.classifier.input_shape == (3, 32, 32)
        assert config.classifier.num_classes == 10
        assert config.classifier.category_names == CIFAR10_CATEGORIES


class TestValidation:
    """Test configuration validation."""

    def test_odd_roi_rejected(self):
        with pytest.raises(ConfigurationError):
            RoiConfig(x=255)
        with pytest.raises(ConfigurationError):
            RoiConfig(width=127)

    def test_roi_outside_capture_rejected(self):
        with pytest.raises(ConfigurationError):
            PipelineConfig(preprocessing=PreprocessingConfig(
                mode=PreprocessingMode.ROI, roi=RoiConfig(x=600, y=0, width=128, height=128)))

    def test_roi_outside_capture_ignored_in_whole_frame_mode(self):
        config = PipelineConfig(preprocessing=PreprocessingConfig(
            mode=PreprocessingMode.WHOLE_FRAME, roi=RoiConfig(x=600, y=0, width=128, height=128)))
        assert config.preprocessing.mode == PreprocessingMode.WHOLE_FRAME

    def test_render_smaller_than_capture_rejected(self):
        with pytest.raises(ConfigurationError):
            PipelineConfig(render=FrameContract(width=320, height=240))

    def test_invalid_values(self):
        with pytest.raises(ConfigurationError):
            FrameContract(width=0)
        with pytest.raises(ConfigurationError):
            ClassifierConfig(output_bounds=(1.0, 0.0))
        with pytest.raises(ConfigurationError):
            ClassifierConfig(category_names=())
        with pytest.raises(ConfigurationError):
            DecisionConfig(top_k=0)
        with pytest.raises(ConfigurationError):
            AnnotationConfig(patch_slot=(3, 0))
        with pytest.raises(ConfigurationError):
            PipelineConfig(frame_rate=0)

    def test_pixel_format_sizes(self):
        assert PixelFormat.YUYV.bytes_per_pixel == 2
        assert PixelFormat.RGB24.bytes_per_pixel == 3
        assert PixelFormat.GREY.bytes_per_pixel == 1


class TestSerialization:
    """Test saving and loading configurations."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_yaml_round_trip(self):
        config = PipelineConfig.roi()
        config.decision.low_threshold = 25.0
        path = os.path.join(self.temp_dir, "config.yaml")
        config.save(path)

        loaded = PipelineConfig.load(path)

        assert loaded.to_dict() == config.to_dict()
        assert loaded.preprocessing.mode == PreprocessingMode.ROI
        assert loaded.capture.pixel_format == PixelFormat.YUYV
        assert loaded.annotation.scores_origin == (3, 426)
        print("✓ YAML round trip preserves enums, tuples and nested sections")

    def test_json_round_trip(self):
        config = PipelineConfig.whole_frame()
        path = os.path.join(self.temp_dir, "config.json")
        config.save(path)

        assert PipelineConfig.load(path).to_dict() == config.to_dict()

    def test_unknown_key_rejected(self):
        with pytest.raises(ValueError):
            PipelineConfig.from_dict({"decision": {"threshold": 90}})

    def test_unsupported_format(self):
        with pytest.raises(ValueError):
            PipelineConfig().save(os.path.join(self.temp_dir, "config.txt"))

    def test_missing_file(self):
        with pytest.raises(FileNotFoundError):
            load_config(os.path.join(self.temp_dir, "missing.yaml"))

    def test_relative_paths_resolved(self):
        path = os.path.join(self.temp_dir, "config.yaml")
        Path(path).write_text(
            "classifier:\n"
            "  weights_path: weights/net.pt\n"
            "  category_file: labels.txt\n"
        )

        config = load_config(path)

        base = Path(self.temp_dir).resolve()
        assert config.classifier.weights_path == str(base / "weights" / "net.pt")
        assert config.classifier.category_file == str(base / "labels.txt")

    def test_shipped_configs(self):
        whole = load_config(str(CONFIG_DIR / "whole_frame.yaml"))
        roi = load_config(str(CONFIG_DIR / "roi.yaml"))

        assert whole.preprocessing.mode == PreprocessingMode.WHOLE_FRAME
        assert whole.decision.low_threshold == 60.0
        assert whole.annotation.banner_color == 0x8000

        assert roi.preprocessing.mode == PreprocessingMode.ROI
        assert roi.decision.low_threshold == 20.0
        assert roi.classifier.on_load_failure == LoadFailurePolicy.DEGRADED
        assert roi.preprocessing.roi.width == 128
        assert Path(roi.classifier.weights_path).is_absolute()
        print("✓ Shipped configs load")


class TestCategories:
    """Test category tables."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_load_category_names(self):
        path = os.path.join(self.temp_dir, "labels.txt")
        Path(path).write_text("cat\n\ndog\n  bird  \n\n")

        assert load_category_names(path) == ("cat", "dog", "bird")

    def test_empty_file(self):
        path = os.path.join(self.temp_dir, "labels.txt")
        Path(path).write_text("\n\n")

        with pytest.raises(ValueError):
            load_category_names(path)

    def test_missing_file(self):
        with pytest.raises(FileNotFoundError):
            load_category_names(os.path.join(self.temp_dir, "missing.txt"))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
