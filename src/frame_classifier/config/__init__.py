"""
Configuration module for the frame classifier pipeline.
Provides easy access to all configuration classes.
"""

from .base_config import BaseConfig
from .categories import CIFAR10_CATEGORIES, load_category_names
from .pipeline_config import (
    PipelineConfig, FrameContract, RoiConfig, PreprocessingConfig,
    ClassifierConfig, DecisionConfig, AnnotationConfig,
    PixelFormat, PreprocessingMode, LoadFailurePolicy,
)

__all__ = [
    'BaseConfig',
    'CIFAR10_CATEGORIES', 'load_category_names',
    'PipelineConfig', 'FrameContract', 'RoiConfig', 'PreprocessingConfig',
    'ClassifierConfig', 'DecisionConfig', 'AnnotationConfig',
    'PixelFormat', 'PreprocessingMode', 'LoadFailurePolicy',
]


def load_config(config_path: str) -> PipelineConfig:
    """
    Load a pipeline configuration from a YAML or JSON file.

    Relative weights and category paths are resolved against the
    directory holding the config file.
    """
    from pathlib import Path

    config = PipelineConfig.load(config_path)
    base_dir = Path(config_path).resolve().parent

    classifier = config.classifier
    if classifier.weights_path and not Path(classifier.weights_path).is_absolute():
        classifier.weights_path = str(base_dir / classifier.weights_path)
    if classifier.category_file and not Path(classifier.category_file).is_absolute():
        classifier.category_file = str(base_dir / classifier.category_file)

    return config
