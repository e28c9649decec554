# src/frame_classifier/inference/__init__.py
"""
Per-frame inference pipeline.

This module provides:
1. Frame buffers and the frame format validator
2. Tensor preprocessing (whole-frame and ROI strategies)
3. The classifier capability and its implementations
4. The decision engine with cross-frame hysteresis
5. Output frame annotation
6. Frame sources/sinks and the pipeline driver
"""

from .frames import RawFrame, validate_frame, validate_contract, allocate_frame, make_yuyv_frame
from .preprocessing import (
    Preprocessor, WholeFramePreprocessor, RoiPreprocessor,
    normalize_pixels, create_preprocessor,
)
from .classifier import (
    Classifier, TorchClassifier, StaticClassifier, PlaceholderClassifier,
    load_classifier, verify_input_contract,
)
from .decision import DecisionEngine, DecisionState, DecisionResult, RankedScore, rank_scores, rescale_scores
from .annotator import FrameAnnotator
from .sources import (
    FrameSource, FrameSink, ArrayFrameSource, VideoCaptureSource,
    CollectingFrameSink, VideoWriterSink,
)
from .pipeline import FramePipeline, PipelineState, build_pipeline

__all__ = [
    # Frames
    'RawFrame', 'validate_frame', 'validate_contract', 'allocate_frame', 'make_yuyv_frame',

    # Preprocessing
    'Preprocessor', 'WholeFramePreprocessor', 'RoiPreprocessor',
    'normalize_pixels', 'create_preprocessor',

    # Classifier
    'Classifier', 'TorchClassifier', 'StaticClassifier', 'PlaceholderClassifier',
    'load_classifier', 'verify_input_contract',

    # Decision
    'DecisionEngine', 'DecisionState', 'DecisionResult', 'RankedScore',
    'rank_scores', 'rescale_scores',

    # Annotation
    'FrameAnnotator',

    # Sources and sinks
    'FrameSource', 'FrameSink', 'ArrayFrameSource', 'VideoCaptureSource',
    'CollectingFrameSink', 'VideoWriterSink',

    # Driver
    'FramePipeline', 'PipelineState', 'build_pipeline',
]
