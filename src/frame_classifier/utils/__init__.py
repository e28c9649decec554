# src/frame_classifier/utils/__init__.py
"""
Utilities for the frame classifier: logging setup and frame timing.
"""

from .logging import (
    ColoredFormatter,
    JSONFormatter,
    setup_logging,
    get_logger,
)

from .profiler import FrameTimer

__all__ = [
    'ColoredFormatter',
    'JSONFormatter',
    'setup_logging',
    'get_logger',
    'FrameTimer',
]
