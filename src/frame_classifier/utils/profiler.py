# src/frame_classifier/utils/profiler.py
"""
Per-iteration timing for the frame pipeline.

FrameTimer measures each iteration between start() and stop() with a
monotonic clock and keeps a sliding window of durations, from which it
derives the throughput shown on the output frame.
"""

import logging
import time
from collections import deque
from typing import Any, Callable, Dict, Optional

import numpy as np

logger = logging.getLogger(__name__)


class FrameTimer:
    """Windowed frame-rate estimator."""

    def __init__(self, name: str = "Processing", window: int = 100,
                 clock: Callable[[], float] = time.perf_counter):
        """
        Args:
            name: Timer name used in log messages
            window: Number of recent iterations averaged
            clock: Monotonic clock returning seconds
        """
        self.name = name
        self.clock = clock
        self.durations = deque(maxlen=window)
        self.total_frames = 0
        self._start_time: Optional[float] = None

    @property
    def running(self) -> bool:
        return self._start_time is not None

    def start(self):
        """Mark the start of an iteration."""
        if self.running:
            logger.debug(f"Timer '{self.name}' restarted before stop()")
        self._start_time = self.clock()

    def stop(self) -> float:
        """
        Mark the end of an iteration.

        Returns:
            Iteration duration in seconds (0.0 if start() was not called)
        """
        if self._start_time is None:
            logger.warning(f"Timer '{self.name}' stopped without start()")
            return 0.0

        elapsed = self.clock() - self._start_time
        self._start_time = None
        self.durations.append(elapsed)
        self.total_frames += 1
        return elapsed

    @property
    def mean_duration(self) -> float:
        return float(np.mean(self.durations)) if self.durations else 0.0

    @property
    def fps(self) -> float:
        mean = self.mean_duration
        return 1.0 / mean if mean > 0 else 0.0

    def text(self) -> str:
        """Throughput string drawn on the output frame."""
        if not self.durations:
            return f"{self.name}: -- fps"
        return f"{self.name}: {self.fps:.1f} fps, {self.mean_duration * 1000:.1f} ms"

    def summary(self) -> Dict[str, Any]:
        """Timing statistics over the current window, in milliseconds."""
        if not self.durations:
            return {'total_frames': self.total_frames}

        times = np.array(self.durations) * 1000
        return {
            'mean_ms': float(np.mean(times)),
            'std_ms': float(np.std(times)),
            'max_ms': float(np.max(times)),
            'p95_ms': float(np.percentile(times, 95)),
            'fps': self.fps,
            'total_frames': self.total_frames,
        }

    def cancel(self):
        """Drop the running measurement without recording it."""
        self._start_time = None

    def reset(self):
        self.durations.clear()
        self.total_frames = 0
        self._start_time = None
