#!/usr/bin/env python3
"""
Pipeline driver tests.
Tests include:
1. End-to-end scenarios with canned classifier scores
2. Frame ownership: every acquired frame released/committed exactly once
3. Fatal halts on format mismatch, before any preprocessing
4. Acquisition stalls, deadline misses and ROI patch caching
"""

import shutil
import sys
import tempfile
from pathlib import Path

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from frame_classifier.config import CIFAR10_CATEGORIES, FrameContract, PipelineConfig
from frame_classifier.errors import AcquisitionStall, ConfigurationError, FormatMismatch
from frame_classifier.inference.classifier import StaticClassifier
from frame_classifier.inference.decision import DecisionState
from frame_classifier.inference.frames import make_yuyv_frame
from frame_classifier.inference.pipeline import PipelineState, build_pipeline
from frame_classifier.inference.sources import (
    ArrayFrameSource, CollectingFrameSink, FrameSource, VideoCaptureSource,
)
from frame_classifier.utils.profiler import FrameTimer


def scores(*head):
    """Ten-category score vector starting with the given values."""
    return list(head) + [0.0] * (10 - len(head))


def frames(count, **kwargs):
    return [make_yuyv_frame(640, 480, **kwargs) for _ in range(count)]


class StallingSource(FrameSource):
    """Raises AcquisitionStall once, then serves one frame."""

    def __init__(self):
        super().__init__(FrameContract())
        self.calls = 0
        self.released = 0

    @property
    def exhausted(self):
        return self.calls >= 2

    def acquire(self, timeout=None):
        self.calls += 1
        if self.calls == 1:
            raise AcquisitionStall("camera busy")
        return make_yuyv_frame(640, 480)

    def release(self, frame):
        self.released += 1


class FailingClassifier(StaticClassifier):
    """Raises on the first forward pass, then behaves like StaticClassifier."""

    def forward(self, tensor):
        if self.calls == 0:
            self.calls += 1
            raise RuntimeError("inference backend error")
        return super().forward(tensor)


class FakeCapture:
    """Stands in for cv2.VideoCapture with scripted read results."""

    def __init__(self, reads):
        self.reads = list(reads)
        self.released = False

    def isOpened(self):
        return not self.released

    def set(self, prop, value):
        return True

    def read(self):
        if self.reads:
            return self.reads.pop(0)
        return False, None

    def release(self):
        self.released = True


class TestWholeFramePipeline:
    """Test the whole-frame deployment end to end."""

    def setup_method(self):
        self.config = PipelineConfig.whole_frame()
        self.sink = CollectingFrameSink(self.config.render)

    def make_pipeline(self, *vectors, **kwargs):
        classifier = StaticClassifier(vectors)
        return build_pipeline(self.config, classifier=classifier, warmup=False, **kwargs)

    def test_scenario_confirm(self):
        pipeline = self.make_pipeline(scores(91, 58, 40))
        source = ArrayFrameSource(frames(1))

        result = pipeline.step(source, self.sink)

        assert result.confirmed
        assert pipeline.decision_state.confirmed_label == "airplane"
        assert pipeline.state == PipelineState.IDLE
        print("✓ Scenario [91, 58, 40, ...] confirms")

    def test_scenario_unchanged(self):
        start = DecisionState("ship", 8, 97.0)
        pipeline = self.make_pipeline(scores(91, 65, 40), decision_state=start)

        result = pipeline.step(ArrayFrameSource(frames(1)), self.sink)

        assert not result.confirmed
        assert pipeline.decision_state is start
        print("✓ Scenario [91, 65, 40, ...] keeps the previous label")

    def test_scenario_wrong_height_halts_before_preprocessing(self):
        pipeline = self.make_pipeline(scores(91, 58, 40))
        calls = []
        original = pipeline.preprocessor.preprocess
        pipeline.preprocessor.preprocess = lambda frame: calls.append(frame) or original(frame)

        source = ArrayFrameSource([make_yuyv_frame(640, 360)])
        with pytest.raises(FormatMismatch):
            pipeline.step(source, self.sink)

        assert calls == []
        assert pipeline.classifier.calls == 0
        assert pipeline.state == PipelineState.HALTED
        assert source.released == 1
        assert self.sink.committed == 1
        print("✓ Wrong height halts before preprocessing, frames still returned")

    def test_halted_pipeline_refuses_frames(self):
        pipeline = self.make_pipeline(scores(91, 58, 40))
        with pytest.raises(FormatMismatch):
            pipeline.step(ArrayFrameSource([make_yuyv_frame(640, 360)]), self.sink)

        with pytest.raises(RuntimeError):
            pipeline.step(ArrayFrameSource(frames(1)), self.sink)

    def test_wrong_output_frame(self):
        pipeline = self.make_pipeline(scores(91, 58, 40))
        sink = CollectingFrameSink(FrameContract(320, 240))

        with pytest.raises(FormatMismatch):
            pipeline.step(ArrayFrameSource(frames(1)), sink)
        assert sink.committed == 1

    def test_frames_released_exactly_once(self):
        pipeline = self.make_pipeline(scores(91, 58, 40), scores(10, 20), scores(5, 5))
        source = ArrayFrameSource(frames(5))

        processed = pipeline.run(source, self.sink)

        assert processed == 5
        assert source.acquired == source.released == 5
        assert source.outstanding == 0
        assert self.sink.acquired == self.sink.committed == 5
        assert self.sink.outstanding == 0
        assert len(self.sink.frames) == 5

    def test_hysteresis_across_frames(self):
        pipeline = self.make_pipeline(scores(91, 58, 40), scores(10, 80, 75), scores(0, 0, 0, 89))
        confirmed = []

        pipeline.run(ArrayFrameSource(frames(3)), self.sink,
                     on_result=lambda count, result: confirmed.append(result.confirmed))

        assert confirmed == [True, False, False]
        assert pipeline.decision_state.confirmed_label == "airplane"

    def test_stalls_are_not_errors(self):
        pipeline = self.make_pipeline(scores(91, 58, 40))
        source = ArrayFrameSource([None, frames(1)[0], None])

        processed = pipeline.run(source, self.sink)

        assert processed == 1
        assert pipeline.stalls == 2
        assert pipeline.state == PipelineState.IDLE

    def test_acquisition_stall_exception(self):
        pipeline = self.make_pipeline(scores(91, 58, 40))
        source = StallingSource()

        assert pipeline.step(source, self.sink) is None
        assert pipeline.step(source, self.sink) is not None
        assert pipeline.stalls == 1
        assert source.released == 1

    def test_max_frames(self):
        pipeline = self.make_pipeline(scores(91, 58, 40))
        source = ArrayFrameSource(frames(4))

        assert pipeline.run(source, self.sink, max_frames=2) == 2
        assert not source.exhausted

    def test_output_frame_annotated(self):
        pipeline = self.make_pipeline(scores(91, 58, 40))
        pipeline.run(ArrayFrameSource(frames(1, y=120)), self.sink)

        output = self.sink.frames[0]
        assert (output.data[:410, :, 0] == 120).all()
        assert (output.data[410:, :, 0] == 0xFF).any()

    def test_classifier_receives_normalized_tensor(self):
        pipeline = self.make_pipeline(scores(91, 58, 40))
        pipeline.run(ArrayFrameSource(frames(1, y=16)), self.sink)

        tensor = pipeline.classifier.inputs[0]
        assert tensor.numel() == 3072
        assert float(tensor.max()) <= -0.98

    def test_deadline_misses_counted(self):
        pipeline = self.make_pipeline(scores(91, 58, 40))
        ticks = iter(np.arange(0.0, 100.0, 1.0))
        pipeline.timer = FrameTimer(clock=lambda: float(next(ticks)))

        pipeline.run(ArrayFrameSource(frames(2)), self.sink)

        assert pipeline.deadline_misses == 2
        stats = pipeline.get_performance_stats()
        assert stats['frames_processed'] == 2
        assert stats['confirmed_label'] == "airplane"
        assert stats['fps'] == pytest.approx(1.0)

    def test_stage_error_returns_to_idle(self):
        classifier = FailingClassifier([scores(91, 58, 40)])
        pipeline = build_pipeline(self.config, classifier=classifier, warmup=False)
        source = ArrayFrameSource(frames(2))

        with pytest.raises(RuntimeError):
            pipeline.step(source, self.sink)

        assert pipeline.state == PipelineState.IDLE
        assert not pipeline.timer.running
        assert source.released == 1
        assert self.sink.committed == 1

        result = pipeline.step(source, self.sink)
        assert result.confirmed
        assert pipeline.timer.total_frames == 1
        print("✓ Inference error resets the driver, next frame succeeds")

    def test_fps_text_drawn(self):
        pipeline = self.make_pipeline(scores(91, 58, 40))
        pipeline.run(ArrayFrameSource(frames(2)), self.sink)

        assert pipeline.timer.total_frames == 2
        assert "fps" in pipeline.timer.text()


class TestRoiPipeline:
    """Test the ROI deployment end to end."""

    def setup_method(self):
        self.config = PipelineConfig.roi()
        self.sink = CollectingFrameSink(self.config.render)

        self.frame = make_yuyv_frame(640, 480, y=16)
        self.frame.data[176:304, 256:384, 0] = 200

    def test_patch_cached_and_drawn(self):
        pipeline = build_pipeline(self.config, classifier=StaticClassifier([scores(95, 10)]), warmup=False)

        pipeline.run(ArrayFrameSource([self.frame]), self.sink)

        patch = pipeline.decision_state.confirmed_patch
        assert patch is not None
        assert (patch.width, patch.height) == (128, 128)
        assert (patch.data[:, :, 0] == 200).all()

        output = self.sink.frames[0]
        assert (output.data[:128, 512:, 0] == 200).all()
        print("✓ ROI pipeline caches and draws the confirmed patch")

    def test_patch_outlives_source_frame(self):
        pipeline = build_pipeline(self.config, classifier=StaticClassifier([scores(95, 10)]), warmup=False)
        pipeline.run(ArrayFrameSource([self.frame]), self.sink)

        assert not np.shares_memory(pipeline.decision_state.confirmed_patch.data, self.frame.data)
        self.frame.data[:] = 0
        assert (pipeline.decision_state.confirmed_patch.data[:, :, 0] == 200).all()

    def test_roi_thresholds_applied(self):
        pipeline = build_pipeline(self.config, classifier=StaticClassifier([scores(91, 58, 40)]), warmup=False)

        pipeline.run(ArrayFrameSource([self.frame]), self.sink)

        assert pipeline.decision_state.confirmed_label is None

    def test_degraded_startup(self):
        self.config.classifier.weights_path = "/nonexistent/cifar_net.pt"

        pipeline = build_pipeline(self.config)
        pipeline.run(ArrayFrameSource([self.frame]), self.sink)

        assert pipeline.frames_processed == 1
        assert pipeline.decision_state.confirmed_label is None
        print("✓ ROI deployment runs degraded without weights")


class TestVideoCaptureSource:
    """Test camera read failures with a scripted capture."""

    def test_disconnected_camera_exhausts(self):
        source = VideoCaptureSource(0, capture=FakeCapture([]), max_read_failures=3)

        assert source.acquire() is None
        assert source.acquire() is None
        assert not source.exhausted
        assert source.acquire() is None
        assert source.exhausted

    def test_successful_read_resets_failures(self):
        bgr = np.zeros((480, 640, 3), dtype=np.uint8)
        reads = [(False, None), (False, None), (True, bgr), (False, None), (False, None)]
        source = VideoCaptureSource(0, capture=FakeCapture(reads), max_read_failures=3)

        source.acquire()
        source.acquire()
        frame = source.acquire()
        assert (frame.width, frame.height) == (640, 480)
        source.release(frame)
        source.acquire()
        source.acquire()

        assert not source.exhausted

    def test_file_ends_on_first_failed_read(self):
        source = VideoCaptureSource("clip.mp4", capture=FakeCapture([]))

        assert source.acquire() is None
        assert source.exhausted

    def test_run_stops_on_dead_camera(self):
        pipeline = build_pipeline(PipelineConfig.whole_frame(),
                                  classifier=StaticClassifier([scores(91, 58, 40)]), warmup=False)
        capture = FakeCapture([])
        source = VideoCaptureSource(0, capture=capture, max_read_failures=3)

        assert pipeline.run(source, CollectingFrameSink()) == 0
        assert pipeline.stalls == 3

        source.close()
        assert capture.released
        print("✓ Run loop ends when the camera stops delivering")


class TestBuildPipeline:
    """Test wiring and startup checks."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_category_file_leaves_config_untouched(self):
        labels = [f"label{i}" for i in range(10)]
        path = Path(self.temp_dir) / "labels.txt"
        path.write_text("\n".join(labels) + "\n")
        config = PipelineConfig.whole_frame()
        config.classifier.category_file = str(path)

        pipeline = build_pipeline(config, classifier=StaticClassifier([scores(91, 58, 40)]), warmup=False)

        assert pipeline.decision_engine.category_names == tuple(labels)
        assert config.classifier.category_names == CIFAR10_CATEGORIES

    def test_fatal_startup_without_weights(self):
        config = PipelineConfig.whole_frame()
        config.classifier.weights_path = "/nonexistent/cifar_net.pt"

        with pytest.raises(ConfigurationError):
            build_pipeline(config)

    def test_category_mismatch(self):
        with pytest.raises(ConfigurationError):
            build_pipeline(PipelineConfig.whole_frame(), classifier=StaticClassifier([[90.0, 5.0]]))

    def test_warmup_runs_forward_pass(self):
        classifier = StaticClassifier([scores(1.0)])
        build_pipeline(PipelineConfig.whole_frame(), classifier=classifier)
        assert classifier.calls == 1

    def test_engine_uses_classifier_bounds(self):
        classifier = StaticClassifier([scores(0.95, 0.05)], output_bounds=(0.0, 1.0))
        pipeline = build_pipeline(PipelineConfig.whole_frame(), classifier=classifier, warmup=False)

        result = pipeline.step(ArrayFrameSource(frames(1)), CollectingFrameSink())

        assert result.ranked[0].score == pytest.approx(95.0)
        assert result.confirmed


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
