# src/frame_classifier/inference/pipeline.py
"""
Pipeline driver.

One synchronous iteration per input frame:

    IDLE -> VALIDATING -> PREPROCESSING -> INFERRING -> DECIDING
         -> ANNOTATING -> EMITTING -> IDLE

Frame format and shape errors are configuration errors: they move the
driver to HALTED and propagate. A missing input frame only costs frame
rate. The decision state is the only thing carried between iterations and
is held here, never in module globals.
"""

import dataclasses
import logging
from enum import Enum
from typing import Any, Callable, Dict, Optional

from ..config.categories import load_category_names
from ..config.pipeline_config import PipelineConfig, PreprocessingMode
from ..errors import AcquisitionStall, ConfigurationError
from ..utils.profiler import FrameTimer
from .annotator import FrameAnnotator
from .classifier import Classifier, load_classifier, verify_input_contract
from .decision import DecisionEngine, DecisionResult, DecisionState
from .frames import RawFrame, validate_contract
from .preprocessing import Preprocessor, RoiPreprocessor, create_preprocessor
from .sources import FrameSink, FrameSource

logger = logging.getLogger(__name__)


class PipelineState(Enum):
    """Driver states."""
    IDLE = "idle"
    VALIDATING = "validating"
    PREPROCESSING = "preprocessing"
    INFERRING = "inferring"
    DECIDING = "deciding"
    ANNOTATING = "annotating"
    EMITTING = "emitting"
    HALTED = "halted"


class FramePipeline:
    """
    Runs validation, preprocessing, inference, decision and annotation
    once per frame within the frame-period budget.
    """

    def __init__(self, config: PipelineConfig, preprocessor: Preprocessor, classifier: Classifier,
                 decision_engine: DecisionEngine, annotator: FrameAnnotator,
                 decision_state: Optional[DecisionState] = None,
                 timer: Optional[FrameTimer] = None, self_check: bool = True):
        """
        Args:
            config: Pipeline configuration (frame contracts, timing)
            preprocessor: Preprocessing strategy
            classifier: Classifier capability
            decision_engine: Ranking and margin test
            annotator: Output frame composer
            decision_state: Starting decision state, empty by default
            timer: Frame timer, created from config by default
            self_check: Verify tensor and category shapes now
        """
        self.config = config
        self.preprocessor = preprocessor
        self.classifier = classifier
        self.decision_engine = decision_engine
        self.annotator = annotator

        self.decision_state = decision_state or DecisionState()
        self.timer = timer or FrameTimer(window=config.timer_window)
        self.state = PipelineState.IDLE

        self.frames_processed = 0
        self.stalls = 0
        self.deadline_misses = 0

        if self_check:
            verify_input_contract(preprocessor, classifier, config.capture,
                                  decision_engine.category_names, warmup=False)

        logger.info(f"FramePipeline initialized (capture: {config.capture.describe()}, "
                    f"render: {config.render.describe()}, "
                    f"mode: {config.preprocessing.mode.value})")

    def process_frame(self, inframe: RawFrame, outframe: RawFrame) -> DecisionResult:
        """
        Run one iteration on frames the caller already owns.

        Args:
            inframe: Captured input frame
            outframe: Output buffer, overwritten with the annotated frame

        Returns:
            Decision for this frame

        Raises:
            FormatMismatch, ShapeContractViolation: fatal, pipeline halts
            Exception: anything else from a stage is re-raised after the driver
                returns to IDLE, so the next frame can still be processed
        """
        if self.state == PipelineState.HALTED:
            raise RuntimeError("Pipeline halted after a fatal configuration error")

        try:
            return self._iterate(inframe, outframe)
        except ConfigurationError as e:
            self.state = PipelineState.HALTED
            logger.critical(f"Pipeline halted: {e}")
            raise
        except Exception:
            logger.exception(f"Frame {inframe.index} failed in state {self.state.value}")
            self.state = PipelineState.IDLE
            self.timer.cancel()
            raise

    def _iterate(self, inframe: RawFrame, outframe: RawFrame) -> DecisionResult:
        self.state = PipelineState.VALIDATING
        validate_contract(inframe, self.config.capture, "input")
        validate_contract(outframe, self.config.render, "output")

        self.state = PipelineState.PREPROCESSING
        self.timer.start()
        tensor = self.preprocessor.preprocess(inframe)

        self.state = PipelineState.INFERRING
        scores = self.classifier.forward(tensor)

        self.state = PipelineState.DECIDING
        patch = None
        if self.decision_engine.cache_patch and isinstance(self.preprocessor, RoiPreprocessor):
            patch = self.preprocessor.window(inframe)
        result = self.decision_engine.decide(scores, self.decision_state, patch)
        self.decision_state = result.state

        self.state = PipelineState.ANNOTATING
        self.annotator.annotate(
            outframe, inframe, result.ranked,
            self.decision_state.confirmed_label,
            self.decision_state.confirmed_patch,
            self.timer.text(),
        )
        elapsed = self.timer.stop()

        if elapsed > self.config.frame_period:
            self.deadline_misses += 1
            logger.debug(f"Frame {inframe.index} took {elapsed * 1000:.1f} ms, "
                         f"over the {self.config.frame_period * 1000:.1f} ms frame period")

        self.state = PipelineState.EMITTING
        self.frames_processed += 1
        logger.debug(f"Frame {inframe.index}: " + " ".join(str(r) for r in result.ranked))

        if self.config.log_interval and self.frames_processed % self.config.log_interval == 0:
            stats = self.timer.summary()
            logger.info(f"Processed {self.frames_processed} frames: {stats['fps']:.1f} fps "
                        f"(mean {stats['mean_ms']:.1f} ms, p95 {stats['p95_ms']:.1f} ms), "
                        f"{self.deadline_misses} over deadline")

        return result

    def step(self, source: FrameSource, sink: FrameSink) -> Optional[DecisionResult]:
        """
        Acquire one input and one output frame, process, hand both back.

        Returns:
            The decision, or None if no input frame arrived in time
        """
        try:
            inframe = source.acquire(self.config.frame_period)
        except AcquisitionStall:
            inframe = None

        if inframe is None:
            self.stalls += 1
            logger.debug("No input frame within one frame period, waiting")
            return None

        try:
            outframe = sink.acquire()
            try:
                result = self.process_frame(inframe, outframe)
            finally:
                sink.commit(outframe)
        finally:
            source.release(inframe)

        self.state = PipelineState.IDLE
        return result

    def run(self, source: FrameSource, sink: FrameSink, max_frames: Optional[int] = None,
            on_result: Optional[Callable[[int, DecisionResult], Any]] = None) -> int:
        """
        Process frames until the source is exhausted or max_frames is reached.

        Args:
            source: Input frames
            sink: Output buffers
            max_frames: Stop after this many processed frames
            on_result: Called with the running frame count and each decision

        Returns:
            Number of frames processed during this call
        """
        start = self.frames_processed
        while not source.exhausted:
            if max_frames is not None and self.frames_processed - start >= max_frames:
                break
            result = self.step(source, sink)
            if result is not None and on_result is not None:
                on_result(self.frames_processed, result)

        processed = self.frames_processed - start
        logger.info(f"Run finished: {processed} frames, {self.stalls} stalls, "
                    f"{self.deadline_misses} over deadline")
        return processed

    def get_performance_stats(self) -> Dict[str, Any]:
        """Timing and counters for the frames processed so far."""
        stats = self.timer.summary()
        stats.update({
            'frames_processed': self.frames_processed,
            'stalls': self.stalls,
            'deadline_misses': self.deadline_misses,
            'confirmed_label': self.decision_state.confirmed_label,
        })
        return stats


def build_pipeline(config: PipelineConfig, classifier: Optional[Classifier] = None,
                   decision_state: Optional[DecisionState] = None,
                   warmup: bool = True) -> FramePipeline:
    """
    Wire a pipeline from configuration and run the startup self-check.

    Args:
        config: Pipeline configuration
        classifier: Use this classifier instead of loading weights
        decision_state: Starting decision state
        warmup: Run one forward pass during the self-check

    Raises:
        ConfigurationError: on any shape, category or (FATAL policy) weight problem
    """
    cls_config = config.classifier
    if cls_config.category_file:
        cls_config = dataclasses.replace(
            cls_config, category_names=load_category_names(cls_config.category_file))
        logger.info(f"Loaded {len(cls_config.category_names)} categories from {cls_config.category_file}")

    if classifier is None:
        classifier = load_classifier(cls_config)

    preprocessor = create_preprocessor(
        config.preprocessing,
        target_size=(cls_config.input_width, cls_config.input_height),
        channels=cls_config.input_channels,
    )

    roi_mode = config.preprocessing.mode == PreprocessingMode.ROI
    decision_engine = DecisionEngine(
        cls_config.category_names,
        config.decision,
        output_bounds=classifier.output_bounds,
        cache_patch=roi_mode,
    )
    annotator = FrameAnnotator(config.annotation, roi=config.preprocessing.roi if roi_mode else None)

    verify_input_contract(preprocessor, classifier, config.capture,
                          cls_config.category_names, warmup=warmup)

    return FramePipeline(config, preprocessor, classifier, decision_engine, annotator,
                         decision_state=decision_state, self_check=False)
