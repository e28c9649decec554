#!/usr/bin/env python3
"""
Run the frame classifier on a camera or a video file.

Examples:
    frame-classify --input 0 --weights weights/cifar_net.pt
    frame-classify --input clip.mp4 --config configs/roi.yaml --output annotated.mp4
"""

import argparse
import sys
from typing import List, Optional

from .config import PipelineConfig, LoadFailurePolicy, PreprocessingMode, load_config
from .errors import ConfigurationError
from .inference.pipeline import build_pipeline
from .inference.sources import CollectingFrameSink, VideoCaptureSource, VideoWriterSink
from .utils.logging import setup_logging, get_logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Run the per-frame classification pipeline')

    # Input / output
    parser.add_argument('--input', type=str, required=True,
                        help='Camera index or path to a video file')
    parser.add_argument('--output', type=str, default=None,
                        help='Write annotated frames to this video file')
    parser.add_argument('--max-frames', type=int, default=None,
                        help='Stop after this many processed frames')
    parser.add_argument('--fit', action='store_true',
                        help='Resize input frames to the capture contract')

    # Configuration
    parser.add_argument('--config', type=str, default=None,
                        help='YAML/JSON pipeline configuration')
    parser.add_argument('--mode', choices=[m.value for m in PreprocessingMode], default=None,
                        help='Preset to use when no --config is given')
    parser.add_argument('--weights', type=str, default=None,
                        help='Path to the classifier state_dict')
    parser.add_argument('--categories', type=str, default=None,
                        help='Label file, one category per line')
    parser.add_argument('--on-load-failure', choices=[p.value for p in LoadFailurePolicy], default=None,
                        help='Policy when weights cannot be loaded')
    parser.add_argument('--high-threshold', type=float, default=None,
                        help='Minimum rescaled score of the best category')
    parser.add_argument('--low-threshold', type=float, default=None,
                        help='Maximum rescaled score of the second best category')
    parser.add_argument('--show-input', action='store_true',
                        help='Show the network input in a window')
    parser.add_argument('--print-scores', action='store_true',
                        help='Log the ranked scores of every frame')

    # Logging
    parser.add_argument('--log-level', type=str, default='INFO',
                        help='Console log level')
    parser.add_argument('--log-dir', type=str, default=None,
                        help='Directory for log files')
    parser.add_argument('--json-logs', action='store_true',
                        help='Also write JSON-lines logs (needs --log-dir)')
    return parser


def make_config(args: argparse.Namespace) -> PipelineConfig:
    """Load or select a configuration, then apply command line overrides."""
    if args.config:
        config = load_config(args.config)
    elif args.mode == PreprocessingMode.ROI.value:
        config = PipelineConfig.roi()
    else:
        config = PipelineConfig.whole_frame()

    if args.weights is not None:
        config.classifier.weights_path = args.weights
    if args.categories is not None:
        config.classifier.category_file = args.categories
    if args.on_load_failure is not None:
        config.classifier.on_load_failure = LoadFailurePolicy(args.on_load_failure)
    if args.high_threshold is not None:
        config.decision.high_threshold = args.high_threshold
    if args.low_threshold is not None:
        config.decision.low_threshold = args.low_threshold
    if args.show_input:
        config.preprocessing.show_network_input = True

    config.validate()
    return config


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    setup_logging(console_level=args.log_level, log_dir=args.log_dir, json_logs=args.json_logs)
    logger = get_logger("cli")

    try:
        config = make_config(args)
        pipeline = build_pipeline(config)
        # Source first: a bad input must not leave a partial output file
        source = VideoCaptureSource(args.input, config.capture, fit_to_contract=args.fit)
        try:
            if args.output:
                sink = VideoWriterSink(args.output, config.render, fps=config.frame_rate)
            else:
                sink = CollectingFrameSink(config.render, max_frames=1)
        except Exception:
            source.close()
            raise
    except ConfigurationError as e:
        logger.critical(f"Configuration error, cannot start: {e}")
        return 1
    except (OSError, ValueError) as e:
        logger.critical(f"Cannot start: {e}")
        return 1

    def report(count, result):
        if args.print_scores:
            marker = " [confirmed]" if result.confirmed else ""
            logger.info(f"frame {count}: " + "  ".join(str(r) for r in result.ranked) + marker)

    try:
        pipeline.run(source, sink, max_frames=args.max_frames, on_result=report)
    except ConfigurationError as e:
        logger.critical(f"Fatal configuration error, halting: {e}")
        return 1
    except Exception as e:
        logger.critical(f"Pipeline stopped by an unexpected error: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        source.close()
        sink.close()

    state = pipeline.decision_state
    if state.has_confirmation:
        logger.info(f"Done: {pipeline.frames_processed} frames, last confirmed: {state.confirmed_label}")
    else:
        logger.info(f"Done: {pipeline.frames_processed} frames, nothing confirmed")
    return 0


if __name__ == '__main__':
    sys.exit(main())
