"""
Error taxonomy for the frame classifier pipeline.

Configuration-class errors are fatal: they mean the deployment is wired
wrong (frame shapes, tensor shapes, missing weights) and the pipeline cannot
continue. Everything else degrades quality (stale labels, lower frame rate)
without stopping the loop.
"""


class FrameClassifierError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(FrameClassifierError):
    """Fatal misconfiguration. Never recovered at runtime."""


class FormatMismatch(ConfigurationError):
    """A frame does not match its declared width, height or pixel format."""

    def __init__(self, name: str, expected: str, actual: str):
        self.name = name
        self.expected = expected
        self.actual = actual
        super().__init__(f"{name} frame format mismatch: expected {expected}, got {actual}")


class ShapeContractViolation(ConfigurationError):
    """Computed tensor length differs from the classifier's declared input."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Tensor length {actual} does not match classifier input length {expected}"
        )


class ParameterLoadFailure(ConfigurationError):
    """Classifier parameters are missing or unreadable."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Could not load pre-trained weights from {path}: {reason}")


class AcquisitionStall(FrameClassifierError):
    """No frame arrived within the expected period. Transient."""
