# src/frame_classifier/inference/classifier.py
"""
Classifier capability for the frame pipeline.

The pipeline only needs `forward(tensor) -> scores`. Implementations:
1. TorchClassifier: the trained convolutional network, weights loaded once
2. StaticClassifier: canned score vectors for deterministic tests
3. PlaceholderClassifier: degraded mode when weights cannot be loaded
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Sequence, Tuple

import numpy as np
import torch
import torch.nn as nn

from ..config.pipeline_config import ClassifierConfig, FrameContract, LoadFailurePolicy
from ..errors import ConfigurationError, ParameterLoadFailure, ShapeContractViolation
from ..models.cifar_net import CifarNet
from .frames import make_yuyv_frame
from .preprocessing import Preprocessor

logger = logging.getLogger(__name__)


class Classifier(ABC):
    """Stateless forward pass: flat tensor in, one score per category out."""

    def __init__(self, input_shape: Tuple[int, int, int], num_classes: int,
                 output_bounds: Tuple[float, float] = (0.0, 1.0)):
        self.input_shape = tuple(input_shape)
        self.num_classes = num_classes
        self.output_bounds = tuple(output_bounds)

    @property
    def input_length(self) -> int:
        return int(np.prod(self.input_shape))

    def check_input(self, tensor: torch.Tensor):
        if tensor.numel() != self.input_length:
            raise ShapeContractViolation(self.input_length, tensor.numel())

    @abstractmethod
    def forward(self, tensor: torch.Tensor) -> np.ndarray:
        """Return a 1-D score vector of length num_classes."""

    def __call__(self, tensor: torch.Tensor) -> np.ndarray:
        return self.forward(tensor)


class TorchClassifier(Classifier):
    """
    Wraps a torch module as a Classifier.

    The module runs in eval mode without autograd. Internal threading is
    torch's business and does not affect results.
    """

    def __init__(self, model: nn.Module, input_shape: Tuple[int, int, int], num_classes: int,
                 output_bounds: Tuple[float, float] = (0.0, 1.0), device: str = "cpu",
                 num_threads: Optional[int] = None):
        super().__init__(input_shape, num_classes, output_bounds)
        self.device = torch.device(device)
        self.model = model.to(self.device)
        self.model.eval()

        if num_threads:
            torch.set_num_threads(num_threads)

        logger.info(f"TorchClassifier initialized on {self.device} "
                    f"(input: {self.input_shape}, classes: {num_classes})")

    @classmethod
    def from_weights(cls, weights_path: str, config: ClassifierConfig,
                     model: Optional[nn.Module] = None) -> 'TorchClassifier':
        """
        Build the network and load its trained parameters.

        Accepts a bare state_dict or a checkpoint holding one under
        'model_state_dict' or 'state_dict'.

        Raises:
            ParameterLoadFailure: if the file is missing or does not fit the network
        """
        if model is None:
            model = CifarNet(num_classes=config.num_classes, input_shape=config.input_shape)

        path = Path(weights_path)
        if not path.is_file():
            raise ParameterLoadFailure(str(path), "file not found")

        try:
            checkpoint = torch.load(str(path), map_location="cpu", weights_only=True)
            if 'model_state_dict' in checkpoint:
                state_dict = checkpoint['model_state_dict']
            elif 'state_dict' in checkpoint:
                state_dict = checkpoint['state_dict']
            else:
                state_dict = checkpoint
            model.load_state_dict(state_dict)
        except Exception as e:
            raise ParameterLoadFailure(str(path), str(e)) from e

        logger.info(f"Loaded pre-trained weights from {path}")
        return cls(model, config.input_shape, config.num_classes, config.output_bounds,
                   num_threads=config.num_threads)

    @torch.no_grad()
    def forward(self, tensor: torch.Tensor) -> np.ndarray:
        self.check_input(tensor)
        batch = tensor.reshape(1, *self.input_shape).to(self.device)
        outputs = self.model(batch)
        return outputs[0].detach().cpu().numpy().astype(np.float64)


class StaticClassifier(Classifier):
    """
    Returns canned score vectors in order, repeating the last one.

    Records every tensor it receives so tests can inspect the input.
    """

    def __init__(self, scores: Sequence[Sequence[float]], input_shape: Tuple[int, int, int] = (3, 32, 32),
                 output_bounds: Tuple[float, float] = (0.0, 100.0)):
        vectors = [np.asarray(s, dtype=np.float64) for s in scores]
        if not vectors:
            raise ValueError("StaticClassifier needs at least one score vector")
        num_classes = len(vectors[0])
        if any(len(v) != num_classes for v in vectors):
            raise ValueError("All canned score vectors must have the same length")

        super().__init__(input_shape, num_classes, output_bounds)
        self.vectors = vectors
        self.calls = 0
        self.inputs = []

    def forward(self, tensor: torch.Tensor) -> np.ndarray:
        self.check_input(tensor)
        self.inputs.append(tensor)
        vector = self.vectors[min(self.calls, len(self.vectors) - 1)]
        self.calls += 1
        return vector.copy()


class PlaceholderClassifier(Classifier):
    """
    Degraded-mode classifier.

    Returns a uniform probability vector, which can never pass the margin
    test, so the pipeline keeps running and annotating without confirming.
    """

    def forward(self, tensor: torch.Tensor) -> np.ndarray:
        self.check_input(tensor)
        return np.full(self.num_classes, 1.0 / self.num_classes)


def load_classifier(config: ClassifierConfig) -> Classifier:
    """
    Load the trained classifier under the configured failure policy.

    FATAL re-raises ParameterLoadFailure. DEGRADED logs loudly and returns
    a PlaceholderClassifier.
    """
    try:
        if not config.weights_path:
            raise ParameterLoadFailure("<unset>", "no weights_path configured")
        return TorchClassifier.from_weights(config.weights_path, config)
    except ParameterLoadFailure as e:
        if config.on_load_failure == LoadFailurePolicy.FATAL:
            logger.critical(str(e))
            raise
        logger.critical(f"{e}; continuing DEGRADED with a placeholder classifier, "
                        f"no object will ever be confirmed")
        return PlaceholderClassifier(config.input_shape, config.num_classes, config.output_bounds)


def verify_input_contract(preprocessor: Preprocessor, classifier: Classifier,
                          capture: FrameContract, category_names: Sequence[str],
                          warmup: bool = True):
    """
    Startup self-check of the tensor and score shapes.

    Runs one blank capture-sized frame through preprocessing and, with
    warmup, through the classifier.

    Raises:
        ShapeContractViolation: tensor length differs from the classifier input
        ConfigurationError: score vector or category table has the wrong length
    """
    if len(category_names) != classifier.num_classes:
        raise ConfigurationError(
            f"Category table has {len(category_names)} entries, "
            f"classifier outputs {classifier.num_classes} classes"
        )

    blank = make_yuyv_frame(capture.width, capture.height)
    tensor = preprocessor.preprocess(blank)
    if tensor.numel() != classifier.input_length:
        raise ShapeContractViolation(classifier.input_length, tensor.numel())

    if warmup:
        scores = classifier.forward(tensor)
        if len(scores) != classifier.num_classes:
            raise ConfigurationError(
                f"Classifier returned {len(scores)} scores, expected {classifier.num_classes}"
            )

    logger.info(f"Input contract verified: tensor length {tensor.numel()}, "
                f"{classifier.num_classes} categories")
