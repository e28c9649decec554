# src/frame_classifier/inference/decision.py
"""
Decision engine: ranking, margin test and cross-frame hysteresis.

Raw classifier outputs are rescaled to a 0-100 display range using the
classifier's native output bounds, ranked, and tested:

    best1 > high_threshold and best2 < low_threshold

When the test passes the confirmed label is replaced by the winner. When it
fails the previous state is kept as is, so a confirmed label persists until
a new confident, unambiguous winner appears.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np

from ..config.pipeline_config import DecisionConfig
from ..errors import ConfigurationError
from .frames import RawFrame

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RankedScore:
    """One category with its rescaled score."""
    index: int
    label: str
    score: float

    def __str__(self) -> str:
        return f"{self.label},{self.score:.1f}"


@dataclass(frozen=True, eq=False)
class DecisionState:
    """
    State carried across frames.

    Immutable: the engine returns a new instance on confirmation and the
    same instance otherwise. The pipeline driver holds the current one.
    """
    confirmed_label: Optional[str] = None
    confirmed_index: Optional[int] = None
    confirmed_score: Optional[float] = None
    confirmed_patch: Optional[RawFrame] = None

    @property
    def has_confirmation(self) -> bool:
        return self.confirmed_label is not None


@dataclass
class DecisionResult:
    """Outcome of one decide() call."""
    ranked: List[RankedScore]
    state: DecisionState
    confirmed: bool
    best1: float
    best2: Optional[float] = None
    scores: np.ndarray = field(default_factory=lambda: np.zeros(0), repr=False)


def rescale_scores(raw: Sequence[float], bounds: Tuple[float, float]) -> np.ndarray:
    """
    Map raw outputs to 0-100 using the activation's output bounds.

    Args:
        raw: Classifier outputs
        bounds: (low, high) native output range
    """
    lo, hi = bounds
    raw = np.asarray(raw, dtype=np.float64)
    return 100.0 * (raw - lo) / (hi - lo)


def rank_scores(scores: Sequence[float], names: Sequence[str],
                top_k: Optional[int] = None) -> List[RankedScore]:
    """
    Rank categories by score, highest first.

    The sort is stable, so equal scores keep category index order. NaN
    scores rank last.
    """
    def key(i):
        value = float(scores[i])
        if math.isnan(value):
            return (1, 0.0)
        return (0, -value)

    order = sorted(range(len(scores)), key=key)
    if top_k is not None:
        order = order[:top_k]
    return [RankedScore(i, names[i], float(scores[i])) for i in order]


class DecisionEngine:
    """
    Converts score vectors into a confirmed label with hysteresis.

    Holds configuration only; the state is passed in and returned so callers
    (and tests) control it.
    """

    def __init__(self, category_names: Sequence[str], config: Optional[DecisionConfig] = None,
                 output_bounds: Tuple[float, float] = (0.0, 1.0), cache_patch: bool = False):
        """
        Args:
            category_names: Category table, index-aligned with the scores
            config: Thresholds and top-k
            output_bounds: Classifier native output range
            cache_patch: Snapshot the image region on confirmation (ROI mode)
        """
        self.category_names = tuple(category_names)
        self.config = config or DecisionConfig()
        self.output_bounds = tuple(output_bounds)
        self.cache_patch = cache_patch

        if len(self.category_names) < 2:
            logger.warning(f"Only {len(self.category_names)} category configured: "
                           f"the margin test is vacuous and confirmation depends on "
                           f"the high threshold alone")

        logger.info(f"DecisionEngine initialized (high: {self.config.high_threshold}, "
                    f"low: {self.config.low_threshold}, top-{self.config.top_k})")

    def is_confirmed(self, best1: float, best2: Optional[float]) -> bool:
        """Margin test on rescaled scores. NaN never passes."""
        high, low = self.config.high_threshold, self.config.low_threshold
        return best1 > high and (best2 is None or best2 < low)

    def decide(self, scores: Sequence[float], state: DecisionState,
               patch: Optional[RawFrame] = None) -> DecisionResult:
        """
        Rank scores, apply the margin test and update the state.

        Args:
            scores: Raw classifier outputs, one per category
            state: Current decision state
            patch: Current image region, cached on confirmation when enabled

        Returns:
            DecisionResult with the top-k ranking and the (possibly new) state
        """
        if len(scores) != len(self.category_names):
            raise ConfigurationError(
                f"Got {len(scores)} scores for {len(self.category_names)} categories"
            )

        rescaled = rescale_scores(scores, self.output_bounds)
        ranked = rank_scores(rescaled, self.category_names)

        best1 = ranked[0].score
        best2 = ranked[1].score if len(ranked) > 1 else None
        confirmed = self.is_confirmed(best1, best2)
        if confirmed and np.isnan(rescaled).any():
            logger.warning("Classifier returned NaN scores, not confirming")
            confirmed = False

        if confirmed:
            winner = ranked[0]
            cached = None
            if self.cache_patch and patch is not None:
                cached = patch.copy()
            state = DecisionState(winner.label, winner.index, winner.score, cached)

            if best2 is None:
                logger.info(f"Object recognition: best: {winner.label} ({best1:.1f})")
            else:
                logger.info(f"Object recognition: best: {winner.label} ({best1:.1f}), "
                            f"second best: {ranked[1].label} ({best2:.1f})")

        return DecisionResult(
            ranked=ranked[:self.config.top_k],
            state=state,
            confirmed=confirmed,
            best1=best1,
            best2=best2,
            scores=rescaled,
        )
