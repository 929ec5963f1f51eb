"""Confidence calibration: band clamping and the batch plausibility gate."""

import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConfidenceBand:
    """Closed interval a persisted confidence must fall into."""

    floor: float
    ceiling: float

    def clamp(self, value: Optional[float]) -> float:
        """Clamp into the band; missing or NaN values land on the floor."""
        if value is None or isinstance(value, bool):
            return self.floor
        try:
            number = float(value)
        except (TypeError, ValueError):
            return self.floor
        if math.isnan(number):
            return self.floor
        return min(max(number, self.floor), self.ceiling)


DIAGNOSIS_BAND = ConfidenceBand(0.3, 0.85)
SOLUTION_BAND = ConfidenceBand(0.1, 0.9)
TOPIC_BAND = ConfidenceBand(0.15, 0.89)


@dataclass(frozen=True)
class CalibrationBatch:
    """Confidences of one candidate batch and how many of them are high."""

    confidences: Tuple[float, ...]
    high_count: int

    @property
    def size(self) -> int:
        return len(self.confidences)

    @property
    def high_ratio(self) -> float:
        return self.high_count / self.size if self.confidences else 0.0


class CalibrationGate:
    """Rejects batches whose confidence distribution is implausibly optimistic.

    A batch of at least `min_batch` candidates is rejected when more than
    `max_high_ratio` of them score at or above `high_mark`. Smaller batches
    always pass.
    """

    def __init__(self, high_mark: float = 0.8, max_high_ratio: float = 0.4, min_batch: int = 3):
        self.high_mark = high_mark
        self.max_high_ratio = max_high_ratio
        self.min_batch = min_batch

    def measure(self, confidences: Sequence[float]) -> CalibrationBatch:
        values = tuple(float(c) for c in confidences)
        high = sum(1 for c in values if not math.isnan(c) and c >= self.high_mark)
        return CalibrationBatch(confidences=values, high_count=high)

    def validate(self, confidences: Sequence[float]) -> Tuple[bool, str]:
        """Return (ok, reason) for a batch of confidences."""
        batch = self.measure(confidences)
        if batch.size < self.min_batch:
            return True, f"batch of {batch.size} below gate minimum"
        if batch.high_ratio > self.max_high_ratio:
            reason = (
                f"{batch.high_count}/{batch.size} candidates at or above {self.high_mark} "
                f"(ratio {batch.high_ratio:.2f} > {self.max_high_ratio})"
            )
            logger.warning(f"Calibration rejected: {reason}")
            return False, reason
        return True, f"high ratio {batch.high_ratio:.2f} within limit"
