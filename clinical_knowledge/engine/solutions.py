"""Solution ledger manager: validate, gate, dedupe, then replace the full set."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from ..errors import CalibrationRejected
from ..oracle.schemas import SolutionCandidate
from ..storage.models import ConversationAggregateKey, SolutionRecord, new_record_id, utc_now
from .calibration import SOLUTION_BAND, CalibrationGate, ConfidenceBand

logger = logging.getLogger(__name__)


@dataclass
class SolutionReplaceResult:
    """Outcome of one replace pass."""

    records: List[SolutionRecord] = field(default_factory=list)
    dropped: int = 0
    duplicates: int = 0
    changed: bool = False


def validate_candidates(items: Sequence[Any], band: ConfidenceBand = SOLUTION_BAND) -> tuple[List[SolutionCandidate], int]:
    """Keep structurally valid candidates with confidences clamped into the band."""
    valid = []
    for item in items:
        candidate = SolutionCandidate.coerce(item)
        if candidate is None:
            continue
        valid.append(candidate.model_copy(update={"confidence": band.clamp(candidate.confidence)}))
    return valid, len(items) - len(valid)


def replace_solutions(
    aggregate_key: Optional[ConversationAggregateKey],
    candidates: Sequence[Any],
    existing: Sequence[SolutionRecord] = (),
    *,
    gate: Optional[CalibrationGate] = None,
    band: ConfidenceBand = SOLUTION_BAND,
    now: Optional[datetime] = None,
) -> SolutionReplaceResult:
    """Compute the replacement solution set for an aggregate.

    Candidates whose text exactly matches a stored solution keep the stored
    record's id and created_at. Every other stored record is dropped.

    Raises:
        CalibrationRejected: If the valid batch has too many high confidences
    """
    gate = gate or CalibrationGate()
    now = now or utc_now()
    conversation = aggregate_key.conversation_id if aggregate_key else "-"

    valid, dropped = validate_candidates(candidates, band)
    if not valid:
        logger.info(f"No valid solutions for conversation {conversation}; keeping stored set")
        return SolutionReplaceResult(records=list(existing), dropped=dropped)

    ok, reason = gate.validate([c.confidence for c in valid])
    if not ok:
        raise CalibrationRejected(
            "Unrealistic confidence distribution; regenerate with stricter guidelines",
            details={"reason": reason, "confidences": [c.confidence for c in valid]},
        )

    stored: Dict[str, SolutionRecord] = {}
    for record in existing:
        stored.setdefault(record.solution, record)

    records: List[SolutionRecord] = []
    seen = set()
    for candidate in valid:
        if candidate.solution in seen:
            continue
        seen.add(candidate.solution)
        previous = stored.get(candidate.solution)
        records.append(
            SolutionRecord(
                id=previous.id if previous else new_record_id(),
                solution=candidate.solution,
                category=candidate.category,
                confidence=candidate.confidence,
                reasoning=candidate.reasoning,
                created_at=previous.created_at if previous else now,
            )
        )

    logger.info(
        f"Solutions for conversation {conversation}: {len(records)} accepted, "
        f"{dropped} invalid, {len(valid) - len(records)} duplicate"
    )
    return SolutionReplaceResult(
        records=records,
        dropped=dropped,
        duplicates=len(valid) - len(records),
        changed=True,
    )


def high_confidence_ratio(records: Sequence[SolutionRecord], high_mark: float = 0.8) -> float:
    """Share of stored solutions at or above `high_mark`."""
    if not records:
        return 0.0
    return sum(1 for r in records if r.confidence >= high_mark) / len(records)
