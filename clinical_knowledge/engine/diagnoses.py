"""Diagnosis merge engine.

The ledger keeps what it already believes strongly and rebuilds the rest from
each new oracle batch:
- records at or above the preservation threshold survive every pass
- records below it are purged before the batch is applied
- a candidate matching a surviving record raises its confidence (never lowers
  it) and appends its reasoning; it is not inserted again
- unmatched candidates are inserted with a clamped confidence

Without back-references in the batch, a caller reset request or an explicit
`preserve_existing: false` from the oracle replaces the whole ledger instead.

The engine is a pure function of (existing snapshot, candidates).
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence

from ..oracle.schemas import DiagnosisCandidate
from ..storage.models import ConversationAggregateKey, DiagnosisRecord, utc_now
from .calibration import DIAGNOSIS_BAND, ConfidenceBand
from .matcher import EntityMatcher

logger = logging.getLogger(__name__)

REASONING_SEPARATOR = " | "


@dataclass
class DiagnosisMergeResult:
    """Outcome of one merge pass."""

    records: List[DiagnosisRecord] = field(default_factory=list)
    inserted: int = 0
    updated: int = 0
    purged: int = 0
    reset: bool = False


def append_reasoning(existing: str, new: str) -> str:
    """Append `new` pipe-separated unless it is already one of the segments."""
    new = (new or "").strip()
    if not new:
        return existing
    if not existing:
        return new
    if new in existing.split(REASONING_SEPARATOR):
        return existing
    return f"{existing}{REASONING_SEPARATOR}{new}"


def _absorb(record: DiagnosisRecord, candidate: DiagnosisCandidate, confidence: float, now: datetime) -> None:
    record.confidence = max(record.confidence, confidence)
    record.reasoning = append_reasoning(record.reasoning, candidate.reasoning)
    record.updated_at = now


def should_reset(
    full_reset: bool, has_relation_info: bool, preserve_existing: Optional[bool] = None
) -> bool:
    """Replace everything when asked to, by the caller or by an explicit
    `preserve_existing: false` from the oracle, unless a candidate refers back
    to an existing record. Preservation is the default when the flag is absent.
    """
    if has_relation_info:
        return False
    return full_reset or preserve_existing is False


def merge_diagnoses(
    aggregate_key: Optional[ConversationAggregateKey],
    candidates: Sequence[DiagnosisCandidate],
    existing: Sequence[DiagnosisRecord],
    *,
    preservation_threshold: float = 0.7,
    band: ConfidenceBand = DIAGNOSIS_BAND,
    full_reset: bool = False,
    preserve_existing: Optional[bool] = None,
    now: Optional[datetime] = None,
) -> DiagnosisMergeResult:
    """Merge a candidate batch into a snapshot of the diagnosis ledger.

    Args:
        aggregate_key: Aggregate being merged (used for logging only)
        candidates: Validated oracle candidates
        existing: Current ledger snapshot; not mutated
        preservation_threshold: Records at or above this confidence survive
        band: Confidence band applied to candidate confidences
        full_reset: Replace the whole ledger with the clamped batch, unless a
            candidate carries a back-reference
        preserve_existing: Oracle flag; an explicit False also selects the
            replace path
        now: Timestamp for created/updated records

    Returns:
        DiagnosisMergeResult with the complete new ledger state
    """
    now = now or utc_now()
    has_relation_info = any(c.relates_to_existing for c in candidates)

    if should_reset(full_reset, has_relation_info, preserve_existing):
        result = DiagnosisMergeResult(purged=len(existing), reset=True)
        matcher = EntityMatcher()
    else:
        survivors = [r.model_copy() for r in existing if r.confidence >= preservation_threshold]
        result = DiagnosisMergeResult(records=survivors, purged=len(existing) - len(survivors))
        matcher = EntityMatcher(survivors)

    touched = set()
    fresh = set()
    for candidate in candidates:
        confidence = band.clamp(candidate.confidence)
        record = matcher.match(candidate)
        if record is not None:
            _absorb(record, candidate, confidence, now)
            if record.id not in fresh:
                touched.add(record.id)
            continue

        related_to = candidate.relates_to_existing
        if related_to and related_to.strip().lower() == candidate.diagnosis.lower():
            related_to = None
        record = DiagnosisRecord(
            diagnosis=candidate.diagnosis,
            confidence=confidence,
            reasoning=candidate.reasoning,
            related_to=related_to,
            created_at=now,
            updated_at=now,
        )
        matcher.add(record)
        fresh.add(record.id)
        result.records.append(record)

    result.inserted = len(fresh)
    result.updated = len(touched)

    conversation = aggregate_key.conversation_id if aggregate_key else "-"
    logger.info(
        f"Diagnosis merge for conversation {conversation}: "
        f"{result.inserted} inserted, {result.updated} updated, {result.purged} purged"
        f"{' (full reset)' if result.reset else ''}"
    )
    return result
