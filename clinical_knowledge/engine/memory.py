"""Memory merge store: key-wise overwrite plus image-confirmation entries."""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..storage.models import ConversationAggregateKey, MemoryRecord, utc_now

logger = logging.getLogger(__name__)

VISUAL_CONFIRMATION_PREFIX = "visual_confirmation_"
_NON_WORD_RE = re.compile(r"[^a-z0-9]+")


class ImageFeedback(BaseModel):
    """A user's confirmation (or rejection) of a reference image for a term."""

    model_config = ConfigDict(populate_by_name=True)

    search_term: str = Field(..., min_length=1, alias="searchTerm")
    matches: bool
    image_id: Optional[str] = Field(default=None, alias="imageId")
    timestamp: Optional[datetime] = None

    @field_validator("search_term", mode="before")
    @classmethod
    def strip_term(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    def as_entry(self, now: datetime) -> Dict[str, Any]:
        return {
            "search_term": self.search_term,
            "matches": self.matches,
            "image_id": self.image_id,
            "timestamp": (self.timestamp or now).isoformat(),
            "confidence": "high" if self.matches else "low",
        }


@dataclass
class MemoryMergeResult:
    """Outcome of one memory pass; `record` is the state to commit."""

    record: MemoryRecord
    changed: bool = False
    updated_fields: List[str] = field(default_factory=list)
    feedback_key: Optional[str] = None


def feedback_key_for(search_term: str, memory: Dict[str, Any]) -> str:
    """Unused `visual_confirmation_<term>` key, suffixed `_2`, `_3`... when taken."""
    slug = _NON_WORD_RE.sub("_", search_term.lower()).strip("_") or "term"
    base = f"{VISUAL_CONFIRMATION_PREFIX}{slug}"
    key = base
    suffix = 2
    while key in memory:
        key = f"{base}_{suffix}"
        suffix += 1
    return key


def _conversation(aggregate_key: Optional[ConversationAggregateKey]) -> str:
    return aggregate_key.conversation_id if aggregate_key else "-"


def merge_memory(
    aggregate_key: Optional[ConversationAggregateKey],
    updates: Dict[str, Any],
    existing: MemoryRecord,
    *,
    image_feedback: Optional[ImageFeedback] = None,
    now: Optional[datetime] = None,
) -> MemoryMergeResult:
    """Shallow-merge oracle updates (and optional image feedback) into memory.

    Reserved-prefix keys coming from the oracle are ignored. When nothing
    changes, the existing record is returned untouched and `changed` is False.
    """
    now = now or utc_now()
    conversation = _conversation(aggregate_key)

    accepted = {k: v for k, v in updates.items() if not k.startswith(VISUAL_CONFIRMATION_PREFIX)}
    if len(accepted) != len(updates):
        logger.warning(
            f"Ignored {len(updates) - len(accepted)} reserved memory keys from oracle "
            f"for conversation {conversation}"
        )

    merged = dict(existing.memory)
    updated_fields = [k for k, v in accepted.items() if k not in merged or merged[k] != v]
    merged.update(accepted)

    feedback_key = None
    if image_feedback is not None:
        feedback_key = feedback_key_for(image_feedback.search_term, merged)
        merged[feedback_key] = image_feedback.as_entry(now)
        updated_fields.append(feedback_key)

    if not updated_fields:
        logger.debug(f"No memory changes for conversation {conversation}; skipping write")
        return MemoryMergeResult(record=existing)

    record = MemoryRecord(
        memory=merged,
        created_at=existing.created_at or now,
        updated_at=now,
    )
    logger.info(f"Memory for conversation {conversation} updated: {updated_fields}")
    return MemoryMergeResult(
        record=record,
        changed=True,
        updated_fields=updated_fields,
        feedback_key=feedback_key,
    )


def apply_image_feedback(
    aggregate_key: Optional[ConversationAggregateKey],
    feedback: ImageFeedback,
    existing: MemoryRecord,
    *,
    now: Optional[datetime] = None,
) -> MemoryMergeResult:
    """Insert one image-confirmation entry without touching other keys."""
    return merge_memory(aggregate_key, {}, existing, image_feedback=feedback, now=now)
