"""Typed oracle payloads, validated at the oracle boundary.

Each oracle task answers with its own JSON shape. The batch classes below turn
a decoded payload into candidates the engine can trust structurally:
- a payload of the wrong overall shape raises ``ValueError`` (the client turns
  that into OracleMalformed)
- an individual candidate that fails validation is dropped and counted
"""

import logging
import math
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)


def _coerce_confidence(value: Any) -> float:
    """Turn whatever the oracle sent into a float; unusable values become NaN."""
    if isinstance(value, bool):
        return float("nan")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        try:
            number = float(text.rstrip("%"))
        except ValueError:
            return float("nan")
        return number / 100 if text.endswith("%") else number
    return float("nan")


def _strip_reference(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    if not value or value.lower() in ("null", "none"):
        return None
    return value


class SolutionCategory(str, Enum):
    """Fixed set of solution categories."""

    LIFESTYLE = "lifestyle"
    STRESS = "stress"
    SLEEP = "sleep"
    NUTRITION = "nutrition"
    EXERCISE = "exercise"
    MENTAL_HEALTH = "mental_health"


# --- Diagnoses ---
class DiagnosisCandidate(BaseModel):
    """An oracle-proposed diagnosis not yet merged into the ledger."""

    diagnosis: str = Field(..., min_length=1)
    confidence: float = float("nan")
    reasoning: str = ""
    relates_to_existing: Optional[str] = None

    @field_validator("diagnosis", mode="before")
    @classmethod
    def strip_diagnosis(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("confidence", mode="before")
    @classmethod
    def coerce_confidence(cls, v: Any) -> float:
        return _coerce_confidence(v)

    @field_validator("reasoning", mode="before")
    @classmethod
    def default_reasoning(cls, v: Any) -> str:
        return v.strip() if isinstance(v, str) else ""

    @field_validator("relates_to_existing", mode="before")
    @classmethod
    def normalize_reference(cls, v: Any) -> Optional[str]:
        return _strip_reference(v)


class DiagnosisBatch(BaseModel):
    """Oracle answer to the diagnosis task."""

    candidates: List[DiagnosisCandidate] = Field(default_factory=list)
    preserve_existing: Optional[bool] = None
    dropped: int = 0

    @property
    def has_relation_info(self) -> bool:
        """Whether any candidate carries an explicit back-reference."""
        return any(c.relates_to_existing for c in self.candidates)

    @classmethod
    def from_payload(cls, payload: Any) -> "DiagnosisBatch":
        if not isinstance(payload, dict):
            raise ValueError("diagnosis payload must be a JSON object")
        raw = payload.get("diagnoses", [])
        if not isinstance(raw, list):
            raise ValueError("'diagnoses' must be an array")
        preserve = payload.get("preserve_existing")
        candidates, dropped = _validate_items(DiagnosisCandidate, raw)
        return cls(
            candidates=candidates,
            preserve_existing=preserve if isinstance(preserve, bool) else None,
            dropped=dropped,
        )


# --- Solutions ---
class SolutionCandidate(BaseModel):
    """An oracle-proposed solution not yet written to the ledger."""

    solution: str = Field(..., min_length=1)
    category: SolutionCategory
    confidence: float
    reasoning: str = ""

    @field_validator("solution", mode="before")
    @classmethod
    def strip_solution(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("category", mode="before")
    @classmethod
    def normalize_category(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("confidence", mode="before")
    @classmethod
    def require_number(cls, v: Any) -> Any:
        # Numeric only: strings and booleans are not confidences
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise ValueError("confidence must be numeric")
        return float(v)

    @field_validator("reasoning", mode="before")
    @classmethod
    def default_reasoning(cls, v: Any) -> str:
        return v.strip() if isinstance(v, str) else ""

    @classmethod
    def coerce(cls, item: Any) -> Optional["SolutionCandidate"]:
        """Validate one raw item, returning None when it is unusable."""
        if isinstance(item, cls):
            return item
        try:
            return cls.model_validate(item)
        except ValidationError as e:
            logger.debug(f"Dropping invalid solution candidate: {e.errors()}")
            return None


class SolutionBatch(BaseModel):
    """Oracle answer to the solution task (raw items, validated by the ledger)."""

    items: List[Any] = Field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: Any) -> "SolutionBatch":
        if isinstance(payload, dict):
            payload = payload.get("solutions")
        if not isinstance(payload, list):
            raise ValueError("solution payload must be an array or {solutions: [...]}")
        return cls(items=payload)


# --- Memory ---
class MemoryUpdate(BaseModel):
    """Oracle-proposed memory key/value updates."""

    updates: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Any) -> "MemoryUpdate":
        if not isinstance(payload, dict):
            raise ValueError("memory payload must be a JSON object")
        return cls(updates=payload)


# --- Completeness ---
class CompletenessJudgment(BaseModel):
    """Oracle judgment of a guided interview's completeness."""

    should_complete: bool = False
    confidence_score: float = 0.5
    reasoning: str = "Based on conversation analysis"
    identified_topics_count: int = 0
    conversation_quality: str = "fair"

    @field_validator("should_complete", mode="before")
    @classmethod
    def strict_true(cls, v: Any) -> bool:
        return v is True or (isinstance(v, str) and v.strip().lower() == "true")

    @field_validator("confidence_score", mode="before")
    @classmethod
    def clamp_score(cls, v: Any) -> float:
        score = _coerce_confidence(v)
        if math.isnan(score):
            return 0.5
        return min(max(score, 0.0), 1.0)

    @field_validator("identified_topics_count", mode="before")
    @classmethod
    def non_negative_count(cls, v: Any) -> int:
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            return 0
        return max(int(v), 0)

    @field_validator("reasoning", "conversation_quality", mode="before")
    @classmethod
    def text_or_default(cls, v: Any, info) -> str:
        if isinstance(v, str) and v.strip():
            return v.strip().lower() if info.field_name == "conversation_quality" else v.strip()
        return cls.model_fields[info.field_name].default

    @classmethod
    def from_payload(cls, payload: Any) -> "CompletenessJudgment":
        if not isinstance(payload, dict):
            raise ValueError("completeness payload must be a JSON object")
        return cls.model_validate(payload)


# --- Topics ---
class TopicCandidate(BaseModel):
    """An oracle-proposed interview topic."""

    topic: str = Field(..., min_length=1)
    confidence: float = float("nan")
    reasoning: str = "Based on conversation responses"
    category: str = "general"

    @field_validator("topic", mode="before")
    @classmethod
    def strip_topic(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("confidence", mode="before")
    @classmethod
    def coerce_confidence(cls, v: Any) -> float:
        return _coerce_confidence(v)

    @field_validator("reasoning", "category", mode="before")
    @classmethod
    def text_or_default(cls, v: Any, info) -> str:
        if isinstance(v, str) and v.strip():
            return v.strip()
        return cls.model_fields[info.field_name].default


class TopicBatch(BaseModel):
    """Oracle answer to the topic task."""

    candidates: List[TopicCandidate] = Field(default_factory=list)
    dropped: int = 0

    @classmethod
    def from_payload(cls, payload: Any) -> "TopicBatch":
        if not isinstance(payload, dict):
            raise ValueError("topic payload must be a JSON object")
        raw = payload.get("topics", [])
        if not isinstance(raw, list):
            raise ValueError("'topics' must be an array")
        candidates, dropped = _validate_items(TopicCandidate, raw)
        return cls(candidates=candidates, dropped=dropped)


def _validate_items(model: type[BaseModel], raw: List[Any]) -> tuple[list, int]:
    """Validate a list of raw items, dropping the ones that fail."""
    valid = []
    dropped = 0
    for item in raw:
        try:
            valid.append(model.model_validate(item))
        except ValidationError as e:
            dropped += 1
            logger.debug(f"Dropping invalid {model.__name__}: {e.errors()}")
    return valid, dropped
