"""Ledger records and the aggregate key they are partitioned by."""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from ..oracle.schemas import SolutionCategory


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_record_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class ConversationAggregateKey:
    """(conversation, patient, owner): the unit of isolation for all ledgers."""

    conversation_id: str
    patient_id: str
    owner_id: str

    @property
    def lock_name(self) -> str:
        """Stable name used to serialize merges on this aggregate."""
        return f"{self.conversation_id}:{self.patient_id}:{self.owner_id}"


class LedgerType(str, Enum):
    """Named ledgers kept per aggregate."""

    DIAGNOSES = "diagnoses"
    SOLUTIONS = "solutions"
    MEMORY = "memory"


class DiagnosisRecord(BaseModel):
    """A persisted diagnosis; `diagnosis` is the case-insensitive identity."""

    id: str = Field(default_factory=new_record_id)
    diagnosis: str
    confidence: float
    reasoning: str = ""
    related_to: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def identity(self) -> str:
        return self.diagnosis.strip().lower()


class SolutionRecord(BaseModel):
    """A persisted holistic solution."""

    id: str = Field(default_factory=new_record_id)
    solution: str
    category: SolutionCategory
    confidence: float
    reasoning: str = ""
    created_at: datetime = Field(default_factory=utc_now)


class MemoryRecord(BaseModel):
    """The single free-form memory mapping of an aggregate."""

    memory: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def exists(self) -> bool:
        """Whether the record has ever been committed."""
        return self.updated_at is not None
