"""Pydantic schemas for ledger analysis endpoints."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..engine.memory import ImageFeedback
from ..engine.transcript import ConversationMessage
from ..storage.models import DiagnosisRecord, SolutionRecord


class AggregateRequest(BaseModel):
    """Identifies the conversation/patient pair a request operates on."""

    conversation_id: str = Field(..., min_length=1, description="Conversation ID")
    patient_id: str = Field(..., min_length=1, description="Patient ID")


class AnalysisRequest(AggregateRequest):
    """Schema for a ledger analysis pass over recent messages."""

    recent_messages: List[ConversationMessage] = Field(
        default_factory=list, description="Recent conversation turns, oldest first"
    )


class DiagnosisAnalysisRequest(AnalysisRequest):
    full_reset: bool = Field(
        False, description="Replace the ledger when the oracle gives no back-references"
    )


class SolutionRegenerateRequest(AnalysisRequest):
    force: bool = Field(False, description="Regenerate even if stored confidences look calibrated")


class MemoryAnalysisRequest(AnalysisRequest):
    image_feedback: Optional[ImageFeedback] = Field(
        None, description="Image confirmation to store alongside the extracted facts"
    )


class ImageFeedbackRequest(AggregateRequest):
    feedback: ImageFeedback


class DiagnosisAnalysisResponse(BaseModel):
    success: bool = True
    diagnoses: List[DiagnosisRecord] = Field(default_factory=list)
    inserted: int = 0
    updated: int = 0
    purged: int = 0
    skipped: bool = False


class SolutionAnalysisResponse(BaseModel):
    success: bool = True
    solutions: List[SolutionRecord] = Field(default_factory=list)
    count: int = 0


class SolutionRegenerateResponse(BaseModel):
    success: bool = True
    regenerated: bool
    solutions: List[SolutionRecord] = Field(default_factory=list)


class MemoryAnalysisResponse(BaseModel):
    success: bool = True
    memory_updated: bool
    updated_fields: List[str] = Field(default_factory=list)
    memory: Dict[str, Any] = Field(default_factory=dict)


class ImageFeedbackResponse(BaseModel):
    success: bool = True
    key: str
    memory: Dict[str, Any] = Field(default_factory=dict)


class LedgersResponse(BaseModel):
    """Current ledgers of one aggregate."""

    success: bool = True
    diagnoses: List[DiagnosisRecord] = Field(default_factory=list)
    solutions: List[SolutionRecord] = Field(default_factory=list)
    memory: Dict[str, Any] = Field(default_factory=dict)
    memory_updated_at: Optional[str] = None
