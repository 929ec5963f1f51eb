"""Pydantic schemas for API requests and responses."""

from .analysis import (
    AggregateRequest,
    AnalysisRequest,
    DiagnosisAnalysisRequest,
    DiagnosisAnalysisResponse,
    ImageFeedbackRequest,
    ImageFeedbackResponse,
    LedgersResponse,
    MemoryAnalysisRequest,
    MemoryAnalysisResponse,
    SolutionAnalysisResponse,
    SolutionRegenerateRequest,
    SolutionRegenerateResponse,
)
from .interview import CompletenessRequest, CompletenessResponse, InterviewRequest, TopicsResponse
from .user import OwnerInfo

__all__ = [
    # Analysis schemas
    "AggregateRequest",
    "AnalysisRequest",
    "DiagnosisAnalysisRequest",
    "DiagnosisAnalysisResponse",
    "SolutionRegenerateRequest",
    "SolutionAnalysisResponse",
    "SolutionRegenerateResponse",
    "MemoryAnalysisRequest",
    "MemoryAnalysisResponse",
    "ImageFeedbackRequest",
    "ImageFeedbackResponse",
    "LedgersResponse",
    # Interview schemas
    "InterviewRequest",
    "CompletenessRequest",
    "CompletenessResponse",
    "TopicsResponse",
    # User schemas
    "OwnerInfo",
]
