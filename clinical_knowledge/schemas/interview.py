"""Pydantic schemas for guided-interview endpoints."""

from typing import List, Optional

from pydantic import BaseModel, Field

from ..engine.completeness import InterviewDecision
from ..engine.topics import ExtractedTopic
from .analysis import AggregateRequest


class InterviewRequest(AggregateRequest):
    conversation_context: str = Field("", description="Question/answer transcript of the interview")


class CompletenessRequest(InterviewRequest):
    turn_count: int = Field(..., ge=0, description="Questions answered so far")
    previous_decision: Optional[InterviewDecision] = Field(
        None, description="Decision returned for an earlier turn"
    )


class CompletenessResponse(BaseModel):
    success: bool = True
    should_complete: bool
    forced: bool
    fallback: bool
    quality_score: float
    turn_count: int
    reasoning: str
    conversation_quality: Optional[str] = None
    identified_topics_count: int = 0


class TopicsResponse(BaseModel):
    success: bool = True
    topics: List[ExtractedTopic] = Field(default_factory=list)
