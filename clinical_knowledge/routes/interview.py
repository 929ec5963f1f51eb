"""Guided-interview API routes."""

from fastapi import APIRouter

from ..dependencies import CurrentUserDep, ServiceDep
from ..schemas import CompletenessRequest, CompletenessResponse, InterviewRequest, TopicsResponse
from .analysis import aggregate_key

router = APIRouter(prefix="/interview")


@router.post("/completeness", response_model=CompletenessResponse)
async def evaluate_completeness(
    body: CompletenessRequest,
    service: ServiceDep,
    current_user: CurrentUserDep,
) -> CompletenessResponse:
    """Decide whether the interview should stop asking questions.

    Oracle failures are answered with the turn-count fallback (`fallback: true`),
    not with an error.
    """
    state = await service.evaluate_completeness(
        aggregate_key(body, current_user),
        body.conversation_context,
        body.turn_count,
        previous=body.previous_decision,
    )
    return CompletenessResponse(
        should_complete=state.should_complete,
        forced=state.forced,
        fallback=state.fallback,
        quality_score=state.quality_score,
        turn_count=state.turn_count,
        reasoning=state.reasoning,
        conversation_quality=state.conversation_quality,
        identified_topics_count=state.identified_topics,
    )


@router.post("/topics", response_model=TopicsResponse)
async def extract_topics(
    body: InterviewRequest,
    service: ServiceDep,
    current_user: CurrentUserDep,
) -> TopicsResponse:
    """Derive health topics from the interview answers."""
    topics = await service.extract_topics(aggregate_key(body, current_user), body.conversation_context)
    return TopicsResponse(topics=topics)
