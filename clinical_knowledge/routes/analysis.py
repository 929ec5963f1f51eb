"""Ledger analysis API routes."""

from fastapi import APIRouter

from ..dependencies import CurrentUserDep, ServiceDep
from ..schemas import (
    AggregateRequest,
    AnalysisRequest,
    DiagnosisAnalysisRequest,
    DiagnosisAnalysisResponse,
    ImageFeedbackRequest,
    ImageFeedbackResponse,
    MemoryAnalysisRequest,
    MemoryAnalysisResponse,
    OwnerInfo,
    SolutionAnalysisResponse,
    SolutionRegenerateRequest,
    SolutionRegenerateResponse,
)
from ..storage.models import ConversationAggregateKey

router = APIRouter(prefix="/analysis")


def aggregate_key(body: AggregateRequest, owner: OwnerInfo) -> ConversationAggregateKey:
    return ConversationAggregateKey(
        conversation_id=body.conversation_id,
        patient_id=body.patient_id,
        owner_id=owner.owner_id,
    )


@router.post("/diagnoses", response_model=DiagnosisAnalysisResponse)
async def analyze_diagnoses(
    body: DiagnosisAnalysisRequest,
    service: ServiceDep,
    current_user: CurrentUserDep,
) -> DiagnosisAnalysisResponse:
    """Merge oracle diagnosis candidates into the conversation's ledger.

    Returns:
        The full ledger after the pass, with insert/update/purge counts
    """
    result = await service.analyze_diagnoses(
        aggregate_key(body, current_user), body.recent_messages, full_reset=body.full_reset
    )
    return DiagnosisAnalysisResponse(
        diagnoses=result.records,
        inserted=result.inserted,
        updated=result.updated,
        purged=result.purged,
        skipped=result.skipped,
    )


@router.post("/solutions", response_model=SolutionAnalysisResponse)
async def analyze_solutions(
    body: AnalysisRequest,
    service: ServiceDep,
    current_user: CurrentUserDep,
) -> SolutionAnalysisResponse:
    """Replace the conversation's solutions with a freshly gated set."""
    result = await service.analyze_solutions(aggregate_key(body, current_user), body.recent_messages)
    return SolutionAnalysisResponse(solutions=result.records, count=len(result.records))


@router.post("/solutions/regenerate", response_model=SolutionRegenerateResponse)
async def regenerate_solutions(
    body: SolutionRegenerateRequest,
    service: ServiceDep,
    current_user: CurrentUserDep,
) -> SolutionRegenerateResponse:
    """Regenerate solutions whose stored confidences look over-optimistic."""
    result = await service.regenerate_solutions(
        aggregate_key(body, current_user), body.recent_messages, force=body.force
    )
    return SolutionRegenerateResponse(regenerated=result.regenerated, solutions=result.records)


@router.post("/memory", response_model=MemoryAnalysisResponse)
async def analyze_memory(
    body: MemoryAnalysisRequest,
    service: ServiceDep,
    current_user: CurrentUserDep,
) -> MemoryAnalysisResponse:
    """Merge newly extracted facts into the conversation memory."""
    result = await service.analyze_memory(
        aggregate_key(body, current_user), body.recent_messages, image_feedback=body.image_feedback
    )
    return MemoryAnalysisResponse(
        memory_updated=result.changed,
        updated_fields=result.updated_fields,
        memory=result.record.memory,
    )


@router.post("/memory/image-feedback", response_model=ImageFeedbackResponse)
async def record_image_feedback(
    body: ImageFeedbackRequest,
    service: ServiceDep,
    current_user: CurrentUserDep,
) -> ImageFeedbackResponse:
    """Store a user's image confirmation in memory."""
    result = await service.record_image_feedback(aggregate_key(body, current_user), body.feedback)
    return ImageFeedbackResponse(key=result.feedback_key, memory=result.record.memory)
