"""Read-only ledger API routes."""

from fastapi import APIRouter, Query

from ..dependencies import CurrentUserDep, ServiceDep
from ..schemas import LedgersResponse
from ..storage.models import ConversationAggregateKey

router = APIRouter(prefix="/aggregates")


@router.get("/ledgers", response_model=LedgersResponse)
async def get_ledgers(
    service: ServiceDep,
    current_user: CurrentUserDep,
    conversation_id: str = Query(..., min_length=1),
    patient_id: str = Query(..., min_length=1),
) -> LedgersResponse:
    """Return the diagnosis, solution and memory ledgers of one conversation."""
    key = ConversationAggregateKey(
        conversation_id=conversation_id,
        patient_id=patient_id,
        owner_id=current_user.owner_id,
    )
    ledgers = await service.get_ledgers(key)
    memory = ledgers["memory"]
    return LedgersResponse(
        diagnoses=ledgers["diagnoses"],
        solutions=ledgers["solutions"],
        memory=memory.memory,
        memory_updated_at=memory.updated_at.isoformat() if memory.updated_at else None,
    )
