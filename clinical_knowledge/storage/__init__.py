"""Ledger records and the persistence contract."""

from .base import LedgerSnapshot, LedgerStore, LedgerTransaction
from .models import (
    ConversationAggregateKey,
    DiagnosisRecord,
    LedgerType,
    MemoryRecord,
    SolutionRecord,
)

__all__ = [
    "LedgerSnapshot",
    "LedgerStore",
    "LedgerTransaction",
    "ConversationAggregateKey",
    "DiagnosisRecord",
    "LedgerType",
    "MemoryRecord",
    "SolutionRecord",
]
