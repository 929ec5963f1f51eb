"""Infrastructure layer for external service integrations."""

from .keyvault import SecretStore
from .memory_store import InMemoryLedgerStore
from .postgresql import AsyncPostgreSQLLedgerStore
from .redis import AnalysisCache, transcript_hash

__all__ = [
    "SecretStore",
    "InMemoryLedgerStore",
    "AsyncPostgreSQLLedgerStore",
    "AnalysisCache",
    "transcript_hash",
]
