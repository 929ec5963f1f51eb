"""Persistence contract shared by the PostgreSQL and in-memory ledger stores.

A merge pass runs inside ``store.transaction(key)``. Inside it, reads and the
final commit see one consistent view of the aggregate and no other pass on the
same key can interleave. Leaving the block normally commits; an exception
rolls everything back.
"""

from typing import Any, AsyncContextManager, List, Protocol, Union

from .models import (
    ConversationAggregateKey,
    DiagnosisRecord,
    LedgerType,
    MemoryRecord,
    SolutionRecord,
)

LedgerSnapshot = Union[List[DiagnosisRecord], List[SolutionRecord], MemoryRecord]


class LedgerTransaction(Protocol):
    """Read/commit handle bound to one aggregate for one transaction."""

    async def get_ledger(self, ledger_type: LedgerType) -> Any:
        """Return the ledger snapshot (list of records, or a MemoryRecord)."""
        ...

    async def commit_ledger(self, ledger_type: LedgerType, new_state: Any) -> None:
        """Replace the ledger with `new_state`.

        Raises:
            PersistenceConflict: If a concurrent write won
        """
        ...


class LedgerStore(Protocol):
    """Transactional store for per-aggregate ledgers."""

    async def verify_ownership(self, key: ConversationAggregateKey) -> bool:
        """Whether the patient and conversation both belong to key.owner_id."""
        ...

    def transaction(self, key: ConversationAggregateKey) -> AsyncContextManager[LedgerTransaction]:
        """Open a serialized read-merge-write transaction on one aggregate."""
        ...

    async def read_ledger(self, key: ConversationAggregateKey, ledger_type: LedgerType) -> Any:
        """Read a ledger outside any merge (for prompts and read endpoints)."""
        ...

    async def close(self) -> None:
        ...
