"""In-process ledger store for local runs and tests.

Mirrors the PostgreSQL store's guarantees: one transaction per aggregate at a
time, reads inside a transaction see staged writes, and nothing becomes
visible until the transaction block exits without an exception.
"""

import asyncio
import copy
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Tuple

from ..errors import PersistenceConflict
from ..storage.models import ConversationAggregateKey, LedgerType, MemoryRecord

logger = logging.getLogger(__name__)


def _empty(ledger_type: LedgerType) -> Any:
    return MemoryRecord() if ledger_type == LedgerType.MEMORY else []


class InMemoryLedgerTransaction:
    """Stages reads/commits of one aggregate until the transaction exits."""

    def __init__(self, store: "InMemoryLedgerStore", key: ConversationAggregateKey):
        self.store = store
        self.key = key
        self.staged: Dict[LedgerType, Any] = {}

    async def get_ledger(self, ledger_type: LedgerType) -> Any:
        if ledger_type in self.staged:
            return copy.deepcopy(self.staged[ledger_type])
        return self.store._snapshot(self.key, ledger_type)

    async def commit_ledger(self, ledger_type: LedgerType, new_state: Any) -> None:
        self.staged[ledger_type] = copy.deepcopy(new_state)


class InMemoryLedgerStore:
    """Dictionary-backed ledger store with per-aggregate locks."""

    def __init__(self, lock_timeout_ms: int = 5000) -> None:
        self.lock_timeout_ms = lock_timeout_ms
        self._ledgers: Dict[Tuple[ConversationAggregateKey, LedgerType], Any] = {}
        self._locks: Dict[ConversationAggregateKey, asyncio.Lock] = {}
        self._lock_users: Dict[ConversationAggregateKey, int] = defaultdict(int)
        self._patients: Dict[str, str] = {}
        self._conversations: Dict[str, str] = {}
        self.commit_counts: Dict[ConversationAggregateKey, int] = defaultdict(int)

    def register_owner(self, owner_id: str, patient_id: str, conversation_id: str) -> None:
        """Record that a patient and conversation belong to an owner."""
        self._patients[patient_id] = owner_id
        self._conversations[conversation_id] = owner_id

    def seed(self, key: ConversationAggregateKey, ledger_type: LedgerType, state: Any) -> None:
        """Place a ledger state directly (fixtures only)."""
        self._ledgers[(key, ledger_type)] = copy.deepcopy(state)

    def _snapshot(self, key: ConversationAggregateKey, ledger_type: LedgerType) -> Any:
        return copy.deepcopy(self._ledgers.get((key, ledger_type), _empty(ledger_type)))

    async def verify_ownership(self, key: ConversationAggregateKey) -> bool:
        return (
            self._patients.get(key.patient_id) == key.owner_id
            and self._conversations.get(key.conversation_id) == key.owner_id
        )

    @asynccontextmanager
    async def transaction(self, key: ConversationAggregateKey) -> AsyncIterator[InMemoryLedgerTransaction]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] += 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self.lock_timeout_ms / 1000)
            except asyncio.TimeoutError as e:
                raise PersistenceConflict(
                    "Concurrent update on this conversation; retry the analysis"
                ) from e
            try:
                tx = InMemoryLedgerTransaction(self, key)
                yield tx
                for ledger_type, state in tx.staged.items():
                    self._ledgers[(key, ledger_type)] = state
                    self.commit_counts[key] += 1
            finally:
                lock.release()
        finally:
            # Drop the lock once nobody holds or waits for it
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                del self._locks[key]

    async def read_ledger(self, key: ConversationAggregateKey, ledger_type: LedgerType) -> Any:
        return self._snapshot(key, ledger_type)

    async def close(self) -> None:
        logger.info("In-memory ledger store closed")
