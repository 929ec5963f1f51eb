"""Shared fixtures: in-memory store, scripted oracle agents, engine settings."""

import asyncio
import json
from typing import Any, Dict, List, Optional

import pytest

from clinical_knowledge.config import Settings
from clinical_knowledge.engine import ConversationMessage, KnowledgeService
from clinical_knowledge.infrastructure import InMemoryLedgerStore
from clinical_knowledge.oracle import OracleClient
from clinical_knowledge.storage.models import ConversationAggregateKey

OWNER_ID = "owner-1"
PATIENT_ID = "patient-1"
CONVERSATION_ID = "conversation-1"


def reply(payload: Any) -> str:
    """Serialize an oracle payload the way an agent would return it."""
    return json.dumps(payload)


class FakeResponse:
    def __init__(self, text: Optional[str]):
        self.text = text


class FakeAgent:
    """Agent double: returns canned replies in order, or raises."""

    def __init__(self, *replies: Optional[str], error: Optional[Exception] = None, delay: float = 0.0):
        self.replies: List[Optional[str]] = list(replies)
        self.error = error
        self.delay = delay
        self.prompts: List[str] = []

    async def run(self, prompt: str) -> FakeResponse:
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        text = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        return FakeResponse(text)


class FakeAgentProvider:
    """Maps oracle task names to FakeAgents; unknown tasks fail like a dead endpoint."""

    def __init__(self, **agents: FakeAgent):
        self.agents: Dict[str, FakeAgent] = dict(agents)
        self.calls: List[str] = []

    def __call__(self, task: str) -> FakeAgent:
        self.calls.append(task)
        if task not in self.agents:
            return FakeAgent(error=ConnectionError(f"no agent for {task}"))
        return self.agents[task]

    def set(self, task: str, *replies: Optional[str], error: Optional[Exception] = None, delay: float = 0.0) -> FakeAgent:
        agent = FakeAgent(*replies, error=error, delay=delay)
        self.agents[task] = agent
        return agent


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        ledger_backend="memory",
        auth_mode="local",
        local_test_owner_id=OWNER_ID,
        oracle_timeout_seconds=0.5,
        ledger_lock_timeout_ms=200,
    )


@pytest.fixture
def key() -> ConversationAggregateKey:
    return ConversationAggregateKey(
        conversation_id=CONVERSATION_ID,
        patient_id=PATIENT_ID,
        owner_id=OWNER_ID,
    )


@pytest.fixture
def store(key: ConversationAggregateKey) -> InMemoryLedgerStore:
    store = InMemoryLedgerStore(lock_timeout_ms=200)
    store.register_owner(key.owner_id, key.patient_id, key.conversation_id)
    return store


@pytest.fixture
def provider() -> FakeAgentProvider:
    return FakeAgentProvider()


@pytest.fixture
def oracle(provider: FakeAgentProvider, settings: Settings) -> OracleClient:
    return OracleClient(provider, timeout_seconds=settings.oracle_timeout_seconds)


@pytest.fixture
def service(store: InMemoryLedgerStore, oracle: OracleClient, settings: Settings) -> KnowledgeService:
    return KnowledgeService(store, oracle, settings)


@pytest.fixture
def raw_messages() -> List[Dict[str, str]]:
    return [
        {"role": "user", "content": "I've had a throbbing headache on one side for three days."},
        {"role": "assistant", "content": "Does light make it worse?"},
        {"type": "user", "content": "Yes, bright light and noise make it much worse."},
    ]


@pytest.fixture
def messages(raw_messages: List[Dict[str, str]]) -> List[ConversationMessage]:
    return [ConversationMessage.model_validate(m) for m in raw_messages]
