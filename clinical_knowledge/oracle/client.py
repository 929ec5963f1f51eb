"""Oracle client: sends a task prompt, returns a typed, validated payload.

The client holds no merge logic. It owns three things:
- the bounded timeout around each oracle call
- turning transport failures into OracleUnavailable
- turning unparsable or wrongly-shaped replies into OracleMalformed
"""

import asyncio
import json
import logging
import re
from typing import Any, Callable, Dict, List, Sequence

from ..errors import OracleMalformed, OracleUnavailable
from . import prompts
from .schemas import (
    CompletenessJudgment,
    DiagnosisBatch,
    MemoryUpdate,
    SolutionBatch,
    TopicBatch,
)

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$")
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")

# Resolves an oracle task name to an agent exposing `async run(prompt)`
AgentProvider = Callable[[str], Any]


def strip_code_fences(text: str) -> str:
    """Remove a markdown code fence wrapped around a JSON reply."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = _FENCE_RE.sub("", cleaned).strip()
    return cleaned


def parse_json_reply(text: str, extract_object: bool = False) -> Any:
    """Decode an oracle reply as JSON.

    Args:
        text: Raw reply text
        extract_object: Fall back to the first `{...}` block embedded in prose

    Raises:
        ValueError: If no JSON can be decoded
    """
    if not text or not text.strip():
        raise ValueError("empty oracle reply")
    cleaned = strip_code_fences(text)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        if not extract_object:
            raise
        match = _OBJECT_RE.search(cleaned)
        if not match:
            raise
        return json.loads(match.group(0))


class OracleClient:
    """Runs oracle tasks against agents resolved by an AgentProvider."""

    def __init__(self, agent_provider: AgentProvider, timeout_seconds: float = 30.0):
        """Initialize the client.

        Args:
            agent_provider: Maps a task name to an agent with `async run(prompt)`
            timeout_seconds: Upper bound on a single oracle call
        """
        self.agent_provider = agent_provider
        self.timeout_seconds = timeout_seconds

    async def _run(self, task: str, prompt: str) -> str:
        """Run one task and return the reply text."""
        agent = self.agent_provider(task)
        try:
            response = await asyncio.wait_for(agent.run(prompt), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            logger.error(f"Oracle task {task} timed out after {self.timeout_seconds}s")
            raise OracleUnavailable(f"Oracle timed out after {self.timeout_seconds}s") from e
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Oracle task {task} failed: {e}")
            raise OracleUnavailable(f"Oracle call failed: {e}") from e

        text = getattr(response, "text", response)
        if not isinstance(text, str):
            raise OracleMalformed(f"Oracle task {task} returned no text")
        return text

    async def _run_json(self, task: str, prompt: str, extract_object: bool = False) -> Any:
        text = await self._run(task, prompt)
        try:
            return parse_json_reply(text, extract_object=extract_object)
        except ValueError as e:
            logger.warning(f"Oracle task {task} returned unparsable JSON: {e}")
            raise OracleMalformed("Invalid response format from oracle") from e

    @staticmethod
    def _validate(task: str, parser: Callable[[Any], Any], payload: Any) -> Any:
        try:
            return parser(payload)
        except ValueError as e:
            # pydantic.ValidationError is a ValueError subclass
            logger.warning(f"Oracle task {task} returned a schema-invalid payload: {e}")
            raise OracleMalformed(f"Oracle payload failed validation: {e}") from e

    async def analyze_diagnoses(
        self,
        transcript: str,
        existing: Sequence[Any],
        preservation_threshold: float = 0.7,
    ) -> DiagnosisBatch:
        """Ask the oracle for diagnosis candidates given the current ledger."""
        prompt = prompts.build_diagnosis_request(transcript, existing, preservation_threshold)
        payload = await self._run_json("diagnoses", prompt)
        return self._validate("diagnoses", DiagnosisBatch.from_payload, payload)

    async def analyze_solutions(self, transcript: str, existing_texts: List[str]) -> SolutionBatch:
        """Ask the oracle for solution candidates."""
        prompt = prompts.build_solution_request(transcript, existing_texts)
        payload = await self._run_json("solutions", prompt)
        return self._validate("solutions", SolutionBatch.from_payload, payload)

    async def analyze_memory(self, transcript: str, current_memory: Dict[str, Any]) -> MemoryUpdate:
        """Ask the oracle for memory updates."""
        prompt = prompts.build_memory_request(transcript, current_memory)
        payload = await self._run_json("memory", prompt, extract_object=True)
        return self._validate("memory", MemoryUpdate.from_payload, payload)

    async def judge_completeness(self, conversation_context: str, turn_count: int) -> CompletenessJudgment:
        """Ask the oracle whether a guided interview has gathered enough."""
        prompt = prompts.build_completeness_request(conversation_context, turn_count)
        payload = await self._run_json("completeness", prompt)
        return self._validate("completeness", CompletenessJudgment.from_payload, payload)

    async def extract_topics(self, conversation_context: str) -> TopicBatch:
        """Ask the oracle for interview topics."""
        prompt = prompts.build_topic_request(conversation_context)
        payload = await self._run_json("topics", prompt)
        return self._validate("topics", TopicBatch.from_payload, payload)
