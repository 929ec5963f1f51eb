"""Knowledge service: one analysis pass per request, per aggregate."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Set, TypeVar

from ..config import Settings
from ..errors import AuthorizationDenied, CalibrationRejected, OracleMalformed, OracleUnavailable
from ..infrastructure.redis import AnalysisCache, transcript_hash
from ..oracle.client import OracleClient
from ..storage.base import LedgerStore, LedgerTransaction
from ..storage.models import (
    ConversationAggregateKey,
    DiagnosisRecord,
    LedgerType,
    MemoryRecord,
    SolutionRecord,
)
from .calibration import CalibrationGate, ConfidenceBand
from .completeness import CompletenessState, InterviewCompletenessMachine, InterviewDecision
from .diagnoses import DiagnosisMergeResult, merge_diagnoses
from .memory import ImageFeedback, MemoryMergeResult, apply_image_feedback, merge_memory
from .solutions import SolutionReplaceResult, high_confidence_ratio, replace_solutions
from .topics import ExtractedTopic, select_topics
from .transcript import ConversationMessage, dialogue_transcript, user_transcript

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class DiagnosisAnalysis:
    records: List[DiagnosisRecord] = field(default_factory=list)
    inserted: int = 0
    updated: int = 0
    purged: int = 0
    skipped: bool = False
    reset: bool = False


@dataclass
class SolutionRegeneration:
    regenerated: bool
    high_ratio: float
    records: List[SolutionRecord] = field(default_factory=list)


class KnowledgeService:
    """Runs analysis passes: oracle first, then one serialized merge transaction.

    Flow of a ledger pass:
    1. Ownership check on the aggregate key (AuthorizationDenied otherwise)
    2. Oracle call on a snapshot of the ledger; failures leave the ledger as is
    3. Read-merge-commit inside `store.transaction(key)`, shielded so a caller
       disconnect cannot cancel it half way
    """

    def __init__(
        self,
        store: LedgerStore,
        oracle: OracleClient,
        settings: Settings,
        cache: Optional[AnalysisCache] = None,
    ):
        self.store = store
        self.oracle = oracle
        self.settings = settings
        self.cache = cache
        self._transactions: Set["asyncio.Future[Any]"] = set()
        self.gate = CalibrationGate(
            high_mark=settings.calibration_high_mark,
            max_high_ratio=settings.calibration_max_high_ratio,
            min_batch=settings.calibration_min_batch,
        )
        self.diagnosis_band = ConfidenceBand(
            settings.diagnosis_confidence_floor, settings.diagnosis_confidence_ceiling
        )
        self.solution_band = ConfidenceBand(
            settings.solution_confidence_floor, settings.solution_confidence_ceiling
        )
        self.topic_band = ConfidenceBand(
            settings.topic_confidence_floor, settings.topic_confidence_ceiling
        )
        self.completeness = InterviewCompletenessMachine(
            min_turns=settings.completeness_min_turns,
            topic_turns=settings.completeness_topic_turns,
            fallback_turns=settings.completeness_fallback_turns,
            forced_turns=settings.completeness_forced_turns,
            min_quality=settings.completeness_min_quality,
        )

    # --- Plumbing ---
    async def authorize(self, key: ConversationAggregateKey) -> None:
        if not await self.store.verify_ownership(key):
            logger.warning(
                f"Owner {key.owner_id} denied access to conversation {key.conversation_id}"
            )
            raise AuthorizationDenied("Conversation or patient not found for this user")

    async def _in_transaction(
        self,
        key: ConversationAggregateKey,
        apply: Callable[[LedgerTransaction], Awaitable[T]],
    ) -> T:
        async def run() -> T:
            async with self.store.transaction(key) as tx:
                return await apply(tx)

        task = asyncio.ensure_future(run())
        self._transactions.add(task)
        task.add_done_callback(self._transaction_done)
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            logger.warning(
                f"Caller cancelled during ledger transaction on conversation {key.conversation_id}; "
                f"letting it finish"
            )
            raise

    def _transaction_done(self, task: "asyncio.Future[Any]") -> None:
        self._transactions.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"Ledger transaction failed: {type(error).__name__}: {error}")

    # --- Diagnoses ---
    async def analyze_diagnoses(
        self,
        key: ConversationAggregateKey,
        messages: Sequence[ConversationMessage],
        full_reset: bool = False,
    ) -> DiagnosisAnalysis:
        """Run one diagnosis pass for the aggregate."""
        await self.authorize(key)

        transcript = user_transcript(messages)
        if len(transcript) < self.settings.min_diagnosis_transcript_chars:
            logger.info(f"Transcript too short for diagnosis analysis in conversation {key.conversation_id}")
            return DiagnosisAnalysis(skipped=True)

        digest = transcript_hash(transcript) if self.cache else None
        if self.cache and await self.cache.was_analyzed(key, LedgerType.DIAGNOSES, digest):
            current = await self.store.read_ledger(key, LedgerType.DIAGNOSES)
            return DiagnosisAnalysis(records=current, skipped=True)

        snapshot = await self.store.read_ledger(key, LedgerType.DIAGNOSES)
        batch = await self.oracle.analyze_diagnoses(
            transcript, snapshot, self.settings.preservation_threshold
        )
        if batch.dropped:
            logger.warning(f"Dropped {batch.dropped} invalid diagnosis candidates")

        ok, reason = self.gate.validate([self.diagnosis_band.clamp(c.confidence) for c in batch.candidates])
        if not ok:
            raise CalibrationRejected(
                "Unrealistic confidence distribution; regenerate with stricter guidelines",
                details={"reason": reason},
            )

        async def apply(tx: LedgerTransaction) -> DiagnosisMergeResult:
            current = await tx.get_ledger(LedgerType.DIAGNOSES)
            result = merge_diagnoses(
                key,
                batch.candidates,
                current,
                preservation_threshold=self.settings.preservation_threshold,
                band=self.diagnosis_band,
                full_reset=full_reset,
                preserve_existing=batch.preserve_existing,
            )
            if result.inserted or result.updated or result.purged or result.reset:
                await tx.commit_ledger(LedgerType.DIAGNOSES, result.records)
            else:
                logger.debug(f"Diagnosis ledger unchanged for conversation {key.conversation_id}")
            return result

        result = await self._in_transaction(key, apply)
        if self.cache:
            await self.cache.mark_analyzed(key, LedgerType.DIAGNOSES, digest)
        return DiagnosisAnalysis(
            records=result.records,
            inserted=result.inserted,
            updated=result.updated,
            purged=result.purged,
            reset=result.reset,
        )

    # --- Solutions ---
    async def _solution_pass(
        self, key: ConversationAggregateKey, messages: Sequence[ConversationMessage]
    ) -> SolutionReplaceResult:
        transcript = dialogue_transcript(messages)
        snapshot = await self.store.read_ledger(key, LedgerType.SOLUTIONS)
        batch = await self.oracle.analyze_solutions(transcript, [s.solution for s in snapshot])

        async def apply(tx: LedgerTransaction) -> SolutionReplaceResult:
            current = await tx.get_ledger(LedgerType.SOLUTIONS)
            result = replace_solutions(
                key, batch.items, current, gate=self.gate, band=self.solution_band
            )
            if result.changed:
                await tx.commit_ledger(LedgerType.SOLUTIONS, result.records)
            return result

        return await self._in_transaction(key, apply)

    async def analyze_solutions(
        self, key: ConversationAggregateKey, messages: Sequence[ConversationMessage]
    ) -> SolutionReplaceResult:
        """Run one solution pass, replacing the stored set on success."""
        await self.authorize(key)
        return await self._solution_pass(key, messages)

    async def regenerate_solutions(
        self,
        key: ConversationAggregateKey,
        messages: Sequence[ConversationMessage],
        force: bool = False,
    ) -> SolutionRegeneration:
        """Re-run the solution pass when the stored set looks over-confident."""
        await self.authorize(key)
        stored = await self.store.read_ledger(key, LedgerType.SOLUTIONS)
        ratio = high_confidence_ratio(stored, self.settings.calibration_high_mark)
        if not force and ratio <= self.settings.regenerate_high_ratio:
            logger.info(
                f"Solutions for conversation {key.conversation_id} look calibrated "
                f"(high ratio {ratio:.2f}); skipping regeneration"
            )
            return SolutionRegeneration(regenerated=False, high_ratio=ratio, records=stored)

        result = await self._solution_pass(key, messages)
        return SolutionRegeneration(regenerated=result.changed, high_ratio=ratio, records=result.records)

    # --- Memory ---
    async def analyze_memory(
        self,
        key: ConversationAggregateKey,
        messages: Sequence[ConversationMessage],
        image_feedback: Optional[ImageFeedback] = None,
    ) -> MemoryMergeResult:
        """Merge oracle-extracted facts (and optional image feedback) into memory."""
        await self.authorize(key)
        transcript = dialogue_transcript(messages)

        updates: Dict[str, Any] = {}
        if transcript:
            snapshot = await self.store.read_ledger(key, LedgerType.MEMORY)
            update = await self.oracle.analyze_memory(transcript, snapshot.memory)
            updates = update.updates

        async def apply(tx: LedgerTransaction) -> MemoryMergeResult:
            current: MemoryRecord = await tx.get_ledger(LedgerType.MEMORY)
            result = merge_memory(key, updates, current, image_feedback=image_feedback)
            if result.changed:
                await tx.commit_ledger(LedgerType.MEMORY, result.record)
            return result

        return await self._in_transaction(key, apply)

    async def record_image_feedback(
        self, key: ConversationAggregateKey, feedback: ImageFeedback
    ) -> MemoryMergeResult:
        """Store one image-confirmation entry in memory."""
        await self.authorize(key)

        async def apply(tx: LedgerTransaction) -> MemoryMergeResult:
            current: MemoryRecord = await tx.get_ledger(LedgerType.MEMORY)
            result = apply_image_feedback(key, feedback, current)
            await tx.commit_ledger(LedgerType.MEMORY, result.record)
            return result

        return await self._in_transaction(key, apply)

    # --- Guided interview ---
    async def evaluate_completeness(
        self,
        key: ConversationAggregateKey,
        conversation_context: str,
        turn_count: int,
        previous: Optional[InterviewDecision] = None,
    ) -> CompletenessState:
        """Decide whether the guided interview should stop.

        Oracle failures never fail the request; the turn-count fallback decides.
        """
        await self.authorize(key)
        judgment = None
        if self.completeness.needs_oracle(turn_count, previous):
            try:
                judgment = await self.oracle.judge_completeness(conversation_context, turn_count)
            except (OracleUnavailable, OracleMalformed) as e:
                logger.warning(
                    f"Completeness oracle failed for conversation {key.conversation_id}, "
                    f"using fallback: {e}"
                )
        return self.completeness.evaluate(turn_count, judgment, previous)

    async def extract_topics(
        self, key: ConversationAggregateKey, conversation_context: str
    ) -> List[ExtractedTopic]:
        """Derive interview topics; nothing is persisted."""
        await self.authorize(key)
        batch = await self.oracle.extract_topics(conversation_context)
        return select_topics(batch, max_topics=self.settings.max_topics, band=self.topic_band)

    # --- Reads ---
    async def get_ledgers(self, key: ConversationAggregateKey) -> Dict[str, Any]:
        """Current state of all three ledgers for an aggregate."""
        await self.authorize(key)
        return {
            LedgerType.DIAGNOSES.value: await self.store.read_ledger(key, LedgerType.DIAGNOSES),
            LedgerType.SOLUTIONS.value: await self.store.read_ledger(key, LedgerType.SOLUTIONS),
            LedgerType.MEMORY.value: await self.store.read_ledger(key, LedgerType.MEMORY),
        }
