"""Guided-interview completeness: Gathering -> Complete, one-way."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..oracle.schemas import CompletenessJudgment

logger = logging.getLogger(__name__)


class InterviewDecision(str, Enum):
    CONTINUE = "continue"
    COMPLETE = "complete"


@dataclass(frozen=True)
class CompletenessState:
    """Decision for one interview turn. Derived fresh each turn, never stored."""

    turn_count: int
    quality_score: float
    decision: InterviewDecision
    forced: bool = False
    fallback: bool = False
    reasoning: str = ""
    conversation_quality: Optional[str] = None
    identified_topics: int = 0

    @property
    def should_complete(self) -> bool:
        return self.decision == InterviewDecision.COMPLETE


class InterviewCompletenessMachine:
    """Decides whether a guided interview may stop asking questions.

    Complete when any of these hold:
    - turn_count >= forced_turns, whatever the oracle says
    - the oracle says complete and turn_count >= min_turns
    - turn_count >= topic_turns and the oracle found at least one topic in a
      conversation it did not rate "poor" (and scored >= min_quality)

    Without an oracle judgment the decision falls back to
    turn_count >= fallback_turns.
    """

    def __init__(
        self,
        min_turns: int = 3,
        topic_turns: int = 6,
        fallback_turns: int = 7,
        forced_turns: int = 10,
        min_quality: float = 0.4,
    ):
        self.min_turns = min_turns
        self.topic_turns = topic_turns
        self.fallback_turns = fallback_turns
        self.forced_turns = forced_turns
        self.min_quality = min_quality

    def is_forced(self, turn_count: int) -> bool:
        return turn_count >= self.forced_turns

    def needs_oracle(self, turn_count: int, previous: Optional[InterviewDecision] = None) -> bool:
        """Whether an oracle judgment can still change the outcome."""
        return previous != InterviewDecision.COMPLETE and not self.is_forced(turn_count)

    def evaluate(
        self,
        turn_count: int,
        judgment: Optional[CompletenessJudgment] = None,
        previous: Optional[InterviewDecision] = None,
    ) -> CompletenessState:
        """Decide this turn.

        Args:
            turn_count: Questions answered so far
            judgment: Oracle judgment, or None when the oracle failed
            previous: Decision reported for an earlier turn, if any
        """
        turn_count = max(int(turn_count), 0)
        forced = self.is_forced(turn_count)

        if judgment is None:
            complete = forced or turn_count >= self.fallback_turns
            reasoning = (
                "Forced completion after maximum questions"
                if forced
                else f"Fallback decision at {turn_count} questions"
            )
            state = CompletenessState(
                turn_count=turn_count,
                quality_score=0.0,
                decision=InterviewDecision.COMPLETE if complete else InterviewDecision.CONTINUE,
                forced=forced,
                fallback=not forced,
                reasoning=reasoning,
            )
        else:
            by_oracle = judgment.should_complete and turn_count >= self.min_turns
            by_topics = (
                turn_count >= self.topic_turns
                and judgment.identified_topics_count >= 1
                and judgment.conversation_quality != "poor"
                and judgment.confidence_score >= self.min_quality
            )
            complete = forced or by_oracle or by_topics
            state = CompletenessState(
                turn_count=turn_count,
                quality_score=judgment.confidence_score,
                decision=InterviewDecision.COMPLETE if complete else InterviewDecision.CONTINUE,
                forced=forced and not (by_oracle or by_topics),
                reasoning=judgment.reasoning,
                conversation_quality=judgment.conversation_quality,
                identified_topics=judgment.identified_topics_count,
            )

        if previous == InterviewDecision.COMPLETE and (judgment is None or not state.should_complete):
            # Complete is terminal; the oracle is not consulted again
            state = CompletenessState(
                turn_count=state.turn_count,
                quality_score=state.quality_score,
                decision=InterviewDecision.COMPLETE,
                forced=state.forced,
                fallback=False,
                reasoning="Interview already complete",
                conversation_quality=state.conversation_quality,
                identified_topics=state.identified_topics,
            )

        log = logger.warning if state.fallback else logger.info
        log(
            f"Completeness at {turn_count} turns: {state.decision.value} "
            f"(forced={state.forced}, fallback={state.fallback}, quality={state.quality_score:.2f})"
        )
        return state
