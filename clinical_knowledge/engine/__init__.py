"""Knowledge accumulation engine.

Main components:
- CalibrationGate / ConfidenceBand: batch plausibility and per-value clamping
- EntityMatcher: candidate-to-record identity
- merge_diagnoses: preserve/update/insert over the diagnosis ledger
- replace_solutions: gated full replacement of the solution ledger
- merge_memory / apply_image_feedback: memory key-wise merge
- InterviewCompletenessMachine: when a guided interview may stop
- KnowledgeService: ownership, oracle call and serialized commit per pass
"""

from .calibration import DIAGNOSIS_BAND, SOLUTION_BAND, TOPIC_BAND, CalibrationGate, ConfidenceBand
from .completeness import CompletenessState, InterviewCompletenessMachine, InterviewDecision
from .diagnoses import DiagnosisMergeResult, merge_diagnoses
from .matcher import EntityMatcher
from .memory import ImageFeedback, MemoryMergeResult, apply_image_feedback, merge_memory
from .service import KnowledgeService
from .solutions import SolutionReplaceResult, replace_solutions
from .topics import ExtractedTopic, select_topics
from .transcript import ConversationMessage, dialogue_transcript, user_transcript

__all__ = [
    "DIAGNOSIS_BAND",
    "SOLUTION_BAND",
    "TOPIC_BAND",
    "CalibrationGate",
    "ConfidenceBand",
    "CompletenessState",
    "InterviewCompletenessMachine",
    "InterviewDecision",
    "DiagnosisMergeResult",
    "merge_diagnoses",
    "EntityMatcher",
    "ImageFeedback",
    "MemoryMergeResult",
    "apply_image_feedback",
    "merge_memory",
    "KnowledgeService",
    "SolutionReplaceResult",
    "replace_solutions",
    "ExtractedTopic",
    "select_topics",
    "ConversationMessage",
    "dialogue_transcript",
    "user_transcript",
]
