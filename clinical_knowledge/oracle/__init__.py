"""Oracle layer: typed requests to the external reasoning service.

Main components:
- OracleClient: Runs a task with a bounded timeout and validates the reply
- Typed payloads: DiagnosisBatch, SolutionBatch, MemoryUpdate,
  CompletenessJudgment, TopicBatch
- build_agent_provider (in .factory): Creates the agent_framework agents
"""

from .client import OracleClient, parse_json_reply
from .schemas import (
    CompletenessJudgment,
    DiagnosisBatch,
    DiagnosisCandidate,
    MemoryUpdate,
    SolutionBatch,
    SolutionCandidate,
    SolutionCategory,
    TopicBatch,
    TopicCandidate,
)

__all__ = [
    "OracleClient",
    "parse_json_reply",
    "CompletenessJudgment",
    "DiagnosisBatch",
    "DiagnosisCandidate",
    "MemoryUpdate",
    "SolutionBatch",
    "SolutionCandidate",
    "SolutionCategory",
    "TopicBatch",
    "TopicCandidate",
]
