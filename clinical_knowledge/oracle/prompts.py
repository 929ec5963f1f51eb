"""System instructions and request builders for each oracle task."""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence


@dataclass(frozen=True)
class TaskPrompt:
    """Configuration for one oracle task agent."""

    name: str
    description: str
    instructions: str


DIAGNOSIS_PROMPT = TaskPrompt(
    name="diagnosis-oracle",
    description="Proposes probable health topics from patient statements",
    instructions="""You are a medical analysis assistant that proposes probable health topics from a conversation.

## Duplicate prevention

- Check the existing diagnoses before proposing anything
- Use standardized names: "Migraine", not "Possible Migraine Headache"
- If a finding relates to an existing diagnosis, set "relates_to_existing" to the EXACT existing name
- Keep uncertainty out of names; express it in the confidence score

## Response format (JSON only)

{
  "diagnoses": [
    {"diagnosis": "standardized term", "confidence": 0.65,
     "reasoning": "evidence from the conversation", "relates_to_existing": "existing name or null"}
  ],
  "preserve_existing": true
}
""",
)

SOLUTION_PROMPT = TaskPrompt(
    name="solution-oracle",
    description="Suggests holistic, non-medication solutions with calibrated confidence",
    instructions="""You are a holistic wellness advisor. Suggest 3-5 lifestyle, behavioral or environmental solutions.

## Confidence calibration

- Scores range 0.1-0.9; 0.8 and above is rare and needs explicit, detailed evidence
- Most solutions belong between 0.4 and 0.64
- When in doubt, score lower

## Rules

- No medications, prescriptions or medical treatments
- Category is one of: lifestyle, stress, sleep, nutrition, exercise, mental_health
- Do not repeat existing solutions

## Response format (JSON only)

[{"solution": "...", "category": "sleep", "confidence": 0.55, "reasoning": "..."}]
""",
)

MEMORY_PROMPT = TaskPrompt(
    name="memory-oracle",
    description="Extracts durable patient facts from a conversation",
    instructions="""You are a medical conversation memory analyzer. Extract NEW or UPDATED facts only.

## Save

- Confirmed diagnoses and prior medical history
- Symptoms, even secondary ones, with onset and severity
- Medications and supplements, including recent changes
- Relevant habits, key negatives, care preferences, environmental exposures

## Response format

A single JSON object, for example:
{"medical_history": [...], "current_medications": [...],
 "symptoms": {"name": {"description": "...", "onset": "...", "severity": "..."}},
 "lifestyle_factors": {...}, "key_negatives": [...], "care_preferences": [...]}

Return {} when nothing new is worth remembering. Never emit keys starting with "visual_confirmation_".
""",
)

COMPLETENESS_PROMPT = TaskPrompt(
    name="completeness-oracle",
    description="Judges whether a guided interview has gathered enough information",
    instructions="""You evaluate whether a guided health interview has gathered enough information to prepare topics for a doctor visit.

Complete when specific symptoms, locations, timing, severity and triggers are described well enough to form actionable topics.
Continue when answers are vague, brief or missing key details.

## Response format (JSON only)

{"should_complete": false, "confidence_score": 0.5, "reasoning": "...",
 "identified_topics_count": 0, "conversation_quality": "excellent|good|fair|poor"}
""",
)

TOPIC_PROMPT = TaskPrompt(
    name="topic-oracle",
    description="Derives health topics from guided interview answers",
    instructions="""You derive health topics from the questions and answers of a guided interview.

- Generate at most 5 topics, most relevant first
- Be conservative: this is preliminary screening
- Category is one of: symptoms, conditions, wellness, prevention, lifestyle

## Response format (JSON only)

{"topics": [{"topic": "...", "confidence": 0.5, "reasoning": "...", "category": "symptoms"}]}
""",
)

TASK_PROMPTS: Dict[str, TaskPrompt] = {
    "diagnoses": DIAGNOSIS_PROMPT,
    "solutions": SOLUTION_PROMPT,
    "memory": MEMORY_PROMPT,
    "completeness": COMPLETENESS_PROMPT,
    "topics": TOPIC_PROMPT,
}


def build_diagnosis_request(transcript: str, existing: Sequence[Any], preservation_threshold: float) -> str:
    """Build the diagnosis request with the existing ledger as context."""
    if existing:
        existing_lines = "\n".join(
            f'- "{d.diagnosis}" (confidence: {round(d.confidence * 100)}%, reasoning: {d.reasoning})'
            for d in existing
        )
        preserved = ", ".join(
            f'"{d.diagnosis}"' for d in existing if d.confidence >= preservation_threshold
        ) or "None"
    else:
        existing_lines = "- None"
        preserved = "None"

    return f"""ALL EXISTING DIAGNOSES (check against these before creating new ones):
{existing_lines}

High-confidence diagnoses (MUST preserve): {preserved}

Current conversation: "{transcript}"

Analyze this conversation and provide diagnosis suggestions."""


def build_solution_request(transcript: str, existing_texts: List[str]) -> str:
    """Build the solution request listing texts the oracle must not repeat."""
    existing_block = "\n".join(existing_texts) if existing_texts else "None"
    return f"""CONVERSATION CONTEXT:
{transcript}

EXISTING SOLUTIONS (avoid duplicating):
{existing_block}

Analyze this conversation for holistic solutions."""


def build_memory_request(transcript: str, current_memory: Dict[str, Any]) -> str:
    """Build the memory request with the current memory as context."""
    return f"""CURRENT MEMORY: {json.dumps(current_memory, indent=2, default=str)}

CONVERSATION TO ANALYZE:
{transcript}

Extract memory updates according to the rules."""


def build_completeness_request(conversation_context: str, turn_count: int) -> str:
    """Build the completeness request for a guided interview."""
    return f"""Evaluate if this guided interview ({turn_count} questions) is ready to complete:

{conversation_context}"""


def build_topic_request(conversation_context: str) -> str:
    """Build the topic extraction request for a guided interview."""
    return f"""Guided interview conversation:
{conversation_context}

Analyze this conversation and generate health topics."""
