"""Interview topic extraction (returned to the caller, not persisted)."""

from typing import List

from pydantic import BaseModel

from ..oracle.schemas import TopicBatch
from .calibration import TOPIC_BAND, ConfidenceBand


class ExtractedTopic(BaseModel):
    topic: str
    confidence: float
    reasoning: str
    category: str


def select_topics(batch: TopicBatch, max_topics: int = 5, band: ConfidenceBand = TOPIC_BAND) -> List[ExtractedTopic]:
    """Clamp topic confidences and keep the first `max_topics`, deduplicated by name."""
    topics: List[ExtractedTopic] = []
    seen = set()
    for candidate in batch.candidates:
        key = candidate.topic.lower()
        if key in seen:
            continue
        seen.add(key)
        topics.append(
            ExtractedTopic(
                topic=candidate.topic,
                confidence=band.clamp(candidate.confidence),
                reasoning=candidate.reasoning,
                category=candidate.category,
            )
        )
        if len(topics) >= max_topics:
            break
    return topics
