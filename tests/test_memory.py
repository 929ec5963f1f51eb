from datetime import datetime, timedelta, timezone

from clinical_knowledge.engine.memory import (
    ImageFeedback,
    apply_image_feedback,
    feedback_key_for,
    merge_memory,
)
from clinical_knowledge.storage.models import MemoryRecord

EARLIER = datetime(2026, 1, 1, tzinfo=timezone.utc)
NOW = EARLIER + timedelta(minutes=5)


def _stored(memory: dict) -> MemoryRecord:
    return MemoryRecord(memory=memory, created_at=EARLIER, updated_at=EARLIER)


def test_empty_update_leaves_record_untouched(key):
    stored = _stored({"current_medications": ["magnesium"]})

    result = merge_memory(key, {}, stored, now=NOW)

    assert result.changed is False
    assert result.record is stored
    assert result.record.updated_at == EARLIER


def test_identical_values_are_not_a_change(key):
    stored = _stored({"key_negatives": ["no fever"]})

    result = merge_memory(key, {"key_negatives": ["no fever"]}, stored, now=NOW)

    assert result.changed is False
    assert result.record.updated_at == EARLIER


def test_candidate_wins_on_collision(key):
    stored = _stored({"symptoms": {"headache": {"severity": "mild"}}, "care_preferences": ["morning visits"]})

    result = merge_memory(
        key,
        {"symptoms": {"headache": {"severity": "severe"}}, "current_medications": ["sumatriptan"]},
        stored,
        now=NOW,
    )

    assert result.changed is True
    assert result.record.memory == {
        "symptoms": {"headache": {"severity": "severe"}},
        "care_preferences": ["morning visits"],
        "current_medications": ["sumatriptan"],
    }
    assert sorted(result.updated_fields) == ["current_medications", "symptoms"]
    assert result.record.created_at == EARLIER
    assert result.record.updated_at == NOW


def test_first_merge_creates_record(key):
    result = merge_memory(key, {"medical_history": ["asthma"]}, MemoryRecord(), now=NOW)

    assert result.record.created_at == NOW
    assert result.record.exists


def test_oracle_cannot_write_reserved_keys(key):
    stored = _stored({"visual_confirmation_rash": {"matches": True}})

    result = merge_memory(key, {"visual_confirmation_rash": {"matches": False}}, stored, now=NOW)

    assert result.changed is False
    assert stored.memory["visual_confirmation_rash"] == {"matches": True}


def test_image_feedback_is_inserted_under_a_new_key(key):
    stored = _stored({"visual_confirmation_skin_rash": {"matches": True}, "symptoms": {"rash": {}}})
    feedback = ImageFeedback(searchTerm="Skin Rash", matches=False, imageId="img-9")

    result = apply_image_feedback(key, feedback, stored, now=NOW)

    assert result.feedback_key == "visual_confirmation_skin_rash_2"
    entry = result.record.memory["visual_confirmation_skin_rash_2"]
    assert entry["confidence"] == "low"
    assert entry["image_id"] == "img-9"
    assert entry["timestamp"] == NOW.isoformat()
    assert result.record.memory["visual_confirmation_skin_rash"] == {"matches": True}
    assert result.record.memory["symptoms"] == {"rash": {}}


def test_oracle_updates_and_feedback_commit_together(key):
    feedback = ImageFeedback(search_term="hives", matches=True)

    result = merge_memory(key, {"symptoms": {"hives": {"onset": "today"}}}, MemoryRecord(), image_feedback=feedback, now=NOW)

    assert result.changed is True
    assert result.updated_fields == ["symptoms", "visual_confirmation_hives"]
    assert result.record.memory["visual_confirmation_hives"]["confidence"] == "high"


def test_feedback_key_slug():
    assert feedback_key_for("  Red, itchy spots ", {}) == "visual_confirmation_red_itchy_spots"
    taken = {"visual_confirmation_red_itchy_spots": 1, "visual_confirmation_red_itchy_spots_2": 1}
    assert feedback_key_for("red itchy spots", taken) == "visual_confirmation_red_itchy_spots_3"
