from datetime import datetime, timedelta, timezone

import pytest

from clinical_knowledge.engine.diagnoses import append_reasoning, merge_diagnoses
from clinical_knowledge.oracle.schemas import DiagnosisCandidate
from clinical_knowledge.storage.models import DiagnosisRecord

EARLIER = datetime(2026, 1, 1, tzinfo=timezone.utc)
NOW = EARLIER + timedelta(hours=1)


def _record(name: str, confidence: float, reasoning: str = "") -> DiagnosisRecord:
    return DiagnosisRecord(
        diagnosis=name,
        confidence=confidence,
        reasoning=reasoning,
        created_at=EARLIER,
        updated_at=EARLIER,
    )


def _candidate(name: str, confidence, reasoning: str = "", relates_to=None) -> DiagnosisCandidate:
    return DiagnosisCandidate(
        diagnosis=name, confidence=confidence, reasoning=reasoning, relates_to_existing=relates_to
    )


def test_related_candidate_keeps_higher_confidence_and_appends_reasoning(key):
    existing = [_record("Migraine", 0.75, "one-sided throbbing pain")]
    candidates = [_candidate("Migraine", 0.60, "light sensitivity", relates_to="Migraine")]

    result = merge_diagnoses(key, candidates, existing, now=NOW)

    assert len(result.records) == 1
    migraine = result.records[0]
    assert migraine.diagnosis == "Migraine"
    assert migraine.confidence == pytest.approx(0.75)
    assert migraine.reasoning == "one-sided throbbing pain | light sensitivity"
    assert migraine.updated_at == NOW
    assert migraine.created_at == EARLIER
    assert (result.inserted, result.updated, result.purged) == (0, 1, 0)


def test_low_confidence_record_purged_when_batch_empty(key):
    result = merge_diagnoses(key, [], [_record("Tension Headache", 0.5)], now=NOW)

    assert result.records == []
    assert result.purged == 1


def test_high_confidence_records_survive_unrelated_batch(key):
    existing = [_record("Migraine", 0.9), _record("Dehydration", 0.4)]
    candidates = [_candidate("Sinusitis", 0.5), _candidate("Sleep Deprivation", 0.45)]

    result = merge_diagnoses(key, candidates, existing, now=NOW)

    names = {r.diagnosis for r in result.records}
    assert names == {"Migraine", "Sinusitis", "Sleep Deprivation"}
    assert next(r for r in result.records if r.diagnosis == "Migraine").confidence == 0.9
    assert result.purged == 1
    assert result.inserted == 2


@pytest.mark.parametrize(
    "raw,expected",
    [(-1, 0.3), (0, 0.3), (1, 0.85), (2, 0.85), (float("nan"), 0.3), ("65%", 0.65), ("n/a", 0.3)],
)
def test_inserted_confidence_is_clamped(key, raw, expected):
    result = merge_diagnoses(key, [_candidate("Anemia", raw)], [], now=NOW)

    assert result.records[0].confidence == pytest.approx(expected)


def test_no_case_insensitive_duplicates(key):
    existing = [_record("Migraine", 0.8)]
    candidates = [
        _candidate("migraine", 0.5),
        _candidate("Sinusitis", 0.4, "congestion"),
        _candidate("SINUSITIS ", 0.6, "facial pressure"),
    ]

    result = merge_diagnoses(key, candidates, existing, now=NOW)

    identities = [r.identity for r in result.records]
    assert sorted(identities) == ["migraine", "sinusitis"]
    sinusitis = next(r for r in result.records if r.identity == "sinusitis")
    assert sinusitis.confidence == pytest.approx(0.6)
    assert sinusitis.reasoning == "congestion | facial pressure"
    assert result.inserted == 1


@pytest.mark.parametrize("candidate_confidence", [0.1, 0.7, 0.8, 0.99])
def test_confidence_never_decreases_on_match(key, candidate_confidence):
    existing = [_record("Migraine", 0.8)]

    result = merge_diagnoses(key, [_candidate("Migraine", candidate_confidence)], existing, now=NOW)

    assert result.records[0].confidence >= 0.8
    assert result.records[0].confidence <= 0.85


def test_back_reference_updates_existing_instead_of_inserting(key):
    existing = [_record("Migraine", 0.78)]
    candidates = [_candidate("Chronic Migraine", 0.82, "recurring episodes", relates_to="migraine")]

    result = merge_diagnoses(key, candidates, existing, now=NOW)

    assert [r.diagnosis for r in result.records] == ["Migraine"]
    assert result.records[0].confidence == pytest.approx(0.82)


def test_unmatched_reference_is_kept_as_relation(key):
    result = merge_diagnoses(key, [_candidate("Aura", 0.4, relates_to="Cluster Headache")], [], now=NOW)

    assert result.records[0].related_to == "Cluster Headache"


def test_full_reset_replaces_ledger_when_no_back_references(key):
    existing = [_record("Migraine", 0.9), _record("Dehydration", 0.4)]
    candidates = [_candidate("Sinusitis", 0.95), _candidate("sinusitis", 0.5)]

    result = merge_diagnoses(key, candidates, existing, full_reset=True, now=NOW)

    assert result.reset is True
    assert [r.diagnosis for r in result.records] == ["Sinusitis"]
    assert result.records[0].confidence == pytest.approx(0.85)
    assert result.purged == 2


def test_back_references_keep_the_preserve_path_even_on_reset_request(key):
    existing = [_record("Migraine", 0.9)]
    candidates = [_candidate("Migraine with aura", 0.5, relates_to="Migraine")]

    result = merge_diagnoses(key, candidates, existing, full_reset=True, now=NOW)

    assert result.reset is False
    assert [r.diagnosis for r in result.records] == ["Migraine"]


def test_snapshot_is_not_mutated(key):
    existing = [_record("Migraine", 0.75, "first")]

    merge_diagnoses(key, [_candidate("Migraine", 0.85, "second")], existing, now=NOW)

    assert existing[0].confidence == 0.75
    assert existing[0].reasoning == "first"
    assert existing[0].updated_at == EARLIER


def test_append_reasoning_skips_repeats_and_blanks():
    assert append_reasoning("a | b", "b") == "a | b"
    assert append_reasoning("a", "  ") == "a"
    assert append_reasoning("", "a") == "a"
    assert append_reasoning("a", "c") == "a | c"


def test_oracle_declining_preservation_replaces_ledger(key):
    existing = [_record("Migraine", 0.8)]

    result = merge_diagnoses(key, [_candidate("Sinusitis", 0.5)], existing, preserve_existing=False, now=NOW)

    assert result.reset is True
    assert [r.diagnosis for r in result.records] == ["Sinusitis"]
    assert result.purged == 1


@pytest.mark.parametrize("preserve_existing", [True, None])
def test_preservation_is_the_default_unless_declined(key, preserve_existing):
    existing = [_record("Migraine", 0.8)]

    result = merge_diagnoses(
        key, [_candidate("Sinusitis", 0.5)], existing, preserve_existing=preserve_existing, now=NOW
    )

    assert result.reset is False
    assert [r.diagnosis for r in result.records] == ["Migraine", "Sinusitis"]


def test_back_references_override_declined_preservation(key):
    existing = [_record("Migraine", 0.8)]
    candidates = [_candidate("Migraine with aura", 0.6, relates_to="Migraine")]

    result = merge_diagnoses(key, candidates, existing, preserve_existing=False, now=NOW)

    assert result.reset is False
    assert [r.diagnosis for r in result.records] == ["Migraine"]
