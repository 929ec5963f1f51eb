from clinical_knowledge.engine.matcher import EntityMatcher
from clinical_knowledge.oracle.schemas import DiagnosisCandidate
from clinical_knowledge.storage.models import DiagnosisRecord


def _record(name: str, confidence: float = 0.8) -> DiagnosisRecord:
    return DiagnosisRecord(diagnosis=name, confidence=confidence)


def test_exact_match_is_case_insensitive():
    migraine = _record("Migraine")
    matcher = EntityMatcher([migraine])

    assert matcher.match(DiagnosisCandidate(diagnosis="  MIGRAINE ")) is migraine


def test_back_reference_match():
    migraine = _record("Migraine")
    matcher = EntityMatcher([migraine])

    candidate = DiagnosisCandidate(diagnosis="Chronic Migraine", relates_to_existing="migraine")
    assert matcher.match(candidate) is migraine


def test_name_equality_wins_over_back_reference():
    migraine = _record("Migraine")
    tension = _record("Tension Headache")
    matcher = EntityMatcher([migraine, tension])

    candidate = DiagnosisCandidate(diagnosis="Tension Headache", relates_to_existing="Migraine")
    assert matcher.match(candidate) is tension


def test_unknown_reference_is_no_match():
    matcher = EntityMatcher([_record("Migraine")])

    assert matcher.match(DiagnosisCandidate(diagnosis="Sinusitis", relates_to_existing="Cluster Headache")) is None
    assert matcher.match(DiagnosisCandidate(diagnosis="Sinusitis", relates_to_existing="null")) is None


def test_added_records_become_matchable():
    matcher = EntityMatcher()
    assert "anemia" not in matcher

    matcher.add(_record("Anemia"))

    assert "ANEMIA" in matcher
    assert len(matcher) == 1
