"""Decides whether a candidate diagnosis refers to an existing record."""

from typing import Dict, Iterable, Optional

from ..oracle.schemas import DiagnosisCandidate
from ..storage.models import DiagnosisRecord


def identity_of(name: str) -> str:
    """Case-insensitive identity of a diagnosis name."""
    return name.strip().lower()


class EntityMatcher:
    """Matches candidates against a set of records.

    Strategies run in a fixed order and the first hit wins:
    1. exact case-insensitive name equality
    2. the candidate's explicit `relates_to_existing` back-reference

    Anything else is "no match"; matching never raises.
    """

    def __init__(self, records: Iterable[DiagnosisRecord] = ()):
        self._by_identity: Dict[str, DiagnosisRecord] = {}
        for record in records:
            self.add(record)

    def add(self, record: DiagnosisRecord) -> None:
        self._by_identity.setdefault(record.identity, record)

    def lookup(self, name: Optional[str]) -> Optional[DiagnosisRecord]:
        if not name:
            return None
        return self._by_identity.get(identity_of(name))

    def match(self, candidate: DiagnosisCandidate) -> Optional[DiagnosisRecord]:
        record = self.lookup(candidate.diagnosis)
        if record is not None:
            return record
        return self.lookup(candidate.relates_to_existing)

    def __contains__(self, name: str) -> bool:
        return self.lookup(name) is not None

    def __len__(self) -> int:
        return len(self._by_identity)
