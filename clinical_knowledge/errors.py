"""Error taxonomy for the knowledge engine.

Every error carries the HTTP status it maps to, whether the caller may retry,
and a stable machine-readable code. Route handlers never build error bodies
themselves; the exception handlers registered in ``main.py`` render them.
"""

from typing import Any, Dict, Optional


class KnowledgeEngineError(Exception):
    """Base class for all engine errors surfaced to callers."""

    status_code: int = 500
    code: str = "engine_error"
    retryable: bool = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_body(self) -> Dict[str, Any]:
        """Render as the `{success: false, ...}` response body."""
        body: Dict[str, Any] = {
            "success": False,
            "error": self.message,
            "code": self.code,
            "retryable": self.retryable,
        }
        if self.details:
            body["details"] = self.details
        return body


class OracleUnavailable(KnowledgeEngineError):
    """Oracle transport failed: network error, timeout or non-2xx."""

    status_code = 503
    code = "oracle_unavailable"
    retryable = True


class OracleMalformed(KnowledgeEngineError):
    """Oracle answered but the payload is unparsable or schema-invalid."""

    status_code = 502
    code = "oracle_malformed"
    retryable = True


class CalibrationRejected(KnowledgeEngineError):
    """Candidate confidences are distributionally implausible; regenerate."""

    status_code = 422
    code = "calibration_rejected"
    retryable = True


class AuthorizationDenied(KnowledgeEngineError):
    """The aggregate key does not belong to the caller."""

    status_code = 403
    code = "authorization_denied"


class PersistenceConflict(KnowledgeEngineError):
    """A concurrent write on the same aggregate won; retry with a fresh read."""

    status_code = 409
    code = "persistence_conflict"
    retryable = True
