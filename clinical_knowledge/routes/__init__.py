"""FastAPI route modules."""

from . import aggregates, analysis, interview

__all__ = ["aggregates", "analysis", "interview"]
