"""Exception hierarchy for the diagnosis engine.

Only :class:`InvalidQueryError` (and ``asyncio.CancelledError``) ever leave
:meth:`autodiag.services.diagnosis.DiagnosisEngine.diagnose`.  The remaining
errors are raised between components and absorbed by degrading to empty
evidence or to the fallback report.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class DiagnosisError(Exception):
    """Base class for engine errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class InvalidQueryError(DiagnosisError):
    """The caller supplied an empty or missing required field."""


class EmbeddingError(DiagnosisError):
    """The embedding service failed, timed out or returned a bad vector."""


class RetrievalError(DiagnosisError):
    """The evidence store could not be queried."""


class GenerationError(DiagnosisError):
    """The generative service failed or returned no content."""


class ReportValidationError(DiagnosisError):
    """Generated output could not be parsed into a valid report."""
