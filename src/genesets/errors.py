"""Error taxonomy for gene-set reconciliation runs.

Hierarchy:
    ReconciliationError          (base)
    ├── MissingRequiredInput     (fatal: required table/config value absent)
    ├── SchemaMismatch           (no recognizable symbol/ID column in a source)
    ├── LookupUnavailable        (authority unreachable; recovered by the client)
    └── AmbiguousMatch           (fuzzy fallback tie; recovered by the merge engine)

``ProvenanceGap`` is a warning category, never raised.
"""

from __future__ import annotations

from typing import Any


class ReconciliationError(Exception):
    """Base exception for reconciliation failures."""

    def __init__(self, message: str, *, source: str | None = None) -> None:
        self.source = source
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Structured representation for run summaries and logs."""

        payload: dict[str, Any] = {
            "error_type": type(self).__name__,
            "message": str(self),
        }
        if self.source:
            payload["source"] = self.source
        return payload


class MissingRequiredInput(ReconciliationError):
    """A required source table or configuration value is absent."""


class SchemaMismatch(ReconciliationError):
    """A source table has no recognizable symbol or identifier column."""


class LookupUnavailable(ReconciliationError):
    """The authority service could not be reached or returned garbage."""


class AmbiguousMatch(ReconciliationError):
    """More than one equally-qualified fuzzy candidate was found."""

    def __init__(self, message: str, *, candidates: tuple[str, ...], source: str | None = None) -> None:
        self.candidates = candidates
        super().__init__(message, source=source)


class ProvenanceGap(UserWarning):
    """An output column has no provenance entry."""
