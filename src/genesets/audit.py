"""Human-reviewable record of per-row reconciliation decisions."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from genesets.storage.atomic import atomic_write_text


class AuditCategory:
    FUZZY_MATCH = "fuzzy_match"
    AMBIGUOUS_MATCH = "ambiguous_match"
    DUPLICATE_CANDIDATE = "duplicate_candidate"
    DEDUP_DROP = "dedup_drop"
    CONSENSUS_MISMATCH = "consensus_mismatch"
    ALIAS_CONFLICT = "alias_conflict"
    SOURCE_SKIPPED = "source_skipped"
    SOURCE_ONLY = "source_only"


@dataclass(frozen=True)
class AuditEvent:
    """One decision worth a manual look."""

    category: str
    subject: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(timespec="seconds")
    )


class AuditLog:
    """Append-only collection of audit events for one run."""

    def __init__(self) -> None:
        self._events: list[AuditEvent] = []

    def record(
        self,
        category: str,
        subject: str,
        message: str,
        **details: Any,
    ) -> AuditEvent:
        event = AuditEvent(category=category, subject=subject, message=message, details=details)
        self._events.append(event)
        return event

    def events(self, category: str | None = None) -> list[AuditEvent]:
        if category is None:
            return list(self._events)
        return [event for event in self._events if event.category == category]

    def counts(self) -> dict[str, int]:
        return dict(Counter(event.category for event in self._events))

    def __len__(self) -> int:
        return len(self._events)

    def to_text(self) -> str:
        lines = ["# Reconciliation audit log", ""]
        for event in self._events:
            detail_text = ", ".join(f"{key}={value}" for key, value in sorted(event.details.items()))
            line = f"- [{event.timestamp}] {event.category} {event.subject}: {event.message}"
            if detail_text:
                line = f"{line} ({detail_text})"
            lines.append(line)
        if len(lines) == 2:
            lines.append("- No audit events captured.")
        return "\n".join(lines) + "\n"

    def write(self, path: str | Path) -> Path:
        return atomic_write_text(path, self.to_text())
