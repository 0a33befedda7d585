"""Per-column provenance tracking for reconciled tables."""

from __future__ import annotations

import json
import logging
import warnings
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

from jsonschema import FormatChecker
from jsonschema.validators import validator_for

from genesets.errors import ProvenanceGap
from genesets.models import CORE_COLUMNS
from genesets.storage.atomic import atomic_write_text

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).resolve().parent / "schemas" / "provenance.schema.json"


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


@dataclass(frozen=True)
class ProvenanceEntry:
    source: str
    description: str
    generated_timestamp: str

    def to_dict(self) -> dict[str, str]:
        return {
            "source": self.source,
            "description": self.description,
            "generated_timestamp": self.generated_timestamp,
        }


@dataclass(frozen=True)
class SourceDescriptor:
    name: str
    description: str = ""
    origin: str | None = None
    rows: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "origin": self.origin,
            "rows": self.rows,
        }


@dataclass(frozen=True)
class ProvenanceDocument:
    """Immutable snapshot of everything recorded during a run."""

    generated: str
    columns: Mapping[str, ProvenanceEntry] = field(default_factory=dict)
    profile: str | None = None
    sources: tuple[SourceDescriptor, ...] = ()

    def to_dict(self, file_name: str) -> dict[str, Any]:
        return {
            "file": file_name,
            "generated": self.generated,
            "profile": self.profile,
            "sources": [source.to_dict() for source in self.sources],
            "columns": {column: entry.to_dict() for column, entry in self.columns.items()},
        }


class ProvenanceTracker:
    """Append-only record of which source produced which output column."""

    def __init__(self, profile: str | None = None, clock: Callable[[], str] = _utc_now) -> None:
        self.profile = profile
        self._clock = clock
        self._generated = clock()
        self._entries: dict[str, ProvenanceEntry] = {}
        self._sources: dict[str, SourceDescriptor] = {}

    def record(self, column: str, source: str, description: str) -> ProvenanceEntry:
        existing = self._entries.get(column)
        if existing is not None:
            logger.warning(
                "Provenance for column %s already recorded by %s; ignoring %s",
                column,
                existing.source,
                source,
            )
            return existing

        entry = ProvenanceEntry(source=source, description=description, generated_timestamp=self._clock())
        self._entries[column] = entry
        return entry

    def add_source(
        self,
        name: str,
        description: str = "",
        origin: str | None = None,
        rows: int | None = None,
    ) -> None:
        self._sources.setdefault(name, SourceDescriptor(name, description, origin, rows))

    def __contains__(self, column: object) -> bool:
        return column in self._entries

    def emit(self) -> ProvenanceDocument:
        return ProvenanceDocument(
            generated=self._generated,
            columns=MappingProxyType(dict(self._entries)),
            profile=self.profile,
            sources=tuple(self._sources.values()),
        )

    def check_completeness(
        self,
        columns: Iterable[str],
        exempt: Iterable[str] = CORE_COLUMNS,
    ) -> list[str]:
        """Return output columns without provenance, warning once if any."""

        exempt_set = set(exempt)
        missing = [column for column in columns if column not in exempt_set and column not in self._entries]
        if missing:
            warnings.warn(
                f"{len(missing)} output column(s) have no provenance: {', '.join(missing)}",
                ProvenanceGap,
                stacklevel=2,
            )
        return missing


def provenance_path_for(table_path: str | Path) -> Path:
    path = Path(table_path)
    return path.with_name(f"{path.stem}.provenance.json")


def _compile_validator(schema_path: Path):
    schema = json.loads(schema_path.read_text(encoding="utf-8"))
    Validator = validator_for(schema)
    Validator.check_schema(schema)
    return Validator(schema, format_checker=FormatChecker())


def validate_provenance(
    document: ProvenanceDocument,
    table_path: str | Path,
    schema_path: Path = SCHEMA_PATH,
) -> dict[str, Any]:
    """Return the sidecar payload for ``table_path``; raise if it breaks the schema."""

    payload = document.to_dict(Path(table_path).name)
    _compile_validator(schema_path).validate(payload)
    return payload


def write_provenance(
    document: ProvenanceDocument,
    table_path: str | Path,
    schema_path: Path = SCHEMA_PATH,
) -> Path:
    """Validate and atomically write the provenance sidecar for ``table_path``."""

    payload = validate_provenance(document, table_path, schema_path)
    target = provenance_path_for(table_path)
    atomic_write_text(target, json.dumps(payload, indent=2) + "\n")
    logger.info("Wrote provenance for %d columns to %s", len(document.columns), target)
    return target
