"""Shared utilities for source-table adapters."""

from __future__ import annotations

import glob
import logging
import os
from pathlib import Path
from typing import Iterable, Mapping

import pandas as pd

from genesets.config import SourceSpec
from genesets.errors import SchemaMismatch
from genesets.identifiers import clean_value
from genesets.models import CORE_COLUMNS, SourceTable

logger = logging.getLogger(__name__)

TABULAR_SUFFIXES: tuple[str, ...] = (".csv", ".tsv", ".txt")


def _is_tabular(path: Path) -> bool:
    """Return True if the file looks like a (possibly gzipped) delimited table."""

    name = path.name.lower()
    if name.endswith(".gz"):
        name = name[: -len(".gz")]
    return name.endswith(TABULAR_SUFFIXES)


def expand_input_paths(input_paths: str | Path | Iterable[str | Path]) -> list[Path]:
    """Expand file, directory, or glob inputs into concrete table paths."""

    if isinstance(input_paths, (str, Path)):
        items: list[str | Path] = [input_paths]
    else:
        items = list(input_paths)

    resolved: list[Path] = []
    for item in items:
        expanded_item = os.path.expandvars(os.path.expanduser(str(item)))
        item_path = Path(expanded_item)

        if item_path.is_dir():
            resolved.extend(
                sorted(
                    path
                    for path in item_path.iterdir()
                    if path.is_file() and _is_tabular(path)
                )
            )
            continue

        if item_path.exists():
            resolved.append(item_path)
            continue

        matches = [Path(path) for path in glob.glob(expanded_item)]
        resolved.extend(sorted(match for match in matches if _is_tabular(match)))

    return resolved


def resolve_column(columns: Mapping[str, str], candidates: Iterable[str]) -> str | None:
    """Return the first candidate present in ``columns`` (keys lower-cased)."""

    for candidate in candidates:
        actual = columns.get(candidate.strip().lower())
        if actual is not None:
            return actual
    return None


def build_source_table(spec: SourceSpec, raw: pd.DataFrame, origin: str | None = None) -> SourceTable:
    """Project a raw frame onto the normalized schema for ``spec``.

    Column names are matched case-insensitively against the ordered candidate
    list of each logical field. Missing attribute columns become all-null;
    a table with no symbol or identifier column at all is rejected.
    """

    lookup: dict[str, str] = {}
    for column in raw.columns:
        lookup.setdefault(str(column).strip().lower(), column)

    core = {field_name: resolve_column(lookup, spec.candidates_for(field_name)) for field_name in CORE_COLUMNS}
    if not any(core.values()):
        searched = sorted({c for f in CORE_COLUMNS for c in spec.candidates_for(f)})
        raise SchemaMismatch(
            f"Source '{spec.name}' has no recognizable symbol or identifier column "
            f"(looked for: {', '.join(searched)}; found: {', '.join(map(str, raw.columns))})",
            source=spec.name,
        )

    resolved = dict(core)
    for attribute in spec.attributes:
        column = resolve_column(lookup, spec.candidates_for(attribute))
        if column is None:
            logger.warning("Source %s has no column for attribute '%s'", spec.name, attribute)
        resolved[attribute] = column

    data = {
        field_name: [clean_value(value) for value in raw[column]] if column is not None else [None] * len(raw)
        for field_name, column in resolved.items()
    }
    frame = pd.DataFrame(data, columns=list(resolved), dtype=object)

    logger.info(
        "Loaded source %s: %d rows (columns: %s)",
        spec.name,
        len(frame),
        ", ".join(f"{field_name}<-{column}" for field_name, column in resolved.items() if column is not None),
    )
    return SourceTable(
        name=spec.name,
        frame=frame,
        attributes=tuple(spec.attributes),
        display_name=spec.label,
        origin=origin,
    )
