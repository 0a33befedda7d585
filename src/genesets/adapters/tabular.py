"""Adapters that load source tables from delimited files or in-memory frames."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

import pandas as pd

from genesets.adapters.base import SourceAdapter
from genesets.adapters.common import build_source_table, expand_input_paths
from genesets.config import SourceSpec
from genesets.errors import MissingRequiredInput
from genesets.models import SourceTable


def _separator_for(path: Path) -> str:
    name = path.name.lower()
    if name.endswith(".gz"):
        name = name[: -len(".gz")]
    return "\t" if name.endswith((".tsv", ".txt")) else ","


class TabularSourceAdapter(SourceAdapter):
    """Read one source from CSV/TSV file(s); several files are concatenated."""

    def __init__(self, spec: SourceSpec, input_paths: str | Path | Iterable[str | Path]) -> None:
        self.spec = spec
        self.input_paths = input_paths

    def read(self) -> SourceTable:
        paths = expand_input_paths(self.input_paths)
        if not paths:
            raise MissingRequiredInput(
                f"No input table found for source '{self.spec.name}': {self.input_paths}",
                source=self.spec.name,
            )

        frames = [
            pd.read_csv(path, sep=_separator_for(path), dtype=str, keep_default_na=False)
            for path in paths
        ]
        raw = frames[0] if len(frames) == 1 else pd.concat(frames, ignore_index=True)
        return build_source_table(self.spec, raw, origin=", ".join(str(path) for path in paths))


class FrameSourceAdapter(SourceAdapter):
    """Wrap an already-loaded DataFrame."""

    def __init__(self, spec: SourceSpec, frame: pd.DataFrame) -> None:
        self.spec = spec
        self.frame = frame

    def read(self) -> SourceTable:
        return build_source_table(self.spec, self.frame, origin="<frame>")
