"""Atomic CSV output for reconciled tables."""

from __future__ import annotations

import logging
from pathlib import Path

import pandas as pd

from genesets.storage.atomic import atomic_write_text
from genesets.storage.base import TableStorage

logger = logging.getLogger(__name__)


class CsvTableStorage(TableStorage):
    """Write the table to a CSV (or TSV) file via write-temp-then-rename."""

    def __init__(self, *, path: str | Path) -> None:
        self.path = Path(path)

    @property
    def separator(self) -> str:
        return "\t" if self.path.suffix.lower() in {".tsv", ".txt"} else ","

    def persist(self, frame: pd.DataFrame) -> None:
        text = frame.to_csv(index=False, sep=self.separator, lineterminator="\n")
        atomic_write_text(self.path, text)
        logger.info("Wrote %d rows to %s", len(frame), self.path)
