"""DuckDB + Parquet storage backend for reconciled tables."""

from __future__ import annotations

import logging
import re
from pathlib import Path

import duckdb
import pandas as pd

from genesets.identifiers import clean_value
from genesets.storage.base import TableStorage

logger = logging.getLogger(__name__)

_TABLE_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class DuckDBParquetStorage(TableStorage):
    """Persist the reconciled table in a queryable DB and a portable Parquet file."""

    def __init__(
        self,
        *,
        db_path: str | Path,
        parquet_path: str | Path | None = None,
        table_name: str = "gene_set",
    ) -> None:
        if not _TABLE_RE.match(table_name):
            raise ValueError(f"Unsafe table name: {table_name}")

        self.db_path = Path(db_path)
        self.parquet_path = Path(parquet_path) if parquet_path is not None else None
        self.table_name = table_name

    def persist(self, frame: pd.DataFrame) -> None:
        # Mixed object columns (str/bool/None) are stored as nullable text.
        prepared = pd.DataFrame(
            {column: frame[column].map(clean_value).astype("string") for column in frame.columns}
        ).reset_index(drop=True)

        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        connection = duckdb.connect(str(self.db_path))
        try:
            connection.register("reconciled_frame", prepared)
            connection.execute(
                f"CREATE OR REPLACE TABLE {self.table_name} AS SELECT * FROM reconciled_frame"
            )

            if self.parquet_path is not None:
                self.parquet_path.parent.mkdir(parents=True, exist_ok=True)
                if self.parquet_path.exists():
                    self.parquet_path.unlink()

                parquet_target = self.parquet_path.as_posix().replace("'", "''")
                connection.execute(
                    f"COPY {self.table_name} TO '{parquet_target}' (FORMAT PARQUET)"
                )
        finally:
            connection.close()

        logger.info("Stored %d rows in %s:%s", len(prepared), self.db_path, self.table_name)
