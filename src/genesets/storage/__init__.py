"""Output backends for reconciled gene-set tables."""

from .atomic import atomic_write_text
from .base import TableStorage
from .csv_table import CsvTableStorage
from .duckdb_parquet import DuckDBParquetStorage

__all__ = ["TableStorage", "CsvTableStorage", "DuckDBParquetStorage", "atomic_write_text"]
