"""Persistent key/value cache for authority lookups."""

from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path

import duckdb

from genesets.models import AuthorityRecord

logger = logging.getLogger(__name__)


class AuthorityCache(ABC):
    """Append-only store of authority answers keyed by ``{mode}:{query}``."""

    @abstractmethod
    def get(self, key: str) -> AuthorityRecord | None:
        """Return the cached record, or ``None`` on a miss."""

    @abstractmethod
    def put(self, key: str, record: AuthorityRecord) -> None:
        """Store a record. Existing keys are never overwritten."""

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None


class InMemoryAuthorityCache(AuthorityCache):
    """Process-local cache, mostly for tests and offline runs."""

    def __init__(self, records: dict[str, AuthorityRecord] | None = None) -> None:
        self._records: dict[str, AuthorityRecord] = dict(records or {})

    def get(self, key: str) -> AuthorityRecord | None:
        return self._records.get(key)

    def put(self, key: str, record: AuthorityRecord) -> None:
        self._records.setdefault(key, record)

    def __len__(self) -> int:
        return len(self._records)


class DuckDBAuthorityCache(AuthorityCache):
    """Single-writer on-disk cache backed by a DuckDB table.

    Every ``put`` is its own transaction, so an interrupted run keeps all
    entries committed before the interruption and never a partial one. Reads
    are served from a snapshot taken when the cache is opened, plus whatever
    this process wrote since.
    """

    table_name = "authority_cache"

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._connection = duckdb.connect(str(self.db_path))
        self._connection.execute(
            f"CREATE TABLE IF NOT EXISTS {self.table_name} ("
            "cache_key VARCHAR PRIMARY KEY, "
            "payload VARCHAR NOT NULL, "
            "cached_at TIMESTAMP NOT NULL)"
        )
        self._snapshot = self._load_snapshot()
        logger.debug("Opened authority cache %s with %d entries", self.db_path, len(self._snapshot))

    def _load_snapshot(self) -> dict[str, AuthorityRecord]:
        rows = self._connection.execute(
            f"SELECT cache_key, payload FROM {self.table_name}"
        ).fetchall()
        return {key: AuthorityRecord.from_payload(json.loads(payload)) for key, payload in rows}

    def get(self, key: str) -> AuthorityRecord | None:
        return self._snapshot.get(key)

    def put(self, key: str, record: AuthorityRecord) -> None:
        payload = json.dumps(record.to_payload(), sort_keys=True)
        with self._lock:
            if key in self._snapshot:
                return
            self._connection.execute("BEGIN TRANSACTION")
            try:
                self._connection.execute(
                    f"INSERT OR IGNORE INTO {self.table_name} VALUES (?, ?, ?)",
                    [key, payload, datetime.now(timezone.utc).replace(tzinfo=None)],
                )
                self._connection.execute("COMMIT")
            except duckdb.Error:
                self._connection.execute("ROLLBACK")
                raise
            self._snapshot[key] = record

    def __len__(self) -> int:
        return len(self._snapshot)

    def close(self) -> None:
        with self._lock:
            self._connection.close()

    def __enter__(self) -> "DuckDBAuthorityCache":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
