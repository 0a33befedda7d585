"""In-memory data models shared across reconciliation components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import pandas as pd

CORE_COLUMNS: tuple[str, ...] = ("symbol", "primary_id", "xref_id")


class QueryMode(str, Enum):
    """Which identifier scheme an authority query is expressed in."""

    SYMBOL = "symbol"
    STABLE_ID = "stable_id"
    XREF_ID = "xref_id"


@dataclass(frozen=True)
class AuthorityRecord:
    """Authority answer for one query.

    The default instance is the empty record used for both "not found" and
    "lookup failed"; callers cannot and should not tell them apart.
    """

    canonical_symbol: str | None = None
    stable_id: str | None = None
    aliases: frozenset[str] = field(default_factory=frozenset)
    previous_symbols: frozenset[str] = field(default_factory=frozenset)
    xref_id: str | None = None

    def is_empty(self) -> bool:
        return not (
            self.canonical_symbol
            or self.stable_id
            or self.aliases
            or self.previous_symbols
            or self.xref_id
        )

    def to_payload(self) -> dict[str, Any]:
        """Serialize into a JSON-friendly dict with stable ordering."""

        return {
            "canonical_symbol": self.canonical_symbol,
            "stable_id": self.stable_id,
            "aliases": sorted(self.aliases),
            "previous_symbols": sorted(self.previous_symbols),
            "xref_id": self.xref_id,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "AuthorityRecord":
        return cls(
            canonical_symbol=payload.get("canonical_symbol") or None,
            stable_id=payload.get("stable_id") or None,
            aliases=frozenset(payload.get("aliases") or ()),
            previous_symbols=frozenset(payload.get("previous_symbols") or ()),
            xref_id=payload.get("xref_id") or None,
        )


@dataclass(frozen=True)
class SourceTable:
    """One ingested source in the normalized schema.

    ``frame`` always carries the core columns plus one column per tracked
    attribute, keyed by the attribute's logical name (no source suffix yet).
    """

    name: str
    frame: pd.DataFrame
    attributes: tuple[str, ...] = ()
    display_name: str | None = None
    origin: str | None = None

    def __len__(self) -> int:
        return len(self.frame)

    def records(self) -> list[dict[str, Any]]:
        """Rows as plain dicts in source-table order."""

        return self.frame.to_dict(orient="records")

    def symbols(self) -> list[str]:
        """Non-empty raw symbols in row order."""

        return [value for value in self.frame["symbol"].tolist() if value]

    def with_frame(self, frame: pd.DataFrame) -> "SourceTable":
        return SourceTable(
            name=self.name,
            frame=frame,
            attributes=self.attributes,
            display_name=self.display_name,
            origin=self.origin,
        )
