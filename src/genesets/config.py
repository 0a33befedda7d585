"""Configuration contracts for reconciliation runs."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping

SOURCE_NAME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9]*$")


class JoinKey(str, Enum):
    """Exact join keys, tried in priority order by the merge engine."""

    STABLE_ID = "stable_id"
    XREF_ID = "xref_id"
    SYMBOL = "symbol"
    ALIAS = "alias"


FUZZY_MATCH_LABEL = "fuzzy"

DEFAULT_JOIN_PRIORITY: tuple[JoinKey, ...] = (
    JoinKey.STABLE_ID,
    JoinKey.XREF_ID,
    JoinKey.SYMBOL,
    JoinKey.ALIAS,
)

DEFAULT_COLUMN_CANDIDATES: Mapping[str, tuple[str, ...]] = {
    "symbol": (
        "symbol",
        "gene",
        "gene_symbol",
        "external_gene_name",
        "hgnc_symbol",
        "name",
    ),
    "primary_id": ("primary_id", "hgnc_id", "hgnc id"),
    "xref_id": ("xref_id", "ensembl_gene_id", "ensembl", "ensemblid"),
}


def validate_source_name(name: str) -> str:
    """Source names become column suffixes, so they may not contain underscores."""

    cleaned = str(name).strip()
    if not SOURCE_NAME_RE.match(cleaned):
        raise ValueError(
            f"Invalid source name '{name}': use letters and digits only, starting with a letter"
        )
    return cleaned


@dataclass(frozen=True)
class SourceSpec:
    """How to ingest one source table into the normalized schema."""

    name: str
    display_name: str = ""
    description: str = ""
    required: bool = True
    attributes: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    column_candidates: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    enrich_identifiers: bool = False

    def __post_init__(self) -> None:
        validate_source_name(self.name)

    def candidates_for(self, field_name: str) -> tuple[str, ...]:
        """Ordered source-column candidates for a core field or attribute."""

        if field_name in self.column_candidates:
            return self.column_candidates[field_name]
        if field_name in self.attributes:
            return self.attributes[field_name] or (field_name,)
        return DEFAULT_COLUMN_CANDIDATES.get(field_name, ())

    @property
    def label(self) -> str:
        return self.display_name or self.name


@dataclass(frozen=True)
class SourcePriority:
    """Preferred source order per attribute for consensus resolution."""

    priorities: Mapping[str, tuple[str, ...]] = field(default_factory=dict)

    def for_field(self, field_name: str) -> tuple[str, ...]:
        """Return source precedence for an attribute."""

        return self.priorities.get(field_name, ())

    def attributes(self) -> tuple[str, ...]:
        return tuple(self.priorities.keys())


@dataclass(frozen=True)
class FuzzyMatchPolicy:
    """Rules for the last-resort symbol matching pass."""

    enabled: bool = True
    strip_trailing_digits: bool = True
    prefix_containment: bool = True
    min_symbol_length: int = 3


@dataclass(frozen=True)
class DedupPolicy:
    """Which rows collapse together and which one survives."""

    group_key: str = "symbol"
    tie_break_key: str = "xref_id"
    tie_break_prefix: str | None = None
    validation_columns: tuple[str, ...] = ()


@dataclass(frozen=True)
class AuthoritySettings:
    """Connection and cache settings for the gene-name authority."""

    enabled: bool = True
    base_url: str = "https://rest.genenames.org"
    cache_path: str | None = None
    timeout_seconds: float = 10.0
    max_retries: int = 2
    backoff_seconds: float = 0.5
