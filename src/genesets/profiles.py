"""Reconciliation profiles: which sources to merge and how, per gene set."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from genesets.config import (
    DEFAULT_JOIN_PRIORITY,
    DedupPolicy,
    FuzzyMatchPolicy,
    JoinKey,
    SourcePriority,
    SourceSpec,
)
from genesets.errors import MissingRequiredInput


@dataclass(frozen=True)
class ReconciliationProfile:
    """Serializable description of one gene-set reconciliation."""

    name: str
    description: str
    base: SourceSpec
    sources: tuple[SourceSpec, ...]
    join_priority: tuple[JoinKey, ...] = DEFAULT_JOIN_PRIORITY
    fuzzy: FuzzyMatchPolicy = field(default_factory=FuzzyMatchPolicy)
    consensus: SourcePriority = field(default_factory=SourcePriority)
    dedup: DedupPolicy = field(default_factory=DedupPolicy)
    resolve_aliases: bool = True

    def source_names(self) -> list[str]:
        return [self.base.name, *(source.name for source in self.sources)]

    def spec_for(self, name: str) -> SourceSpec:
        for spec in (self.base, *self.sources):
            if spec.name == name:
                return spec
        raise KeyError(f"Unknown source '{name}' in profile {self.name}")


class ReconciliationProfileLoader:
    """Load profile JSON from ``config/profiles`` or a custom path."""

    def __init__(self, profiles_dir: str | Path | None = None) -> None:
        if profiles_dir is None:
            profiles_dir = Path(__file__).resolve().parents[2] / "config" / "profiles"
        self.profiles_dir = Path(profiles_dir)

    def list_profiles(self) -> list[str]:
        """Return available profile names from the configured profile directory."""

        return sorted(path.stem for path in self.profiles_dir.glob("*.json"))

    def load(self, name_or_path: str | Path) -> ReconciliationProfile:
        """Load a profile by name (for example, ``kinases``) or explicit path."""

        path = self._resolve_path(name_or_path)
        payload = json.loads(path.read_text())
        return self.parse(payload)

    def _resolve_path(self, name_or_path: str | Path) -> Path:
        requested = Path(name_or_path)

        if requested.exists():
            return requested

        candidate = self.profiles_dir / f"{requested}.json"
        if candidate.exists():
            return candidate

        raise MissingRequiredInput(
            f"Profile not found: {name_or_path}. Available: {', '.join(self.list_profiles())}"
        )

    @staticmethod
    def _parse_source(payload: dict[str, Any], *, default_required: bool) -> SourceSpec:
        if "name" not in payload:
            raise MissingRequiredInput("Every source in a profile needs a 'name'")

        return SourceSpec(
            name=str(payload["name"]),
            display_name=str(payload.get("display_name", "")),
            description=str(payload.get("description", "")),
            required=bool(payload.get("required", default_required)),
            attributes={
                str(attribute): tuple(candidates or ())
                for attribute, candidates in payload.get("attributes", {}).items()
            },
            column_candidates={
                str(field_name): tuple(candidates)
                for field_name, candidates in payload.get("columns", {}).items()
            },
            enrich_identifiers=bool(payload.get("enrich_identifiers", False)),
        )

    def parse(self, payload: dict[str, Any]) -> ReconciliationProfile:
        for key in ("name", "base"):
            if key not in payload:
                raise MissingRequiredInput(f"Profile is missing required key '{key}'")

        base = self._parse_source(payload["base"], default_required=True)
        sources = tuple(
            self._parse_source(raw, default_required=False) for raw in payload.get("sources", ())
        )

        names = [base.name, *(source.name for source in sources)]
        if len(set(names)) != len(names):
            raise ValueError(f"Profile {payload['name']} repeats a source name: {names}")

        consensus = {
            str(attribute): tuple(priority)
            for attribute, priority in payload.get("consensus", {}).items()
        }
        for attribute, priority in consensus.items():
            unknown = [name for name in priority if name not in names]
            if unknown:
                raise ValueError(
                    f"Consensus priority for '{attribute}' names unknown sources: {', '.join(unknown)}"
                )

        dedup_raw = payload.get("dedup", {})
        fuzzy_raw = payload.get("fuzzy", {})
        return ReconciliationProfile(
            name=str(payload["name"]),
            description=str(payload.get("description", "")),
            base=base,
            sources=sources,
            join_priority=tuple(JoinKey(key) for key in payload.get("join_priority", DEFAULT_JOIN_PRIORITY)),
            fuzzy=FuzzyMatchPolicy(
                enabled=bool(fuzzy_raw.get("enabled", True)),
                strip_trailing_digits=bool(fuzzy_raw.get("strip_trailing_digits", True)),
                prefix_containment=bool(fuzzy_raw.get("prefix_containment", True)),
                min_symbol_length=int(fuzzy_raw.get("min_symbol_length", 3)),
            ),
            consensus=SourcePriority(priorities=consensus),
            dedup=DedupPolicy(
                group_key=str(dedup_raw.get("group_key", "symbol")),
                tie_break_key=str(dedup_raw.get("tie_break_key", "xref_id")),
                tie_break_prefix=dedup_raw.get("tie_break_prefix"),
                validation_columns=tuple(dedup_raw.get("validation_columns", ())),
            ),
            resolve_aliases=bool(payload.get("resolve_aliases", True)),
        )
