"""Alias and previous-symbol resolution backed by the authority."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from genesets.audit import AuditCategory, AuditLog
from genesets.authority.client import AuthorityClient
from genesets.identifiers import normalize
from genesets.models import QueryMode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AliasConflict:
    """An alias claimed by two different canonical symbols."""

    alias: str
    previous: str
    current: str
    seed: str


@dataclass
class AliasMap:
    """Normalized alias/previous/canonical symbol -> canonical symbol.

    When two seeds claim the same alias with different canonical symbols the
    later seed wins; every such overwrite is kept in ``conflicts``.
    """

    mapping: dict[str, str] = field(default_factory=dict)
    conflicts: list[AliasConflict] = field(default_factory=list)

    def resolve(self, raw_symbol: object) -> str:
        key = normalize(raw_symbol)
        return self.mapping.get(key, key)

    def __contains__(self, key: object) -> bool:
        return normalize(key) in self.mapping

    def __len__(self) -> int:
        return len(self.mapping)


class AliasResolver:
    """Build an :class:`AliasMap` from seed symbols, one lookup per distinct seed."""

    def __init__(self, client: AuthorityClient, audit: AuditLog | None = None) -> None:
        self.client = client
        self.audit = audit
        self.alias_map = AliasMap()

    def build_alias_map(self, seed_symbols: Iterable[object]) -> AliasMap:
        if isinstance(seed_symbols, (set, frozenset)):
            seed_symbols = sorted(seed_symbols, key=str)

        seeds: list[str] = []
        seen: set[str] = set()
        for raw in seed_symbols:
            seed = normalize(raw)
            if seed and seed not in seen:
                seen.add(seed)
                seeds.append(seed)

        alias_map = AliasMap()
        for seed in seeds:
            record = self.client.lookup(seed, QueryMode.SYMBOL)
            canonical = normalize(record.canonical_symbol)
            if not canonical:
                continue

            for alias in sorted(record.aliases):
                self._insert(alias_map, normalize(alias), canonical, seed)
            for previous in sorted(record.previous_symbols):
                self._insert(alias_map, normalize(previous), canonical, seed)
            self._insert(alias_map, canonical, canonical, seed)

        logger.info(
            "Built alias map from %d seeds: %d keys, %d conflicts",
            len(seeds),
            len(alias_map),
            len(alias_map.conflicts),
        )
        self.alias_map = alias_map
        return alias_map

    def resolve(self, raw_symbol: object) -> str:
        return self.alias_map.resolve(raw_symbol)

    def _insert(self, alias_map: AliasMap, key: str, canonical: str, seed: str) -> None:
        if not key:
            return

        previous = alias_map.mapping.get(key)
        if previous is not None and previous != canonical:
            conflict = AliasConflict(alias=key, previous=previous, current=canonical, seed=seed)
            alias_map.conflicts.append(conflict)
            logger.warning(
                "Alias %s remapped from %s to %s (seed %s)", key, previous, canonical, seed
            )
            if self.audit is not None:
                self.audit.record(
                    AuditCategory.ALIAS_CONFLICT,
                    key,
                    f"alias remapped from {previous} to {canonical}",
                    seed=seed,
                )
        alias_map.mapping[key] = canonical
