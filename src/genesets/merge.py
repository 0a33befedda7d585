"""Join a base table against validation sources with prioritized keys."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from genesets.aliases import AliasResolver
from genesets.audit import AuditCategory, AuditLog
from genesets.config import DEFAULT_JOIN_PRIORITY, FUZZY_MATCH_LABEL, FuzzyMatchPolicy, JoinKey
from genesets.errors import AmbiguousMatch
from genesets.identifiers import clean_value, normalize, strip_trailing_digits, strip_version_suffix
from genesets.models import CORE_COLUMNS, SourceTable
from genesets.provenance import ProvenanceTracker

logger = logging.getLogger(__name__)

KeyFunction = Callable[[dict[str, Any]], str]


@dataclass
class MergeResult:
    """Merged table plus per-source matching statistics."""

    frame: pd.DataFrame
    match_counts: dict[str, dict[str, int]] = field(default_factory=dict)
    unmatched_source_rows: dict[str, int] = field(default_factory=dict)
    source_only: dict[str, list[str]] = field(default_factory=dict)


@dataclass
class _SourceIndex:
    rows: list[dict[str, Any]]
    by_key: dict[JoinKey, dict[str, list[int]]]

    def symbols(self) -> dict[str, list[int]]:
        return self.by_key.get(JoinKey.SYMBOL, {})


class SourceMergeEngine:
    """Left-join validation sources onto a base table, one source at a time.

    For each source the still-unmatched base rows are tried against every join
    key in priority order, then against the fuzzy symbol fallback. A base row
    takes at most one source row per source, so the merged table always has
    exactly as many rows as the base table.
    """

    def __init__(
        self,
        join_priority: Sequence[JoinKey | str] = DEFAULT_JOIN_PRIORITY,
        fuzzy: FuzzyMatchPolicy | None = None,
        alias_resolver: AliasResolver | None = None,
        audit: AuditLog | None = None,
        provenance: ProvenanceTracker | None = None,
    ) -> None:
        self.join_priority = tuple(JoinKey(key) for key in join_priority)
        self.fuzzy = fuzzy or FuzzyMatchPolicy()
        self.alias_resolver = alias_resolver
        self.audit = audit
        self.provenance = provenance

    def merge(
        self,
        base: SourceTable,
        sources: Sequence[SourceTable],
        join_priority: Sequence[JoinKey | str] | None = None,
    ) -> MergeResult:
        priority = (
            tuple(JoinKey(key) for key in join_priority)
            if join_priority is not None
            else self.join_priority
        )
        if JoinKey.ALIAS in priority and self.alias_resolver is None:
            logger.debug("No alias resolver configured; skipping alias join key")
            priority = tuple(key for key in priority if key != JoinKey.ALIAS)

        names = [base.name, *(source.name for source in sources)]
        duplicates = sorted(name for name, count in Counter(names).items() if count > 1)
        if duplicates:
            raise ValueError(f"Source names must be unique, got duplicates: {', '.join(duplicates)}")

        base_rows = base.records()
        columns: dict[str, list[Any]] = {
            column: [row.get(column) for row in base_rows] for column in CORE_COLUMNS
        }
        for attribute in base.attributes:
            column = f"{attribute}_{base.name}"
            columns[column] = [row.get(attribute) for row in base_rows]
            self._record(column, base.display_name or base.name, f"{attribute} reported by {base.display_name or base.name}")

        result = MergeResult(frame=pd.DataFrame())
        for source in sources:
            matches, counts, source_only = self._match_source(base_rows, source, priority)
            result.match_counts[source.name] = counts
            result.unmatched_source_rows[source.name] = len(source_only)
            result.source_only[source.name] = source_only
            self._append_source_columns(columns, source, matches)

            logger.info(
                "Merged source %s: %s; %d source rows matched no base row",
                source.name,
                ", ".join(f"{key}={count}" for key, count in counts.items()),
                len(source_only),
            )

        result.frame = pd.DataFrame(columns, columns=list(columns), dtype=object)
        return result

    def _key_functions(self) -> dict[JoinKey, KeyFunction]:
        functions: dict[JoinKey, KeyFunction] = {
            JoinKey.STABLE_ID: lambda row: normalize(row.get("primary_id")),
            JoinKey.XREF_ID: lambda row: strip_version_suffix(row.get("xref_id")),
            JoinKey.SYMBOL: lambda row: normalize(row.get("symbol")),
        }
        if self.alias_resolver is not None:
            resolver = self.alias_resolver
            functions[JoinKey.ALIAS] = lambda row: resolver.resolve(row.get("symbol"))
        return functions

    def _index(self, source: SourceTable, keys: Sequence[JoinKey]) -> _SourceIndex:
        rows = source.records()
        functions = self._key_functions()
        by_key: dict[JoinKey, dict[str, list[int]]] = {}
        for key in {*keys, JoinKey.SYMBOL}:
            index: dict[str, list[int]] = {}
            for position, row in enumerate(rows):
                value = functions[key](row)
                if value:
                    index.setdefault(value, []).append(position)
            by_key[key] = index
        return _SourceIndex(rows=rows, by_key=by_key)

    def _match_source(
        self,
        base_rows: list[dict[str, Any]],
        source: SourceTable,
        priority: Sequence[JoinKey],
    ) -> tuple[list[tuple[int, str] | None], dict[str, int], list[str]]:
        index = self._index(source, priority)
        functions = self._key_functions()
        matches: list[tuple[int, str] | None] = [None] * len(base_rows)
        counts: Counter[str] = Counter()
        unresolved = list(range(len(base_rows)))

        for key in priority:
            key_index = index.by_key[key]
            remaining: list[int] = []
            for position in unresolved:
                value = functions[key](base_rows[position])
                candidates = key_index.get(value) if value else None
                if not candidates:
                    remaining.append(position)
                    continue

                if len(candidates) > 1:
                    self._report_duplicates(source, key, value, candidates, index.rows)
                matches[position] = (candidates[0], key.value)
                counts[key.value] += 1
            unresolved = remaining

        if self.fuzzy.enabled and unresolved:
            remaining = []
            for position in unresolved:
                base_symbol = self._resolved_symbol(base_rows[position])
                try:
                    hit = self._fuzzy_match(base_symbol, index.symbols())
                except AmbiguousMatch as exc:
                    logger.info("Leaving %s unmatched in %s: %s", base_symbol, source.name, exc)
                    if self.audit is not None:
                        self.audit.record(
                            AuditCategory.AMBIGUOUS_MATCH,
                            base_symbol,
                            str(exc),
                            source=source.name,
                            candidates=", ".join(exc.candidates),
                        )
                    remaining.append(position)
                    continue

                if hit is None:
                    remaining.append(position)
                    continue

                matched_symbol, rule = hit
                matches[position] = (index.symbols()[matched_symbol][0], FUZZY_MATCH_LABEL)
                counts[FUZZY_MATCH_LABEL] += 1
                if self.audit is not None:
                    self.audit.record(
                        AuditCategory.FUZZY_MATCH,
                        base_symbol,
                        f"matched {matched_symbol} in {source.name}",
                        source=source.name,
                        rule=rule,
                    )
            unresolved = remaining

        counts["unmatched"] = len(unresolved)
        used = {match[0] for match in matches if match is not None}
        source_only = [
            clean_value(row.get("symbol")) or clean_value(row.get("primary_id")) or f"row {position}"
            for position, row in enumerate(index.rows)
            if position not in used
        ]
        if self.audit is not None:
            for subject in source_only:
                self.audit.record(
                    AuditCategory.SOURCE_ONLY,
                    subject,
                    f"present in {source.name} but matched no base row",
                    source=source.name,
                )
        return matches, dict(counts), source_only

    def _resolved_symbol(self, row: dict[str, Any]) -> str:
        if self.alias_resolver is not None:
            return self.alias_resolver.resolve(row.get("symbol"))
        return normalize(row.get("symbol"))

    def _fuzzy_match(self, base_symbol: str, symbols: dict[str, list[int]]) -> tuple[str, str] | None:
        """Return ``(source_symbol, rule)`` or ``None``; raise on a tie."""

        if base_symbol in symbols:
            return base_symbol, "exact"

        minimum = self.fuzzy.min_symbol_length
        if len(base_symbol) < minimum:
            return None

        if self.fuzzy.strip_trailing_digits:
            stripped = strip_trailing_digits(base_symbol)
            if stripped != base_symbol and len(stripped) >= minimum and stripped in symbols:
                return stripped, "trailing_digits"

        if not self.fuzzy.prefix_containment:
            return None

        candidates = [
            symbol
            for symbol in symbols
            if len(symbol) >= minimum
            and (symbol.startswith(base_symbol) or base_symbol.startswith(symbol))
        ]
        if not candidates:
            return None

        longest = max(len(symbol) for symbol in candidates)
        best = [symbol for symbol in candidates if len(symbol) == longest]
        if len(best) > 1:
            raise AmbiguousMatch(
                f"{len(best)} equally long prefix candidates for {base_symbol}",
                candidates=tuple(sorted(best)),
            )
        return best[0], "prefix"

    def _report_duplicates(
        self,
        source: SourceTable,
        key: JoinKey,
        value: str,
        candidates: list[int],
        rows: list[dict[str, Any]],
    ) -> None:
        rejected = [rows[position].get("symbol") or f"row {position}" for position in candidates[1:]]
        logger.info(
            "%d %s rows share %s=%s; keeping the first, rejecting %s",
            len(candidates),
            source.name,
            key.value,
            value,
            rejected,
        )
        if self.audit is not None:
            self.audit.record(
                AuditCategory.DUPLICATE_CANDIDATE,
                value,
                f"{len(candidates)} rows in {source.name} share {key.value}; kept the first",
                source=source.name,
                rejected=", ".join(str(item) for item in rejected),
            )

    def _append_source_columns(
        self,
        columns: dict[str, list[Any]],
        source: SourceTable,
        matches: list[tuple[int, str] | None],
    ) -> None:
        rows = source.records()
        label = source.display_name or source.name

        def pick(field_name: str) -> list[Any]:
            return [rows[match[0]].get(field_name) if match else None for match in matches]

        columns[f"symbol_{source.name}"] = pick("symbol")
        self._record(f"symbol_{source.name}", label, f"Symbol of the matched {label} row")
        for attribute in source.attributes:
            column = f"{attribute}_{source.name}"
            columns[column] = pick(attribute)
            self._record(column, label, f"{attribute} reported by {label}")
        columns[f"matched_by_{source.name}"] = [match[1] if match else None for match in matches]
        self._record(
            f"matched_by_{source.name}",
            "merge",
            f"Join key that matched the base row to {label}",
        )

    def _record(self, column: str, source: str, description: str) -> None:
        if self.provenance is not None:
            self.provenance.record(column, source, description)
