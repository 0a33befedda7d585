"""Collapse rows that name the same entity to one surviving row."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from genesets.audit import AuditCategory, AuditLog
from genesets.identifiers import is_missing, normalize, strip_version_prefix

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DedupDecision:
    """Why one row was dropped in favour of another."""

    group_key: str
    dropped_index: Any
    dropped_tie_break: Any
    kept_index: Any
    kept_tie_break: Any
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "group_key": self.group_key,
            "dropped_index": self.dropped_index,
            "dropped_tie_break": self.dropped_tie_break,
            "kept_index": self.kept_index,
            "kept_tie_break": self.kept_tie_break,
            "reason": self.reason,
        }


@dataclass
class DedupResult:
    frame: pd.DataFrame
    decisions: list[DedupDecision] = field(default_factory=list)

    @property
    def dropped(self) -> int:
        return len(self.decisions)


class Deduplicator:
    """Keep one row per normalized group key.

    Rows with any value in ``validation_columns`` are preferred; among the
    candidates the smallest numeric tie-break wins, else the first row. The
    surviving row is kept verbatim.
    """

    def __init__(
        self,
        validation_columns: Sequence[str] = (),
        tie_break_prefix: str | None = None,
        audit: AuditLog | None = None,
    ) -> None:
        self.validation_columns = tuple(validation_columns)
        self.tie_break_prefix = tie_break_prefix
        self.audit = audit

    def dedupe(self, table: pd.DataFrame, group_key: str, tie_break_key: str) -> pd.DataFrame:
        return self.dedupe_with_report(table, group_key, tie_break_key).frame

    def dedupe_with_report(self, table: pd.DataFrame, group_key: str, tie_break_key: str) -> DedupResult:
        if group_key not in table.columns:
            raise KeyError(f"Group key column not found: {group_key}")

        # Rows are addressed by position; labels may repeat after a concat.
        labels = list(table.index)
        keys = list(table[group_key])
        tie_breaks = list(table[tie_break_key]) if tie_break_key in table.columns else [None] * len(table)
        tie_breaks = [None if is_missing(value) else value for value in tie_breaks]
        validation = [column for column in self.validation_columns if column in table.columns]
        validated_rows = {
            position
            for column in validation
            for position, value in enumerate(table[column])
            if not is_missing(value)
        }

        groups: dict[str, list[int]] = {}
        for position, value in enumerate(keys):
            key = "" if is_missing(value) else normalize(value)
            if key:
                groups.setdefault(key, []).append(position)

        decisions: list[DedupDecision] = []
        dropped: set[int] = set()
        for key, members in groups.items():
            if len(members) < 2:
                continue

            candidates = [position for position in members if position in validated_rows] or members
            kept, reason = self._select(candidates, tie_breaks)
            for position in members:
                if position == kept:
                    continue
                reason_for_row = "unvalidated" if position not in candidates else reason
                decision = DedupDecision(
                    group_key=key,
                    dropped_index=labels[position],
                    dropped_tie_break=tie_breaks[position],
                    kept_index=labels[kept],
                    kept_tie_break=tie_breaks[kept],
                    reason=reason_for_row,
                )
                decisions.append(decision)
                dropped.add(position)
                if self.audit is not None:
                    self.audit.record(
                        AuditCategory.DEDUP_DROP,
                        key,
                        f"dropped row {labels[position]} in favour of row {labels[kept]}",
                        reason=reason_for_row,
                        dropped_tie_break=decision.dropped_tie_break,
                        kept_tie_break=decision.kept_tie_break,
                    )

        survivors = table.iloc[[position for position in range(len(table)) if position not in dropped]]
        logger.info("Deduplicated on %s: dropped %d of %d rows", group_key, len(dropped), len(table))
        return DedupResult(frame=survivors, decisions=decisions)

    def _select(self, candidates: list[int], tie_breaks: list[Any]) -> tuple[int, str]:
        best: tuple[int, int] | None = None
        for position in candidates:
            number = strip_version_prefix(tie_breaks[position], self.tie_break_prefix)
            if number is not None and (best is None or number < best[0]):
                best = (number, position)

        if best is None:
            return candidates[0], "first_in_order"
        return best[1], "tie_break"
