"""Pairwise agreement flags and priority-ordered consensus values."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from itertools import combinations

import pandas as pd

from genesets.audit import AuditCategory, AuditLog
from genesets.identifiers import clean_value, normalize
from genesets.provenance import ProvenanceTracker

logger = logging.getLogger(__name__)


class ConsensusResolver:
    """Add ``{attr}_match_{A}_{B}`` and ``{attr}_consensus`` columns.

    Missing data is always represented as ``None``; nothing here raises for
    absent values or sources that never reported the attribute.
    """

    def __init__(
        self,
        audit: AuditLog | None = None,
        provenance: ProvenanceTracker | None = None,
        subject_column: str = "symbol",
    ) -> None:
        self.audit = audit
        self.provenance = provenance
        self.subject_column = subject_column
        self.stats: dict[str, int] = {}

    def resolve_consensus(
        self,
        merged: pd.DataFrame,
        attribute: str,
        source_priority: Sequence[str],
    ) -> pd.DataFrame:
        frame = merged.copy()
        present = [source for source in source_priority if f"{attribute}_{source}" in frame.columns]
        skipped = [source for source in source_priority if source not in present]
        if skipped:
            logger.debug("No %s column for sources %s; skipping them", attribute, skipped)

        values = {
            source: [clean_value(value) for value in frame[f"{attribute}_{source}"].tolist()]
            for source in present
        }
        subjects = (
            frame[self.subject_column].tolist()
            if self.subject_column in frame.columns
            else [str(index) for index in frame.index]
        )

        mismatches = 0
        for left, right in combinations(present, 2):
            flags: list[bool | None] = []
            for row, (left_value, right_value) in enumerate(zip(values[left], values[right])):
                if left_value is None or right_value is None:
                    flags.append(None)
                    continue
                agree = normalize(left_value) == normalize(right_value)
                flags.append(agree)
                if not agree:
                    mismatches += 1
                    self._report_mismatch(subjects[row], attribute, left, left_value, right, right_value)

            if not any(flag is not None for flag in flags):
                continue

            column = f"{attribute}_match_{left}_{right}"
            frame[column] = pd.Series(flags, index=frame.index, dtype=object)
            self._record(column, f"Whether {left} and {right} agree on {attribute}")

        consensus: list[str | None] = []
        for row in range(len(frame)):
            consensus.append(
                next((values[source][row] for source in present if values[source][row] is not None), None)
            )
        column = f"{attribute}_consensus"
        frame[column] = pd.Series(consensus, index=frame.index, dtype=object)
        self._record(
            column,
            f"First non-null {attribute} in priority order: {' > '.join(source_priority) or 'none'}",
        )

        self.stats[attribute] = self.stats.get(attribute, 0) + mismatches
        logger.info("Consensus for %s: %d pairwise mismatches", attribute, mismatches)
        return frame

    def _report_mismatch(
        self,
        subject: object,
        attribute: str,
        left: str,
        left_value: str,
        right: str,
        right_value: str,
    ) -> None:
        if self.audit is None:
            return
        self.audit.record(
            AuditCategory.CONSENSUS_MISMATCH,
            str(subject),
            f"{attribute} differs between {left} and {right}",
            **{left: left_value, right: right_value},
        )

    def _record(self, column: str, description: str) -> None:
        if self.provenance is not None:
            self.provenance.record(column, "consensus", description)
