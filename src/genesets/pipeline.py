"""End-to-end reconciliation run: ingest, merge, score, dedupe, write."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pandas as pd

from genesets.adapters.base import SourceAdapter
from genesets.aliases import AliasResolver
from genesets.audit import AuditCategory, AuditLog
from genesets.authority.client import AuthorityClient
from genesets.authority.enrich import fill_missing_identifiers
from genesets.consensus import ConsensusResolver
from genesets.dedupe import DedupDecision, Deduplicator
from genesets.errors import MissingRequiredInput, SchemaMismatch
from genesets.merge import SourceMergeEngine
from genesets.models import SourceTable
from genesets.profiles import ReconciliationProfile
from genesets.provenance import (
    SCHEMA_PATH,
    ProvenanceDocument,
    ProvenanceTracker,
    validate_provenance,
    write_provenance,
)
from genesets.storage.base import TableStorage
from genesets.storage.csv_table import CsvTableStorage

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationRunReport:
    """Execution summary for a reconciliation run."""

    profile: str
    base_rows: int
    output_rows: int
    match_counts: dict[str, dict[str, int]] = field(default_factory=dict)
    source_only_rows: dict[str, int] = field(default_factory=dict)
    source_only: dict[str, list[str]] = field(default_factory=dict)
    mismatch_counts: dict[str, int] = field(default_factory=dict)
    dropped_rows: int = 0
    skipped_sources: dict[str, str] = field(default_factory=dict)
    provenance_gaps: list[str] = field(default_factory=list)
    audit_counts: dict[str, int] = field(default_factory=dict)
    outputs: dict[str, str] = field(default_factory=dict)

    def to_summary(self) -> dict[str, Any]:
        return {
            "profile": self.profile,
            "base_rows": self.base_rows,
            "output_rows": self.output_rows,
            "match_counts": self.match_counts,
            "source_only_rows": self.source_only_rows,
            "source_only": self.source_only,
            "mismatch_counts": self.mismatch_counts,
            "dropped_rows": self.dropped_rows,
            "skipped_sources": self.skipped_sources,
            "provenance_gaps": self.provenance_gaps,
            "audit_counts": self.audit_counts,
            "outputs": self.outputs,
        }


@dataclass
class ReconciliationResult:
    frame: pd.DataFrame
    report: ReconciliationRunReport
    provenance: ProvenanceDocument
    audit: AuditLog
    dedup_decisions: list[DedupDecision] = field(default_factory=list)


class ReconciliationPipeline:
    """Run ingestion, enrichment, aliasing, merge, consensus and dedup in order.

    Structural problems (missing base table, unreadable required source) are
    raised before anything is written. Per-row problems only show up in the
    audit log and the run report.
    """

    def __init__(
        self,
        *,
        profile: ReconciliationProfile,
        adapters: Mapping[str, SourceAdapter],
        authority_client: AuthorityClient | None = None,
        table_path: str | Path | None = None,
        audit_path: str | Path | None = None,
        storages: Sequence[TableStorage] | None = None,
        provenance_schema: Path = SCHEMA_PATH,
    ) -> None:
        self.profile = profile
        self.adapters = dict(adapters)
        self.authority_client = authority_client
        self.table_path = Path(table_path) if table_path is not None else None
        self.audit_path = Path(audit_path) if audit_path is not None else None
        self.storages = list(storages or [])
        self.provenance_schema = Path(provenance_schema)

    def run(self) -> ReconciliationResult:
        audit = AuditLog()
        provenance = ProvenanceTracker(profile=self.profile.name)

        base, sources, skipped = self._load_sources(audit)
        for table in (base, *sources):
            spec = self.profile.spec_for(table.name)
            provenance.add_source(table.name, spec.description or spec.label, table.origin, len(table))

        if self.authority_client is not None:
            base, sources = self._enrich(base, sources, self.authority_client)

        alias_resolver = None
        if self.profile.resolve_aliases and self.authority_client is not None:
            alias_resolver = AliasResolver(self.authority_client, audit=audit)
            seeds = [symbol for table in (base, *sources) for symbol in table.symbols()]
            alias_resolver.build_alias_map(seeds)

        engine = SourceMergeEngine(
            join_priority=self.profile.join_priority,
            fuzzy=self.profile.fuzzy,
            alias_resolver=alias_resolver,
            audit=audit,
            provenance=provenance,
        )
        merged = engine.merge(base, sources)

        resolver = ConsensusResolver(audit=audit, provenance=provenance)
        frame = merged.frame
        present = {table.name for table in (base, *sources)}
        for attribute in self.profile.consensus.attributes():
            priority = [name for name in self.profile.consensus.for_field(attribute) if name in present]
            frame = resolver.resolve_consensus(frame, attribute, priority)

        dedup_policy = self.profile.dedup
        deduplicator = Deduplicator(
            validation_columns=dedup_policy.validation_columns,
            tie_break_prefix=dedup_policy.tie_break_prefix,
            audit=audit,
        )
        deduped = deduplicator.dedupe_with_report(
            frame.reset_index(drop=True),
            dedup_policy.group_key,
            dedup_policy.tie_break_key,
        )
        frame = deduped.frame.reset_index(drop=True)

        gaps = provenance.check_completeness(frame.columns)
        document = provenance.emit()

        report = ReconciliationRunReport(
            profile=self.profile.name,
            base_rows=len(base),
            output_rows=len(frame),
            match_counts=merged.match_counts,
            source_only_rows=merged.unmatched_source_rows,
            source_only=merged.source_only,
            mismatch_counts=dict(resolver.stats),
            dropped_rows=deduped.dropped,
            skipped_sources=skipped,
            provenance_gaps=gaps,
            audit_counts=audit.counts(),
        )
        self._write(frame, document, audit, report)

        logger.info(
            "Reconciled %s: %d base rows -> %d output rows (%d dropped)",
            self.profile.name,
            report.base_rows,
            report.output_rows,
            report.dropped_rows,
        )
        return ReconciliationResult(
            frame=frame,
            report=report,
            provenance=document,
            audit=audit,
            dedup_decisions=deduped.decisions,
        )

    def _load_sources(self, audit: AuditLog) -> tuple[SourceTable, list[SourceTable], dict[str, str]]:
        known = set(self.profile.source_names())
        for name in sorted(set(self.adapters) - known):
            logger.warning("Ignoring input for unknown source '%s'", name)

        base_adapter = self.adapters.get(self.profile.base.name)
        if base_adapter is None:
            raise MissingRequiredInput(
                f"No input configured for base source '{self.profile.base.name}'",
                source=self.profile.base.name,
            )
        base = base_adapter.read()

        sources: list[SourceTable] = []
        skipped: dict[str, str] = {}
        for spec in self.profile.sources:
            adapter = self.adapters.get(spec.name)
            if adapter is None:
                if spec.required:
                    raise MissingRequiredInput(
                        f"No input configured for required source '{spec.name}'",
                        source=spec.name,
                    )
                reason = "no input configured"
            else:
                try:
                    sources.append(adapter.read())
                    continue
                except (MissingRequiredInput, SchemaMismatch) as exc:
                    if spec.required:
                        raise
                    reason = str(exc)

            skipped[spec.name] = reason
            logger.warning("Skipping optional source %s: %s", spec.name, reason)
            audit.record(AuditCategory.SOURCE_SKIPPED, spec.name, reason)

        return base, sources, skipped

    def _enrich(
        self,
        base: SourceTable,
        sources: list[SourceTable],
        client: AuthorityClient,
    ) -> tuple[SourceTable, list[SourceTable]]:
        def maybe_enrich(table: SourceTable) -> SourceTable:
            if self.profile.spec_for(table.name).enrich_identifiers:
                return fill_missing_identifiers(table, client)
            return table

        return maybe_enrich(base), [maybe_enrich(source) for source in sources]

    def _write(
        self,
        frame: pd.DataFrame,
        document: ProvenanceDocument,
        audit: AuditLog,
        report: ReconciliationRunReport,
    ) -> None:
        if self.table_path is not None:
            # Nothing is written unless the sidecar is valid.
            validate_provenance(document, self.table_path, self.provenance_schema)
            CsvTableStorage(path=self.table_path).persist(frame)
            try:
                sidecar = write_provenance(document, self.table_path, self.provenance_schema)
            except OSError:
                self.table_path.unlink(missing_ok=True)
                raise
            report.outputs["table"] = str(self.table_path)
            report.outputs["provenance"] = str(sidecar)

        for storage in self.storages:
            storage.persist(frame)

        if self.audit_path is not None:
            report.outputs["audit_log"] = str(audit.write(self.audit_path))
