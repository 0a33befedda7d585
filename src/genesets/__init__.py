"""Gene-set identity reconciliation primitives.

This package provides the building blocks for reconciling gene lists from
several sources: identifier normalization, a cached authority client, alias
resolution, prioritized merging, consensus scoring, deduplication and
per-column provenance.
"""

from .aliases import AliasMap, AliasResolver
from .audit import AuditCategory, AuditLog
from .authority import (
    AuthorityCache,
    AuthorityClient,
    DuckDBAuthorityCache,
    HGNCAuthorityClient,
    InMemoryAuthorityCache,
    fill_missing_identifiers,
)
from .config import (
    AuthoritySettings,
    DedupPolicy,
    FuzzyMatchPolicy,
    JoinKey,
    SourcePriority,
    SourceSpec,
)
from .consensus import ConsensusResolver
from .dedupe import DedupDecision, DedupResult, Deduplicator
from .errors import (
    AmbiguousMatch,
    LookupUnavailable,
    MissingRequiredInput,
    ProvenanceGap,
    ReconciliationError,
    SchemaMismatch,
)
from .identifiers import normalize, strip_trailing_digits, strip_version_prefix, strip_version_suffix
from .merge import MergeResult, SourceMergeEngine
from .models import CORE_COLUMNS, AuthorityRecord, QueryMode, SourceTable
from .pipeline import ReconciliationPipeline, ReconciliationResult, ReconciliationRunReport
from .profiles import ReconciliationProfile, ReconciliationProfileLoader
from .provenance import ProvenanceDocument, ProvenanceTracker, validate_provenance, write_provenance

__all__ = [
    "AliasMap",
    "AliasResolver",
    "AmbiguousMatch",
    "AuditCategory",
    "AuditLog",
    "AuthorityCache",
    "AuthorityClient",
    "AuthorityRecord",
    "AuthoritySettings",
    "CORE_COLUMNS",
    "ConsensusResolver",
    "DedupDecision",
    "DedupPolicy",
    "DedupResult",
    "Deduplicator",
    "DuckDBAuthorityCache",
    "FuzzyMatchPolicy",
    "HGNCAuthorityClient",
    "InMemoryAuthorityCache",
    "JoinKey",
    "LookupUnavailable",
    "MergeResult",
    "MissingRequiredInput",
    "ProvenanceDocument",
    "ProvenanceGap",
    "ProvenanceTracker",
    "QueryMode",
    "ReconciliationError",
    "ReconciliationPipeline",
    "ReconciliationProfile",
    "ReconciliationProfileLoader",
    "ReconciliationResult",
    "ReconciliationRunReport",
    "SchemaMismatch",
    "SourceMergeEngine",
    "SourcePriority",
    "SourceSpec",
    "SourceTable",
    "fill_missing_identifiers",
    "normalize",
    "strip_trailing_digits",
    "strip_version_prefix",
    "strip_version_suffix",
    "validate_provenance",
    "write_provenance",
]
