"""Gene-name authority access: HTTP client, persistent cache and enrichment."""

from .cache import AuthorityCache, DuckDBAuthorityCache, InMemoryAuthorityCache
from .client import AuthorityClient, HGNCAuthorityClient
from .enrich import fill_missing_identifiers

__all__ = [
    "AuthorityCache",
    "AuthorityClient",
    "DuckDBAuthorityCache",
    "HGNCAuthorityClient",
    "InMemoryAuthorityCache",
    "fill_missing_identifiers",
]
