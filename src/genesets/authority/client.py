"""Cached client for the gene-name authority (HGNC REST)."""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any
from urllib.parse import quote

import httpx

from genesets.authority.cache import AuthorityCache, InMemoryAuthorityCache
from genesets.authority.http import make_sync_client
from genesets.errors import LookupUnavailable
from genesets.identifiers import clean_value, normalize
from genesets.models import AuthorityRecord, QueryMode

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class AuthorityClient(ABC):
    """Resolve a symbol, stable ID or cross-reference ID to an authority record."""

    @abstractmethod
    def lookup(self, query: Any, mode: QueryMode | str = QueryMode.SYMBOL) -> AuthorityRecord:
        """Return the authority record, or the empty record when nothing is known."""


class HGNCAuthorityClient(AuthorityClient):
    """Query ``rest.genenames.org`` with an injected persistent cache.

    Failures never propagate: a timeout, non-200 answer or malformed payload
    degrades to the empty record. Successful answers (including "no such
    gene") are cached; failures are only remembered for the current run.
    """

    _FETCH_FIELDS: dict[QueryMode, tuple[str, ...]] = {
        QueryMode.STABLE_ID: ("hgnc_id",),
        QueryMode.XREF_ID: ("ensembl_gene_id",),
        QueryMode.SYMBOL: ("symbol", "prev_symbol", "alias_symbol"),
    }

    def __init__(
        self,
        *,
        cache: AuthorityCache | None = None,
        base_url: str = "https://rest.genenames.org",
        timeout_seconds: float = 10.0,
        max_retries: int = 2,
        backoff_seconds: float = 0.5,
        http_client: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")

        self.cache = cache if cache is not None else InMemoryAuthorityCache()
        self.base_url = base_url.rstrip("/")
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self._owns_http = http_client is None
        self._http = http_client or make_sync_client(timeout_seconds)
        self._sleep = sleep
        self._unavailable: set[str] = set()
        self.request_count = 0

    def lookup(self, query: Any, mode: QueryMode | str = QueryMode.SYMBOL) -> AuthorityRecord:
        mode = QueryMode(mode)
        key = normalize(query)
        if not key:
            return AuthorityRecord()

        cache_key = f"{mode.value}:{key}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached
        if cache_key in self._unavailable:
            return AuthorityRecord()

        try:
            record = self._fetch(key, mode)
        except LookupUnavailable as exc:
            logger.warning("Authority lookup unavailable for %s: %s", cache_key, exc)
            self._unavailable.add(cache_key)
            return AuthorityRecord()

        self.cache.put(cache_key, record)
        return record

    def _fetch(self, key: str, mode: QueryMode) -> AuthorityRecord:
        for field_name in self._FETCH_FIELDS[mode]:
            docs = self._request_docs(field_name, key)
            if docs:
                return self._parse_doc(docs[0])
        return AuthorityRecord()

    def _request_docs(self, field_name: str, query: str) -> list[dict[str, Any]]:
        url = f"{self.base_url}/fetch/{field_name}/{quote(query, safe='')}"
        attempt = 0
        while True:
            self.request_count += 1
            try:
                response = self._http.get(url)
            except httpx.HTTPError as exc:
                error = LookupUnavailable(f"{type(exc).__name__}: {exc}")
            else:
                if response.status_code == 200:
                    return self._docs_from_response(response)
                error = LookupUnavailable(f"HTTP {response.status_code} from {url}")
                if response.status_code not in _RETRYABLE_STATUS:
                    raise error

            attempt += 1
            if attempt > self.max_retries:
                raise error
            self._sleep(self.backoff_seconds * (2 ** (attempt - 1)))

    @staticmethod
    def _docs_from_response(response: httpx.Response) -> list[dict[str, Any]]:
        try:
            payload = response.json()
        except ValueError as exc:
            raise LookupUnavailable(f"Malformed JSON payload: {exc}") from exc

        body = payload.get("response") if isinstance(payload, dict) else None
        docs = body.get("docs") if isinstance(body, dict) else None
        if not isinstance(docs, list):
            raise LookupUnavailable("Payload is missing response.docs")
        return [doc for doc in docs if isinstance(doc, dict)]

    @staticmethod
    def _parse_doc(doc: dict[str, Any]) -> AuthorityRecord:
        return AuthorityRecord(
            canonical_symbol=clean_value(doc.get("symbol")),
            stable_id=clean_value(doc.get("hgnc_id")),
            aliases=_as_symbol_set(doc.get("alias_symbol")),
            previous_symbols=_as_symbol_set(doc.get("prev_symbol")),
            xref_id=clean_value(doc.get("ensembl_gene_id")),
        )

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> "HGNCAuthorityClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _as_symbol_set(value: Any) -> frozenset[str]:
    if value is None:
        return frozenset()
    if isinstance(value, str):
        items = [value]
    elif isinstance(value, list) and all(isinstance(item, str) for item in value):
        items = value
    else:
        raise LookupUnavailable(f"Malformed symbol list in payload: {value!r}")
    return frozenset(cleaned for cleaned in (clean_value(item) for item in items) if cleaned)
