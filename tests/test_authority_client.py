import sys
from pathlib import Path

import httpx
import pandas as pd

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from genesets.adapters import build_source_table  # noqa: E402
from genesets.authority import HGNCAuthorityClient, InMemoryAuthorityCache, fill_missing_identifiers  # noqa: E402
from genesets.config import SourceSpec  # noqa: E402
from genesets.models import AuthorityRecord, QueryMode  # noqa: E402

ABL1_DOC = {
    "symbol": "ABL1",
    "hgnc_id": "HGNC:76",
    "alias_symbol": ["c-ABL", "JTK7", "p150"],
    "prev_symbol": ["ABL"],
    "ensembl_gene_id": "ENSG00000097007",
}


def _docs(*docs: dict) -> httpx.Response:
    return httpx.Response(200, json={"response": {"numFound": len(docs), "docs": list(docs)}})


def _client(handler, **kwargs) -> HGNCAuthorityClient:
    http_client = httpx.Client(transport=httpx.MockTransport(handler))
    return HGNCAuthorityClient(http_client=http_client, sleep=lambda _: None, **kwargs)


def test_repeated_query_hits_the_service_once() -> None:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        return _docs(ABL1_DOC)

    client = _client(handler)
    first = client.lookup("abl1", QueryMode.SYMBOL)
    second = client.lookup(" ABL1 ", QueryMode.SYMBOL)

    assert len(calls) == 1
    assert calls[0].startswith("/fetch/symbol/")
    assert first == second
    assert first.canonical_symbol == "ABL1"
    assert first.stable_id == "HGNC:76"
    assert first.aliases == frozenset({"c-ABL", "JTK7", "p150"})
    assert first.previous_symbols == frozenset({"ABL"})
    assert first.xref_id == "ENSG00000097007"


def test_empty_query_returns_empty_record_without_network() -> None:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        return _docs(ABL1_DOC)

    cache = InMemoryAuthorityCache()
    client = _client(handler, cache=cache)

    assert client.lookup("", QueryMode.SYMBOL) == AuthorityRecord()
    assert client.lookup(None, QueryMode.STABLE_ID) == AuthorityRecord()
    assert calls == []
    assert len(cache) == 0


def test_symbol_lookup_falls_back_to_previous_symbol() -> None:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        if request.url.path.startswith("/fetch/prev_symbol/"):
            return _docs(ABL1_DOC)
        return _docs()

    record = _client(handler).lookup("ABL", QueryMode.SYMBOL)

    assert record.canonical_symbol == "ABL1"
    assert [path.split("/")[2] for path in calls] == ["symbol", "prev_symbol"]


def test_not_found_is_cached_as_empty_record() -> None:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        return _docs()

    cache = InMemoryAuthorityCache()
    client = _client(handler, cache=cache)

    assert client.lookup("NOTAGENE").is_empty()
    assert len(calls) == 3
    assert cache.get("symbol:NOTAGENE") == AuthorityRecord()

    assert client.lookup("notagene").is_empty()
    assert len(calls) == 3


def test_id_modes_use_matching_endpoints() -> None:
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        return _docs(ABL1_DOC)

    client = _client(handler)
    by_id = client.lookup("HGNC:76", QueryMode.STABLE_ID)
    by_xref = client.lookup("ENSG00000097007", "xref_id")

    assert by_id.canonical_symbol == by_xref.canonical_symbol == "ABL1"
    assert paths[0].startswith("/fetch/hgnc_id/")
    assert paths[1].startswith("/fetch/ensembl_gene_id/")


def test_server_errors_are_retried_then_degrade_without_caching() -> None:
    calls: list[str] = []
    sleeps: list[float] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        return httpx.Response(503)

    cache = InMemoryAuthorityCache()
    http_client = httpx.Client(transport=httpx.MockTransport(handler))
    client = HGNCAuthorityClient(
        cache=cache,
        http_client=http_client,
        max_retries=2,
        backoff_seconds=0.5,
        sleep=sleeps.append,
    )

    assert client.lookup("ABL1") == AuthorityRecord()
    assert len(calls) == 3
    assert sleeps == [0.5, 1.0]
    assert "symbol:ABL1" not in cache

    # Remembered for the rest of the run.
    assert client.lookup("ABL1") == AuthorityRecord()
    assert len(calls) == 3

    # A fresh run tries again.
    _client(handler, cache=cache, max_retries=0).lookup("ABL1")
    assert len(calls) == 4


def test_client_errors_and_malformed_payloads_are_not_retried() -> None:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        if "BAD" in request.url.path:
            return httpx.Response(200, content=b"<html>not json</html>")
        return httpx.Response(404)

    client = _client(handler, max_retries=3)

    assert client.lookup("MISSING").is_empty()
    assert client.lookup("BAD").is_empty()
    assert len(calls) == 2


def test_transport_errors_degrade_to_empty_record() -> None:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        raise httpx.ConnectTimeout("timed out", request=request)

    client = _client(handler, max_retries=1)

    assert client.lookup("ABL1", QueryMode.SYMBOL).is_empty()
    assert len(calls) == 2
    assert client.request_count == 2


def test_non_list_symbol_fields_degrade_to_empty_record() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if "KDR" in request.url.path:
            return _docs({"symbol": "KDR", "prev_symbol": {"old": "FLK1"}})
        return _docs({"symbol": "ABL1", "alias_symbol": 5})

    cache = InMemoryAuthorityCache()
    client = _client(handler, cache=cache)

    assert client.lookup("ABL1") == AuthorityRecord()
    assert client.lookup("KDR") == AuthorityRecord()
    assert "symbol:ABL1" not in cache


def test_enrichment_queries_unversioned_ensembl_id() -> None:
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        if request.url.path == "/fetch/ensembl_gene_id/ENSG00000097007":
            return _docs(ABL1_DOC)
        return _docs()

    table = build_source_table(
        SourceSpec(name="biomart"),
        pd.DataFrame({"symbol": [""], "ensembl_gene_id": ["ENSG00000097007.16"]}),
    )

    enriched = fill_missing_identifiers(table, _client(handler))

    assert paths == ["/fetch/ensembl_gene_id/ENSG00000097007"]
    row = enriched.records()[0]
    assert row["symbol"] == "ABL1"
    assert row["primary_id"] == "HGNC:76"
    assert row["xref_id"] == "ENSG00000097007.16"
