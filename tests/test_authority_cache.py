import sys
from pathlib import Path

import httpx

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from genesets.authority import DuckDBAuthorityCache, HGNCAuthorityClient  # noqa: E402
from genesets.models import AuthorityRecord  # noqa: E402


def test_duckdb_cache_persists_records_across_connections(tmp_path: Path) -> None:
    db_path = tmp_path / "cache" / "authority.duckdb"
    record = AuthorityRecord(
        canonical_symbol="CDK2",
        stable_id="HGNC:1771",
        aliases=frozenset({"p33(CDK2)"}),
        previous_symbols=frozenset(),
        xref_id="ENSG00000123374",
    )

    with DuckDBAuthorityCache(db_path) as cache:
        cache.put("symbol:CDK2", record)
        cache.put("symbol:NOPE", AuthorityRecord())
        assert len(cache) == 2

    with DuckDBAuthorityCache(db_path) as cache:
        assert cache.get("symbol:CDK2") == record
        assert cache.get("symbol:NOPE") == AuthorityRecord()
        assert cache.get("symbol:OTHER") is None
        assert "symbol:CDK2" in cache


def test_duckdb_cache_never_overwrites_existing_key(tmp_path: Path) -> None:
    db_path = tmp_path / "authority.duckdb"

    with DuckDBAuthorityCache(db_path) as cache:
        cache.put("symbol:ABL1", AuthorityRecord(canonical_symbol="ABL1"))
        cache.put("symbol:ABL1", AuthorityRecord(canonical_symbol="OTHER"))

    with DuckDBAuthorityCache(db_path) as cache:
        assert cache.get("symbol:ABL1").canonical_symbol == "ABL1"
        assert len(cache) == 1


def test_cached_answers_survive_into_the_next_run(tmp_path: Path) -> None:
    db_path = tmp_path / "authority.duckdb"
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        doc = {"symbol": "TP53", "hgnc_id": "HGNC:11998"}
        return httpx.Response(200, json={"response": {"docs": [doc]}})

    for _ in range(2):
        with DuckDBAuthorityCache(db_path) as cache:
            client = HGNCAuthorityClient(
                cache=cache,
                http_client=httpx.Client(transport=httpx.MockTransport(handler)),
            )
            assert client.lookup("tp53").stable_id == "HGNC:11998"

    assert len(calls) == 1
