import json
import sys
from dataclasses import replace
from pathlib import Path

import pandas as pd
import pytest
from jsonschema import ValidationError

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from genesets import (  # noqa: E402
    AuthorityClient,
    AuthorityRecord,
    DedupPolicy,
    MissingRequiredInput,
    QueryMode,
    ReconciliationPipeline,
    ReconciliationProfile,
    SourcePriority,
    SourceSpec,
)
from genesets.adapters import FrameSourceAdapter  # noqa: E402
from genesets.identifiers import normalize  # noqa: E402


class _StaticAuthority(AuthorityClient):
    def __init__(self, records: dict[str, AuthorityRecord]) -> None:
        self.records = records

    def lookup(self, query, mode=QueryMode.SYMBOL):
        return self.records.get(f"{QueryMode(mode).value}:{normalize(query)}", AuthorityRecord())


def _profile(**overrides) -> ReconciliationProfile:
    values = dict(
        name="toy",
        description="toy gene set",
        base=SourceSpec(name="base"),
        sources=(
            SourceSpec(name="A", required=False, attributes={"class": ()}),
            SourceSpec(name="B", required=False, attributes={"class": ()}),
        ),
        consensus=SourcePriority(priorities={"class": ("A", "B")}),
    )
    values.update(overrides)
    return ReconciliationProfile(**values)


def _adapters(profile: ReconciliationProfile, frames: dict[str, pd.DataFrame]) -> dict:
    return {name: FrameSourceAdapter(profile.spec_for(name), frame) for name, frame in frames.items()}


def _scenario_frames() -> dict[str, pd.DataFrame]:
    return {
        "base": pd.DataFrame({"symbol": ["TP1", "TP2"]}),
        "A": pd.DataFrame({"symbol": ["TP1"], "class": ["Kinase"]}),
        "B": pd.DataFrame({"symbol": ["TP1", "TP2"], "class": ["Phosphatase", "Kinase"]}),
    }


def test_end_to_end_consensus_scenario(tmp_path: Path) -> None:
    profile = _profile()
    table_path = tmp_path / "out" / "toy.csv"

    result = ReconciliationPipeline(
        profile=profile,
        adapters=_adapters(profile, _scenario_frames()),
        table_path=table_path,
        audit_path=tmp_path / "out" / "toy.audit.md",
    ).run()
    frame = result.frame.set_index("symbol")

    assert frame.loc["TP1", "class_consensus"] == "Kinase"
    assert frame.loc["TP1", "class_match_A_B"] == False  # noqa: E712
    assert frame.loc["TP2", "class_consensus"] == "Kinase"
    assert frame.loc["TP2", "class_match_A_B"] is None

    summary = result.report.to_summary()
    assert summary["base_rows"] == summary["output_rows"] == 2
    assert summary["match_counts"]["A"] == {"symbol": 1, "unmatched": 1}
    assert summary["mismatch_counts"] == {"class": 1}
    assert summary["dropped_rows"] == 0
    assert summary["provenance_gaps"] == []

    provenance = json.loads((tmp_path / "out" / "toy.provenance.json").read_text())
    core = {"symbol", "primary_id", "xref_id"}
    assert set(result.frame.columns) - core <= set(provenance["columns"])
    assert [source["name"] for source in provenance["sources"]] == ["base", "A", "B"]
    assert "consensus_mismatch TP1" in (tmp_path / "out" / "toy.audit.md").read_text()


def test_authority_enriches_identifiers_and_resolves_aliases() -> None:
    authority = _StaticAuthority(
        {
            "symbol:JTK7": AuthorityRecord(canonical_symbol="ABL1", previous_symbols=frozenset({"JTK7"})),
            "symbol:ABL1": AuthorityRecord(
                canonical_symbol="ABL1",
                stable_id="HGNC:76",
                previous_symbols=frozenset({"JTK7"}),
            ),
        }
    )
    profile = _profile(
        base=SourceSpec(name="base", enrich_identifiers=True),
        sources=(SourceSpec(name="A", attributes={"class": ()}),),
        consensus=SourcePriority(priorities={"class": ("A",)}),
    )
    frames = {
        "base": pd.DataFrame({"symbol": ["ABL1"]}),
        "A": pd.DataFrame({"symbol": ["JTK7"], "class": ["TK"]}),
    }

    result = ReconciliationPipeline(
        profile=profile,
        adapters=_adapters(profile, frames),
        authority_client=authority,
    ).run()

    assert result.frame.loc[0, "primary_id"] == "HGNC:76"
    assert result.frame.loc[0, "matched_by_A"] == "alias"
    assert result.frame.loc[0, "class_consensus"] == "TK"


def test_optional_source_with_bad_schema_is_skipped_and_reported() -> None:
    profile = _profile()
    frames = _scenario_frames()
    frames["B"] = pd.DataFrame({"protein": ["P1"]})

    result = ReconciliationPipeline(profile=profile, adapters=_adapters(profile, frames)).run()

    assert "B" in result.report.skipped_sources
    assert "class_B" not in result.frame.columns
    assert list(result.frame["class_consensus"]) == ["Kinase", None]
    assert result.audit.counts()["source_skipped"] == 1


def test_duplicate_base_rows_are_collapsed_with_validated_preference() -> None:
    profile = _profile(
        sources=(SourceSpec(name="A", attributes={"class": ()}),),
        consensus=SourcePriority(priorities={"class": ("A",)}),
    )
    profile = replace(
        profile,
        dedup=DedupPolicy(
            group_key="symbol",
            tie_break_key="xref_id",
            tie_break_prefix="ENSG",
            validation_columns=("class_A",),
        ),
    )
    frames = {
        "base": pd.DataFrame(
            {"symbol": ["TP1", "TP1"], "xref_id": ["ENSG0000000002", "ENSG0000000009"]}
        ),
        "A": pd.DataFrame({"xref_id": ["ENSG0000000009"], "class": ["Kinase"]}),
    }

    result = ReconciliationPipeline(profile=profile, adapters=_adapters(profile, frames)).run()

    assert len(result.frame) == 1
    assert result.frame.loc[0, "xref_id"] == "ENSG0000000009"
    assert result.report.dropped_rows == 1
    assert result.dedup_decisions[0].reason == "unvalidated"


def test_missing_required_input_aborts_before_writing(tmp_path: Path) -> None:
    profile = _profile(
        sources=(SourceSpec(name="A", required=True, attributes={"class": ()}),),
        consensus=SourcePriority(priorities={"class": ("A",)}),
    )
    table_path = tmp_path / "toy.csv"

    with pytest.raises(MissingRequiredInput, match="'A'"):
        ReconciliationPipeline(
            profile=profile,
            adapters=_adapters(profile, {"base": pd.DataFrame({"symbol": ["TP1"]})}),
            table_path=table_path,
        ).run()

    assert not table_path.exists()
    assert list(tmp_path.iterdir()) == []


def test_invalid_provenance_leaves_no_table_behind(tmp_path: Path) -> None:
    schema_path = tmp_path / "strict.schema.json"
    schema_path.write_text(
        json.dumps(
            {
                "$schema": "https://json-schema.org/draft/2020-12/schema",
                "type": "object",
                "required": ["reviewer"],
            }
        ),
        encoding="utf-8",
    )
    profile = _profile()
    table_path = tmp_path / "out" / "toy.csv"

    with pytest.raises(ValidationError, match="reviewer"):
        ReconciliationPipeline(
            profile=profile,
            adapters=_adapters(profile, _scenario_frames()),
            table_path=table_path,
            provenance_schema=schema_path,
        ).run()

    assert not table_path.exists()
    assert not (tmp_path / "out" / "toy.provenance.json").exists()


def test_summary_lists_entities_found_only_in_a_source() -> None:
    profile = _profile()
    frames = _scenario_frames()
    frames["B"] = pd.DataFrame({"symbol": ["TP1", "TP2", "TP9"], "class": ["Phosphatase", "Kinase", "Kinase"]})

    result = ReconciliationPipeline(profile=profile, adapters=_adapters(profile, frames)).run()

    summary = result.report.to_summary()
    assert summary["source_only"] == {"A": [], "B": ["TP9"]}
    assert summary["source_only_rows"] == {"A": 0, "B": 1}
    assert result.audit.counts()["source_only"] == 1
