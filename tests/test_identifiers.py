import math
import sys
from pathlib import Path

import pandas as pd

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from genesets.identifiers import (  # noqa: E402
    clean_value,
    is_missing,
    normalize,
    strip_trailing_digits,
    strip_version_prefix,
    strip_version_suffix,
)


def test_normalize_trims_uppercases_and_strips_edge_punctuation() -> None:
    assert normalize("  abl1 ") == "ABL1"
    assert normalize("'cdk2',") == "CDK2"
    assert normalize("HLA-A") == "HLA-A"
    assert normalize(None) == ""
    assert normalize(math.nan) == ""
    assert normalize("...") == ""


def test_normalize_is_idempotent() -> None:
    samples = ["abl1", " -MAPK1- ", "hgnc:76", "", "  ", "c1orf112.", "_x_", "Ékinase"]
    for sample in samples:
        once = normalize(sample)
        assert normalize(once) == once


def test_strip_version_prefix_extracts_numeric_portion() -> None:
    assert strip_version_prefix("ENSG0001234", "ENSG") == 1234
    assert strip_version_prefix("ensg00000141510.16", "ENSG") == 141510
    assert strip_version_prefix("HGNC:76") == 76
    assert strip_version_prefix("10") == 10
    assert strip_version_prefix("abc") is None
    assert strip_version_prefix(None) is None


def test_strip_version_suffix_and_trailing_digits() -> None:
    assert strip_version_suffix("ENSG00000141510.16") == "ENSG00000141510"
    assert strip_version_suffix("ENSG00000141510") == "ENSG00000141510"
    assert strip_trailing_digits("abl1") == "ABL"
    assert strip_trailing_digits("PIK3C2") == "PIK3C"


def test_missing_markers_are_treated_as_null() -> None:
    for value in (None, math.nan, "", "  ", "NA", "nan", "None", "null", "N/A"):
        assert is_missing(value)
        assert clean_value(value) is None

    assert clean_value("  TP53 ") == "TP53"
    assert not is_missing("0")


def test_pandas_missing_scalars_normalize_to_empty() -> None:
    assert normalize(pd.NA) == ""
    assert normalize(pd.NaT) == ""
    assert strip_version_suffix(pd.NA) == ""
    assert is_missing(pd.NA)
