"""Identifier canonicalization shared by every reconciliation step."""

from __future__ import annotations

import re
from typing import Any

import pandas as pd

NULL_TOKENS: frozenset[str] = frozenset({"nan", "none", "null", "na", "n/a"})

_EDGE_PUNCTUATION = re.compile(r"^[\W_]+|[\W_]+$")
_VERSION_SUFFIX = re.compile(r"\.\d+$")
_TRAILING_DIGITS = re.compile(r"\d+$")
_LEADING_LETTERS = re.compile(r"^[A-Z]*[:_-]?")
_NUMERIC = re.compile(r"^0*(\d+)$")


def is_missing(value: Any) -> bool:
    """Return True for ``None``, NaN, blank strings and textual null markers."""

    if value is None:
        return True
    if isinstance(value, float) and pd.isna(value):
        return True
    if value is pd.NA or value is pd.NaT:
        return True

    text = str(value).strip()
    return not text or text.lower() in NULL_TOKENS


def clean_value(value: Any) -> str | None:
    """Trim a raw cell value, mapping missing markers to ``None``."""

    if is_missing(value):
        return None
    return str(value).strip()


def normalize(value: Any) -> str:
    """Canonicalize a symbol or identifier for equality comparisons.

    Total and idempotent: missing values become ``""``; otherwise the text is
    trimmed, upper-cased and stripped of leading/trailing punctuation.
    """

    if value is None or value is pd.NA or value is pd.NaT:
        return ""
    if isinstance(value, float) and pd.isna(value):
        return ""

    text = str(value).strip().upper()
    return _EDGE_PUNCTUATION.sub("", text)


def strip_version_suffix(value: Any) -> str:
    """Drop an accession version, e.g. ``ENSG00000141510.16`` -> ``ENSG00000141510``."""

    return _VERSION_SUFFIX.sub("", normalize(value))


def strip_version_prefix(value: Any, prefix: str | None = None) -> int | None:
    """Extract the numeric portion of an accession-style identifier.

    ``strip_version_prefix("ENSG0001234", "ENSG") == 1234``. Without a prefix,
    any leading letters are dropped. Returns ``None`` when nothing numeric is
    left, so callers can fall back to row order.
    """

    text = strip_version_suffix(value)
    if not text:
        return None

    if prefix:
        normalized_prefix = prefix.strip().upper()
        if text.startswith(normalized_prefix):
            text = text[len(normalized_prefix):]
    else:
        text = _LEADING_LETTERS.sub("", text, count=1)

    match = _NUMERIC.match(text)
    if match is None:
        return None
    return int(match.group(1))


def strip_trailing_digits(value: Any) -> str:
    """``ABL1`` -> ``ABL``; used by the fuzzy fallback."""

    return _TRAILING_DIGITS.sub("", normalize(value))
