"""Fill missing identifiers of a source table from the authority."""

from __future__ import annotations

import logging

from genesets.authority.client import AuthorityClient
from genesets.identifiers import clean_value, strip_version_suffix
from genesets.models import AuthorityRecord, QueryMode, SourceTable

logger = logging.getLogger(__name__)


def _lookup_for_row(row: dict, client: AuthorityClient) -> AuthorityRecord:
    xref_id = strip_version_suffix(clean_value(row.get("xref_id")))
    if xref_id:
        return client.lookup(xref_id, QueryMode.XREF_ID)

    primary_id = clean_value(row.get("primary_id"))
    if primary_id:
        return client.lookup(primary_id, QueryMode.STABLE_ID)

    return client.lookup(row.get("symbol"), QueryMode.SYMBOL)


def fill_missing_identifiers(table: SourceTable, client: AuthorityClient) -> SourceTable:
    """Return a copy of ``table`` with blank core identifiers filled in.

    Existing values are never overwritten. The most reliable identifier a row
    already carries (cross-reference ID, then stable ID, then symbol) is used
    as the authority query.
    """

    frame = table.frame.copy()
    filled = {"symbol": 0, "primary_id": 0, "xref_id": 0}

    for position, row in enumerate(frame.to_dict(orient="records")):
        if all(clean_value(row.get(column)) for column in filled):
            continue

        record = _lookup_for_row(row, client)
        if record.is_empty():
            continue

        replacements = {
            "symbol": record.canonical_symbol,
            "primary_id": record.stable_id,
            "xref_id": record.xref_id,
        }
        for column, value in replacements.items():
            if value and not clean_value(row.get(column)):
                frame.iat[position, frame.columns.get_loc(column)] = value
                filled[column] += 1

    logger.info(
        "Filled identifiers for source %s: %s",
        table.name,
        ", ".join(f"{column}={count}" for column, count in filled.items()),
    )
    return table.with_frame(frame)
