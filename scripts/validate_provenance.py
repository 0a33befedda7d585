#!/usr/bin/env python3
"""
Validate provenance sidecars against the provenance JSON Schema.

Reports every schema error per file, optionally checks that each column of
the matching table has an entry, and exits 0=ok, 1=errors, 2=no files found.
"""

from __future__ import annotations

import argparse
import csv
import json
import sys
from pathlib import Path
from typing import Any, Dict, List

from jsonschema import FormatChecker
from jsonschema.validators import validator_for

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "src"))

from genesets.models import CORE_COLUMNS  # noqa: E402
from genesets.provenance import SCHEMA_PATH  # noqa: E402


def compile_validator(schema_path: Path):
    schema = json.loads(schema_path.read_text(encoding="utf-8"))
    Validator = validator_for(schema)
    Validator.check_schema(schema)
    return Validator(schema, format_checker=FormatChecker())


def find_provenance_files(inputs: List[str]) -> List[Path]:
    results: List[Path] = []
    for raw in inputs:
        path = Path(raw)
        if path.is_dir():
            results.extend(sorted(path.rglob("*.provenance.json")))
        elif path.exists():
            results.append(path)
    return results


def table_columns(provenance_path: Path, table_name: str) -> List[str] | None:
    table_path = provenance_path.with_name(table_name)
    if not table_path.exists():
        return None
    delimiter = "\t" if table_path.suffix.lower() in {".tsv", ".txt"} else ","
    with table_path.open(newline="", encoding="utf-8") as stream:
        return next(csv.reader(stream, delimiter=delimiter), [])


def validate_one(path: Path, validator, check_table: bool) -> Dict[str, Any]:
    result: Dict[str, Any] = {"file": str(path), "ok": True, "errors": []}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        result["ok"] = False
        result["errors"].append(f"{exc.__class__.__name__}: {exc}")
        return result

    for err in sorted(validator.iter_errors(data), key=lambda item: list(item.path)):
        location = "/" + "/".join(str(part) for part in err.path)
        result["errors"].append(f"{err.message} (path={location})")

    if check_table and not result["errors"]:
        columns = table_columns(path, data["file"])
        if columns is None:
            result["errors"].append(f"table not found next to provenance: {data['file']}")
        else:
            missing = [c for c in columns if c not in CORE_COLUMNS and c not in data["columns"]]
            result["errors"].extend(f"column without provenance: {column}" for column in missing)

    result["ok"] = not result["errors"]
    return result


def main(argv: List[str]) -> int:
    ap = argparse.ArgumentParser(description="Validate provenance sidecars against the schema.")
    ap.add_argument("paths", nargs="+", help="Provenance files or directories to search.")
    ap.add_argument("-s", "--schema", type=Path, default=SCHEMA_PATH, help="Path to JSON Schema.")
    ap.add_argument("--check-table", action="store_true", help="Also require an entry for every table column.")
    ap.add_argument("--format", choices=["text", "json"], default="text", help="Output format.")
    args = ap.parse_args(argv)

    validator = compile_validator(args.schema.resolve())
    files = find_provenance_files(args.paths)
    if not files:
        print("No provenance files found.", file=sys.stderr)
        return 2

    results = [validate_one(path, validator, args.check_table) for path in files]
    failed = sum(1 for result in results if not result["ok"])

    if args.format == "json":
        print(json.dumps({"summary": {"total": len(results), "failed": failed}, "results": results}, indent=2))
    else:
        for result in results:
            for error in result["errors"]:
                print(f"ERROR: {result['file']} :: {error}")
        print(f"Summary: {len(results)} files checked, {failed} failed.", file=sys.stderr)

    return 0 if failed == 0 else 1


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
