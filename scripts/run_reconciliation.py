#!/usr/bin/env python3
"""Run a gene-set reconciliation from a JSON run config."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from contextlib import ExitStack
from pathlib import Path
from typing import Any

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "src"))

from genesets import (  # noqa: E402
    AuthoritySettings,
    DuckDBAuthorityCache,
    HGNCAuthorityClient,
    InMemoryAuthorityCache,
    MissingRequiredInput,
    ReconciliationError,
    ReconciliationPipeline,
    ReconciliationProfile,
    ReconciliationProfileLoader,
)
from genesets.adapters import SourceAdapter, TabularSourceAdapter  # noqa: E402
from genesets.storage import DuckDBParquetStorage  # noqa: E402

logger = logging.getLogger("genesets.runner")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile gene-set sources from a JSON config")
    parser.add_argument("--config", required=True, help="Path to reconciliation JSON config")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Runner log level.",
    )
    return parser.parse_args()


def load_json(path: str | Path) -> dict[str, Any]:
    return json.loads(Path(path).read_text())


def load_profile(config: dict[str, Any]) -> ReconciliationProfile:
    loader = ReconciliationProfileLoader(profiles_dir=config.get("profiles_dir"))
    if "profile_path" in config:
        return loader.load(config["profile_path"])
    if "profile" not in config:
        raise MissingRequiredInput("Config must set 'profile' or 'profile_path'")
    return loader.load(config["profile"])


def build_adapters(config: dict[str, Any], profile: ReconciliationProfile) -> dict[str, SourceAdapter]:
    adapters: dict[str, SourceAdapter] = {}
    for name, input_paths in config.get("inputs", {}).items():
        try:
            spec = profile.spec_for(name)
        except KeyError:
            logger.warning("Config lists input for unknown source '%s'; ignoring", name)
            continue
        adapters[name] = TabularSourceAdapter(spec, input_paths)
    return adapters


def build_authority_settings(config: dict[str, Any]) -> AuthoritySettings:
    raw = dict(config.get("authority", {}))
    defaults = AuthoritySettings()
    return AuthoritySettings(
        enabled=bool(raw.get("enabled", defaults.enabled)),
        base_url=str(raw.get("base_url", defaults.base_url)),
        cache_path=raw.get("cache_path", defaults.cache_path),
        timeout_seconds=float(raw.get("timeout_seconds", defaults.timeout_seconds)),
        max_retries=int(raw.get("max_retries", defaults.max_retries)),
        backoff_seconds=float(raw.get("backoff_seconds", defaults.backoff_seconds)),
    )


def build_storages(output: dict[str, Any]) -> list[DuckDBParquetStorage]:
    if not output.get("duckdb"):
        return []
    return [
        DuckDBParquetStorage(
            db_path=output["duckdb"],
            parquet_path=output.get("parquet"),
            table_name=output.get("table_name", "gene_set"),
        )
    ]


def run(config: dict[str, Any]) -> dict[str, Any]:
    profile = load_profile(config)
    output = dict(config.get("output", {}))
    if not output.get("table"):
        raise MissingRequiredInput("Config must set output.table")

    settings = build_authority_settings(config)
    with ExitStack() as stack:
        client = None
        if settings.enabled:
            if settings.cache_path:
                cache = stack.enter_context(DuckDBAuthorityCache(settings.cache_path))
            else:
                cache = InMemoryAuthorityCache()
            client = stack.enter_context(
                HGNCAuthorityClient(
                    cache=cache,
                    base_url=settings.base_url,
                    timeout_seconds=settings.timeout_seconds,
                    max_retries=settings.max_retries,
                    backoff_seconds=settings.backoff_seconds,
                )
            )
        else:
            logger.info("Authority lookups disabled; skipping enrichment and alias resolution")

        result = ReconciliationPipeline(
            profile=profile,
            adapters=build_adapters(config, profile),
            authority_client=client,
            table_path=output["table"],
            audit_path=output.get("audit_log"),
            storages=build_storages(output),
        ).run()

    summary = result.report.to_summary()
    if client is not None:
        summary["authority_requests"] = client.request_count
    return summary


def main() -> int:
    args = parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    config = load_json(args.config)
    try:
        summary = run(config)
    except (ReconciliationError, ValueError) as exc:
        logger.error("Reconciliation aborted: %s", exc)
        payload = exc.to_dict() if isinstance(exc, ReconciliationError) else {
            "error_type": type(exc).__name__,
            "message": str(exc),
        }
        print(json.dumps({"error": payload}, indent=2), file=sys.stderr)
        return 2

    print(json.dumps(summary, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
