from __future__ import annotations

import os

import httpx


def _effective_timeout(default_seconds: float) -> float:
    raw = (os.getenv("GENESETS_HTTP_TIMEOUT_SECONDS") or "").strip()
    if not raw:
        return default_seconds
    try:
        value = float(raw)
    except ValueError:
        return default_seconds
    return value if value > 0 else default_seconds


def make_sync_client(timeout_seconds: float, follow_redirects: bool = True) -> httpx.Client:
    headers = {"Accept": "application/json"}
    user_agent = (os.getenv("GENESETS_USER_AGENT") or "").strip()
    if user_agent:
        headers["User-Agent"] = user_agent
    return httpx.Client(
        timeout=_effective_timeout(timeout_seconds),
        follow_redirects=follow_redirects,
        trust_env=True,
        headers=headers,
    )
