"""
Container health check for the tcg-sync API.

Exits 0 when /health answers `status == "ok"` and the application root
finished initializing (the scheduler restored its persisted settings).
Set HEALTHCHECK_ALLOW_UNINITIALIZED=1 to accept a process that is still
starting up.
"""

from __future__ import annotations

import os

import requests


def _allow_uninitialized() -> bool:
    return os.getenv("HEALTHCHECK_ALLOW_UNINITIALIZED", "").strip().lower() in {"1", "true", "yes", "on"}


def main() -> int:
    port = os.getenv("PORT", "8000")
    path = os.getenv("HEALTHCHECK_PATH", "/health")
    url = f"http://127.0.0.1:{port}{path}"

    try:
        response = requests.get(url, timeout=2)
        payload = response.json()
    except (requests.RequestException, ValueError):
        return 1

    if not response.ok or payload.get("status") != "ok":
        return 1
    if not payload.get("initialized") and not _allow_uninitialized():
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
