from __future__ import annotations

from collections.abc import Sequence

import httpx


class SmokeError(RuntimeError):
    """Raised when the smoke flow cannot proceed (e.g., health never ready)."""


def summarize(
    *,
    results: Sequence[httpx.Response | BaseException],
    refresh_count: int,
    redirects: int,
    elapsed_ms: float,
) -> tuple[dict, int]:
    """Compute a summary dict and an exit code from the concurrent burst."""
    statuses: dict[str, int] = {}
    errors: list[str] = []
    ok = 0
    for res in results:
        if isinstance(res, BaseException):
            errors.append(f"{type(res).__name__}: {res}")
            continue
        key = str(res.status_code)
        statuses[key] = statuses.get(key, 0) + 1
        if res.is_success:
            ok += 1

    summary = {
        "component": "runner",
        "event": "summary",
        "requests": len(results),
        "succeeded": ok,
        "statuses": statuses,
        "errors": errors,
        "refresh_count": refresh_count,
        "redirects": redirects,
        "elapsed_ms": round(elapsed_ms, 2),
    }
    passed = ok == len(results) and refresh_count <= 1 and redirects == 0
    return summary, 0 if passed else 1
