"""Delay policy for 429 responses."""

from __future__ import annotations

RATE_LIMIT_BASE = 30.0
RATE_LIMIT_CAP = 120.0


def fallback_delay(attempt: int) -> float:
    return min(RATE_LIMIT_BASE * 2**attempt, RATE_LIMIT_CAP)


def parse_retry_after(value: str | None) -> float | None:
    """Seconds from a ``Retry-After`` header; None when absent or unusable."""
    if value is None:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    if not 0 < seconds < float("inf"):
        return None
    return seconds


def rate_limit_delay(retry_after: str | None, attempt: int) -> float:
    seconds = parse_retry_after(retry_after)
    if seconds is None:
        return fallback_delay(attempt)
    return seconds
