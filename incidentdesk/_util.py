"""Shared utilities for the incidentdesk package.

Small helpers and constants used by the extractor, scoring, synthesis and
assembler modules.
"""

from __future__ import annotations

import time
from datetime import UTC, datetime
from typing import Any, Iterable


# ---------------------------------------------------------------------------
# Severity ordering -- critical > high > medium > low.
# ---------------------------------------------------------------------------

SEVERITY_RANK: dict[str, int] = {
    "critical": 4,
    "high": 3,
    "medium": 2,
    "low": 1,
}


def severity_rank(severity: str) -> int:
    return SEVERITY_RANK.get(severity, 0)


# ---------------------------------------------------------------------------
# Value coercion
# ---------------------------------------------------------------------------

def is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def as_int(v: Any) -> int | None:
    if isinstance(v, bool):
        return None
    if isinstance(v, int):
        return v
    if isinstance(v, float) and v.is_integer():
        return int(v)
    if isinstance(v, str) and v.strip().isdigit():
        try:
            return int(v.strip())
        except ValueError:
            return None
    return None


def contains_any(text: str, needles: Iterable[str]) -> bool:
    return any(n in text for n in needles)


# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------

def parse_timestamp(s: str | None) -> datetime | None:
    """Parse an ISO 8601 timestamp (``Z`` suffix allowed) into aware UTC.

    Returns None for empty or unparseable input.
    """
    if not isinstance(s, str) or not s.strip():
        return None
    raw = s.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(raw)
    except (ValueError, OverflowError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def format_timestamp(dt: datetime) -> str:
    return dt.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def utc_iso() -> str:
    # ISO-ish string, stable and readable in logs.
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())
