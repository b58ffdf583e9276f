# Overview: Canonical time and money formatting helpers for the ledger.
"""
Ledger timestamps are stored as naive UTC and serialized with a trailing 'Z'.
Money is stored as integer cents everywhere and only formatted at the edges
(CLI output, logs).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Read an ISO-8601 query value as naive UTC.

    Empty values give None. Values without an offset are taken as UTC;
    'Z' and explicit offsets are converted. Raises ValueError on garbage.
    """
    text = (value or "").strip()
    if not text:
        return None
    if text[-1] in "zZ":
        text = text[:-1] + "+00:00"

    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_window(start: Optional[str], end: Optional[str]) -> tuple[Optional[datetime], Optional[datetime]]:
    """Parse an optional [start, end] reporting window; start must not follow end."""
    lower = parse_iso_datetime(start)
    upper = parse_iso_datetime(end)
    if lower is not None and upper is not None and lower > upper:
        raise ValueError("start is after end")
    return lower, upper


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    aware = dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)
    return aware.astimezone(timezone.utc).replace(microsecond=0, tzinfo=None).isoformat() + "Z"


def cents_to_str(cents: int | None) -> str | None:
    """1234 -> '12.34', -5 -> '-0.05'."""
    if cents is None:
        return None
    whole, part = divmod(abs(cents), 100)
    return f"{'-' if cents < 0 else ''}{whole}.{part:02d}"
