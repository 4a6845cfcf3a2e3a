#utils/dates.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

STAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def normalize_iso8601(ts: Optional[str]) -> Optional[str]:
    """
    Store timestamps arrive with 'Z', an explicit offset, or no zone at all
    (read as UTC). Return them as second-precision UTC in Z notation.

    >>> normalize_iso8601("2025-08-19T10:52:51-07:00")
    '2025-08-19T17:52:51Z'
    >>> normalize_iso8601("  ") is None
    True
    """
    text = (ts or "").strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).strftime(STAMP_FORMAT)


def now_utc_iso() -> str:
    """Stamp for new store rows and import-run transitions."""
    return datetime.now(timezone.utc).strftime(STAMP_FORMAT)
