from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Any, Optional


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to aware UTC.

    Naive values are assumed to already be UTC (SQLite drops tzinfo on
    round-trip, so every timestamp read back from the store passes here).
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_datetime(value: Any) -> datetime:
    """
    Parse a platform timestamp into an aware UTC datetime.

    Accepts datetime/date objects and ISO-8601 strings (a trailing "Z" is
    allowed, date-only strings resolve to midnight UTC).

    Raises ValueError if the value cannot be interpreted.
    """
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if not isinstance(value, str):
        raise ValueError(f"Unsupported datetime value: {value!r}")

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(text))


def isoformat_utc(value: datetime) -> str:
    return ensure_utc(value).isoformat().replace("+00:00", "Z")
