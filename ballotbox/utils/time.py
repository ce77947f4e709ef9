"""Time utility helpers."""

from __future__ import annotations

from datetime import UTC, datetime


def now_utc() -> datetime:
    """Return current timezone-aware UTC datetime."""
    return datetime.now(tz=UTC)


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """Parse a stored timestamp into an aware UTC datetime.

    PostgREST returns ISO strings (sometimes with a trailing ``Z``); the memory
    store may hold either strings or datetimes. Naive values are taken as UTC.
    """
    if value is None or value == "":
        return None

    if isinstance(value, str):
        normalized = value.replace("Z", "+00:00")
        parsed = datetime.fromisoformat(normalized)
    else:
        parsed = value

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def to_iso(value: datetime) -> str:
    """Serialize a datetime for storage, normalized to UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat()


def milliseconds_until(target: datetime, now: datetime | None = None) -> int:
    """Return whole milliseconds from ``now`` until ``target``, never negative."""
    current = now or now_utc()
    delta = target - current
    return max(0, int(delta.total_seconds() * 1000))
