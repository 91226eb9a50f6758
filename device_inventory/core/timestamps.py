from __future__ import annotations

from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def to_iso(dt: datetime) -> str:
    """Serialise an aware datetime as a UTC ``...Z`` string (the stored format)."""

    return dt.astimezone(timezone.utc).replace(tzinfo=None).isoformat(timespec="seconds") + "Z"


def utcnow_iso() -> str:
    return to_iso(utcnow())


def parse_iso(ts: str | None, tz: str) -> datetime | None:
    """Parse an ISO-8601 timestamp string.
    If naive, attach the provided tz. Returns None if ts is falsy.
    """
    if not ts:
        return None
    dt = datetime.fromisoformat(ts.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=ZoneInfo(tz))
    return dt


def coerce_datetime(value: datetime | date | str | None, tz: str, *, end_of_day: bool = False) -> datetime | None:
    """Turn a filter bound into an aware datetime.

    A bare date expands to the first (or, with ``end_of_day``, the last) second
    of that day in ``tz`` so that date ranges are inclusive.
    """
    if value is None or value == "":
        return None
    if isinstance(value, str):
        text = value.strip()
        if len(text) == 10:
            value = date.fromisoformat(text)
        else:
            return parse_iso(text, tz)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=ZoneInfo(tz))
        return value
    bound = time.max.replace(microsecond=0) if end_of_day else time.min
    return datetime.combine(value, bound, tzinfo=ZoneInfo(tz))


def format_local(ts: str | None, tz: str, fmt: str = "%Y-%m-%d %H:%M:%S") -> str:
    dt = parse_iso(ts, tz)
    if dt is None:
        return ""
    return dt.astimezone(ZoneInfo(tz)).strftime(fmt)


__all__ = ["coerce_datetime", "format_local", "parse_iso", "to_iso", "utcnow", "utcnow_iso"]
