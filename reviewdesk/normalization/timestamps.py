"""Timestamp normalizer.

The platform API returns instants in three shapes:

- Firestore-style objects: ``{"_seconds": 1700000000, "_nanoseconds": 0}``
  (``seconds`` / ``nanoseconds`` without the underscore also occur)
- ISO-8601 strings, with or without a trailing ``Z``
- native ``datetime`` / ``date`` values (in-process stores)

Bare epoch-second numbers are accepted as well.  Every result is a
timezone-aware UTC ``datetime``; naive inputs are taken as UTC.
"""
from __future__ import annotations

import math
from collections.abc import Mapping
from datetime import date, datetime, time, timedelta, timezone

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _from_epoch(seconds: float, nanoseconds: float = 0) -> datetime | None:
    try:
        if not math.isfinite(seconds):
            return None
        nanos = int(nanoseconds) if math.isfinite(nanoseconds) else 0
        return _EPOCH + timedelta(seconds=seconds, microseconds=nanos // 1000)
    except (OverflowError, ValueError):
        return None


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def normalize_timestamp(value: object) -> datetime | None:
    """Return *value* as an aware UTC ``datetime``, or ``None``.

    Parameters
    ----------
    value:
        Any of the accepted wire shapes.  ``None``, empty strings, and
        anything unparseable resolve to ``None``.

    Returns
    -------
    datetime | None
        Aware UTC datetime.  Never raises.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)

    if isinstance(value, Mapping):
        seconds = value.get("_seconds", value.get("seconds"))
        nanos = value.get("_nanoseconds", value.get("nanoseconds", 0))
        if not _is_number(seconds):
            return None
        if not _is_number(nanos):
            nanos = 0
        return _from_epoch(seconds, nanos)

    if _is_number(value):
        return _from_epoch(value)

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        return normalize_timestamp(parsed)

    return None


def format_timestamp(value: datetime | None) -> str | None:
    """Render an instant as an ISO-8601 string (``None`` passes through)."""
    return value.isoformat() if value is not None else None
