"""Datetime helpers.

Timestamps are stored as naive UTC datetimes. These helpers keep every
comparison against stored values in that form.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime) -> datetime:
    """Normalise ``value`` to naive UTC (aware values are converted first)."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
