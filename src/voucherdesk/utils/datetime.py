"""Date-time helpers shared by the ledgers."""

from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime, matching stored columns."""

    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime | None) -> datetime | None:
    """Normalise an aware or naive timestamp to naive UTC.

    Naive inputs are assumed to already be UTC.
    """

    if value is None:
        return None
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def resolve_now(current_time: datetime | None = None) -> datetime:
    """Return ``current_time`` as naive UTC, defaulting to the wall clock."""

    return as_naive_utc(current_time) if current_time else utcnow()


def days_from(start: datetime, days: int) -> datetime:
    return start + timedelta(days=days)
