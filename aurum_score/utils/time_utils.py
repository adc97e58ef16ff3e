"""
Timestamp helpers shared by the score store, history tracker and sweeper.

All timestamps persisted by the engine are UTC ISO-8601 strings with
millisecond precision and a trailing ``Z`` (``2025-01-01T12:00:00.000Z``).
"""

from datetime import datetime, timezone


class TimestampError(ValueError):
    """Raised when a stored timestamp cannot be parsed."""
    pass


def utc_now() -> datetime:
    """Current instant as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    """
    Format a datetime as an ISO-8601 UTC string with millisecond precision.

    Naive datetimes are assumed to already be in UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_iso(value: str) -> datetime:
    """
    Parse an ISO-8601 timestamp into an aware UTC datetime.

    Raises:
        TimestampError: If the value is not a valid timestamp
    """
    if not isinstance(value, str) or not value:
        raise TimestampError(f"Invalid timestamp: {value!r}")

    try:
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError as e:
        raise TimestampError(f"Invalid timestamp: {value!r}") from e

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def is_expired(expires_at: str, now: datetime = None) -> bool:
    """Whether ``now`` is strictly past the given expiry timestamp."""
    now = now or utc_now()
    return now > parse_iso(expires_at)
