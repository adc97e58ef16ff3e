# Utilities module

from .time_utils import (
    TimestampError,
    is_expired,
    parse_iso,
    to_iso,
    utc_now,
)

__all__ = [
    "TimestampError",
    "is_expired",
    "parse_iso",
    "to_iso",
    "utc_now",
]
