"""Date parsing and generation utilities

All datetimes are naive UTC so they compare cleanly with values read back
from databases that drop tzinfo.
"""

import random
from datetime import datetime, timedelta, timezone
from typing import Any, List

DATE_FORMAT = "%Y-%m-%d"


def utcnow() -> datetime:
    """Current time as naive UTC"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_date(value: Any) -> datetime:
    """Parse a YYYY-MM-DD string to midnight of that day"""
    if not isinstance(value, str):
        raise ValueError(f"expected a YYYY-MM-DD string, got {value!r}")
    return datetime.strptime(value.strip(), DATE_FORMAT)


def parse_epoch_millis(value: Any) -> datetime:
    """
    Parse an epoch-millisecond timestamp given as an integer or digit string.

    Raises:
        ValueError: On booleans, fractional numbers, or non-digit strings
    """
    if isinstance(value, bool):
        raise ValueError(f"invalid epoch milliseconds: {value!r}")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"invalid epoch milliseconds: {value!r}")
        value = int(value)
    if isinstance(value, str):
        text = value.strip()
        if not text.lstrip("-").isdigit():
            raise ValueError(f"invalid epoch milliseconds: {value!r}")
        value = int(text)
    if not isinstance(value, int):
        raise ValueError(f"invalid epoch milliseconds: {value!r}")

    try:
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc).replace(tzinfo=None)
    except (OverflowError, OSError) as e:
        raise ValueError(f"epoch milliseconds out of range: {value}") from e


def random_dates_within(rng: random.Random, count: int, window_days: int, now: datetime) -> List[datetime]:
    """Draw `count` datetimes uniformly from the last `window_days`, sorted ascending"""
    window_seconds = window_days * 24 * 60 * 60
    offsets = [rng.randint(0, window_seconds) for _ in range(count)]
    return sorted(now - timedelta(seconds=offset) for offset in offsets)
