"""Wall-clock helpers. Timestamps are integer epoch milliseconds throughout."""

from __future__ import annotations

import time
from datetime import date, datetime, timedelta, tzinfo

MS_PER_HOUR = 60 * 60 * 1000


def now_ms() -> int:
    return time.time_ns() // 1_000_000


def hours_to_ms(hours: float) -> int:
    return int(hours * MS_PER_HOUR)


def to_local(ts_ms: int, tz: tzinfo) -> datetime:
    """Convert an epoch-ms timestamp into an aware datetime in ``tz``."""
    return datetime.fromtimestamp(ts_ms / 1000, tz=tz)


def local_date(ts_ms: int, tz: tzinfo) -> date:
    return to_local(ts_ms, tz).date()


def shift_days(day: date, days: int) -> date:
    return day + timedelta(days=days)


def from_local(value: datetime) -> int:
    """Convert an aware datetime back into epoch ms."""
    return int(value.timestamp() * 1000)
