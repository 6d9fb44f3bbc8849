from __future__ import annotations

from datetime import date, datetime
from typing import Callable
from zoneinfo import ZoneInfo

Clock = Callable[[], datetime]

# Session rows store the weekday by English name.
DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def day_name(value: date) -> str:
    return DAY_NAMES[value.weekday()]


def system_clock(tz_name: str = "UTC") -> Clock:
    """Return a clock reading the wall time in ``tz_name``."""

    tz = ZoneInfo(tz_name)

    def _now() -> datetime:
        return datetime.now(tz)

    return _now
