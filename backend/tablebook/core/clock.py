"""
Business-timezone clock.

All "is this in the future" and opening-hours decisions are made against
Clock.now(); routes receive the clock through the get_clock dependency so
tests can freeze time.
"""

from datetime import datetime, tzinfo
from functools import lru_cache
from zoneinfo import ZoneInfo

from tablebook.core.config import get_settings


class Clock:
    def __init__(self, tz: tzinfo):
        self.tz = tz

    def now(self) -> datetime:
        return datetime.now(self.tz)


@lru_cache()
def get_clock() -> Clock:
    return Clock(ZoneInfo(get_settings().BUSINESS_TIMEZONE))
