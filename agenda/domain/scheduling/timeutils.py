"""Business-timezone clock and civil-time helpers.

Scheduling datetimes are naive values holding local civil time in the
tenant's business timezone. The only place an absolute instant is turned
into civil time is ``BusinessClock.now``.
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Optional

import pytz

from ...config import BUSINESS_TIMEZONE

logger = logging.getLogger(__name__)


def get_timezone(name: Optional[str]):
    """Resolve an IANA timezone name, falling back to the configured business timezone"""
    try:
        return pytz.timezone(name or BUSINESS_TIMEZONE)
    except pytz.UnknownTimeZoneError:
        logger.warning(f"⚠️ Unknown timezone '{name}', using {BUSINESS_TIMEZONE}")
        return pytz.timezone(BUSINESS_TIMEZONE)


class BusinessClock:
    """Current local civil time in a fixed business timezone"""

    def __init__(self, tz):
        self.tz = tz

    def __call__(self) -> datetime:
        return self.now()

    def now(self) -> datetime:
        return datetime.now(pytz.utc).astimezone(self.tz).replace(tzinfo=None)


def to_civil(instant: datetime, tz) -> datetime:
    """Convert an aware instant (naive values are read as UTC) into local civil time"""
    if instant.tzinfo is None:
        instant = pytz.utc.localize(instant)
    return instant.astimezone(tz).replace(tzinfo=None)


def day_of_week(day: date) -> int:
    """Day of week with 0 = Sunday ... 6 = Saturday"""
    return (day.weekday() + 1) % 7


def day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def format_hhmm(value) -> str:
    return value.strftime("%H:%M")
