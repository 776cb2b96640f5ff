"""
Centralized datetime and timezone utilities.

All datetime handling should use these functions so that session rules,
draft expiry and scheduled jobs agree on the same local calendar.
"""

from datetime import date, datetime, timedelta
import pytz

from config import settings


def get_local_tz() -> pytz.BaseTzInfo:
    """Get the configured local timezone."""
    return pytz.timezone(settings.timezone)


def get_local_now() -> datetime:
    """Get current time in local timezone (naive)."""
    local_tz = get_local_tz()
    return datetime.now(local_tz).replace(tzinfo=None)


def start_of_day(dt: datetime) -> datetime:
    """Midnight of the given datetime's calendar day."""
    return datetime.combine(dt.date(), datetime.min.time())


def most_recent_sunday(day: date) -> date:
    """The Sunday on or before ``day`` (weeks are anchored to Sunday)."""
    # Monday=0 ... Sunday=6
    return day - timedelta(days=(day.weekday() + 1) % 7)


def start_of_week(dt: datetime) -> datetime:
    """Midnight of the most recent Sunday on or before ``dt``."""
    return datetime.combine(most_recent_sunday(dt.date()), datetime.min.time())

