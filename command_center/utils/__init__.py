"""Utility modules for Command Center."""

from .datetime_utils import (
    get_local_tz,
    get_local_now,
    start_of_day,
    start_of_week,
    most_recent_sunday,
)

__all__ = [
    "get_local_tz",
    "get_local_now",
    "start_of_day",
    "start_of_week",
    "most_recent_sunday",
]
