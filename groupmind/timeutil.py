"""
Timestamp utilities for consistent time handling across the store and jobs.

Everything persisted is UTC with second precision, so ISO strings sort
chronologically. Period boundaries are computed in the group's local timezone.
"""

from datetime import datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from groupmind.config import TIMEZONE


def get_tz(name=None):
    return ZoneInfo(name or TIMEZONE)


def utcnow():
    return datetime.now(timezone.utc)


def to_db_time(dt):
    """Serialize an aware datetime (naive is taken as UTC) for the store."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="seconds")


def from_db_time(value):
    if value is None:
        return None
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def previous_hour_window(now, tz):
    """The last full local hour before `now`, as a (start, end) pair in UTC."""
    local = now.astimezone(tz)
    end = local.replace(minute=0, second=0, microsecond=0).astimezone(timezone.utc)
    return end - timedelta(hours=1), end


def day_window(day, tz):
    """Local midnight to the next local midnight for `day`, in UTC."""
    start = datetime.combine(day, time(0), tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time(0), tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def local_date(now, tz):
    return now.astimezone(tz).date()


def previous_day(now, tz):
    return local_date(now, tz) - timedelta(days=1)


def parse_clock(value):
    """'HH:MM' -> datetime.time"""
    hour, minute = value.split(":")
    return time(int(hour), int(minute))
