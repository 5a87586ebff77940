"""Time and schedule helpers for class reminders.

Class start times are stored by the mobile app as 12-hour strings such as
``"09:00 AM"``. All day and minute calculations are done in a single
reference timezone (``settings.timezone``), independent of the host clock.
"""
import logging
import math
import re
from datetime import datetime, timedelta, tzinfo
from typing import Iterable, List, Optional, Union
from zoneinfo import ZoneInfo

from ..config import settings

logger = logging.getLogger(__name__)

DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

_TIME_12H = re.compile(r"^\s*(\d{1,2}):(\d{2})\s+(AM|PM)\s*$", re.IGNORECASE)


class InvalidTimeFormat(ValueError):
    """Raised when a time string is not in "HH:MM AM/PM" form."""


def get_timezone(tz: Union[str, tzinfo, None] = None) -> tzinfo:
    """Resolve a timezone name (or pass through a tzinfo)."""
    if tz is None:
        return ZoneInfo(settings.timezone)
    if isinstance(tz, str):
        return ZoneInfo(tz)
    return tz


def day_name(moment: datetime) -> str:
    return DAY_NAMES[moment.weekday()]


def today_day_name(tz: Union[str, tzinfo, None] = None, now: Optional[datetime] = None) -> str:
    """Weekday name of today in the reference timezone."""
    zone = get_timezone(tz)
    current = now.astimezone(zone) if now else datetime.now(zone)
    return day_name(current)


def tomorrow_day_name(tz: Union[str, tzinfo, None] = None, now: Optional[datetime] = None) -> str:
    """Weekday name of tomorrow in the reference timezone."""
    zone = get_timezone(tz)
    current = now.astimezone(zone) if now else datetime.now(zone)
    return day_name(current + timedelta(days=1))


def parse_12_hour(time_str: str) -> tuple[int, int]:
    """Parse "HH:MM AM/PM" into a 24-hour (hour, minute) pair.

    Raises:
        InvalidTimeFormat: If the string does not match or is out of range
    """
    if not isinstance(time_str, str):
        raise InvalidTimeFormat(f"Invalid time: {time_str!r}")

    match = _TIME_12H.match(time_str)
    if not match:
        raise InvalidTimeFormat(f"Invalid time: {time_str!r}")

    hour = int(match.group(1))
    minute = int(match.group(2))
    period = match.group(3).upper()

    if not 1 <= hour <= 12 or minute > 59:
        raise InvalidTimeFormat(f"Time out of range: {time_str!r}")

    if period == "PM" and hour != 12:
        hour += 12
    elif period == "AM" and hour == 12:
        hour = 0

    return hour, minute


def to_24_hour(time_str: str) -> str:
    """Convert "HH:MM AM/PM" to zero-padded "HH:MM"."""
    hour, minute = parse_12_hour(time_str)
    return f"{hour:02d}:{minute:02d}"


def minutes_until(
    start_time: str,
    now: Optional[datetime] = None,
    tz: Union[str, tzinfo, None] = None,
) -> int:
    """Whole minutes from now until today's occurrence of start_time (floored)."""
    zone = get_timezone(tz)
    current = now.astimezone(zone) if now else datetime.now(zone)
    hour, minute = parse_12_hour(start_time)
    class_at = current.replace(hour=hour, minute=minute, second=0, microsecond=0)
    return math.floor((class_at - current).total_seconds() / 60)


def is_starting_soon(
    start_time: str,
    minutes_before: int,
    now: Optional[datetime] = None,
    tz: Union[str, tzinfo, None] = None,
) -> bool:
    """Check whether a class starts in minutes_before minutes, give or take one.

    The +/-1 minute window absorbs trigger jitter at minute granularity.
    """
    diff = minutes_until(start_time, now=now, tz=tz)
    return (minutes_before - 1) <= diff <= (minutes_before + 1)


def _start_time_of(entry) -> str:
    if isinstance(entry, dict):
        return entry.get("start_time") or entry.get("startTime")
    return entry.start_time


def sort_by_start_time(entries: Iterable) -> List:
    """Sort timetable entries chronologically, dropping malformed start times."""
    keyed = []
    for entry in entries:
        start = _start_time_of(entry)
        try:
            keyed.append((to_24_hour(start), entry))
        except InvalidTimeFormat:
            logger.warning(f"Skipping timetable entry with malformed start time: {start!r}")
    keyed.sort(key=lambda pair: pair[0])
    return [entry for _, entry in keyed]
