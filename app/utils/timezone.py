"""
Date and Time utilities

This module handles XMLTV timestamp formatting and parsing and the local-day
calculations shared by the guide builder and the stream transforms.
"""
from datetime import datetime, timedelta, tzinfo
import logging
import re

logger = logging.getLogger(__name__)

XMLTV_TIME_FORMAT = "%Y%m%d%H%M%S"

_XMLTV_WALL_TIME_RE = re.compile(r"^\s*(\d{14})")


def format_xmltv_timestamp(value: datetime) -> str:
    """
    Format an aware datetime as an XMLTV timestamp

    Args:
        value: Datetime to format; naive values are taken as system local time

    Returns:
        Timestamp like '20250915143000 -0500'
    """
    if value.tzinfo is None:
        value = value.astimezone()
    return value.strftime(f"{XMLTV_TIME_FORMAT} %z")


def unix_to_xmltv(timestamp: int | float, tz: tzinfo) -> str:
    """Convert a Unix timestamp to an XMLTV timestamp in the given timezone"""
    return format_xmltv_timestamp(datetime.fromtimestamp(timestamp, tz))


def parse_xmltv_wall_time(value: str | None) -> datetime | None:
    """
    Decompose the wall-clock part of an XMLTV timestamp

    The offset is ignored: every value compared against it comes from the
    same local clock.

    Args:
        value: XMLTV time like '20080715003000 -0600'

    Returns:
        Naive datetime of the fourteen leading digits, or None if unparseable
    """
    if not value:
        return None
    match = _XMLTV_WALL_TIME_RE.match(value)
    if match is None:
        return None
    try:
        return datetime.strptime(match.group(1), XMLTV_TIME_FORMAT)
    except ValueError:
        return None


def local_day_start(now: datetime) -> datetime:
    """Midnight of the calendar day containing `now`, keeping its tzinfo"""
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def day_cutoff(days: int, now: datetime) -> datetime:
    """
    Calculate the naive wall-clock cutoff for a days filter

    Args:
        days: Number of days to keep, counting today as day 0
        now: Invocation instant in the local timezone

    Returns:
        Naive datetime of local midnight today plus `days` days
    """
    return local_day_start(now).replace(tzinfo=None) + timedelta(days=days)
