"""
utils/time_utils.py

Purpose: Time and window helpers

- Naive-UTC clock used for every stored timestamp
- Rolling window boundaries
- Timestamp formatting for chat replies and documents
"""

from datetime import datetime, timedelta, timezone
from typing import Optional


def utc_now() -> datetime:
    """
    Current time as naive UTC, matching what MongoDB returns.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def window_start(now: datetime, window: timedelta) -> datetime:
    """
    Lower bound of the rolling window ending at ``now``.
    """
    return now - window


def format_timestamp(dt: Optional[datetime], format_str: str = "%Y-%m-%d %H:%M:%S") -> str:
    """
    Formats a datetime object to string.
    """
    if not dt:
        return "N/A"
    return dt.strftime(format_str)


def format_utc(dt: Optional[datetime]) -> str:
    """
    Formats a UTC timestamp for chat replies, e.g. ``18/10/2026, 14:05``.
    """
    return format_timestamp(dt, "%d/%m/%Y, %H:%M")


def format_document_date(dt: datetime) -> str:
    """
    Date printed on the title slide, e.g. ``18 Oct 2026``.
    """
    return dt.strftime("%d %b %Y")
