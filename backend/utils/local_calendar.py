"""
Local calendar helpers.

Reminder jobs and documents reason about calendar days in the university's
timezone (``settings.timezone``), while timestamps are stored in UTC.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from urllib.parse import urlencode
from zoneinfo import ZoneInfo

from backend.core.config import settings

DISPLAY_DATE_FORMAT = "%d/%m/%Y"
GOOGLE_CALENDAR_URL = "https://calendar.google.com/calendar/render"


class LocalCalendar:
    """Date arithmetic in the portal's local timezone."""

    @staticmethod
    def zone() -> ZoneInfo:
        return ZoneInfo(settings.timezone)

    @staticmethod
    def now(now: Optional[datetime] = None) -> datetime:
        """Current local datetime; ``now`` (any timezone) may be injected for tests."""
        current = now or datetime.now(timezone.utc)
        return LocalCalendar.to_local(current)

    @staticmethod
    def today(now: Optional[datetime] = None) -> date:
        return LocalCalendar.now(now).date()

    @staticmethod
    def days_from_today(days: int, now: Optional[datetime] = None) -> date:
        """Local date ``days`` after today; negative values go back."""
        return LocalCalendar.today(now) + timedelta(days=days)

    @staticmethod
    def to_local(value: datetime) -> datetime:
        """
        Convert a stored timestamp to local time.

        Naive values (SQLite drops the offset) are taken to be UTC.
        """
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(LocalCalendar.zone())

    @staticmethod
    def local_date(value: datetime) -> date:
        return LocalCalendar.to_local(value).date()

    @staticmethod
    def day_bounds(day: date) -> tuple[datetime, datetime]:
        """UTC [start, end) covering one local calendar day."""
        start = datetime.combine(day, time.min, tzinfo=LocalCalendar.zone())
        end = start + timedelta(days=1)
        return start.astimezone(timezone.utc), end.astimezone(timezone.utc)

    @staticmethod
    def at_local_time(day: date, hour: int, minute: int = 0) -> datetime:
        return datetime.combine(day, time(hour, minute), tzinfo=LocalCalendar.zone())


def format_display_date(value: Optional[date | datetime]) -> str:
    """dd/MM/yyyy; datetimes are shown by their local date."""
    if value is None:
        return ""
    if isinstance(value, datetime):
        value = LocalCalendar.local_date(value)
    return value.strftime(DISPLAY_DATE_FORMAT)


def parse_meeting_time(value: Optional[str]) -> time:
    """Parse 'HH:MM' (24h); anything unparseable falls back to 10:00."""
    try:
        hour, minute = (int(part) for part in (value or "").split(":")[:2])
        return time(hour, minute)
    except ValueError:
        return time(10, 0)


def google_calendar_link(
    title: str,
    day: date,
    start_time: Optional[str],
    details: str = "",
    location: str = "",
    duration_minutes: int = 60,
) -> str:
    """Link that opens a pre-filled Google Calendar event for a meeting."""
    start = datetime.combine(day, parse_meeting_time(start_time), tzinfo=LocalCalendar.zone())
    end = start + timedelta(minutes=duration_minutes)
    fmt = "%Y%m%dT%H%M%SZ"
    params = {
        "action": "TEMPLATE",
        "text": title,
        "dates": f"{start.astimezone(timezone.utc).strftime(fmt)}/{end.astimezone(timezone.utc).strftime(fmt)}",
        "details": details,
        "location": location,
    }
    return f"{GOOGLE_CALENDAR_URL}?{urlencode(params)}"
