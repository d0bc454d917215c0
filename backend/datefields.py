"""
Conversions between the date-only, time-only and full datetime forms that
task fields travel in.

dueDate is a calendar day stored as the UTC midnight of that day.
startTime/endTime are ISO datetimes; naive values stay naive (server wall time).
"""
import re
from datetime import date, datetime, time, timezone
from typing import Optional, Union

DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
HHMM_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")

DateLike = Union[str, date, datetime]


def parse_iso(value: str) -> datetime:
    """Parse an ISO date or datetime string. A trailing Z is read as UTC."""
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    if DATE_ONLY_RE.match(text):
        return datetime.combine(date.fromisoformat(text), time())
    return datetime.fromisoformat(text)


def calendar_day(value: Optional[DateLike]) -> Optional[date]:
    """
    The calendar day a value names, taken in the value's own timezone.
    Never shifts a naive or UTC-midnight value across a day boundary.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return parse_iso(value).date()


def to_due_date(value: DateLike) -> str:
    """Normalize anything date-like to the UTC midnight timestamp of its calendar day."""
    day = calendar_day(value)
    return datetime.combine(day, time(), tzinfo=timezone.utc).isoformat()


def to_datetime_iso(value: DateLike) -> str:
    """Normalize a start/end value to an ISO datetime string (date-only means midnight)."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return datetime.combine(value, time()).isoformat()
    return parse_iso(value).isoformat()


def combine(day: date, clock: time) -> str:
    return datetime.combine(day, clock).isoformat()


def combine_with_time(due_date: DateLike, hhmm: str) -> str:
    """Put an HH:MM wall-clock time on the calendar day of due_date."""
    m = HHMM_RE.match(hhmm.strip())
    if not m:
        raise ValueError(f"Invalid time: {hhmm}")
    return combine(calendar_day(due_date), time(int(m.group(1)), int(m.group(2))))


def format_day(value: Optional[DateLike]) -> Optional[str]:
    """YYYY-MM-DD for display, or None when there is no usable date."""
    try:
        day = calendar_day(value)
    except ValueError:
        return None
    return day.isoformat() if day else None
