"""Clinic wall-clock helpers.

Appointment datetimes are stored naive, in the clinic timezone. Anything that
arrives with an offset is converted to that zone first.
"""
import calendar
import re
from datetime import date, datetime, time, timedelta
from typing import Iterable, List, Optional, Tuple
from zoneinfo import ZoneInfo

from app.core.config import settings
from app.utils.errors import BadRequest

CLINIC_TZ = ZoneInfo(settings.TIMEZONE)


def now_local() -> datetime:
    """Current clinic wall-clock time, naive."""
    return datetime.now(CLINIC_TZ).replace(tzinfo=None)


def today_local() -> date:
    return now_local().date()


def to_local_naive(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(CLINIC_TZ).replace(tzinfo=None)


def today_range() -> Tuple[datetime, datetime]:
    return day_range(today_local())


def day_range(day: date) -> Tuple[datetime, datetime]:
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def time_to_minutes(value) -> int:
    """Accepts ``datetime.time`` or an ``HH:MM[:SS]`` string."""
    if isinstance(value, time):
        return value.hour * 60 + value.minute
    parts = str(value).split(":")
    hours = int(parts[0] or 0)
    minutes = int(parts[1] or 0) if len(parts) > 1 else 0
    return hours * 60 + minutes


def minutes_to_time(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def minutes_of_day(value: datetime) -> int:
    return value.hour * 60 + value.minute


def at_minutes(day: date, minutes: int) -> datetime:
    return datetime.combine(day, time.min) + timedelta(minutes=minutes)


def format_slot(day: date, minutes: int) -> str:
    return at_minutes(day, minutes).strftime("%Y-%m-%dT%H:%M:00")


def build_date_range(start: date, end: date) -> List[date]:
    days = []
    current = start
    while current <= end:
        days.append(current)
        current += timedelta(days=1)
    return days


def parse_date(value: str) -> date:
    return date.fromisoformat(value)


def overlaps(a_start, a_end, b_start, b_end) -> bool:
    return a_start < b_end and b_start < a_end


def merge_frames(frames: Iterable[Tuple[int, int]]) -> List[Tuple[int, int]]:
    """Merge overlapping or touching ``(start, end)`` minute ranges."""
    merged: List[List[int]] = []
    for start, end in sorted(frames):
        if merged and start <= merged[-1][1]:
            merged[-1][1] = max(merged[-1][1], end)
        else:
            merged.append([start, end])
    return [(start, end) for start, end in merged]


def iso_week_start(value: datetime) -> date:
    day = value.date()
    return day - timedelta(days=day.weekday())


def months_ago(value: datetime, months: int) -> datetime:
    month_index = value.month - 1 - months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return value.replace(year=year, month=month, day=min(value.day, last_day))


def format_date_long(value: datetime | date) -> str:
    months = (
        "stycznia", "lutego", "marca", "kwietnia", "maja", "czerwca",
        "lipca", "sierpnia", "września", "października", "listopada", "grudnia",
    )
    return f"{value.day} {months[value.month - 1]} {value.year}"


def format_time(value: datetime) -> str:
    return value.strftime("%H:%M")


def format_appointment_type(kind: Optional[str]) -> str:
    return "Zabieg" if kind == "procedure" else "Konsultacja"


def format_visit_mode(is_online: Optional[bool]) -> str:
    return "Online" if is_online else "Stacjonarna"


DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
DATE_FORMAT_MESSAGE = "Data musi być w formacie YYYY-MM-DD"


def parse_day(value: Optional[str], default: Optional[date] = None) -> date:
    """Parse a ``YYYY-MM-DD`` query value; a missing value falls back to ``default``."""
    if value is None:
        if default is None:
            raise BadRequest(DATE_FORMAT_MESSAGE)
        return default
    if not DATE_RE.match(value):
        raise BadRequest(DATE_FORMAT_MESSAGE)
    try:
        return parse_date(value)
    except ValueError:
        raise BadRequest(DATE_FORMAT_MESSAGE)
