# TIMETRACK/calculator.py
"""
Stateless helpers over log entries: period cutoffs and filters, duration
rounding and formatting, and parsing of the date/time options users type.

All calendar arithmetic happens in the local timezone.
"""
import math
import re
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional

import dateparser

from .errors import ValidationError

PERIODS = ("day", "week", "month", "all")

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")


def now() -> datetime:
    """Current local time, timezone-aware."""
    return datetime.now().astimezone()


def to_local(moment: datetime) -> datetime:
    # Naive datetimes are taken to be local already.
    if moment.tzinfo is None:
        return moment
    return moment.astimezone()


def parse_timestamp(text: str) -> datetime:
    """Parse an ISO-8601 timestamp (a trailing 'Z' is accepted) into aware local time."""
    text = text.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text).astimezone()


def validate_period(period: str):
    if period not in PERIODS:
        raise ValidationError("Invalid period. Use: day, week, month, or all.")


def period_display(period: str) -> str:
    return "All Time" if period == "all" else f"Last {period}"


def cutoff_date(period: str, reference: Optional[datetime] = None) -> datetime:
    """Local midnight at which the given period starts, relative to `reference` (default: now)."""
    validate_period(period)
    if period == "all":
        return datetime.fromtimestamp(0)

    reference = to_local(reference or now())
    midnight = reference.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "day":
        return midnight
    if period == "week":
        # weekday(): Monday == 0 ... Sunday == 6
        return midnight - timedelta(days=(midnight.weekday() + 1) % 7)
    return midnight.replace(day=1)


def filter_by_period(entries: Iterable, period: str, reference: Optional[datetime] = None) -> List:
    validate_period(period)
    if period == "all":
        return list(entries)
    cutoff = cutoff_date(period, reference).date()
    return [entry for entry in entries if entry.is_within(cutoff)]


def filter_by_project(entries: Iterable, project_filter: Optional[str]) -> List:
    if not project_filter:
        return list(entries)
    return [entry for entry in entries if entry.matches_project(project_filter)]


def format_duration(minutes: int) -> str:
    hours, mins = divmod(int(minutes), 60)
    if hours > 0:
        return f"{hours}h {mins}m"
    return f"{mins}m"


def elapsed_minutes(start: datetime, end: datetime) -> int:
    """Whole minutes between two instants, halves rounded up."""
    seconds = (end - start).total_seconds()
    return int(math.floor(seconds / 60 + 0.5))


def round_to_nearest_15(minutes: int) -> int:
    """
    Bucket a session length into 15 minute steps.

    Under 8 minutes counts as nothing. Past that, the minutes within the
    current hour decide: up to 22 add 15, up to 37 add 30, up to 52 add 45,
    and anything later rolls over to the next hour. A whole hour therefore
    becomes hour + 15 (60 -> 75), so rounding is not idempotent.
    """
    if minutes < 8:
        return 0

    hours, remainder = divmod(minutes, 60)
    if remainder <= 22:
        return hours * 60 + 15
    if remainder <= 37:
        return hours * 60 + 30
    if remainder <= 52:
        return hours * 60 + 45
    return (hours + 1) * 60


def parse_day(day_option: str) -> date:
    if not _DATE_RE.match(day_option):
        raise ValidationError("Invalid date format. Use YYYY-MM-DD format.")
    try:
        parsed = datetime.strptime(day_option, "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError("Invalid date format. Use YYYY-MM-DD format.")
    if parsed.isoformat() != day_option:
        raise ValidationError("Invalid date format. Use YYYY-MM-DD format.")
    return parsed


def parse_time_of_day(time_option: str):
    match = _TIME_RE.match(time_option.strip())
    if not match:
        raise ValidationError("Invalid time format. Use HH:MM format (24-hour).")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValidationError("Invalid time format. Use HH:MM format (24-hour).")
    return hours, minutes


def parse_date_time(day_option: Optional[str] = None,
                    time_option: Optional[str] = None,
                    override: Optional[datetime] = None,
                    base: Optional[datetime] = None) -> datetime:
    """
    Resolve the --day / --time options of a manual log into a local datetime.

    `override` short-circuits parsing entirely. Without a day, `base` (default:
    now) is used, with the time still applied when given.
    """
    if override is not None:
        return override

    if day_option:
        day = parse_day(day_option)
        target = datetime(day.year, day.month, day.day)
    else:
        target = to_local(base or now())

    if time_option:
        hours, minutes = parse_time_of_day(time_option)
        target = target.replace(hour=hours, minute=minutes, second=0, microsecond=0)
    return target


def parse_reference(text: Optional[str]) -> Optional[datetime]:
    """Parse a reference instant typed on the command line: ISO first, then natural language."""
    if not text:
        return None
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        parsed = dateparser.parse(text)
        if parsed:
            return parsed
        raise ValidationError(f"Could not parse time: '{text}'")
