# TIMETRACK/model.py
import csv
import io
import random
import string
import time
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional, Union

from .calculator import elapsed_minutes, parse_timestamp
from .errors import ValidationError

SESSION_PREFIX = "sess_"
MANUAL_PREFIX = "manual_"
LEGACY_PREFIX = "sess_legacy_"

_BASE36 = string.digits + string.ascii_lowercase


def _base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_session_id(kind: str = "sess") -> str:
    """Return ids like 'sess_m1x2y3z4_ab12c'. The prefix records where an entry came from."""
    timestamp = _base36(int(time.time() * 1000))
    suffix = "".join(random.choices(_BASE36, k=5))
    return f"{kind}_{timestamp}_{suffix}"


def _looks_like_timestamp(value: str) -> bool:
    return "T" in value or ":" in value


@dataclass(frozen=True)
class LogEntry:
    project: str
    date: date
    duration: int
    description: Optional[str] = None
    session_id: Optional[str] = None
    # Raw line the entry was read from; rewrites reuse it verbatim.
    original_line: Optional[str] = field(default=None, compare=False, repr=False)

    @property
    def is_session_entry(self) -> bool:
        return bool(self.session_id and self.session_id.startswith(SESSION_PREFIX))

    @property
    def is_manual_entry(self) -> bool:
        return bool(self.session_id and self.session_id.startswith(MANUAL_PREFIX))

    @classmethod
    def from_csv_line(cls, line: str) -> Optional["LogEntry"]:
        """
        Parse one log row. Returns None for blank or invalid rows instead of raising,
        so a single bad line never aborts a read.

        Accepts the current shape (project,date,duration_minutes,description,session_id),
        rows missing trailing optional columns, and the legacy
        project,start_time,end_time shape.
        """
        if not line or not line.strip():
            return None
        line = line.rstrip("\r\n")
        try:
            fields = next(csv.reader([line]))
        except csv.Error:
            return None

        if len(fields) == 3 and _looks_like_timestamp(fields[1]):
            return cls.from_legacy_row(*fields)

        fields = fields + [""] * (5 - len(fields))
        project, day, duration = (value.strip() for value in fields[:3])
        description, session_id = fields[3], fields[4].strip()
        if not project or not day or not duration:
            return None
        try:
            minutes = int(duration)
            entry_date = datetime.strptime(day, "%Y-%m-%d").date()
        except ValueError:
            return None
        if minutes <= 0:
            return None

        return cls(
            project=project,
            date=entry_date,
            duration=minutes,
            description=description or None,
            session_id=session_id or None,
            original_line=line,
        )

    @classmethod
    def from_legacy_row(cls, project: str, start_time: str, end_time: str) -> Optional["LogEntry"]:
        """Convert an old start/end timestamp row into a dated, session-tagged entry."""
        project = project.strip()
        if not project or not start_time.strip() or not end_time.strip():
            return None
        try:
            start = parse_timestamp(start_time)
            end = parse_timestamp(end_time)
        except ValueError:
            return None
        minutes = elapsed_minutes(start, end)
        if minutes <= 0:
            return None
        # No original_line: the next full rewrite stores it in the current format.
        return cls(
            project=project,
            date=start.date(),
            duration=minutes,
            session_id=LEGACY_PREFIX + start.strftime("%Y%m%d%H%M%S"),
        )

    def to_csv_line(self) -> str:
        buffer = io.StringIO()
        csv.writer(buffer, lineterminator="").writerow([
            self.project,
            self.date.isoformat(),
            self.duration,
            self.description or "",
            self.session_id or "",
        ])
        return buffer.getvalue()

    def matches_project(self, project_filter: Optional[str]) -> bool:
        """Case-insensitive partial match on the project name."""
        if not project_filter:
            return True
        return project_filter.lower() in self.project.lower()

    def is_within(self, cutoff: date) -> bool:
        return self.date >= cutoff

    def same_row(self, other: "LogEntry") -> bool:
        """True when both entries stand for the same log row: same raw line, else same project, date and duration."""
        if self.original_line and other.original_line:
            return self.original_line == other.original_line
        return (
            self.project == other.project
            and self.date == other.date
            and self.duration == other.duration
        )


@dataclass
class SessionState:
    project: str
    start_time: datetime
    description: Optional[str] = None
    session_id: Optional[str] = None

    def to_dict(self):
        return {
            "project": self.project,
            "startTime": self.start_time.isoformat(),
            "description": self.description,
            "sessionId": self.session_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SessionState":
        # KeyError / ValueError / TypeError propagate; the store treats them as "no session".
        project = data["project"]
        if not project:
            raise ValueError("state has no project")
        return cls(
            project=project,
            start_time=parse_timestamp(data["startTime"]),
            description=data.get("description"),
            session_id=data.get("sessionId"),
        )


# --- Delete criteria ---

@dataclass(frozen=True)
class Last:
    """Narrow to the single most recent entry."""


@dataclass(frozen=True)
class InPeriod:
    period: str  # "day", "week" or "month"

    @property
    def label(self) -> str:
        return {"day": "today", "week": "this week", "month": "this month"}[self.period]


DeleteCriteria = Union[Last, InPeriod, None]


def criteria_from_flags(last: bool = False, today: bool = False,
                        week: bool = False, month: bool = False) -> DeleteCriteria:
    chosen = [name for name, flag in (("--last", last), ("--today", today),
                                      ("--week", week), ("--month", month)) if flag]
    if len(chosen) > 1:
        raise ValidationError(f"Use only one of --last, --today, --week or --month (got {', '.join(chosen)}).")
    if last:
        return Last()
    if today:
        return InPeriod("day")
    if week:
        return InPeriod("week")
    if month:
        return InPeriod("month")
    return None


# --- Derived stats ---

@dataclass
class ProjectStats:
    total_minutes: int
    entry_count: int
    last_used: date
    direct_minutes: int = 0
    children: List[str] = field(default_factory=list)


# --- Operation results ---

@dataclass
class StopResult:
    project: str
    actual_minutes: int
    final_minutes: int
    started_at: datetime
    stopped_at: datetime
    description: Optional[str] = None
    entry: Optional[LogEntry] = None

    @property
    def rounded(self) -> bool:
        return self.actual_minutes != self.final_minutes


@dataclass
class StartResult:
    project: str
    started_at: datetime
    session_id: str
    description: Optional[str] = None
    auto_stopped: Optional[StopResult] = None


@dataclass
class LogResult:
    entry: LogEntry
    logged_at: datetime


@dataclass
class ProjectTotal:
    name: str
    minutes: int


@dataclass
class SummaryResult:
    period: str
    groups: List[ProjectTotal]
    total_minutes: int
    project_filter: Optional[str] = None


@dataclass
class LogsResult:
    period: str
    entries: List[LogEntry]
    total_minutes: int


@dataclass
class DeletionResult:
    kind: str  # "entries" or "project"
    deleted: List[LogEntry]
    project_name: Optional[str] = None

    @property
    def total_minutes(self) -> int:
        return sum(entry.duration for entry in self.deleted)


@dataclass
class ProjectsResult:
    stats: Dict[str, ProjectStats]
    roots: List[str]

    @property
    def total_minutes(self) -> int:
        return sum(s.direct_minutes for s in self.stats.values())

    @property
    def total_entries(self) -> int:
        return sum(s.entry_count for s in self.stats.values())


@dataclass
class StatusResult:
    tracking: bool
    project: Optional[str] = None
    duration_minutes: int = 0
    started_at: Optional[datetime] = None
    description: Optional[str] = None
