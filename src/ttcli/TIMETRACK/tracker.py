# TIMETRACK/tracker.py
"""
TimeTracker: the operations behind every `tt` command.

Each call reads what it needs from the store, validates, mutates, and returns
a result object. Nothing is cached between calls; the running session lives
only in the store's state file.

A session moves Idle -> Tracking (start) -> Idle (stop, or the auto-stop done
by the next start). Finishing a session appends one `sess_*` entry unless the
rounded duration is zero.
"""
import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, TextIO, Union

from . import calculator
from .errors import NotFoundError, ValidationError
from .hierarchy import calculate_hierarchical_stats, calculate_project_stats, get_root_projects, matches_project_tree
from .model import (
    DeleteCriteria, DeletionResult, InPeriod, Last, LogEntry, LogResult, LogsResult,
    ProjectsResult, ProjectTotal, SessionState, StartResult, StatusResult, StopResult,
    SummaryResult, generate_session_id,
)
from .store import EntryStore

logger = logging.getLogger(__name__)


def single_line(text: Optional[str]) -> Optional[str]:
    """Join a multi-line description with spaces; each log row must stay on one line."""
    if not text:
        return None
    return " ".join(part.strip() for part in text.splitlines() if part.strip()) or None


def remove_entries(all_entries: List[LogEntry], targets: List[LogEntry]) -> List[LogEntry]:
    """
    Return `all_entries` minus one matching row per target.

    Matching prefers the very same object, then LogEntry.same_row, so
    duplicated rows are only removed as many times as they were targeted.
    """
    remaining = list(all_entries)
    for target in targets:
        index = next((i for i, entry in enumerate(remaining) if entry is target), None)
        if index is None:
            index = next((i for i, entry in enumerate(remaining) if entry.same_row(target)), None)
        if index is not None:
            del remaining[index]
    return remaining


class TimeTracker:
    def __init__(self, config_dir: Optional[Path] = None,
                 clock: Callable[[], datetime] = calculator.now,
                 store: Optional[EntryStore] = None):
        self.store = store or EntryStore(config_dir)
        self.clock = clock
        self.store.initialize_log_file()

    # --- Session lifecycle ---

    def start(self, project: str, description: Optional[str] = None, no_round: bool = False) -> StartResult:
        if not project or not project.strip():
            raise ValidationError("Project name is required")
        project = project.strip()

        auto_stopped = None
        current = self.store.read_state()
        if current is not None:
            auto_stopped = self._finish_session(current, no_round)
            logger.info("Auto-stopped %s after %d minutes", current.project, auto_stopped.actual_minutes)

        state = SessionState(
            project=project,
            start_time=self.clock(),
            description=single_line(description),
            session_id=generate_session_id("sess"),
        )
        self.store.save_state(state)
        return StartResult(
            project=state.project,
            started_at=state.start_time,
            session_id=state.session_id,
            description=state.description,
            auto_stopped=auto_stopped,
        )

    def stop(self, no_round: bool = False) -> StopResult:
        current = self.store.read_state()
        if current is None:
            raise NotFoundError("No active tracking session found")
        return self._finish_session(current, no_round)

    def _finish_session(self, state: SessionState, no_round: bool) -> StopResult:
        stopped_at = self.clock()
        actual = calculator.elapsed_minutes(state.start_time, stopped_at)
        final = actual if no_round else calculator.round_to_nearest_15(actual)

        entry = None
        if final > 0:
            entry = LogEntry(
                project=state.project,
                date=calculator.to_local(state.start_time).date(),
                duration=final,
                description=single_line(state.description),
                session_id=state.session_id or generate_session_id("sess"),
            )
            self.store.append_entry(entry)
        else:
            logger.info("Session for %s too short to log (%d minutes)", state.project, actual)
        self.store.clear_state()

        return StopResult(
            project=state.project,
            actual_minutes=actual,
            final_minutes=final,
            started_at=state.start_time,
            stopped_at=stopped_at,
            description=state.description,
            entry=entry,
        )

    def status(self) -> StatusResult:
        current = self.store.read_state()
        if current is None:
            return StatusResult(tracking=False)
        return StatusResult(
            tracking=True,
            project=current.project,
            duration_minutes=calculator.elapsed_minutes(current.start_time, self.clock()),
            started_at=current.start_time,
            description=current.description,
        )

    # --- Manual entries ---

    def log(self, project: str, duration: Union[int, str, None], description: Optional[str] = None,
            day: Optional[str] = None, time: Optional[str] = None,
            when: Optional[datetime] = None) -> LogResult:
        if not project or not project.strip():
            raise ValidationError("Project name is required")
        minutes = self._parse_duration(duration)
        target = calculator.parse_date_time(day, time, when, base=self.clock())

        entry = LogEntry(
            project=project.strip(),
            date=calculator.to_local(target).date(),
            duration=minutes,
            description=single_line(description),
            session_id=generate_session_id("manual"),
        )
        self.store.append_entry(entry)
        return LogResult(entry=entry, logged_at=target)

    @staticmethod
    def _parse_duration(duration) -> int:
        if duration is None or duration == "" or isinstance(duration, bool):
            raise ValidationError("Duration in minutes is required and must be a number")
        if isinstance(duration, float):
            if not duration.is_integer():
                raise ValidationError("Duration must be a whole number of minutes")
            duration = int(duration)
        try:
            minutes = int(str(duration).strip())
        except ValueError:
            raise ValidationError("Duration in minutes is required and must be a number")
        if minutes <= 0:
            raise ValidationError("Duration must be positive")
        return minutes

    # --- Reports ---

    def summary(self, period: str = "all", reference: Optional[datetime] = None,
                project: Optional[str] = None) -> SummaryResult:
        calculator.validate_period(period)
        entries = calculator.filter_by_period(self.store.read_all_entries(), period, reference or self.clock())
        if project:
            entries = [entry for entry in entries if matches_project_tree(entry.project, project)]

        totals = {}
        for entry in entries:
            totals[entry.project] = totals.get(entry.project, 0) + entry.duration
        groups = [ProjectTotal(name, minutes) for name, minutes in totals.items()]
        groups.sort(key=lambda g: (-g.minutes, g.name))

        return SummaryResult(
            period=period,
            groups=groups,
            total_minutes=sum(totals.values()),
            project_filter=project or None,
        )

    def logs(self, period: str = "all", reference: Optional[datetime] = None,
             sessions_only: bool = False, manual_only: bool = False,
             with_descriptions: bool = False) -> LogsResult:
        calculator.validate_period(period)
        if sessions_only and manual_only:
            raise ValidationError("Use either sessions-only or manual-only, not both")
        entries = calculator.filter_by_period(self.store.read_all_entries(), period, reference or self.clock())

        if sessions_only:
            entries = [entry for entry in entries if entry.is_session_entry]
        elif manual_only:
            entries = [entry for entry in entries if entry.is_manual_entry]
        if with_descriptions:
            entries = [entry for entry in entries if entry.description]

        return LogsResult(
            period=period,
            entries=entries,
            total_minutes=sum(entry.duration for entry in entries),
        )

    def list_projects(self) -> ProjectsResult:
        stats = calculate_hierarchical_stats(calculate_project_stats(self.store.read_all_entries()))
        return ProjectsResult(stats=stats, roots=get_root_projects(stats))

    def export(self, sink: TextIO) -> int:
        return self.store.export(sink)

    # --- Deletion ---

    def delete_entry(self, index: Union[int, str], period: str = "all",
                     reference: Optional[datetime] = None) -> DeletionResult:
        """Delete the `index`-th (1-based) entry of the period's log view."""
        try:
            index = int(index)
        except (TypeError, ValueError):
            raise ValidationError("An entry index to delete is required. Please provide a valid number.")
        calculator.validate_period(period)

        all_entries = self.store.read_all_entries()
        view = calculator.filter_by_period(all_entries, period, reference or self.clock())
        if index < 1 or index > len(view):
            raise ValidationError(f"Invalid index. Use a number between 1 and {len(view)}")

        target = view[index - 1]
        self.store.write_all_entries(remove_entries(all_entries, [target]))
        return DeletionResult(kind="entries", deleted=[target])

    def delete_by_project(self, project: Optional[str] = None,
                          criteria: DeleteCriteria = None) -> DeletionResult:
        all_entries = self.store.read_all_entries()
        if not all_entries:
            raise NotFoundError("No log entries found")

        candidates = all_entries
        if project:
            candidates = [entry for entry in candidates if matches_project_tree(entry.project, project)]
            if not candidates:
                raise NotFoundError(f"No entries found for project matching: {project}")

        if isinstance(criteria, Last):
            candidates = [candidates[-1]]
        elif isinstance(criteria, InPeriod):
            candidates = calculator.filter_by_period(candidates, criteria.period, self.clock())
            if not candidates:
                project_filter = f' for project matching "{project}"' if project else ""
                raise NotFoundError(f"No entries found {criteria.label}{project_filter}")

        self.store.write_all_entries(remove_entries(all_entries, candidates))
        return DeletionResult(kind="entries", deleted=candidates)

    def delete_project(self, name: str) -> DeletionResult:
        if not name or not name.strip():
            raise ValidationError("Project name is required")
        wanted = name.strip().lower()

        all_entries = self.store.read_all_entries()
        matching = [entry for entry in all_entries if entry.project.lower() == wanted]
        if not matching:
            raise NotFoundError(f'Project "{name}" not found')

        remaining = [entry for entry in all_entries if entry.project.lower() != wanted]
        self.store.write_all_entries(remaining)
        return DeletionResult(kind="project", deleted=matching, project_name=name)
