from datetime import datetime, timedelta

import pytest

from ttcli.TIMETRACK.store import EntryStore
from ttcli.TIMETRACK.tracker import TimeTracker


class FakeClock:
    """Callable clock the tests move forward by hand."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, minutes: int = 0, seconds: int = 0):
        self.current = self.current + timedelta(minutes=minutes, seconds=seconds)


def local(*args) -> datetime:
    """Aware local datetime, like the tracker's own clock returns."""
    return datetime(*args).astimezone()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(local(2025, 8, 16, 9, 0))


@pytest.fixture()
def store(tmp_path) -> EntryStore:
    return EntryStore(tmp_path / "data")


@pytest.fixture()
def tracker(store, clock) -> TimeTracker:
    return TimeTracker(store=store, clock=clock)


def write_log(store: EntryStore, *rows: str):
    """Write raw rows under the standard header."""
    store.ensure_config_dir()
    store.log_file.write_text(
        "project,date,duration_minutes,description,session_id\n" + "".join(row + "\n" for row in rows),
        encoding="utf-8",
    )
