from datetime import date

import pytest

from conftest import local, write_log
from ttcli.TIMETRACK.errors import NotFoundError, ValidationError
from ttcli.TIMETRACK.model import InPeriod, Last, LogEntry
from ttcli.TIMETRACK.tracker import TimeTracker, remove_entries


def projects_in_log(store):
    return [entry.project for entry in store.read_all_entries()]


def test_tracker_creates_header_only_log(store, clock):
    TimeTracker(store=store, clock=clock)
    assert store.log_file.read_text(encoding="utf-8") == "project,date,duration_minutes,description,session_id\n"


# --- Sessions ---

def test_start_saves_state(tracker, store, clock):
    result = tracker.start("web", "landing page")

    state = store.read_state()
    assert state.project == "web"
    assert state.description == "landing page"
    assert state.start_time == clock()
    assert state.session_id == result.session_id
    assert result.session_id.startswith("sess_")
    assert result.auto_stopped is None


def test_start_requires_project(tracker, store):
    with pytest.raises(ValidationError, match="Project name is required"):
        tracker.start("  ")
    assert store.read_state() is None


def test_start_while_tracking_auto_stops_previous(tracker, store, clock):
    tracker.start("p")
    clock.advance(minutes=50)

    result = tracker.start("q")

    entries = store.read_all_entries()
    assert len(entries) == 1
    assert entries[0].project == "p"
    assert entries[0].duration == 45
    assert entries[0].session_id.startswith("sess_")
    assert result.auto_stopped.actual_minutes == 50
    assert result.auto_stopped.final_minutes == 45
    assert store.read_state().project == "q"


def test_stop_without_session(tracker):
    with pytest.raises(NotFoundError, match="No active tracking session found"):
        tracker.stop()


def test_stop_rounds_and_logs(tracker, store, clock):
    started = tracker.start("web", "landing")
    clock.advance(minutes=52, seconds=40)

    result = tracker.stop()

    assert result.actual_minutes == 53
    assert result.final_minutes == 60
    assert result.rounded
    entry = store.read_all_entries()[0]
    assert entry == LogEntry("web", date(2025, 8, 16), 60, "landing", started.session_id)
    assert store.read_state() is None


def test_stop_no_round_keeps_exact_minutes(tracker, store, clock):
    tracker.start("web")
    clock.advance(minutes=52)

    result = tracker.stop(no_round=True)

    assert result.final_minutes == 52
    assert not result.rounded
    assert store.read_all_entries()[0].duration == 52


def test_short_session_is_not_logged_but_state_clears(tracker, store, clock):
    tracker.start("web")
    clock.advance(minutes=5)

    result = tracker.stop()

    assert result.final_minutes == 0
    assert result.entry is None
    assert store.read_all_entries() == []
    assert store.read_state() is None


def test_session_dated_by_its_start(tracker, store, clock):
    clock.current = local(2025, 8, 16, 23, 30)
    tracker.start("late")
    clock.advance(minutes=60)

    tracker.stop()

    assert store.read_all_entries()[0].date == date(2025, 8, 16)


def test_status(tracker, clock):
    assert not tracker.status().tracking

    tracker.start("web")
    clock.advance(minutes=20)
    status = tracker.status()

    assert status.tracking
    assert status.project == "web"
    assert status.duration_minutes == 20
    assert status.started_at == local(2025, 8, 16, 9, 0)


# --- Manual log ---

def test_log_then_summary_for_the_day(tracker):
    tracker.log("proj", 30, day="2025-08-16")

    result = tracker.summary("day", reference=local(2025, 8, 16, 23, 59))

    assert result.total_minutes == 30
    assert [(g.name, g.minutes) for g in result.groups] == [("proj", 30)]


def test_log_writes_manual_entry(tracker, store):
    result = tracker.log("web", "45", "review, notes", day="2025-08-14", time="14:30")

    entry = store.read_all_entries()[0]
    assert entry.date == date(2025, 8, 14)
    assert entry.duration == 45
    assert entry.description == "review, notes"
    assert entry.is_manual_entry
    assert result.logged_at.hour == 14 and result.logged_at.minute == 30


def test_log_defaults_to_clock_day(tracker, store):
    tracker.log("web", 15)
    assert store.read_all_entries()[0].date == date(2025, 8, 16)


def test_log_time_without_day_uses_clock(tracker, store):
    result = tracker.log("web", 15, time="07:45")

    assert result.logged_at == local(2025, 8, 16, 7, 45)
    assert store.read_all_entries()[0].date == date(2025, 8, 16)


def test_multi_line_description_stays_one_row(tracker, store):
    tracker.log("p", 30, "line1\nline2\r\n  line3", day="2025-08-16")
    tracker.start("q", "first\nsecond")
    tracker.clock.advance(minutes=30)
    tracker.stop()

    entries = store.read_all_entries()
    assert [(e.project, e.description) for e in entries] == [
        ("p", "line1 line2 line3"),
        ("q", "first second"),
    ]
    assert entries[0].is_manual_entry
    assert entries[1].is_session_entry
    assert [e.project for e in tracker.logs(manual_only=True).entries] == ["p"]
    assert len(store.log_file.read_text(encoding="utf-8").splitlines()) == 3


@pytest.mark.parametrize("duration, message", [
    (None, "must be a number"),
    ("", "must be a number"),
    ("abc", "must be a number"),
    ("0", "Duration must be positive"),
    (-5, "Duration must be positive"),
])
def test_log_rejects_bad_durations_without_writing(tracker, store, duration, message):
    with pytest.raises(ValidationError, match=message):
        tracker.log("web", duration)
    assert store.read_all_entries() == []


def test_log_rejects_bad_day_and_time(tracker, store):
    with pytest.raises(ValidationError, match="YYYY-MM-DD"):
        tracker.log("web", 30, day="2025-02-30")
    with pytest.raises(ValidationError, match="HH:MM"):
        tracker.log("web", 30, day="2025-08-16", time="25:00")
    with pytest.raises(ValidationError, match="Project name is required"):
        tracker.log("", 30)
    assert store.read_all_entries() == []


# --- Reports ---

def test_summary_sorts_by_time_then_name(tracker, store):
    write_log(
        store,
        "b,2025-08-16,30,,",
        "a,2025-08-16,30,,",
        "c,2025-08-16,90,,",
        "a,2025-08-15,15,,",
    )

    result = tracker.summary("all")

    assert [(g.name, g.minutes) for g in result.groups] == [("c", 90), ("a", 45), ("b", 30)]
    assert result.total_minutes == 165


def test_summary_project_filter_includes_sub_projects(tracker, store):
    write_log(
        store,
        "business,2025-08-16,25,,",
        "business/quote,2025-08-16,30,,",
        "home,2025-08-16,60,,",
    )

    result = tracker.summary("all", project="Business")

    assert sorted(g.name for g in result.groups) == ["business", "business/quote"]
    assert result.total_minutes == 55
    assert result.project_filter == "Business"


def test_summary_respects_period(tracker, store):
    write_log(store, "old,2025-07-20,30,,", "new,2025-08-11,15,,")

    assert tracker.summary("week").total_minutes == 15
    assert tracker.summary("month").total_minutes == 15
    assert tracker.summary("all").total_minutes == 45
    assert tracker.summary("day").groups == []


def test_summary_invalid_period(tracker):
    with pytest.raises(ValidationError, match="Invalid period"):
        tracker.summary("year")


def test_logs_filters(tracker, store):
    write_log(
        store,
        "a,2025-08-16,30,with note,sess_x_1",
        "b,2025-08-16,20,,manual_x_2",
        "c,2025-08-16,10,,",
    )

    assert [e.project for e in tracker.logs().entries] == ["a", "b", "c"]
    assert [e.project for e in tracker.logs(sessions_only=True).entries] == ["a"]
    assert [e.project for e in tracker.logs(manual_only=True).entries] == ["b"]
    assert [e.project for e in tracker.logs(with_descriptions=True).entries] == ["a"]
    assert tracker.logs().total_minutes == 60

    with pytest.raises(ValidationError):
        tracker.logs(sessions_only=True, manual_only=True)


def test_list_projects_rolls_up_hierarchy(tracker, store):
    write_log(
        store,
        "business,2025-08-16,25,,",
        "business/quote,2025-08-15,30,,",
        "business/invoicing,2025-08-14,45,,",
        "home,2025-08-10,10,,",
    )

    result = tracker.list_projects()

    assert sorted(result.roots) == ["business", "home"]
    assert result.stats["business"].total_minutes == 100
    assert result.stats["business"].direct_minutes == 25
    assert result.total_minutes == 110
    assert result.total_entries == 4


# --- Deletion ---

def test_remove_entries_removes_one_row_per_target():
    a = LogEntry("web", date(2025, 8, 16), 30)
    b = LogEntry("web", date(2025, 8, 16), 30)
    c = LogEntry("api", date(2025, 8, 16), 15)

    remaining = remove_entries([a, b, c], [b])

    assert len(remaining) == 2
    assert remaining[0] is a
    assert remaining[1] is c


def test_delete_entry_by_index(tracker, store):
    write_log(store, "a,2025-08-14,10,,", "b,2025-08-15,20,,", "c,2025-08-16,30,,")

    result = tracker.delete_entry(2)

    assert [e.project for e in result.deleted] == ["b"]
    assert projects_in_log(store) == ["a", "c"]


def test_delete_entry_index_refers_to_period_view(tracker, store):
    write_log(store, "a,2025-08-01,10,,", "b,2025-08-16,20,,", "c,2025-08-16,30,,")

    tracker.delete_entry("2", "day")

    assert projects_in_log(store) == ["a", "b"]


@pytest.mark.parametrize("index", [0, 4, -1])
def test_delete_entry_out_of_range(tracker, store, index):
    write_log(store, "a,2025-08-14,10,,", "b,2025-08-15,20,,", "c,2025-08-16,30,,")

    with pytest.raises(ValidationError, match="Invalid index. Use a number between 1 and 3"):
        tracker.delete_entry(index)
    assert len(store.read_all_entries()) == 3


def test_delete_entry_requires_number(tracker):
    with pytest.raises(ValidationError, match="index to delete is required"):
        tracker.delete_entry("first")


def test_delete_entry_removes_only_one_duplicate(tracker, store):
    write_log(store, "web,2025-08-16,30,,", "web,2025-08-16,30,,")

    tracker.delete_entry(1)
    assert len(store.read_all_entries()) == 1

    tracker.delete_entry(1)
    assert store.read_all_entries() == []


def test_delete_entry_keeps_other_rows_verbatim(tracker, store):
    write_log(store, "a,2025-08-15,10", "b,2025-08-16,20,,manual_x_1")

    tracker.delete_entry(2)

    assert store.log_file.read_text(encoding="utf-8").splitlines()[1] == "a,2025-08-15,10"


def test_delete_by_project_removes_all_matches(tracker, store):
    write_log(store, "business,2025-08-10,10,,", "business/quote,2025-08-16,20,,", "home,2025-08-16,30,,")

    result = tracker.delete_by_project("business")

    assert result.total_minutes == 30
    assert projects_in_log(store) == ["home"]


def test_delete_by_project_last(tracker, store):
    write_log(store, "web,2025-08-10,10,,", "home,2025-08-16,30,,", "web,2025-08-15,20,,")

    result = tracker.delete_by_project("web", Last())

    assert [(e.project, e.duration) for e in result.deleted] == [("web", 20)]
    assert sorted(e.duration for e in store.read_all_entries()) == [10, 30]


def test_delete_last_without_project(tracker, store):
    write_log(store, "a,2025-08-10,10,,", "b,2025-08-16,30,,")

    tracker.delete_by_project(None, Last())

    assert projects_in_log(store) == ["a"]


def test_delete_today_only(tracker, store):
    write_log(store, "web,2025-08-15,10,,", "web,2025-08-16,20,,", "home,2025-08-16,30,,")

    result = tracker.delete_by_project("web", InPeriod("day"))

    assert [e.duration for e in result.deleted] == [20]
    assert sorted(e.duration for e in store.read_all_entries()) == [10, 30]


def test_delete_today_with_no_match_leaves_log_unchanged(tracker, store):
    write_log(store, "biz,2025-08-15,10,,", "home,2025-08-16,30,,")
    before = store.log_file.read_text(encoding="utf-8")

    with pytest.raises(NotFoundError, match='No entries found today for project matching "biz"'):
        tracker.delete_by_project("biz", InPeriod("day"))

    assert store.log_file.read_text(encoding="utf-8") == before


def test_delete_by_project_errors(tracker, store):
    with pytest.raises(NotFoundError, match="No log entries found"):
        tracker.delete_by_project("web")

    write_log(store, "home,2025-08-16,30,,")
    with pytest.raises(NotFoundError, match="No entries found for project matching: web"):
        tracker.delete_by_project("web")


def test_delete_project_is_exact_and_case_insensitive(tracker, store):
    write_log(store, "web,2025-08-15,10,,", "Web,2025-08-16,20,,", "web/api,2025-08-16,30,,")

    result = tracker.delete_project("WEB")

    assert result.kind == "project"
    assert len(result.deleted) == 2
    assert result.total_minutes == 30
    assert projects_in_log(store) == ["web/api"]


def test_delete_project_not_found(tracker, store):
    write_log(store, "web,2025-08-15,10,,")

    with pytest.raises(NotFoundError, match='Project "nope" not found'):
        tracker.delete_project("nope")


def test_delete_migrates_legacy_rows(tracker, store):
    write_log(store, "old,2025-08-10T09:00:00,2025-08-10T09:50:00", "web,2025-08-16,20,,")

    tracker.delete_project("web")

    line = store.log_file.read_text(encoding="utf-8").splitlines()[1]
    assert line.startswith("old,2025-08-10,50,,sess_legacy_")
