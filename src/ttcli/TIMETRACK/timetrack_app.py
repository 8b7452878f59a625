# TIMETRACK/timetrack_app.py
import json
import logging
import sys
from contextlib import contextmanager
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from .calculator import parse_reference
from .config import CONFIG_DIR_ENV, get_config_dir, setup_logging
from .errors import TimeTrackerError
from .formatter import error_json, render, status_line, to_json
from .model import criteria_from_flags
from .tracker import TimeTracker

logger = logging.getLogger(__name__)

console = Console()
timetrack_app = typer.Typer(
    help="tt: track time per project from the command line.",
    add_completion=False,
)
projects_app = typer.Typer(help="List projects or delete one with all its entries.")
timetrack_app.add_typer(projects_app, name="projects")


def get_tracker(ctx: typer.Context) -> TimeTracker:
    config_dir = (ctx.obj or {}).get("config_dir")
    return TimeTracker(get_config_dir(config_dir))


def emit(result, as_json: bool):
    if as_json:
        typer.echo(json.dumps(to_json(result), indent=2))
    else:
        render(result, console)


def fail(message: str, as_json: bool = False, command: Optional[str] = None):
    if as_json:
        typer.echo(json.dumps(error_json(message, command), indent=2))
    else:
        console.print(f"[bold red]Error:[/bold red] {escape(message)}")
    raise typer.Exit(code=1)


@contextmanager
def reporting_errors(command: str, as_json: bool):
    """Turn tracker errors into an error message and exit code 1."""
    try:
        yield
    except TimeTrackerError as exc:
        logger.debug("%s failed", command, exc_info=True)
        fail(str(exc), as_json, command)


# --- Commands ---

@timetrack_app.callback()
def main(
    ctx: typer.Context,
    config_dir: Optional[str] = typer.Option(None, "--config-dir", envvar=CONFIG_DIR_ENV,
                                             help="Data directory (default: ~/.timetracker)."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging on stderr."),
):
    """
    Track time per project: start/stop sessions, log time afterwards, and review summaries.
    """
    setup_logging(verbose)
    ctx.obj = {"config_dir": config_dir}


@timetrack_app.command()
def start(
    ctx: typer.Context,
    project: str = typer.Argument(..., help="Project to track. Use '/' for sub-projects, e.g. 'business/quote'."),
    description: Optional[str] = typer.Argument(None, help="What you are working on."),
    no_round: bool = typer.Option(False, "--no-round", help="Log an auto-stopped session with its exact duration."),
    json_output: bool = typer.Option(False, "--json", help="Print the result as JSON."),
):
    """
    Start tracking a project. A running session is stopped and logged first.
    """
    with reporting_errors("start", json_output):
        result = get_tracker(ctx).start(project, description, no_round=no_round)
    emit(result, json_output)


@timetrack_app.command()
def stop(
    ctx: typer.Context,
    no_round: bool = typer.Option(False, "--no-round", help="Log the exact duration instead of rounding to 15 minutes."),
    json_output: bool = typer.Option(False, "--json", help="Print the result as JSON."),
):
    """
    Stop the running session and log it, rounded to the nearest 15 minutes.
    """
    with reporting_errors("stop", json_output):
        result = get_tracker(ctx).stop(no_round=no_round)
    emit(result, json_output)


@timetrack_app.command("log")
def log_time(
    ctx: typer.Context,
    project: str = typer.Argument(..., help="Project the time belongs to."),
    duration: str = typer.Argument(..., help="Duration in minutes."),
    description: Optional[str] = typer.Argument(None, help="Optional description."),
    day: Optional[str] = typer.Option(None, "--day", "-d", help="Day of the work (YYYY-MM-DD, defaults to today)."),
    time: Optional[str] = typer.Option(None, "--time", "-t", help="Start time (HH:MM, 24-hour)."),
    json_output: bool = typer.Option(False, "--json", help="Print the result as JSON."),
):
    """
    Log time after the fact. Manual entries keep their exact duration.
    """
    with reporting_errors("log", json_output):
        result = get_tracker(ctx).log(project, duration, description, day=day, time=time)
    emit(result, json_output)


@timetrack_app.command()
def summary(
    ctx: typer.Context,
    period: str = typer.Argument("all", help="day, week, month or all."),
    project: Optional[str] = typer.Option(None, "--project", "-p", help="Only projects matching this name (sub-projects included)."),
    at: Optional[str] = typer.Option(None, "--at", help="Reference time instead of now (e.g. '2025-08-16', 'yesterday')."),
    json_output: bool = typer.Option(False, "--json", help="Print the result as JSON."),
):
    """
    Show time per project for a period, largest first.
    """
    with reporting_errors("summary", json_output):
        result = get_tracker(ctx).summary(period, parse_reference(at), project=project)
    emit(result, json_output)


@timetrack_app.command()
def logs(
    ctx: typer.Context,
    period: str = typer.Argument("all", help="day, week, month or all."),
    sessions_only: bool = typer.Option(False, "--sessions-only", help="Only entries recorded with start/stop."),
    manual_only: bool = typer.Option(False, "--manual-only", help="Only entries added with 'log'."),
    with_descriptions: bool = typer.Option(False, "--with-descriptions", help="Only entries that have a description."),
    at: Optional[str] = typer.Option(None, "--at", help="Reference time instead of now."),
    json_output: bool = typer.Option(False, "--json", help="Print the result as JSON."),
):
    """
    List individual entries for a period. The numbers shown are what 'delete' takes.
    """
    with reporting_errors("logs", json_output):
        result = get_tracker(ctx).logs(
            period,
            parse_reference(at),
            sessions_only=sessions_only,
            manual_only=manual_only,
            with_descriptions=with_descriptions,
        )
    emit(result, json_output)


@timetrack_app.command()
def delete(
    ctx: typer.Context,
    index: Optional[str] = typer.Argument(None, help="Entry number as shown by 'logs' for the same period."),
    period: str = typer.Argument("all", help="Period the index refers to: day, week, month or all."),
    project: Optional[str] = typer.Option(None, "--project", "-p", help="Delete entries of projects matching this name."),
    last: bool = typer.Option(False, "--last", help="Only the most recent matching entry."),
    today: bool = typer.Option(False, "--today", help="Only matching entries from today."),
    week: bool = typer.Option(False, "--week", help="Only matching entries from this week."),
    month: bool = typer.Option(False, "--month", help="Only matching entries from this month."),
    at: Optional[str] = typer.Option(None, "--at", help="Reference time for the index view."),
    json_output: bool = typer.Option(False, "--json", help="Print the result as JSON."),
):
    """
    Delete one entry by its number, or several by project and/or time range.
    """
    by_criteria = bool(project or last or today or week or month)
    if index is not None and by_criteria:
        fail("Cannot combine an entry index with --project, --last, --today, --week or --month.",
             json_output, "delete")
    if index is None and not by_criteria:
        fail("Specify an entry index, or --project / --last / --today / --week / --month.",
             json_output, "delete")

    with reporting_errors("delete", json_output):
        if index is not None:
            result = get_tracker(ctx).delete_entry(index, period, parse_reference(at))
        else:
            criteria = criteria_from_flags(last=last, today=today, week=week, month=month)
            result = get_tracker(ctx).delete_by_project(project, criteria)
    emit(result, json_output)


@timetrack_app.command()
def status(
    ctx: typer.Context,
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Prompt mode: 'project (duration)' or nothing, never an error."),
    json_output: bool = typer.Option(False, "--json", help="Print the result as JSON."),
):
    """
    Show the running session, if any.
    """
    if quiet:
        try:
            line = status_line(get_tracker(ctx).status())
        except (TimeTrackerError, OSError):
            logger.debug("quiet status failed", exc_info=True)
            return
        if line:
            typer.echo(line, nl=False)
        return

    with reporting_errors("status", json_output):
        result = get_tracker(ctx).status()
    emit(result, json_output)


@timetrack_app.command("export")
def export_log(
    ctx: typer.Context,
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Write to this file instead of stdout."),
):
    """
    Dump every entry as CSV.
    """
    with reporting_errors("export", False):
        tracker = get_tracker(ctx)
        if output is None:
            tracker.export(sys.stdout)
            return
        try:
            with open(output, "w", encoding="utf-8", newline="") as f:
                count = tracker.export(f)
        except OSError as exc:
            fail(f"Could not write {output}: {exc}")
    console.print(f"[green]Exported {count} entries to '{escape(output)}'.[/green]")


# --- Projects ---

@projects_app.callback(invoke_without_command=True)
def projects(
    ctx: typer.Context,
    raw: bool = typer.Option(False, "--raw", help="Only project names, one per line."),
    json_output: bool = typer.Option(False, "--json", help="Print the result as JSON."),
):
    """
    List projects with totals rolled up through the '/' hierarchy.
    """
    if ctx.invoked_subcommand is not None:
        return

    with reporting_errors("projects", json_output):
        result = get_tracker(ctx).list_projects()
    if raw:
        for name in sorted(result.stats):
            typer.echo(name)
        return
    emit(result, json_output)


@projects_app.command("delete")
def delete_project(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Exact project name (case-insensitive)."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Assume 'yes' to the confirmation prompt."),
    json_output: bool = typer.Option(False, "--json", help="Print the result as JSON."),
):
    """
    Delete a project and every entry logged to it.
    """
    if not yes:
        confirm = typer.confirm(f"Are you sure you want to delete project '{name}' and all its entries?")
        if not confirm:
            console.print("Deletion cancelled.")
            raise typer.Exit()

    with reporting_errors("projects delete", json_output):
        result = get_tracker(ctx).delete_project(name)
    emit(result, json_output)
