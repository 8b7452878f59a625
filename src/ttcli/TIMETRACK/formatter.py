# TIMETRACK/formatter.py
"""
Turns tracker results into JSON-ready dicts or rich console output.

The tracker itself never prints; commands pick one of the two shapes depending
on --json.
"""
from datetime import datetime
from typing import Dict, List, Optional

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from .calculator import format_duration, period_display
from .model import (
    DeletionResult, LogEntry, LogResult, LogsResult, ProjectsResult, StartResult,
    StatusResult, StopResult, SummaryResult,
)


def _iso(moment: Optional[datetime]) -> Optional[str]:
    return moment.isoformat() if moment else None


def _timestamp() -> str:
    return datetime.now().astimezone().isoformat()


def _display_time(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%d %H:%M")


# --- JSON ---

def _entry_json(entry: LogEntry) -> Dict:
    return {
        "project": entry.project,
        "date": entry.date.isoformat(),
        "duration_minutes": entry.duration,
        "description": entry.description,
    }


def _stop_json(result: StopResult) -> Dict:
    return {
        "type": "stop",
        "timestamp": _timestamp(),
        "project": result.project,
        "duration_minutes": result.final_minutes,
        "actual_minutes": result.actual_minutes,
        "started_at": _iso(result.started_at),
        "stopped_at": _iso(result.stopped_at),
        "description": result.description,
        "logged": result.entry is not None,
    }


def to_json(result) -> Dict:
    if isinstance(result, StartResult):
        return {
            "operation": {
                "type": "start",
                "timestamp": _timestamp(),
                "project": result.project,
                "started_at": _iso(result.started_at),
                "description": result.description,
                "session_id": result.session_id,
                "auto_stopped": _stop_json(result.auto_stopped) if result.auto_stopped else None,
            }
        }
    if isinstance(result, StopResult):
        return {"operation": _stop_json(result)}
    if isinstance(result, LogResult):
        return {
            "operation": {
                "type": "log",
                "timestamp": _timestamp(),
                "project": result.entry.project,
                "duration_minutes": result.entry.duration,
                "date": result.entry.date.isoformat(),
                "description": result.entry.description,
            }
        }
    if isinstance(result, SummaryResult):
        projects = [{"name": g.name, "duration_minutes": g.minutes} for g in result.groups]
        return {
            "summary": {
                "period": result.period,
                "project_filter": result.project_filter,
                "projects": projects,
                "total_minutes": result.total_minutes,
                "total_projects": len(projects),
            }
        }
    if isinstance(result, LogsResult):
        entries = []
        for index, entry in enumerate(result.entries, start=1):
            item = {"index": index}
            item.update(_entry_json(entry))
            item["is_manual_entry"] = entry.is_manual_entry
            entries.append(item)
        return {
            "logs": {
                "period": result.period,
                "entries": entries,
                "total_minutes": result.total_minutes,
                "total_entries": len(entries),
            }
        }
    if isinstance(result, ProjectsResult):
        listing = [
            {
                "name": name,
                "total_minutes": stats.total_minutes,
                "direct_minutes": stats.direct_minutes,
                "entry_count": stats.entry_count,
                "last_used": stats.last_used.isoformat(),
                "children": list(stats.children),
            }
            for name, stats in result.stats.items()
        ]
        listing.sort(key=lambda p: p["last_used"], reverse=True)
        return {
            "projects": {
                "list": listing,
                "total_projects": len(listing),
                "total_minutes": result.total_minutes,
                "total_entries": result.total_entries,
            }
        }
    if isinstance(result, DeletionResult):
        payload = {
            "type": result.kind,
            "deleted_count": len(result.deleted),
            "total_minutes_deleted": result.total_minutes,
            "deleted_entries": [_entry_json(entry) for entry in result.deleted],
        }
        if result.project_name is not None:
            payload["project_name"] = result.project_name
        return {"deletion": payload}
    if isinstance(result, StatusResult):
        return {
            "status": {
                "tracking": result.tracking,
                "project": result.project,
                "duration_minutes": result.duration_minutes,
                "started_at": _iso(result.started_at),
            }
        }
    raise TypeError(f"Cannot format {type(result).__name__}")


def error_json(message: str, command: Optional[str] = None) -> Dict:
    return {"error": {"message": message, "command": command, "timestamp": _timestamp()}}


# --- Console ---

def status_line(result: StatusResult) -> str:
    """One-line status for shell prompts; empty when idle."""
    if not result.tracking:
        return ""
    return f"{result.project} ({format_duration(result.duration_minutes)})"


def _print_stop(console: Console, result: StopResult, prefix: str = "Stopped tracking"):
    message = f'{prefix} "[bold cyan]{escape(result.project)}[/bold cyan]" - {format_duration(result.final_minutes)}'
    if result.description:
        message += f" - {escape(result.description)}"
    console.print(message)
    console.print(f"From: {_display_time(result.started_at)} to {_display_time(result.stopped_at)}")
    if result.entry is None:
        console.print("[yellow]Session too short to count, nothing logged.[/yellow]")
    elif result.rounded:
        console.print(f"[dim](Rounded from {format_duration(result.actual_minutes)} to nearest 15 minutes)[/dim]")


def _entries_table(entries: List[LogEntry], numbered: bool = False, source: bool = False) -> Table:
    table = Table(show_header=True, header_style="bold magenta", box=box.ROUNDED)
    if numbered:
        table.add_column("#", justify="right", style="dim")
    table.add_column("Project", style="cyan")
    table.add_column("Duration", justify="right")
    table.add_column("Date", justify="center")
    if source:
        table.add_column("Source", justify="center")
        table.add_column("Description")
    for index, entry in enumerate(entries, start=1):
        row = [str(index)] if numbered else []
        row.extend([entry.project, format_duration(entry.duration), entry.date.isoformat()])
        if source:
            row.append("manual" if entry.is_manual_entry else "session")
            row.append(entry.description or "")
        table.add_row(*row)
    return table


def render(result, console: Console):
    if isinstance(result, StartResult):
        stopped = result.auto_stopped
        if stopped is not None and stopped.entry is not None:
            if stopped.rounded:
                console.print(f"[yellow]Auto-stopped: {escape(stopped.project)} "
                              f"({format_duration(stopped.actual_minutes)} → {format_duration(stopped.final_minutes)})[/yellow]")
            else:
                console.print(f"[yellow]Auto-stopped: {escape(stopped.project)} ({format_duration(stopped.final_minutes)})[/yellow]")
        message = f'Started tracking "[bold cyan]{escape(result.project)}[/bold cyan]"'
        if result.description:
            message += f" - {escape(result.description)}"
        console.print(message)

    elif isinstance(result, StopResult):
        _print_stop(console, result)

    elif isinstance(result, LogResult):
        entry = result.entry
        message = f"[green]Logged {format_duration(entry.duration)} for project: {escape(entry.project)}[/green]"
        if entry.description:
            message += f" - {escape(entry.description)}"
        console.print(message)
        console.print(f"Date: {entry.date.isoformat()}")

    elif isinstance(result, SummaryResult):
        project_filter = f" ({escape(result.project_filter)})" if result.project_filter else ""
        title = f"Time Summary - {period_display(result.period)}{project_filter}"
        if not result.groups:
            console.print(f"[bold cyan]{title}[/bold cyan]")
            console.print("[yellow]No time tracked in this period.[/yellow]")
            return
        table = Table(title=f"[bold cyan]{title}[/bold cyan]", show_header=True,
                      header_style="bold magenta", box=box.ROUNDED)
        table.add_column("Project", style="cyan")
        table.add_column("Duration", justify="right")
        for group in result.groups:
            table.add_row(group.name, format_duration(group.minutes))
        table.add_section()
        table.add_row(Text("Total", style="bold"), Text(format_duration(result.total_minutes), style="bold"))
        console.print(table)

    elif isinstance(result, LogsResult):
        title = f"Log Entries - {period_display(result.period)}"
        console.print(f"[bold cyan]{title}[/bold cyan]")
        if not result.entries:
            console.print("[yellow]No entries found for this period.[/yellow]")
            return
        console.print(_entries_table(result.entries, numbered=True, source=True))
        console.print(f"[bold]Total: {format_duration(result.total_minutes)}[/bold]")

    elif isinstance(result, ProjectsResult):
        _render_projects(result, console)

    elif isinstance(result, DeletionResult):
        total = format_duration(result.total_minutes)
        if result.kind == "project":
            console.print(f'[green]Deleted project "{escape(result.project_name)}" and '
                          f'{len(result.deleted)} entries ({total} total)[/green]')
        elif len(result.deleted) == 1:
            entry = result.deleted[0]
            console.print(f"[green]Deleted entry: {escape(entry.project)}: "
                          f"{format_duration(entry.duration)} ({entry.date.isoformat()})[/green]")
        else:
            console.print(f"[green]Deleted {len(result.deleted)} entries ({total} total)[/green]")
            console.print(_entries_table(result.deleted))

    elif isinstance(result, StatusResult):
        if not result.tracking:
            console.print("Not tracking.")
            return
        console.print(f"Tracking \"[bold cyan]{escape(result.project)}[/bold cyan]\" for "
                      f"{format_duration(result.duration_minutes)} (since {_display_time(result.started_at)})")

    else:
        raise TypeError(f"Cannot render {type(result).__name__}")


def _render_projects(result: ProjectsResult, console: Console):
    if not result.stats:
        console.print("[yellow]No projects found.[/yellow]")
        return

    table = Table(
        title="[bold cyan]Projects[/bold cyan]",
        show_header=True,
        header_style="bold magenta",
        box=box.ROUNDED,
    )
    table.add_column("Project", justify="left")
    table.add_column("Total", justify="right")
    table.add_column("Direct", justify="right", style="dim")
    table.add_column("Entries", justify="right")
    table.add_column("Last Used", justify="center")

    def by_last_used(names):
        return sorted(names, key=lambda name: result.stats[name].last_used, reverse=True)

    def add_project_rows_recursive(names: List[str], level: int = 0):
        for name in by_last_used(names):
            stats = result.stats[name]
            indent = "  " * level
            label = f"{indent}↳ {name}" if level else name
            table.add_row(
                Text(label, style="cyan" if level == 0 else ""),
                format_duration(stats.total_minutes),
                format_duration(stats.direct_minutes),
                f"{stats.entry_count} entries",
                stats.last_used.isoformat(),
            )
            if stats.children:
                add_project_rows_recursive(stats.children, level + 1)

    add_project_rows_recursive(result.roots)
    console.print(table)
