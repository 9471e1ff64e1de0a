"""
DevTrack CLI - Typer Commands

Each invocation loads the saved working state from the data directory into
a fresh in-memory store, runs one command, and writes the state back when
the command changed anything.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from devtrack.config import DevTrackConfig, load_config
from devtrack.dates import format_datetime, today
from devtrack.exceptions import DevTrackError
from devtrack.persistence.files import BackupManager
from devtrack.persistence.repository import DevTrackRepository
from devtrack.tracker import DevTracker

logger = logging.getLogger(__name__)
console = Console()

T = TypeVar("T")

app = typer.Typer(
    name="devtrack",
    help="Track coding sessions, commits, tasks, goals, issues and breaks",
    add_completion=False,
    no_args_is_help=True,
)
session_app = typer.Typer(help="Coding sessions", no_args_is_help=True)
task_app = typer.Typer(help="Tasks", no_args_is_help=True)
goals_app = typer.Typer(help="Daily goals", no_args_is_help=True)
break_app = typer.Typer(help="Breaks", no_args_is_help=True)
issue_app = typer.Typer(help="Issue tracker", no_args_is_help=True)
git_app = typer.Typer(help="Git sync log", no_args_is_help=True)
metrics_app = typer.Typer(help="Daily code metrics", no_args_is_help=True)

app.add_typer(session_app, name="session")
app.add_typer(task_app, name="task")
app.add_typer(goals_app, name="goals")
app.add_typer(break_app, name="break")
app.add_typer(issue_app, name="issue")
app.add_typer(git_app, name="git")
app.add_typer(metrics_app, name="metrics")


def _run(
    action: Callable[[DevTracker, DevTrackConfig], Awaitable[T]],
    mutating: bool = False,
) -> T:
    """Run one command against a store loaded from the data directory."""

    async def runner() -> T:
        config = load_config()
        repository = DevTrackRepository(config.tzinfo)
        tracker = DevTracker(repository, BackupManager(config.data_path))
        await tracker.load_latest()

        result = await action(tracker, config)

        if mutating:
            await tracker.save_state()
            if config.snapshot_on_write:
                await tracker.daily_snapshot()
        return result

    try:
        return asyncio.run(runner())
    except DevTrackError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


def _day(config: DevTrackConfig, date: str | None) -> str:
    return date or today(config.tzinfo)


def _short_time(value: Any) -> str:
    text = format_datetime(value) if value else None
    return text[11:16] if text else "-"


def _minutes(seconds: int | None) -> str:
    if not seconds:
        return "-"
    return f"{seconds // 60}m"


# =============================================================================
# SESSIONS
# =============================================================================


@session_app.command("start")
def session_start(
    project: str = typer.Argument(..., help="Project name"),
    notes: str = typer.Option(None, "--notes", help="Session notes"),
) -> None:
    """Start a coding session."""
    session = _run(lambda t, c: t.start_session(project, notes=notes), mutating=True)
    console.print(f"[green]Started session {session.id}[/green] for [cyan]{session.project_name}[/cyan]")


@session_app.command("end")
def session_end(session_id: int = typer.Argument(..., help="Session id")) -> None:
    """End a coding session and record its duration."""
    session = _run(lambda t, c: t.end_session(session_id), mutating=True)
    console.print(f"[green]Ended session {session.id}[/green] after {_minutes(session.duration)}")


@session_app.command("list")
def session_list(
    date: str = typer.Option(None, "--date", "-d", help="Day (YYYY-MM-DD), default today"),
    active: bool = typer.Option(False, "--active", help="Only sessions in progress"),
) -> None:
    """List sessions for a day."""

    async def action(t: DevTracker, c: DevTrackConfig):
        if active:
            return await t.repository.get_active_sessions()
        return await t.repository.get_sessions_for_date(_day(c, date))

    sessions = _run(action)
    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", style="cyan")
    table.add_column("Project", style="green")
    table.add_column("Start", style="dim")
    table.add_column("End", style="dim")
    table.add_column("Duration", style="yellow")
    table.add_column("Active")
    for s in sessions:
        table.add_row(
            str(s.id),
            s.project_name,
            _short_time(s.start_time),
            _short_time(s.end_time),
            _minutes(s.duration),
            "yes" if s.is_active else "",
        )
    console.print(table)


# =============================================================================
# COMMITS
# =============================================================================


@app.command()
def commit(
    repository: str = typer.Argument(..., help="Repository name"),
    message: str = typer.Argument(..., help="Commit message"),
    lines: int = typer.Option(..., "--lines", "-l", help="Total lines changed"),
    added: int = typer.Option(0, "--added", help="Lines added"),
    deleted: int = typer.Option(0, "--deleted", help="Lines deleted"),
    files: int = typer.Option(1, "--files", help="Files changed"),
    commit_hash: str = typer.Option(None, "--hash", help="Commit hash"),
    branch: str = typer.Option("main", "--branch", "-b", help="Branch"),
) -> None:
    """Log a commit."""
    logged = _run(
        lambda t, c: t.log_commit(
            repository,
            message,
            lines,
            lines_added=added,
            lines_deleted=deleted,
            files_changed=files,
            commit_hash=commit_hash,
            branch=branch,
        ),
        mutating=True,
    )
    console.print(f"[green]Logged commit {logged.id}[/green] ({logged.lines_changed} lines)")


# =============================================================================
# TASKS
# =============================================================================


@task_app.command("add")
def task_add(
    title: str = typer.Argument(..., help="Task title"),
    description: str = typer.Option(None, "--description", help="Task description"),
    done: bool = typer.Option(False, "--done", help="Add as already completed"),
) -> None:
    """Add a task."""
    task = _run(lambda t, c: t.add_task(title, description=description, completed=done), mutating=True)
    console.print(f"[green]Added task {task.id}[/green]: {task.title}")


@task_app.command("done")
def task_done(task_id: int = typer.Argument(..., help="Task id")) -> None:
    """Mark a task completed."""
    task = _run(lambda t, c: t.complete_task(task_id), mutating=True)
    console.print(f"[green]Completed task {task.id}[/green]: {task.title}")


@task_app.command("list")
def task_list(
    date: str = typer.Option(None, "--date", "-d", help="Day (YYYY-MM-DD), default today"),
) -> None:
    """List tasks created on a day."""
    tasks = _run(lambda t, c: t.repository.get_tasks_for_date(_day(c, date)))
    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Done", style="green")
    for task in tasks:
        table.add_row(str(task.id), task.title, "✓" if task.completed else "")
    console.print(table)


# =============================================================================
# GOALS
# =============================================================================


@goals_app.command("set")
def goals_set(
    minutes: int = typer.Option(..., "--minutes", help="Coding time target in minutes"),
    commits: int = typer.Option(..., "--commits", help="Commit count target"),
    tasks: int = typer.Option(..., "--tasks", help="Completed task target"),
    date: str = typer.Option(None, "--date", "-d", help="Day (YYYY-MM-DD), default today"),
) -> None:
    """Set the goals for a day."""
    goals = _run(lambda t, c: t.set_goals(_day(c, date), minutes, commits, tasks), mutating=True)
    console.print(
        f"[green]Goals for {goals.date}:[/green] {goals.coding_time_target}m, "
        f"{goals.commits_target} commits, {goals.tasks_target} tasks"
    )


# =============================================================================
# BREAKS
# =============================================================================


@break_app.command("start")
def break_start(
    kind: str = typer.Option("short", "--type", "-t", help="short, long or custom"),
    minutes: int = typer.Option(5, "--minutes", "-m", help="Planned length in minutes"),
) -> None:
    """Start a break."""
    record = _run(lambda t, c: t.start_break(kind, minutes), mutating=True)
    console.print(f"[green]Started {record.type.value} break[/green] ({record.duration} minutes)")


@break_app.command("end")
def break_end() -> None:
    """End the active break."""
    record = _run(lambda t, c: t.end_break(), mutating=True)
    if record is None:
        console.print("[yellow]No active break.[/yellow]")
    else:
        console.print(f"[green]Ended {record.type.value} break[/green]")


# =============================================================================
# ISSUES
# =============================================================================


@issue_app.command("add")
def issue_add(
    title: str = typer.Argument(..., help="Issue title"),
    description: str = typer.Option(None, "--description", help="Description"),
    priority: str = typer.Option("medium", "--priority", "-p", help="low, medium, high, critical"),
    category: str = typer.Option("bug", "--category", "-c", help="bug, feature, enhancement, task"),
    repository: str = typer.Option(None, "--repo", help="Repository"),
) -> None:
    """Open an issue."""
    issue = _run(
        lambda t, c: t.create_issue(
            title,
            description=description,
            priority=priority,
            category=category,
            repository=repository,
        ),
        mutating=True,
    )
    console.print(f"[green]Created {issue.category.value} {issue.id}[/green]: {issue.title}")


@issue_app.command("update")
def issue_update(
    issue_id: int = typer.Argument(..., help="Issue id"),
    status: str = typer.Option(None, "--status", "-s", help="open, in-progress, resolved, closed"),
    priority: str = typer.Option(None, "--priority", "-p", help="low, medium, high, critical"),
    assignee: str = typer.Option(None, "--assignee", help="Assignee"),
) -> None:
    """Update an issue."""
    changes = {
        key: value
        for key, value in {"status": status, "priority": priority, "assignee": assignee}.items()
        if value is not None
    }
    if not changes:
        console.print("[yellow]Nothing to update.[/yellow]")
        raise typer.Exit(1)
    issue = _run(lambda t, c: t.update_issue(issue_id, changes), mutating=True)
    console.print(f"[green]Updated issue {issue.id}[/green] ({issue.status.value}, {issue.priority.value})")


@issue_app.command("list")
def issue_list() -> None:
    """List all issues, newest first."""
    issues = _run(lambda t, c: t.repository.get_issues())
    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Status", style="yellow")
    table.add_column("Priority", style="red")
    table.add_column("Category", style="dim")
    for issue in issues:
        table.add_row(
            str(issue.id),
            issue.title,
            issue.status.value,
            issue.priority.value,
            issue.category.value,
        )
    console.print(table)


# =============================================================================
# GIT, FILE CHANGES, METRICS
# =============================================================================


@git_app.command("sync")
def git_sync(
    repository: str = typer.Argument(..., help="Repository name"),
    branch: str = typer.Option("main", "--branch", "-b", help="Branch"),
    action: str = typer.Option("sync", "--action", "-a", help="pull, push or sync"),
    message: str = typer.Option(None, "--message", "-m", help="Commit message"),
) -> None:
    """Record a git pull/push/sync."""
    record = _run(lambda t, c: t.sync_git(repository, branch, action, message), mutating=True)
    console.print(f"[green]Recorded git {record.action.value}[/green] on {record.repository}/{record.branch}")


@app.command("file-change")
def file_change(
    file_path: str = typer.Argument(..., help="Path of the changed file"),
    repository: str = typer.Argument(..., help="Repository name"),
    change_type: str = typer.Option("modified", "--type", "-t", help="added, modified or deleted"),
    added: int = typer.Option(0, "--added", help="Lines added"),
    deleted: int = typer.Option(0, "--deleted", help="Lines deleted"),
    modified: int = typer.Option(0, "--modified", help="Lines modified"),
    session_id: int = typer.Option(None, "--session", help="Session id"),
) -> None:
    """Record a file change."""
    change = _run(
        lambda t, c: t.record_file_change(
            file_path,
            repository,
            change_type,
            lines_added=added,
            lines_deleted=deleted,
            lines_modified=modified,
            session_id=session_id,
        ),
        mutating=True,
    )
    console.print(f"[green]Recorded {change.change_type.value}[/green] {change.file_path}")


@metrics_app.command("record")
def metrics_record(
    date: str = typer.Option(None, "--date", "-d", help="Day (YYYY-MM-DD), default today"),
    lines_written: int = typer.Option(None, "--lines-written"),
    lines_deleted: int = typer.Option(None, "--lines-deleted"),
    lines_modified: int = typer.Option(None, "--lines-modified"),
    files_modified: int = typer.Option(None, "--files-modified"),
    bugs_fixed: int = typer.Option(None, "--bugs-fixed"),
    features_added: int = typer.Option(None, "--features-added"),
    quality: int = typer.Option(None, "--quality", help="Code quality score 0-100"),
    coverage: int = typer.Option(None, "--coverage", help="Test coverage 0-100"),
    performance: int = typer.Option(None, "--performance", help="Performance score 0-100"),
) -> None:
    """Record (or merge into) the metrics for a day."""
    metrics = _run(
        lambda t, c: t.record_metrics(
            _day(c, date),
            total_lines_written=lines_written,
            total_lines_deleted=lines_deleted,
            total_lines_modified=lines_modified,
            files_modified=files_modified,
            bugs_fixed=bugs_fixed,
            features_added=features_added,
            code_quality_score=quality,
            tests_coverage=coverage,
            performance_score=performance,
        ),
        mutating=True,
    )
    console.print(f"[green]Metrics saved for {metrics.date}[/green]")


@metrics_app.command("show")
def metrics_show(
    date: str = typer.Option(None, "--date", "-d", help="Day (YYYY-MM-DD), default today"),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON"),
) -> None:
    """Show daily, weekly, issue and productivity metrics."""
    result = _run(lambda t, c: t.aggregator.enhanced_metrics(_day(c, date)))
    data = result.to_dict()
    if as_json:
        console.print_json(json.dumps(data))
        return

    for title, section in data.items():
        table = Table(title=title.capitalize(), show_header=False, box=None)
        table.add_column("Metric", style="dim")
        table.add_column("Value", style="cyan")
        for key, value in section.items():
            table.add_row(key, f"{value:.2f}" if isinstance(value, float) else str(value))
        console.print(table)


# =============================================================================
# DASHBOARD, ACTIVITY, EXPORT
# =============================================================================


@app.command()
def dashboard(
    date: str = typer.Option(None, "--date", "-d", help="Day (YYYY-MM-DD), default today"),
) -> None:
    """Show one day's summary."""

    async def action(t: DevTracker, c: DevTrackConfig):
        day = _day(c, date)
        return day, await t.aggregator.dashboard(day)

    day, summary = _run(action)
    lines = [
        f"Sessions:        {summary.sessions}",
        f"Coding time:     {summary.total_time}m (avg {summary.average_session}m)",
        f"Commits:         {summary.commits} ({summary.lines_of_code} lines)",
        f"Tasks:           {summary.tasks_completed}/{summary.total_tasks} completed",
    ]
    if summary.goals:
        goals = summary.goals
        lines.append(
            f"Goals:           {goals.coding_time_target}m, "
            f"{goals.commits_target} commits, {goals.tasks_target} tasks"
        )
    console.print(Panel("\n".join(lines), title=f"DevTrack {day}", border_style="cyan"))


@app.command()
def activity(
    limit: int = typer.Option(None, "--limit", "-n", help="Number of entries"),
) -> None:
    """Show the most recent activity."""
    activities = _run(lambda t, c: t.repository.get_recent_activities(limit or c.activity_limit))
    table = Table(show_header=True, header_style="bold")
    table.add_column("When", style="dim")
    table.add_column("Type", style="cyan")
    table.add_column("Description")
    for entry in activities:
        table.add_row(format_datetime(entry.timestamp) or "", entry.type.value, entry.description)
    console.print(table)


@app.command()
def export(
    start_date: str = typer.Argument(..., help="First day (YYYY-MM-DD)"),
    end_date: str = typer.Argument(..., help="Last day (YYYY-MM-DD)"),
    output: Path = typer.Option(None, "--output", "-o", help="Write JSON to this file"),
) -> None:
    """Export sessions, commits and tasks for a date range as JSON."""
    result = _run(lambda t, c: t.aggregator.export_range(start_date, end_date))
    text = json.dumps(result.to_dict(), indent=2)
    if output is None:
        console.print_json(text)
        return
    try:
        output.write_text(text, encoding="utf-8")
    except OSError as e:
        console.print(f"[bold red]Error:[/bold red] could not write {output}: {e}")
        raise typer.Exit(1)
    console.print(f"[green]Exported {result.summary.total_sessions} sessions to {output}[/green]")


@app.command("export-csv")
def export_csv(
    kind: str = typer.Argument(..., help="sessions, commits, tasks, issues or activities"),
    start_date: str = typer.Option(None, "--start", help="Day (or first day for commits)"),
    end_date: str = typer.Option(None, "--end", help="Last day (commits only)"),
) -> None:
    """Export one collection to CSV in the data directory."""
    path = _run(lambda t, c: t.export_csv(kind, _day(c, start_date), end_date), mutating=True)
    console.print(f"[green]Exported {kind}[/green] to {path}")


# =============================================================================
# BACKUPS
# =============================================================================


@app.command()
def backup() -> None:
    """Write a timestamped backup of all data."""
    path = _run(lambda t, c: t.backup(), mutating=True)
    console.print(f"[green]Backup created:[/green] {path}")


@app.command()
def backups() -> None:
    """List backups, most recent first."""
    names = _run(lambda t, c: t.backups.list_backups())
    if not names:
        console.print("[dim]No backups found.[/dim]")
        return
    for name in names:
        console.print(f"  {name}")


@app.command()
def restore(filename: str = typer.Argument(..., help="Backup file name")) -> None:
    """Replace all data with a backup."""
    count = _run(lambda t, c: t.restore(filename), mutating=True)
    console.print(f"[green]Restored {count} records from {filename}[/green]")


@app.command()
def snapshot() -> None:
    """Write today's daily snapshot."""
    path = _run(lambda t, c: t.daily_snapshot())
    console.print(f"[green]Daily snapshot saved:[/green] {path}")


@app.command()
def cleanup(
    days: int = typer.Option(None, "--days", help="Keep backups newer than this many days"),
) -> None:
    """Delete old backups."""
    deleted = _run(lambda t, c: t.cleanup_backups(days if days is not None else c.backup_retention_days))
    console.print(f"[green]Cleaned up {deleted} old backups[/green]")


def main() -> None:
    """Console script entry point."""
    app()


if __name__ == "__main__":
    main()
