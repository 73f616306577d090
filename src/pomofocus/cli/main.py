"""CLI commands for Pomofocus using Typer."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from datetime import date, datetime
from pathlib import Path
from typing import Any

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from pomofocus import __version__
from pomofocus.core.config import Config, TimerConfig, get_config
from pomofocus.timer.models import TimerMode, format_remaining

# Initialize Typer app
app = typer.Typer(
    name="pomofocus",
    help="Pomodoro timer with task tracking and session history.",
    add_completion=False,
)

console = Console()

# `pomofocus timer <action>` -> (command, mode)
TIMER_ACTIONS: dict[str, tuple[str, str | None]] = {
    "start": ("start", None),
    "pause": ("pause", None),
    "toggle": ("toggle", None),
    "reset": ("reset", None),
    "pomodoro": ("switch_mode", TimerMode.POMODORO.value),
    "short": ("switch_mode", TimerMode.SHORT_BREAK.value),
    "long": ("switch_mode", TimerMode.LONG_BREAK.value),
    "select": ("select_task", None),
}

MODE_LABELS = {
    TimerMode.POMODORO.value: "Pomodoro",
    TimerMode.SHORT_BREAK.value: "Short Break",
    TimerMode.LONG_BREAK.value: "Long Break",
}


def setup_logging(log_level: str, log_file: Path | None = None) -> None:
    """Configure logging for the application."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )

    # Reduce noise from external libraries
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def write_timer_control(config: Config, data: dict[str, Any]) -> None:
    """Write a control command for the running timer."""
    config.control_file.parent.mkdir(parents=True, exist_ok=True)
    payload = {**data, "timestamp": datetime.now().isoformat()}
    config.control_file.write_text(json.dumps(payload))


def read_timer_status(config: Config) -> dict | None:
    """Read the status written by a running timer."""
    if not config.status_file.exists():
        return None
    try:
        return json.loads(config.status_file.read_text())
    except (OSError, json.JSONDecodeError):
        return None


def format_status_line(snapshot: dict[str, Any]) -> str:
    label = MODE_LABELS.get(snapshot.get("mode", ""), snapshot.get("mode", ""))
    return (
        f"\r🍅 {snapshot.get('display', '--:--')} | {label} | "
        f"{snapshot.get('status', '?')} | #{snapshot.get('completedPomodoroCount', 0)}    "
    )


@app.command()
def run(
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        "-l",
        help="Log level (DEBUG, INFO, WARNING, ERROR)",
    ),
    autostart: bool = typer.Option(False, "--start", "-s", help="Start the first pomodoro right away"),
) -> None:
    """Run the timer in the foreground.

    Control it from another terminal with `pomofocus timer <action>`.
    """
    config = get_config()
    setup_logging(log_level, config.log_dir / "pomofocus.log")

    from pomofocus.core.orchestrator import Orchestrator, run_timer

    orchestrator = Orchestrator(config)

    if autostart:
        write_timer_control(config, {"action": "start"})

    console.print("[green]Pomofocus running[/green] - Ctrl+C to stop\n")

    def show(snapshot: dict[str, Any]) -> None:
        sys.stdout.write(format_status_line(snapshot))
        sys.stdout.flush()

    try:
        asyncio.run(run_timer(orchestrator, on_update=show))
    except KeyboardInterrupt:
        pass
    console.print("\n[yellow]Stopped[/yellow]")


@app.command()
def timer(
    action: str = typer.Argument(
        ..., help="Action: start, pause, toggle, reset, pomodoro, short, long, select"
    ),
    task: str = typer.Option(None, "--task", "-t", help="Task ID for 'select' (omit to clear)"),
) -> None:
    """Send a command to the running timer."""
    if action not in TIMER_ACTIONS:
        console.print(f"[red]Unknown action: {action}[/red]")
        console.print(f"Valid actions: {', '.join(TIMER_ACTIONS)}")
        raise typer.Exit(1)

    config = get_config()
    command, mode = TIMER_ACTIONS[action]

    data: dict[str, Any] = {"action": command}
    if mode:
        data["mode"] = mode
    if command == "select_task":
        data["task_id"] = task

    write_timer_control(config, data)
    console.print(f"[green]Sent {action} command[/green]")


@app.command()
def status() -> None:
    """Show the running timer's state."""
    config = get_config()
    snapshot = read_timer_status(config)

    if snapshot is None:
        console.print(Panel(
            "[red bold]STOPPED[/red bold]\n\nTimer is not running.\nUse 'pomofocus run' to start it.",
            title="Pomofocus Status",
            border_style="red",
        ))
        return

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Key", style="cyan")
    table.add_column("Value")

    table.add_row("Mode", MODE_LABELS.get(snapshot["mode"], snapshot["mode"]))
    table.add_row("Status", snapshot["status"].upper())
    table.add_row("Remaining", format_remaining(snapshot["secondsRemaining"]))
    table.add_row("Pomodoros", str(snapshot["completedPomodoroCount"]))
    table.add_row("Task", snapshot.get("currentTaskId") or "-")
    table.add_row("PID", str(snapshot.get("pid", "-")))

    console.print(Panel(table, title="Pomofocus Status", border_style="green"))


@app.command()
def history(
    limit: int = typer.Option(20, "--limit", "-n", help="Number of sessions to show"),
    mode: TimerMode = typer.Option(None, "--mode", "-m", help="Only show one mode"),
    day: str = typer.Option(None, "--date", "-d", help="Date (YYYY-MM-DD)"),
) -> None:
    """Show completed sessions."""
    config = get_config()

    async def fetch():
        from pomofocus.storage.database import Database
        from pomofocus.storage.sessions import SessionStore

        db = Database(config.db_path)
        await db.connect()

        try:
            store = SessionStore(db)
            target = date.fromisoformat(day) if day else None
            sessions, total = await store.list_sessions(
                mode=mode, date_from=target, date_to=target, limit=limit
            )
            stats = await store.stats(target or date.today())
            return sessions, total, stats
        finally:
            await db.close()

    try:
        sessions, total, stats = asyncio.run(fetch())
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if not sessions:
        console.print("[dim]No sessions recorded yet.[/dim]")
        return

    table = Table(title=f"Sessions ({len(sessions)} of {total})", show_header=True, header_style="bold cyan")
    table.add_column("Started")
    table.add_column("Mode")
    table.add_column("Length", justify="right")
    table.add_column("Task")

    for s in sessions:
        started = datetime.fromisoformat(s["started_at"]).astimezone()
        table.add_row(
            started.strftime("%Y-%m-%d %H:%M"),
            MODE_LABELS.get(s["mode"], s["mode"]),
            format_remaining(s["seconds"]),
            s.get("task_title") or "-",
        )

    console.print(table)
    console.print(
        f"\n[bold]{stats['date']}:[/bold] {stats['pomodoros']} pomodoros, "
        f"{stats['focus_minutes']} focus minutes"
    )


@app.command(name="tasks")
def tasks_cmd(
    add: str = typer.Option(None, "--add", "-a", help="Add a new task"),
    estimate: int = typer.Option(1, "--estimate", "-e", help="Estimated pomodoros for the task"),
    project: str = typer.Option(None, "--project", "-p", help="Project name"),
) -> None:
    """List or add tasks."""
    config = get_config()

    async def manage():
        from pomofocus.storage.database import Database
        from pomofocus.storage.sessions import TaskStore

        db = Database(config.db_path)
        await db.connect()

        try:
            store = TaskStore(db)

            if add:
                task = await store.create(add, estimated_pomodoros=estimate, project=project)
                console.print(f"[green]Created task {task.id}: {task.title} ({estimate} pomodoros)[/green]")
                return

            tasks = await store.list_tasks()
            if not tasks:
                console.print("[dim]No tasks. Add one with: pomofocus tasks --add \"Task name\"[/dim]")
                return

            for t in tasks:
                mark = "[green]✓[/green]" if t.completed else "○"
                console.print(
                    f"  {mark} {t.title} ({t.completed_pomodoros}/{t.estimated_pomodoros}) [dim]{t.id}[/dim]"
                )
        finally:
            await db.close()

    asyncio.run(manage())


@app.command(name="settings")
def settings_cmd(
    pomodoro: int = typer.Option(None, "--pomodoro", help="Pomodoro length in minutes"),
    short_break: int = typer.Option(None, "--short-break", help="Short break length in minutes"),
    long_break: int = typer.Option(None, "--long-break", help="Long break length in minutes"),
    interval: int = typer.Option(None, "--interval", help="Pomodoros before a long break"),
    auto_start_break: bool = typer.Option(None, "--auto-break/--no-auto-break", help="Start breaks automatically"),
    auto_start_pomodoro: bool = typer.Option(
        None, "--auto-pomodoro/--no-auto-pomodoro", help="Start pomodoros automatically"
    ),
    sound: bool = typer.Option(None, "--sound/--no-sound", help="Play a sound on completion"),
    notifications: bool = typer.Option(None, "--notify/--no-notify", help="Show desktop notifications"),
    volume: int = typer.Option(None, "--volume", help="Sound volume (0-100)"),
) -> None:
    """Show or change timer settings."""
    config = get_config()

    updates = {
        "pomodoro_minutes": pomodoro,
        "short_break_minutes": short_break,
        "long_break_minutes": long_break,
        "long_break_interval": interval,
        "auto_start_break": auto_start_break,
        "auto_start_pomodoro": auto_start_pomodoro,
        "sound_enabled": sound,
        "notifications_enabled": notifications,
        "volume": volume,
    }
    updates = {k: v for k, v in updates.items() if v is not None}

    async def manage() -> TimerConfig:
        from pomofocus.storage.database import Database
        from pomofocus.storage.sessions import SettingsStore

        db = Database(config.db_path)
        await db.connect()

        try:
            store = SettingsStore(db)
            current = await store.load(config.timer)
            if updates:
                current = TimerConfig.model_validate({**current.model_dump(), **updates})
                await store.save(current)
            return current
        finally:
            await db.close()

    try:
        current = asyncio.run(manage())
    except ValidationError as e:
        console.print(f"[red]Invalid settings:[/red]\n{e}")
        raise typer.Exit(1)

    if updates:
        console.print("[green]Settings saved[/green] (a running timer picks them up on restart)")

    table = Table(title="Timer Settings", show_header=True, header_style="bold cyan")
    table.add_column("Setting")
    table.add_column("Value")

    table.add_row("Pomodoro", f"{current.pomodoro_minutes} min")
    table.add_row("Short Break", f"{current.short_break_minutes} min")
    table.add_row("Long Break", f"{current.long_break_minutes} min")
    table.add_row("Long Break Interval", str(current.long_break_interval))
    table.add_row("Auto-start Breaks", str(current.auto_start_break))
    table.add_row("Auto-start Pomodoros", str(current.auto_start_pomodoro))
    table.add_row("Sound", f"{current.sound_enabled} ({current.volume}%)")
    table.add_row("Notifications", str(current.notifications_enabled))

    console.print(table)


@app.command()
def config_show() -> None:
    """Show current configuration."""
    config = get_config()

    table = Table(title="Pomofocus Configuration", show_header=True, header_style="bold cyan")
    table.add_column("Setting")
    table.add_column("Value")

    # Paths
    table.add_row("[bold]Paths[/bold]", "")
    table.add_row("  Data Directory", str(config.data_dir))
    table.add_row("  Log Directory", str(config.log_dir))
    table.add_row("  Config File", str(config.config_file))
    table.add_row("  Database", str(config.db_path))

    # Timer defaults
    table.add_row("[bold]Timer Defaults[/bold]", "")
    table.add_row("  Pomodoro", f"{config.timer.pomodoro_minutes} min")
    table.add_row("  Short Break", f"{config.timer.short_break_minutes} min")
    table.add_row("  Long Break", f"{config.timer.long_break_minutes} min")
    table.add_row("  Long Break Interval", str(config.timer.long_break_interval))
    table.add_row("  Auto-start Delay", f"{config.timer.auto_start_delay_seconds}s")

    # Web
    table.add_row("[bold]Web API[/bold]", "")
    table.add_row("  Enabled", str(config.web.enabled))
    table.add_row("  URL", f"http://{config.web.host}:{config.web.port}")

    console.print(table)


@app.command()
def serve(
    host: str = typer.Option(None, "--host", "-h", help="Host to bind to"),
    port: int = typer.Option(None, "--port", "-p", help="Port to bind to"),
    log_level: str = typer.Option("INFO", "--log-level", "-l", help="Log level"),
) -> None:
    """Run the REST and WebSocket API."""
    config = get_config()
    setup_logging(log_level)

    host = host or config.web.host
    port = port or config.web.port

    console.print("[green]Starting Pomofocus API...[/green]")
    console.print(f"Listening on [blue]http://{host}:{port}/api[/blue]")
    console.print("Press Ctrl+C to stop\n")

    from pomofocus.web.app import run_server

    try:
        run_server(host=host, port=port)
    except KeyboardInterrupt:
        console.print("\n[yellow]API stopped[/yellow]")


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"Pomofocus v{__version__}")


@app.callback()
def main_callback() -> None:
    """Pomofocus - Pomodoro timer with task tracking and session history."""
    pass


if __name__ == "__main__":
    app()
