"""Rich terminal formatting helpers."""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from rich.console import Console, Group
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from napclock.models import AppConfig, ClockSnapshot, DaySummary, Phase
from napclock.notifier import PendingNotice

console = Console()

_PHASE_STYLE: dict[Phase, str] = {
    Phase.BEFORE_RUN: "dim",
    Phase.RUNNING: "bold red",
    Phase.PAUSED: "yellow",
    Phase.BEFORE_BREAK: "cyan",
    Phase.BREAKING: "bold green",
}

# Keys accepted in each phase, in the order they are shown.
_PHASE_KEYS: dict[Phase, list[tuple[str, str]]] = {
    Phase.BEFORE_RUN: [("s", "start"), ("+/-", "session length")],
    Phase.RUNNING: [("p", "pause"), ("r", "reset")],
    Phase.PAUSED: [("s", "resume"), ("r", "reset")],
    Phase.BEFORE_BREAK: [
        ("s", "start break"),
        ("k", "skip break"),
        ("+/-", "break length"),
    ],
    Phase.BREAKING: [("k", "skip break")],
}


def configure_logging(verbose: bool = False) -> None:
    """Route log records through Rich; debug output only when verbose."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=verbose)],
        force=True,
    )


def format_human_readable_date(day: date) -> str:
    """E.g. ``Monday, October 19, 2026``."""
    return f"{day:%A}, {day:%B} {day.day}, {day.year}"


def render_clock(snapshot: ClockSnapshot, notice: Optional[PendingNotice] = None) -> Panel:
    """Build the clock panel shown by ``napclock run``."""
    style = _PHASE_STYLE[snapshot.phase]
    heading = Text(snapshot.phase_text, style=style, justify="center")
    time_text = Text(snapshot.display_time, style=f"{style} bold", justify="center")

    keys = [f"[bold]{key}[/bold] {label}" for key, label in _PHASE_KEYS[snapshot.phase]]
    parts: list = [heading, time_text, Text("")]
    if notice is not None:
        parts.append(
            Panel(
                Text(notice.message, justify="center"),
                title="TAKE A NAP",
                border_style="magenta",
                subtitle="y ok  n dismiss",
            )
        )
    keys += ["[bold]c[/bold] reload settings", "[bold]q[/bold] quit"]
    parts.append(Text.from_markup("  ".join(keys), justify="center"))
    return Panel(Group(*parts), title="napclock", border_style="red", padding=(1, 4))


def print_today(sessions: int, breaks: int) -> None:
    """Print today's tallies and the upcoming round numbers."""
    lines = [
        f"Sessions today: {sessions}",
        f"Breaks today: {breaks}",
        "",
        f"Next: Session {sessions + 1}, Break {breaks + 1}",
    ]
    console.print(Panel("\n".join(lines), title="Today", border_style="green"))


def day_tooltip(summary: DaySummary) -> str:
    return (
        f"Sessions: {summary.sessions}, Breaks: {summary.breaks} "
        f"on {format_human_readable_date(summary.date)}"
    )


def print_history(summaries: list[DaySummary], title: str = "History") -> None:
    """Print one row per day with session and break counts."""
    if not summaries or not any(s.sessions or s.breaks for s in summaries):
        console.print(Panel("No sessions recorded.", title=title, border_style="dim"))
        return

    table = Table(box=None, pad_edge=False)
    table.add_column("Day")
    table.add_column("Sessions", justify="right")
    table.add_column("Breaks", justify="right")
    table.add_column("Focus", justify="right")
    table.add_column("")

    most = max(s.sessions for s in summaries) or 1
    for summary in summaries:
        bar = "#" * round(summary.sessions / most * 10) if summary.sessions else ""
        table.add_row(
            format_human_readable_date(summary.date),
            str(summary.sessions),
            str(summary.breaks),
            f"{summary.focus_minutes} min",
            bar,
            style="dim" if not summary.sessions else "",
        )

    console.print(Panel(table, title=title, border_style="blue"))


def print_config(config: AppConfig, db_location: str) -> None:
    """Print the current settings."""
    table = Table(show_header=False, box=None, pad_edge=False)
    table.add_column("key", style="bold")
    table.add_column("value")
    table.add_row("Session", f"{config.session_minutes:g} min")
    table.add_row("Break", f"{config.break_minutes:g} min")
    table.add_row("Session hint", config.session_hint)
    table.add_row("Break hint", config.break_hint)
    table.add_row("Silent", "yes" if config.silent else "no")
    table.add_row("Auto-advance", "yes" if config.auto_advance else "no")
    table.add_row("Database", db_location)
    console.print(Panel(table, title="Settings", border_style="blue"))


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]{message}[/green]")


def print_info(message: str) -> None:
    """Print an informational message."""
    console.print(f"[blue]{message}[/blue]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]{message}[/yellow]")
