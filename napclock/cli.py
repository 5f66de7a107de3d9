"""napclock CLI -- a pomodoro clock for the terminal."""

from __future__ import annotations

import logging
import sys
import threading
from datetime import date, timedelta
from queue import Empty, Queue
from typing import IO, Optional

import typer
from pydantic import ValidationError
from rich.live import Live

from napclock import config as cfg
from napclock import db, display
from napclock.clock import PomodoroClock
from napclock.models import IntervalKind, Phase
from napclock.notifier import ConsoleNotifier

log = logging.getLogger(__name__)

app = typer.Typer(
    name="napclock",
    help="Work, take a nap, repeat. A pomodoro clock that remembers your day.",
    no_args_is_help=True,
)

QUIT = "q"
_KEYS = {"s", "p", "r", "k", "y", "n", "+", "-", "c", QUIT}

# Minutes added or removed by one press of + or -.
DURATION_STEP = 1


def _conn() -> db.sqlite3.Connection:
    """Get a database connection (convenience wrapper)."""
    return db.get_connection()


# ---------------------------------------------------------------------------
# The clock
# ---------------------------------------------------------------------------


def read_commands(stream: IO[str], commands: Queue[str]) -> None:
    """Forward the first letter of each input line; EOF means quit."""
    for line in iter(stream.readline, ""):
        key = line.strip().lower()[:1]
        if key in _KEYS:
            commands.put(key)
        elif key:
            log.debug("Unknown command %r", line.strip())
    commands.put(QUIT)


def reload_settings(clock: PomodoroClock) -> None:
    """Hand the saved settings to a running clock."""
    clock.update_config(cfg.load_config().to_clock_config())


def adjust_duration(clock: PomodoroClock, step: float) -> None:
    """Lengthen or shorten the interval waiting to start, and save it."""
    field = {
        Phase.BEFORE_RUN: "session_minutes",
        Phase.BEFORE_BREAK: "break_minutes",
    }.get(clock.phase)
    if field is None:
        display.print_warning("Durations can only change before a session or break starts.")
        return
    current = getattr(cfg.load_config(), field)
    try:
        settings = cfg.update_config(**{field: current + step})
    except ValidationError as error:
        for problem in error.errors():
            display.print_warning(f"{field}: {problem['msg']}")
        return
    clock.update_config(settings.to_clock_config())


def apply_command(key: str, clock: PomodoroClock, notifier: ConsoleNotifier) -> bool:
    """Send one command to the clock. Returns False when the user quits."""
    if key == QUIT:
        return False
    if key == "+":
        adjust_duration(clock, DURATION_STEP)
    elif key == "-":
        adjust_duration(clock, -DURATION_STEP)
    elif key == "c":
        reload_settings(clock)
    elif key == "s":
        clock.start()
    elif key == "p":
        clock.pause()
    elif key == "r":
        clock.reset()
    elif key == "k":
        clock.skip()
    elif key == "y":
        notifier.acknowledge()
    elif key == "n":
        notifier.dismiss()
    return True


@app.command()
def run(
    auto_advance: Optional[bool] = typer.Option(
        None,
        "--auto-advance/--no-auto-advance",
        help="Start the next interval as soon as a notice is acknowledged",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Run the clock. Type a letter and press Enter to control it."""
    display.configure_logging(verbose)
    settings = cfg.load_config()
    notifier = ConsoleNotifier(display.console, require_terminal=True)

    def _new_day() -> None:
        display.print_info("A new day -- rounds start again at 1.")

    clock = PomodoroClock(
        settings.to_clock_config(),
        db.IntervalStore(),
        notifier,
        auto_advance=settings.auto_advance if auto_advance is None else auto_advance,
        on_refresh=_new_day,
        on_notification_unavailable=display.print_warning,
    )

    commands: Queue[str] = Queue()
    reader = threading.Thread(
        target=read_commands, args=(sys.stdin, commands), name="command-reader", daemon=True
    )
    reader.start()
    clock.run_in_background()
    try:
        with Live(
            display.render_clock(clock.snapshot()),
            console=display.console,
            refresh_per_second=4,
        ) as live:
            while True:
                try:
                    key = commands.get(timeout=0.25)
                except Empty:
                    key = None
                if key is not None and not apply_command(key, clock, notifier):
                    break
                live.update(display.render_clock(clock.snapshot(), notifier.pending))
    finally:
        clock.close()

    conn = _conn()
    counts = db.count_by_kind(conn, date.today())
    conn.close()
    display.print_success(
        f"Done for now: {counts[IntervalKind.SESSION]} sessions, "
        f"{counts[IntervalKind.BREAK]} breaks today."
    )


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


@app.command()
def today() -> None:
    """See how many sessions and breaks you have had today."""
    conn = _conn()
    (summary,) = db.get_daily_summaries(conn, date.today(), date.today())
    display.print_today(summary.sessions, summary.breaks)
    display.print_info(display.day_tooltip(summary))
    conn.close()


@app.command()
def history(
    days: int = typer.Option(7, "--days", "-d", min=1, max=366, help="How many days back"),
) -> None:
    """Show sessions and breaks per day."""
    conn = _conn()
    end = date.today()
    summaries = db.get_daily_summaries(conn, end - timedelta(days=days - 1), end)
    display.print_history(summaries, title=f"Last {days} day{'s' if days != 1 else ''}")
    conn.close()


@app.command()
def clear(
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Delete every recorded session and break."""
    if not yes:
        typer.confirm("Delete all recorded sessions and breaks?", abort=True)
    conn = _conn()
    removed = db.clear_intervals(conn)
    conn.close()
    display.print_success(f"Removed {removed} interval{'s' if removed != 1 else ''}.")


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@app.command()
def config(
    session: Optional[float] = typer.Option(None, "--session", help="Session length in minutes"),
    break_minutes: Optional[float] = typer.Option(
        None, "--break", help="Break length in minutes"
    ),
    session_hint: Optional[str] = typer.Option(
        None, "--session-hint", help="Notice shown when a break ends"
    ),
    break_hint: Optional[str] = typer.Option(
        None, "--break-hint", help="Notice shown when a session ends"
    ),
    silent: Optional[bool] = typer.Option(
        None, "--silent/--no-silent", help="Do not ring the bell with notices"
    ),
    auto_advance: Optional[bool] = typer.Option(
        None, "--auto-advance/--no-auto-advance", help="Chain intervals on acknowledge"
    ),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Set a custom database file path"),
    reset: bool = typer.Option(False, "--reset", help="Restore default timer settings"),
    show: bool = typer.Option(False, "--show", help="Show current settings"),
) -> None:
    """View or change durations, notice texts and where data is stored."""
    changes = {
        "session_minutes": session,
        "break_minutes": break_minutes,
        "session_hint": session_hint,
        "break_hint": break_hint,
        "silent": silent,
        "auto_advance": auto_advance,
    }
    changed = False

    if reset:
        cfg.reset_config()
        display.print_success("Reset timer settings to defaults.")
        changed = True
    if db_path:
        result = cfg.set_db_path(db_path)
        display.print_success(f"Database path set to: {result.db_path}")
        changed = True
    if any(value is not None for value in changes.values()):
        try:
            cfg.update_config(**changes)
        except ValidationError as error:
            for problem in error.errors():
                field = ".".join(str(part) for part in problem["loc"])
                display.print_warning(f"{field}: {problem['msg']}")
            raise typer.Exit(1)
        display.print_success("Settings saved.")
        changed = True

    if show or not changed:
        current = cfg.load_config()
        location = current.db_path or f"{cfg.get_db_path()} (default)"
        display.print_config(current, location)
