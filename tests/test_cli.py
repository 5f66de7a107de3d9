"""Tests for CLI commands."""

from __future__ import annotations

import io
from datetime import datetime, timedelta
from pathlib import Path
from queue import Queue
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from conftest import FakeNotifier, FakeStore, FakeTicker
from napclock import config as cfg
from napclock import db
from napclock.cli import app, apply_command, read_commands
from napclock.clock import PomodoroClock
from napclock.models import CompletedIntervalCreate, IntervalKind, Phase

runner = CliRunner()


@pytest.fixture(autouse=True)
def _use_tmp_paths(tmp_path: Path):
    """Redirect all CLI tests to a temporary database and config."""
    db_path = tmp_path / "test.db"
    cfg_dir = tmp_path / "config"
    with patch("napclock.db._get_db_path", return_value=db_path), patch(
        "napclock.config._CONFIG_DIR", cfg_dir
    ), patch("napclock.config._CONFIG_FILE", cfg_dir / "config.json"), patch(
        "napclock.config._DB_DIR", tmp_path / "data"
    ):
        yield


def _record(kind: IntervalKind, started_at: datetime) -> None:
    conn = db.get_connection()
    db.add_interval(
        conn,
        CompletedIntervalCreate(
            kind=kind,
            started_at=started_at,
            ended_at=started_at + timedelta(minutes=25),
            expected_duration_seconds=1500,
        ),
    )
    conn.close()


class TestToday:
    def test_today_empty(self) -> None:
        result = runner.invoke(app, ["today"])
        assert result.exit_code == 0
        assert "Sessions today: 0" in result.output
        assert "Next: Session 1, Break 1" in result.output

    def test_today_counts(self) -> None:
        now = datetime.now().replace(hour=9, minute=0, second=0, microsecond=0)
        _record(IntervalKind.SESSION, now)
        _record(IntervalKind.SESSION, now + timedelta(minutes=30))
        _record(IntervalKind.BREAK, now + timedelta(minutes=25))
        result = runner.invoke(app, ["today"])
        assert "Sessions today: 2" in result.output
        assert "Breaks today: 1" in result.output
        assert "Sessions: 2, Breaks: 1 on" in result.output


class TestHistory:
    def test_history_empty(self) -> None:
        result = runner.invoke(app, ["history"])
        assert result.exit_code == 0
        assert "No sessions recorded" in result.output

    def test_history_with_data(self) -> None:
        yesterday = datetime.now().replace(hour=9, minute=0) - timedelta(days=1)
        _record(IntervalKind.SESSION, yesterday)
        result = runner.invoke(app, ["history", "--days", "3"])
        assert result.exit_code == 0
        assert "Last 3 days" in result.output
        assert "25 min" in result.output

    def test_history_days_out_of_range(self) -> None:
        result = runner.invoke(app, ["history", "--days", "0"])
        assert result.exit_code != 0


class TestClear:
    def test_clear_with_yes(self) -> None:
        _record(IntervalKind.SESSION, datetime.now())
        result = runner.invoke(app, ["clear", "--yes"])
        assert result.exit_code == 0
        assert "Removed 1 interval." in result.output

    def test_clear_declined(self) -> None:
        _record(IntervalKind.SESSION, datetime.now())
        result = runner.invoke(app, ["clear"], input="n\n")
        assert result.exit_code == 1
        conn = db.get_connection()
        assert db.clear_intervals(conn) == 1
        conn.close()


class TestConfig:
    def test_show_default(self) -> None:
        result = runner.invoke(app, ["config", "--show"])
        assert result.exit_code == 0
        assert "Settings" in result.output
        assert "(default)" in result.output

    def test_no_flags_shows(self) -> None:
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert "Session" in result.output

    def test_set_durations(self) -> None:
        result = runner.invoke(app, ["config", "--session", "25", "--break", "5"])
        assert result.exit_code == 0
        assert "Settings saved" in result.output
        shown = runner.invoke(app, ["config", "--show"])
        assert "25 min" in shown.output
        assert "5 min" in shown.output

    def test_invalid_duration(self) -> None:
        result = runner.invoke(app, ["config", "--break", "0"])
        assert result.exit_code == 1
        assert "break_minutes" in result.output

    def test_set_db_path(self, tmp_path: Path) -> None:
        custom = tmp_path / "custom.db"
        result = runner.invoke(app, ["config", "--db-path", str(custom)])
        assert result.exit_code == 0
        assert "Database path set" in result.output

    def test_reset(self) -> None:
        runner.invoke(app, ["config", "--auto-advance"])
        result = runner.invoke(app, ["config", "--reset", "--show"])
        assert result.exit_code == 0
        assert "Reset" in result.output
        assert "Auto-advance" in result.output


class TestRun:
    @patch("napclock.display.configure_logging")
    def test_start_then_reset_records_session(self, _mock_logging) -> None:
        result = runner.invoke(app, ["run"], input="s\nr\nq\n")
        assert result.exit_code == 0
        assert "Done for now: 1 sessions, 0 breaks today." in result.output

        today = runner.invoke(app, ["today"])
        assert "Sessions today: 1" in today.output

    @patch("napclock.display.configure_logging")
    def test_eof_quits(self, _mock_logging) -> None:
        result = runner.invoke(app, ["run"], input="")
        assert result.exit_code == 0
        assert "Done for now: 0 sessions" in result.output


class TestCommandHelpers:
    def test_read_commands(self) -> None:
        commands: Queue[str] = Queue()
        read_commands(io.StringIO("start\nwhat\n\nPause\n"), commands)
        assert [commands.get_nowait() for _ in range(3)] == ["s", "p", "q"]
        assert commands.empty()

    def test_apply_command(self) -> None:
        clock = MagicMock()
        notifier = MagicMock()
        assert apply_command("s", clock, notifier) is True
        assert apply_command("k", clock, notifier) is True
        assert apply_command("y", clock, notifier) is True
        assert apply_command("q", clock, notifier) is False
        clock.start.assert_called_once()
        clock.skip.assert_called_once()
        notifier.acknowledge.assert_called_once()


def _idle_clock() -> tuple[PomodoroClock, FakeTicker]:
    ticker = FakeTicker()
    clock = PomodoroClock(
        cfg.load_config().to_clock_config(), FakeStore(), FakeNotifier(), ticker=ticker
    )
    return clock, ticker


class TestSettingsWhileRunning:
    def test_plus_lengthens_idle_session(self) -> None:
        clock, _ = _idle_clock()
        assert apply_command("+", clock, MagicMock()) is True
        clock.process_pending()
        assert clock.snapshot().display_time == "31:00"
        assert cfg.load_config().session_minutes == 31

    def test_minus_shortens_pending_break(self) -> None:
        cfg.update_config(break_minutes=5)
        clock, ticker = _idle_clock()
        clock.start()
        clock.process_pending()
        ticker.emit_done()
        clock.process_pending()
        assert clock.phase == Phase.BEFORE_BREAK

        apply_command("-", clock, MagicMock())
        clock.process_pending()
        assert clock.snapshot().display_time == "4:00"
        assert cfg.load_config().break_minutes == 4

    def test_minus_stops_at_validation(self) -> None:
        cfg.update_config(session_minutes=1)
        clock, _ = _idle_clock()
        apply_command("-", clock, MagicMock())
        clock.process_pending()
        assert clock.snapshot().display_time == "1:00"
        assert cfg.load_config().session_minutes == 1

    def test_running_session_not_changed(self) -> None:
        clock, _ = _idle_clock()
        clock.start()
        clock.process_pending()
        apply_command("+", clock, MagicMock())
        clock.process_pending()
        assert clock.snapshot().display_time == "30:00"
        assert cfg.load_config().session_minutes == 30

    def test_reload_picks_up_saved_settings(self) -> None:
        clock, _ = _idle_clock()
        cfg.update_config(session_minutes=10)  # e.g. from another shell
        apply_command("c", clock, MagicMock())
        clock.process_pending()
        assert clock.snapshot().display_time == "10:00"

    @patch("napclock.display.configure_logging")
    def test_run_accepts_duration_keys(self, _mock_logging) -> None:
        result = runner.invoke(app, ["run"], input="+\n+\nq\n")
        assert result.exit_code == 0
        assert cfg.load_config().session_minutes == 32
