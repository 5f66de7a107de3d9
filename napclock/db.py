"""SQLite database layer. All public functions return Pydantic models."""

from __future__ import annotations

import sqlite3
from contextlib import closing
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Optional

from napclock.config import get_db_path as _config_get_db_path
from napclock.models import (
    CompletedInterval,
    CompletedIntervalCreate,
    DaySummary,
    IntervalKind,
)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS intervals (
    id                        INTEGER PRIMARY KEY AUTOINCREMENT,
    uid                       TEXT    NOT NULL DEFAULT '0',
    kind                      TEXT    NOT NULL,
    started_at                TEXT    NOT NULL,
    ended_at                  TEXT    NOT NULL,
    expected_duration_seconds INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_intervals_started_at ON intervals (started_at);
"""


def _get_db_path() -> Path:
    """Return the database file path from config (or default)."""
    return _config_get_db_path()


def get_connection(db_path: Optional[Path] = None) -> sqlite3.Connection:
    """Open a connection and ensure the schema exists."""
    path = db_path or _get_db_path()
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    conn.executescript(_SCHEMA)
    return conn


def _day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, datetime.min.time())
    return start, start + timedelta(days=1)


# ---------------------------------------------------------------------------
# Intervals
# ---------------------------------------------------------------------------


def _row_to_interval(row: sqlite3.Row) -> CompletedInterval:
    """Convert a database row to a CompletedInterval model."""
    return CompletedInterval(
        id=row["id"],
        uid=row["uid"],
        kind=IntervalKind(row["kind"]),
        started_at=datetime.fromisoformat(row["started_at"]),
        ended_at=datetime.fromisoformat(row["ended_at"]),
        expected_duration_seconds=row["expected_duration_seconds"],
    )


def add_interval(
    conn: sqlite3.Connection, interval_in: CompletedIntervalCreate
) -> CompletedInterval:
    """Append a completed interval and return it as a model."""
    cur = conn.execute(
        "INSERT INTO intervals (kind, started_at, ended_at, expected_duration_seconds) "
        "VALUES (?, ?, ?, ?)",
        (
            interval_in.kind.value,
            interval_in.started_at.isoformat(),
            interval_in.ended_at.isoformat(),
            interval_in.expected_duration_seconds,
        ),
    )
    conn.commit()
    row = conn.execute("SELECT * FROM intervals WHERE id = ?", (cur.lastrowid,)).fetchone()
    return _row_to_interval(row)


def list_intervals(
    conn: sqlite3.Connection,
    start: datetime,
    end: datetime,
    kind: Optional[IntervalKind] = None,
) -> list[CompletedInterval]:
    """Intervals that started in [start, end), oldest first."""
    query = "SELECT * FROM intervals WHERE started_at >= ? AND started_at < ?"
    params: list[str] = [start.isoformat(), end.isoformat()]
    if kind is not None:
        query += " AND kind = ?"
        params.append(kind.value)
    query += " ORDER BY started_at ASC, id ASC"
    rows = conn.execute(query, params).fetchall()
    return [_row_to_interval(r) for r in rows]


def list_intervals_of_day(conn: sqlite3.Connection, day: date) -> list[CompletedInterval]:
    """All intervals that started on ``day``."""
    start, end = _day_bounds(day)
    return list_intervals(conn, start, end)


def count_by_kind(conn: sqlite3.Connection, day: date) -> dict[IntervalKind, int]:
    """Number of sessions and breaks started on ``day``."""
    counts = {IntervalKind.SESSION: 0, IntervalKind.BREAK: 0}
    for interval in list_intervals_of_day(conn, day):
        counts[interval.kind] += 1
    return counts


def clear_intervals(conn: sqlite3.Connection) -> int:
    """Delete every stored interval. Returns how many were removed."""
    cur = conn.execute("DELETE FROM intervals")
    conn.commit()
    return cur.rowcount


# ---------------------------------------------------------------------------
# Daily summaries
# ---------------------------------------------------------------------------


def get_daily_summaries(
    conn: sqlite3.Connection, start: date, end: date
) -> list[DaySummary]:
    """One summary per day from ``start`` to ``end`` inclusive, empty days included."""
    if start > end:
        return []

    range_start, _ = _day_bounds(start)
    _, range_end = _day_bounds(end)
    by_day: dict[date, DaySummary] = {}
    check_date = start
    while check_date <= end:
        by_day[check_date] = DaySummary(date=check_date)
        check_date += timedelta(days=1)

    for interval in list_intervals(conn, range_start, range_end):
        summary = by_day[interval.started_at.date()]
        if interval.kind == IntervalKind.SESSION:
            summary.sessions += 1
            summary.focus_seconds += interval.actual_duration_seconds
        else:
            summary.breaks += 1

    return list(by_day.values())


# ---------------------------------------------------------------------------
# Store used by the clock
# ---------------------------------------------------------------------------


class IntervalStore:
    """Append/query access with a short-lived connection per call.

    sqlite3 connections stay on the thread that made them, and the clock
    saves from its own thread, so nothing is held open between calls.
    """

    def __init__(self, db_path: Optional[Path] = None) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        return get_connection(self._db_path)

    def append(
        self,
        kind: IntervalKind,
        started_at: datetime,
        ended_at: datetime,
        expected_duration_seconds: int,
    ) -> int:
        interval_in = CompletedIntervalCreate(
            kind=kind,
            started_at=started_at,
            ended_at=ended_at,
            expected_duration_seconds=expected_duration_seconds,
        )
        with closing(self._connect()) as conn:
            return add_interval(conn, interval_in).id

    def query_range(self, start: datetime, end: datetime) -> list[CompletedInterval]:
        with closing(self._connect()) as conn:
            return list_intervals(conn, start, end)
