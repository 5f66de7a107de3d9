"""Shared fakes for the clock's collaborators."""

from __future__ import annotations

from concurrent.futures import Future
from datetime import datetime
from typing import Callable, Optional

import pytest

from napclock.models import CompletedInterval, IntervalKind
from napclock.notifier import NotificationDismissed
from napclock.ticker import CountdownDone, CountdownMessage, CountdownTick


class FakeTicker:
    """Records start/stop calls; tests push messages through ``emit_*``."""

    def __init__(self, calls: Optional[list[str]] = None) -> None:
        self.calls = calls if calls is not None else []
        self.starts: list[int] = []
        self.emit: Optional[Callable[[CountdownMessage], None]] = None

    def start(self, seconds: int, emit: Callable[[CountdownMessage], None]) -> None:
        self.calls.append(f"ticker.start({seconds})")
        self.starts.append(seconds)
        self.emit = emit

    def stop(self) -> None:
        self.calls.append("ticker.stop")

    def emit_tick(self, remaining: int) -> None:
        assert self.emit is not None
        self.emit(CountdownTick(remaining))

    def emit_done(self) -> None:
        assert self.emit is not None
        self.emit(CountdownDone())


class FakeStore:
    """In-memory interval store."""

    def __init__(self, calls: Optional[list[str]] = None, fail: bool = False) -> None:
        self.calls = calls if calls is not None else []
        self.fail = fail
        self.fail_query = False
        self.intervals: list[CompletedInterval] = []

    def append(
        self,
        kind: IntervalKind,
        started_at: datetime,
        ended_at: datetime,
        expected_duration_seconds: int,
    ) -> int:
        self.calls.append(f"store.append({kind.value})")
        if self.fail:
            raise OSError("disk full")
        interval = CompletedInterval(
            id=len(self.intervals) + 1,
            kind=kind,
            started_at=started_at,
            ended_at=ended_at,
            expected_duration_seconds=expected_duration_seconds,
        )
        self.intervals.append(interval)
        return interval.id

    def query_range(self, start: datetime, end: datetime) -> list[CompletedInterval]:
        if self.fail_query:
            raise OSError("database locked")
        return [i for i in self.intervals if start <= i.started_at < end]

    def kinds(self) -> list[IntervalKind]:
        return [i.kind for i in self.intervals]


class FakeNotifier:
    """Hands out futures the test resolves by hand."""

    def __init__(self, calls: Optional[list[str]] = None) -> None:
        self.calls = calls if calls is not None else []
        self.presented: list[tuple[str, str]] = []
        self.futures: list[Future[None]] = []
        self.closed = 0
        self.unavailable: Optional[Exception] = None

    def present(self, message: str, icon: str, *, silent: bool = False) -> Future[None]:
        self.calls.append(f"notify({icon})")
        if self.unavailable is not None:
            raise self.unavailable
        future: Future[None] = Future()
        self.presented.append((message, icon))
        self.futures.append(future)
        return future

    def close_active(self) -> None:
        self.closed += 1
        for future in self.futures:
            if not future.done():
                future.cancel()

    def acknowledge(self) -> None:
        self.futures[-1].set_result(None)

    def dismiss(self) -> None:
        self.futures[-1].set_exception(NotificationDismissed("dismissed"))


@pytest.fixture()
def calls() -> list[str]:
    return []


@pytest.fixture()
def ticker(calls: list[str]) -> FakeTicker:
    return FakeTicker(calls)


@pytest.fixture()
def store(calls: list[str]) -> FakeStore:
    return FakeStore(calls)


@pytest.fixture()
def notifier(calls: list[str]) -> FakeNotifier:
    return FakeNotifier(calls)
