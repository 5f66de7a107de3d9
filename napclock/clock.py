"""The running clock: one queue, one consumer, one state machine.

User intents, ticker messages, settings changes and answers to notices are
all put on the same queue and handled one at a time, so the state machine is
never entered twice at once. For each event the order is fixed: compute,
commit, resync the ticker, then run effects.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from queue import Empty, Queue
from typing import Any, Callable, Optional, Protocol

from napclock.driver import Ticker, TickerDriver, TickerMessage
from napclock.effects import EffectExecutor, IntervalAppender
from napclock.machine import IntervalQuery, PomodoroStateMachine
from napclock.models import (
    ClockConfig,
    ClockEvent,
    ClockSnapshot,
    Phase,
    TransitionResult,
)
from napclock.notifier import Notifier
from napclock.ticker import CountdownTicker

log = logging.getLogger(__name__)


class ClockStore(IntervalAppender, IntervalQuery, Protocol):
    """What the clock needs from the interval store."""


@dataclass(frozen=True)
class UserIntent:
    event: ClockEvent


@dataclass(frozen=True)
class ConfigUpdate:
    config: ClockConfig


@dataclass(frozen=True)
class NoticeSettled:
    """A completion notice was answered, dismissed or closed."""

    generation: int
    phase: Phase
    acknowledged: bool


_SHUTDOWN = object()


class PomodoroClock:
    """Serializes every change to one ``PomodoroStateMachine``."""

    def __init__(
        self,
        config: ClockConfig,
        store: ClockStore,
        notifier: Notifier,
        *,
        ticker: Optional[Ticker] = None,
        auto_advance: bool = False,
        on_change: Optional[Callable[[ClockSnapshot], None]] = None,
        on_refresh: Optional[Callable[[], None]] = None,
        on_notification_unavailable: Optional[Callable[[str], None]] = None,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._now = now
        self._queue: Queue[Any] = Queue()
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._notifier = notifier
        self._notice_pending = False
        self._generation = 0
        self._on_change = on_change
        self.auto_advance = auto_advance

        self._machine = PomodoroStateMachine(config, now=now())
        self._machine.seed_rounds(store, today=now().date())
        self._driver = TickerDriver(ticker or CountdownTicker(), self._queue.put)
        self._executor = EffectExecutor(
            store,
            notifier,
            on_refresh=on_refresh,
            on_notification_unavailable=on_notification_unavailable,
        )

    # ------------------------------------------------------------------
    # Intents (safe from any thread)
    # ------------------------------------------------------------------

    def start(self) -> None:
        self._queue.put(UserIntent(ClockEvent.START))

    def pause(self) -> None:
        self._queue.put(UserIntent(ClockEvent.PAUSE))

    def reset(self) -> None:
        self._queue.put(UserIntent(ClockEvent.RESET))

    def skip(self) -> None:
        self._queue.put(UserIntent(ClockEvent.SKIP))

    def update_config(self, config: ClockConfig) -> None:
        self._queue.put(ConfigUpdate(config))

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    @property
    def phase(self) -> Phase:
        with self._lock:
            return self._machine.phase

    def snapshot(self) -> ClockSnapshot:
        with self._lock:
            return self._machine.snapshot(notification_pending=self._notice_pending)

    # ------------------------------------------------------------------
    # Consuming the queue
    # ------------------------------------------------------------------

    def process_pending(self) -> int:
        """Handle everything queued so far on the calling thread."""
        handled = 0
        while True:
            try:
                item = self._queue.get_nowait()
            except Empty:
                return handled
            if item is _SHUTDOWN:
                continue
            self._dispatch(item)
            handled += 1

    def run_in_background(self) -> threading.Thread:
        if self._thread is not None:
            return self._thread
        self._thread = threading.Thread(target=self._run, name="pomodoro-clock", daemon=True)
        self._thread.start()
        return self._thread

    def close(self) -> None:
        """Finish queued work, then stop the ticker and any pending notice."""
        if self._thread is not None:
            self._queue.put(_SHUTDOWN)
            self._thread.join()
            self._thread = None
        else:
            self.process_pending()
        self._driver.stop()
        self._notifier.close_active()

    def __enter__(self) -> PomodoroClock:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is _SHUTDOWN:
                return
            try:
                self._dispatch(item)
            except Exception:
                log.exception("Failed to handle %r", item)

    def _dispatch(self, item: Any) -> None:
        if isinstance(item, UserIntent):
            self._on_user_intent(item.event)
        elif isinstance(item, TickerMessage):
            event = self._driver.accept(item)
            if event is not None:
                self._handle(event)
        elif isinstance(item, ConfigUpdate):
            with self._lock:
                self._machine.update_config(item.config)
            self._changed()
        elif isinstance(item, NoticeSettled):
            self._on_notice_settled(item)
        else:
            log.warning("Ignoring unknown clock message %r", item)

    def _on_user_intent(self, event: ClockEvent) -> None:
        # Acting directly supersedes any notice still waiting for an answer.
        self._generation += 1
        with self._lock:
            pending, self._notice_pending = self._notice_pending, False
        if pending:
            self._notifier.close_active()
        self._handle(event)

    def _on_notice_settled(self, settled: NoticeSettled) -> None:
        if settled.generation != self._generation:
            log.debug("Answer to a superseded notice ignored")
            return
        with self._lock:
            self._notice_pending = False
        if settled.acknowledged and self.auto_advance and self.phase == settled.phase:
            self._handle(ClockEvent.START)
        else:
            self._changed()

    def _handle(self, event: ClockEvent) -> None:
        now = self._now()
        with self._lock:
            previous = self._machine.phase
            result = self._machine.handle_event(event, now)
            self._machine.apply_transition(result)
        self._driver.sync(previous, result.phase, result.remaining_seconds)

        if result.notification is not None:
            self._generation += 1
        notice = self._executor.execute(result, on_settled=self._settle_callback())
        if notice is not None:
            with self._lock:
                self._notice_pending = not notice.done()
        self._changed()

    def _settle_callback(self) -> Callable[[TransitionResult, bool], None]:
        generation = self._generation

        def settled(result: TransitionResult, acknowledged: bool) -> None:
            self._queue.put(NoticeSettled(generation, result.phase, acknowledged))

        return settled

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change(self.snapshot())
