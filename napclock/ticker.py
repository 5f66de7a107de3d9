"""Background countdown ticker.

Runs on its own daemon thread so a busy or blocked foreground never delays the
count. It knows nothing about phases or persistence: it is seeded with a
number of seconds and emits one message per elapsed second.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, Union

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CountdownTick:
    """One second elapsed; ``remaining`` seconds are left."""

    remaining: int


@dataclass(frozen=True)
class CountdownDone:
    """The countdown reached zero. Always the last message of a run."""


CountdownMessage = Union[CountdownTick, CountdownDone]
Emit = Callable[[CountdownMessage], None]


class CountdownTicker:
    """Emits ticks from a background thread until zero or ``stop()``."""

    def __init__(self, interval: float = 1.0) -> None:
        self._interval = interval
        self._lock = threading.Lock()
        self._stop_event: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        with self._lock:
            return self._thread is not None and self._thread.is_alive()

    def start(self, seconds: int, emit: Emit) -> None:
        """Begin counting down from ``seconds``, replacing any current run."""
        with self._lock:
            self._stop_locked()
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run,
                args=(int(seconds), stop_event, emit),
                name="countdown-ticker",
                daemon=True,
            )
            self._stop_event = stop_event
            self._thread = thread
            thread.start()

    def stop(self) -> None:
        """Halt emission. Safe to call when idle."""
        with self._lock:
            self._stop_locked()

    def _stop_locked(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()
        self._stop_event = None
        self._thread = None

    def _run(self, seconds: int, stop_event: threading.Event, emit: Emit) -> None:
        remaining = max(0, seconds)
        deadline = time.monotonic()
        while remaining > 0:
            deadline += self._interval
            if stop_event.wait(max(0.0, deadline - time.monotonic())):
                return
            remaining -= 1
            if remaining == 0:
                break
            if not self._emit(stop_event, emit, CountdownTick(remaining)):
                return
        self._emit(stop_event, emit, CountdownDone())

    def _emit(
        self, stop_event: threading.Event, emit: Emit, message: CountdownMessage
    ) -> bool:
        if stop_event.is_set():
            return False
        try:
            emit(message)
        except Exception:
            log.exception("Countdown listener failed; stopping this run")
            stop_event.set()
            return False
        return True
