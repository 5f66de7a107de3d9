"""Bridges the countdown ticker into state-machine events.

Every ticker run gets a subscription number. Messages are tagged with it on
the ticker thread and only turned into events on the clock thread if the
subscription is still the current one, so a stopped run can never leak a
tick or a completion into the next phase.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from napclock.models import COUNTING_PHASES, ClockEvent, Phase
from napclock.ticker import CountdownDone, CountdownMessage, CountdownTick

log = logging.getLogger(__name__)


class Ticker(Protocol):
    def start(self, seconds: int, emit: Callable[[CountdownMessage], None]) -> None: ...

    def stop(self) -> None: ...


@dataclass(frozen=True)
class TickerMessage:
    """A ticker message tagged with the subscription that produced it."""

    subscription: int
    payload: CountdownMessage


class TickerDriver:
    """Keeps at most one ticker subscription in step with the machine phase."""

    def __init__(self, ticker: Ticker, post: Callable[[TickerMessage], None]) -> None:
        self._ticker = ticker
        self._post = post
        self._counter = 0
        self._active: Optional[int] = None

    @property
    def active_subscription(self) -> Optional[int]:
        return self._active

    def sync(self, previous: Phase, current: Phase, remaining_seconds: int) -> None:
        """Follow a committed transition from ``previous`` to ``current``."""
        if previous == current:
            return
        self.stop()
        if current in COUNTING_PHASES:
            self._subscribe(remaining_seconds)

    def stop(self) -> None:
        """Stop the ticker and retire the current subscription."""
        self._ticker.stop()
        if self._active is not None:
            log.debug("Ticker subscription %d stopped", self._active)
        self._active = None

    def accept(self, message: TickerMessage) -> Optional[ClockEvent]:
        """Translate a tagged message, or return None if it is stale."""
        if message.subscription != self._active:
            log.debug(
                "Dropped %s from superseded subscription %d",
                type(message.payload).__name__,
                message.subscription,
            )
            return None
        if isinstance(message.payload, CountdownDone):
            # the ticker stops itself at zero; retire so nothing else gets through
            self._active = None
            return ClockEvent.COMPLETE
        if isinstance(message.payload, CountdownTick):
            return ClockEvent.TIMER_TICK
        return None

    def _subscribe(self, seconds: int) -> None:
        self._counter += 1
        subscription = self._counter
        self._active = subscription

        def emit(payload: CountdownMessage) -> None:
            self._post(TickerMessage(subscription, payload))

        self._ticker.start(seconds, emit)
        log.debug("Ticker subscription %d started at %ss", subscription, seconds)
