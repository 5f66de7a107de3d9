"""Pomodoro state machine: a pure transition table plus one owned state record.

``transition`` computes what an event does without touching anything;
``PomodoroStateMachine.apply_transition`` is the only place the owned
``MachineState`` changes. Effects in the result (persist, notify, refresh)
are carried out by the caller after the commit.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Callable, Optional, Protocol, Sequence

from napclock.models import (
    ClockConfig,
    ClockEvent,
    ClockSnapshot,
    CompletedInterval,
    Effect,
    IntervalKind,
    MachineState,
    Phase,
    PersistInterval,
    RefreshHistory,
    ShowNotification,
    TransitionResult,
)

log = logging.getLogger(__name__)

BREAK_ICON = "break"
WORK_ICON = "work"

# Intents that begin (or restart) an interval and therefore check for a new day.
_PHASE_INITIATING: frozenset[ClockEvent] = frozenset(
    {ClockEvent.START, ClockEvent.RESET, ClockEvent.SKIP}
)


class IntervalQuery(Protocol):
    def query_range(self, start: datetime, end: datetime) -> Sequence[CompletedInterval]: ...


def format_min_and_sec(seconds: int) -> str:
    """Format seconds as ``m:ss``."""
    minutes, secs = divmod(max(0, int(seconds)), 60)
    return f"{minutes}:{secs:02d}"


def is_new_day(started_at: datetime, now: datetime) -> bool:
    return now.date() > started_at.date()


# ---------------------------------------------------------------------------
# Transition table
# ---------------------------------------------------------------------------


def _no_op(event: ClockEvent, state: MachineState) -> TransitionResult:
    return TransitionResult(
        event=event, phase=state.phase, remaining_seconds=state.remaining_seconds
    )


def _tick(event: ClockEvent, state: MachineState) -> TransitionResult:
    return TransitionResult(
        event=event,
        phase=state.phase,
        remaining_seconds=max(0, state.remaining_seconds - 1),
    )


def _persist(
    kind: IntervalKind, state: MachineState, config: ClockConfig, now: datetime
) -> PersistInterval:
    expected = (
        config.session_duration_seconds
        if kind == IntervalKind.SESSION
        else config.break_duration_seconds
    )
    return PersistInterval(
        kind=kind,
        started_at=state.interval_started_at,
        ended_at=now,
        expected_duration_seconds=expected,
    )


def _before_run(
    event: ClockEvent, state: MachineState, config: ClockConfig, now: datetime
) -> TransitionResult:
    if event == ClockEvent.START:
        return TransitionResult(
            event=event,
            phase=Phase.RUNNING,
            remaining_seconds=config.session_duration_seconds,
            interval_started_at=now,
        )
    if event == ClockEvent.TIMER_TICK:
        return _tick(event, state)
    return _no_op(event, state)


def _running(
    event: ClockEvent, state: MachineState, config: ClockConfig, now: datetime
) -> TransitionResult:
    if event == ClockEvent.PAUSE:
        return TransitionResult(
            event=event, phase=Phase.PAUSED, remaining_seconds=state.remaining_seconds
        )
    if event == ClockEvent.RESET:
        return TransitionResult(
            event=event,
            phase=Phase.BEFORE_RUN,
            remaining_seconds=config.session_duration_seconds,
            effects=(_persist(IntervalKind.SESSION, state, config, now),),
        )
    if event == ClockEvent.COMPLETE:
        return TransitionResult(
            event=event,
            phase=Phase.BEFORE_BREAK,
            remaining_seconds=config.break_duration_seconds,
            session_round=state.session_round + 1,
            effects=(
                _persist(IntervalKind.SESSION, state, config, now),
                ShowNotification(
                    message=config.break_complete_message,
                    icon=BREAK_ICON,
                    silent=config.silent,
                ),
            ),
        )
    if event == ClockEvent.TIMER_TICK:
        return _tick(event, state)
    return _no_op(event, state)


def _paused(
    event: ClockEvent, state: MachineState, config: ClockConfig, now: datetime
) -> TransitionResult:
    if event == ClockEvent.START:
        # resume; the interval keeps its original start time
        return TransitionResult(
            event=event, phase=Phase.RUNNING, remaining_seconds=state.remaining_seconds
        )
    if event == ClockEvent.RESET:
        return TransitionResult(
            event=event,
            phase=Phase.BEFORE_RUN,
            remaining_seconds=config.session_duration_seconds,
            effects=(_persist(IntervalKind.SESSION, state, config, now),),
        )
    return _no_op(event, state)


def _before_break(
    event: ClockEvent, state: MachineState, config: ClockConfig, now: datetime
) -> TransitionResult:
    if event == ClockEvent.START:
        return TransitionResult(
            event=event,
            phase=Phase.BREAKING,
            remaining_seconds=config.break_duration_seconds,
            interval_started_at=now,
        )
    if event == ClockEvent.SKIP:
        return TransitionResult(
            event=event,
            phase=Phase.RUNNING,
            remaining_seconds=config.session_duration_seconds,
            interval_started_at=now,
        )
    if event == ClockEvent.TIMER_TICK:
        return _tick(event, state)
    return _no_op(event, state)


def _breaking(
    event: ClockEvent, state: MachineState, config: ClockConfig, now: datetime
) -> TransitionResult:
    if event == ClockEvent.SKIP:
        return TransitionResult(
            event=event,
            phase=Phase.RUNNING,
            remaining_seconds=config.session_duration_seconds,
            break_round=state.break_round + 1,
            interval_started_at=now,
            effects=(_persist(IntervalKind.BREAK, state, config, now),),
        )
    if event == ClockEvent.COMPLETE:
        return TransitionResult(
            event=event,
            phase=Phase.BEFORE_RUN,
            remaining_seconds=config.session_duration_seconds,
            break_round=state.break_round + 1,
            effects=(
                _persist(IntervalKind.BREAK, state, config, now),
                ShowNotification(
                    message=config.session_complete_message,
                    icon=WORK_ICON,
                    silent=config.silent,
                ),
            ),
        )
    if event == ClockEvent.TIMER_TICK:
        return _tick(event, state)
    return _no_op(event, state)


_HANDLERS: dict[
    Phase,
    Callable[[ClockEvent, MachineState, ClockConfig, datetime], TransitionResult],
] = {
    Phase.BEFORE_RUN: _before_run,
    Phase.RUNNING: _running,
    Phase.PAUSED: _paused,
    Phase.BEFORE_BREAK: _before_break,
    Phase.BREAKING: _breaking,
}


def transition(
    event: ClockEvent, state: MachineState, config: ClockConfig, now: datetime
) -> TransitionResult:
    """Compute the result of ``event`` in ``state``. Never mutates ``state``."""
    handler = _HANDLERS.get(state.phase)
    if handler is None:
        return _no_op(event, state)

    result = handler(event, state, config, now)
    rolled_over = (
        event in _PHASE_INITIATING
        and result.phase != state.phase
        and is_new_day(state.interval_started_at, now)
    )
    if not rolled_over:
        return result

    # Rounds count today's intervals; anything persisted here started yesterday.
    effects: tuple[Effect, ...] = result.effects + (RefreshHistory(),)
    return result.model_copy(
        update={"session_round": 1, "break_round": 1, "effects": effects}
    )


# ---------------------------------------------------------------------------
# Owned state
# ---------------------------------------------------------------------------


class PomodoroStateMachine:
    """Owns one ``MachineState`` and the configuration it is driven with."""

    def __init__(
        self,
        config: ClockConfig,
        *,
        phase: Phase = Phase.BEFORE_RUN,
        now: Optional[datetime] = None,
    ) -> None:
        self._config = config
        self._state = MachineState(
            phase=phase,
            remaining_seconds=config.session_duration_seconds,
            interval_started_at=now or datetime.now(),
        )

    @property
    def config(self) -> ClockConfig:
        return self._config

    @property
    def state(self) -> MachineState:
        """A copy of the current state."""
        return self._state.model_copy()

    @property
    def phase(self) -> Phase:
        return self._state.phase

    @property
    def in_session(self) -> bool:
        return self._state.in_session

    def handle_event(
        self, event: ClockEvent, now: Optional[datetime] = None
    ) -> TransitionResult:
        return transition(event, self._state.model_copy(), self._config, now or datetime.now())

    def apply_transition(self, result: TransitionResult) -> None:
        previous = self._state.phase
        self._state.phase = result.phase
        self._state.remaining_seconds = result.remaining_seconds
        if result.session_round is not None:
            self._state.session_round = result.session_round
        if result.break_round is not None:
            self._state.break_round = result.break_round
        if result.interval_started_at is not None:
            self._state.interval_started_at = result.interval_started_at
        if previous != result.phase:
            log.debug(
                "%s: %s -> %s (remaining=%ss)",
                result.event.value if result.event else "config",
                previous.value,
                result.phase.value,
                result.remaining_seconds,
            )

    def update_config(self, config: ClockConfig) -> None:
        """Swap in new settings; duration edits re-arm the countdown while idle."""
        previous, self._config = self._config, config
        phase = self._state.phase
        remaining: Optional[int] = None
        if (
            phase == Phase.BEFORE_RUN
            and config.session_duration_seconds != previous.session_duration_seconds
        ):
            remaining = config.session_duration_seconds
        elif (
            phase == Phase.BEFORE_BREAK
            and config.break_duration_seconds != previous.break_duration_seconds
        ):
            remaining = config.break_duration_seconds
        if remaining is not None:
            self.apply_transition(
                TransitionResult(phase=phase, remaining_seconds=remaining)
            )

    def seed_rounds(self, store: IntervalQuery, today: Optional[date] = None) -> bool:
        """Set rounds from today's stored intervals. Returns False on failure."""
        day = today or date.today()
        start = datetime.combine(day, datetime.min.time())
        end = start + timedelta(days=1)
        try:
            intervals = store.query_range(start, end)
        except Exception:
            log.warning("Could not load today's intervals; rounds start at 1", exc_info=True)
            return False
        sessions = sum(1 for i in intervals if i.kind == IntervalKind.SESSION)
        breaks = sum(1 for i in intervals if i.kind == IntervalKind.BREAK)
        self._state.session_round = sessions + 1
        self._state.break_round = breaks + 1
        return True

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    def phase_text(self) -> str:
        state = self._state
        if state.phase in (Phase.RUNNING, Phase.PAUSED):
            return f"Session {state.session_round}"
        if state.phase in (Phase.BREAKING, Phase.BEFORE_BREAK):
            return f"Break {state.break_round}" if state.in_session else "Resting"
        return f"Session {state.session_round}" if state.in_session else "Ready?"

    def display_time(self) -> str:
        return format_min_and_sec(self._state.remaining_seconds)

    def snapshot(self, notification_pending: bool = False) -> ClockSnapshot:
        state = self._state
        return ClockSnapshot(
            phase=state.phase,
            remaining_seconds=state.remaining_seconds,
            session_round=state.session_round,
            break_round=state.break_round,
            phase_text=self.phase_text(),
            display_time=self.display_time(),
            in_session=state.in_session,
            notification_pending=notification_pending,
        )
