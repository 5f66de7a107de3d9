"""Pydantic models -- single source of truth for all data types."""

from __future__ import annotations

import enum
from datetime import date, datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Phase(str, enum.Enum):
    """The five phases the clock can be in."""

    BEFORE_RUN = "before_run"  # idle, ready to start a session
    RUNNING = "running"
    PAUSED = "paused"
    BEFORE_BREAK = "before_break"  # session finished, break not started
    BREAKING = "breaking"


COUNTING_PHASES: frozenset[Phase] = frozenset({Phase.RUNNING, Phase.BREAKING})


class ClockEvent(str, enum.Enum):
    """Events fed into the state machine."""

    START = "START"
    PAUSE = "PAUSE"
    RESET = "RESET"
    SKIP = "SKIP"
    COMPLETE = "COMPLETE"
    TIMER_TICK = "TIMER_TICK"


USER_EVENTS: frozenset[ClockEvent] = frozenset(
    {ClockEvent.START, ClockEvent.PAUSE, ClockEvent.RESET, ClockEvent.SKIP}
)


class IntervalKind(str, enum.Enum):
    """What a completed interval was."""

    SESSION = "session"
    BREAK = "break"


class ClockConfig(BaseModel):
    """Durations and messages consumed by every transition."""

    model_config = ConfigDict(frozen=True)

    session_duration_seconds: int = Field(default=30 * 60, gt=0)
    break_duration_seconds: int = Field(default=2 * 60, gt=0)
    session_complete_message: str = "It's time to work!"
    break_complete_message: str = "It's time to take a break!"
    silent: bool = False


class MachineState(BaseModel):
    """The mutable record owned by one state machine."""

    model_config = ConfigDict(validate_assignment=True)

    phase: Phase = Phase.BEFORE_RUN
    remaining_seconds: int = Field(ge=0)
    session_round: int = Field(default=1, ge=1)
    break_round: int = Field(default=1, ge=1)
    interval_started_at: datetime = Field(default_factory=datetime.now)

    @property
    def in_session(self) -> bool:
        return self.phase not in (Phase.BEFORE_RUN, Phase.PAUSED)


# ---------------------------------------------------------------------------
# Effects requested by a transition
# ---------------------------------------------------------------------------


class PersistInterval(BaseModel):
    """Ask the executor to record a finished (or cut short) interval."""

    model_config = ConfigDict(frozen=True)

    kind: IntervalKind
    started_at: datetime
    ended_at: datetime
    expected_duration_seconds: int = Field(ge=0)


class ShowNotification(BaseModel):
    """Ask the executor to present a confirmation notice."""

    model_config = ConfigDict(frozen=True)

    message: str
    icon: str
    silent: bool = False


class RefreshHistory(BaseModel):
    """The calendar day changed; history views should reload."""

    model_config = ConfigDict(frozen=True)


Effect = Union[PersistInterval, ShowNotification, RefreshHistory]


class TransitionResult(BaseModel):
    """Outcome of one event: the next state fields plus requested effects."""

    model_config = ConfigDict(frozen=True)

    event: Optional[ClockEvent] = None  # None for settings changes
    phase: Phase
    remaining_seconds: int = Field(ge=0)
    session_round: Optional[int] = Field(default=None, ge=1)
    break_round: Optional[int] = Field(default=None, ge=1)
    interval_started_at: Optional[datetime] = None
    effects: tuple[Effect, ...] = ()

    @property
    def persisted_kinds(self) -> list[IntervalKind]:
        return [e.kind for e in self.effects if isinstance(e, PersistInterval)]

    @property
    def notification(self) -> Optional[ShowNotification]:
        for effect in self.effects:
            if isinstance(effect, ShowNotification):
                return effect
        return None


# ---------------------------------------------------------------------------
# Stored intervals
# ---------------------------------------------------------------------------


class CompletedIntervalCreate(BaseModel):
    """Input model for appending an interval to the store."""

    kind: IntervalKind
    started_at: datetime
    ended_at: datetime
    expected_duration_seconds: int = Field(ge=0)


class CompletedInterval(BaseModel):
    """A stored session or break."""

    id: int
    uid: str = "0"
    kind: IntervalKind
    started_at: datetime
    ended_at: datetime
    expected_duration_seconds: int = Field(ge=0)

    @property
    def actual_duration_seconds(self) -> int:
        return max(0, int((self.ended_at - self.started_at).total_seconds()))


class DaySummary(BaseModel):
    """Aggregated activity for one calendar day."""

    date: date
    sessions: int = Field(default=0, ge=0)
    breaks: int = Field(default=0, ge=0)
    focus_seconds: int = Field(default=0, ge=0)

    @property
    def focus_minutes(self) -> int:
        return self.focus_seconds // 60


class ClockSnapshot(BaseModel):
    """Read-only view of the clock handed to renderers."""

    model_config = ConfigDict(frozen=True)

    phase: Phase
    remaining_seconds: int
    session_round: int
    break_round: int
    phase_text: str
    display_time: str
    in_session: bool
    notification_pending: bool = False


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


class AppConfig(BaseModel):
    """Application settings (persisted to ~/.config/napclock/config.json)."""

    session_minutes: float = Field(default=30, gt=0, le=24 * 60)
    break_minutes: float = Field(default=2, gt=0, le=24 * 60)
    session_hint: str = "It's time to work!"
    break_hint: str = "It's time to take a break!"
    silent: bool = False
    auto_advance: bool = False
    db_path: Optional[str] = None  # None = use default (~/.local/share/napclock/)

    @field_validator("session_minutes", "break_minutes")
    @classmethod
    def _one_decimal(cls, value: float) -> float:
        value = round(value, 1)
        if value <= 0:
            raise ValueError("duration must be at least 0.1 minutes")
        return value

    def to_clock_config(self) -> ClockConfig:
        return ClockConfig(
            session_duration_seconds=max(1, round(self.session_minutes * 60)),
            break_duration_seconds=max(1, round(self.break_minutes * 60)),
            session_complete_message=self.session_hint,
            break_complete_message=self.break_hint,
            silent=self.silent,
        )
