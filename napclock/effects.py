"""Carries out the effects a transition asks for, after it was committed.

Order is fixed: persistence, then history refresh, then the notice. None of
it may undo or hold up the transition, so every failure stops here.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future
from datetime import datetime
from typing import Callable, Optional, Protocol

from napclock.models import (
    IntervalKind,
    PersistInterval,
    RefreshHistory,
    ShowNotification,
    TransitionResult,
)
from napclock.notifier import NotificationDismissed, NotificationUnavailable, Notifier

log = logging.getLogger(__name__)


class IntervalAppender(Protocol):
    def append(
        self,
        kind: IntervalKind,
        started_at: datetime,
        ended_at: datetime,
        expected_duration_seconds: int,
    ) -> int: ...


class EffectExecutor:
    """Persists intervals and presents notices for committed transitions."""

    def __init__(
        self,
        store: IntervalAppender,
        notifier: Notifier,
        *,
        on_refresh: Optional[Callable[[], None]] = None,
        on_notification_unavailable: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._on_refresh = on_refresh
        self._on_notification_unavailable = on_notification_unavailable

    def execute(
        self,
        result: TransitionResult,
        on_settled: Optional[Callable[[TransitionResult, bool], None]] = None,
    ) -> Optional[Future[None]]:
        """Run the effects of an already committed ``result``.

        ``on_settled(result, acknowledged)`` is called once the notice is
        acknowledged or dismissed; not when it is closed programmatically.
        Returns the pending notice, if one was shown.
        """
        for effect in result.effects:
            if isinstance(effect, PersistInterval):
                self._persist(effect)

        if any(isinstance(e, RefreshHistory) for e in result.effects) and self._on_refresh:
            try:
                self._on_refresh()
            except Exception:
                log.exception("History refresh failed")

        notice = result.notification
        if notice is None:
            return None
        return self._notify(notice, result, on_settled)

    def _persist(self, effect: PersistInterval) -> None:
        try:
            interval_id = self._store.append(
                effect.kind,
                effect.started_at,
                effect.ended_at,
                effect.expected_duration_seconds,
            )
        except Exception:
            log.exception("Failed to save %s; it will not be recorded", effect.kind.value)
            return
        log.info(
            "Saved %s #%s (%s -> %s)",
            effect.kind.value,
            interval_id,
            effect.started_at.strftime("%H:%M:%S"),
            effect.ended_at.strftime("%H:%M:%S"),
        )

    def _notify(
        self,
        notice: ShowNotification,
        result: TransitionResult,
        on_settled: Optional[Callable[[TransitionResult, bool], None]],
    ) -> Optional[Future[None]]:
        try:
            future = self._notifier.present(notice.message, notice.icon, silent=notice.silent)
        except NotificationUnavailable as error:
            log.warning("Notification unavailable: %s", error)
            if self._on_notification_unavailable:
                self._on_notification_unavailable(str(error))
            return None
        except Exception:
            log.exception("Notifier failed to present %r", notice.message)
            return None

        def _settled(done: Future[None]) -> None:
            if done.cancelled():
                log.debug("Notice %r closed before it was answered", notice.message)
                return
            error = done.exception()
            if error is not None and not isinstance(error, NotificationDismissed):
                log.warning("Notice %r failed: %s", notice.message, error)
                return
            acknowledged = error is None
            log.info(
                "Notice %r %s", notice.message, "acknowledged" if acknowledged else "dismissed"
            )
            if on_settled is not None:
                on_settled(result, acknowledged)

        future.add_done_callback(_settled)
        return future
