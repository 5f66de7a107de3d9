"""Confirmation notices that wait for the user to acknowledge them."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Optional, Protocol

from rich.console import Console

log = logging.getLogger(__name__)


class NotificationDismissed(Exception):
    """The user closed the notice without acknowledging it."""


class NotificationUnavailable(Exception):
    """The notice could not be shown at all (no permission, no display)."""


class Notifier(Protocol):
    def present(self, message: str, icon: str, *, silent: bool = False) -> Future[None]: ...

    def close_active(self) -> None: ...


@dataclass(frozen=True)
class PendingNotice:
    message: str
    icon: str


_ICONS: dict[str, str] = {
    "break": ":coffee:",
    "work": ":tomato:",
}


class ConsoleNotifier:
    """Shows one notice at a time in the terminal.

    The interactive CLI resolves it through ``acknowledge()`` or
    ``dismiss()``. Futures complete on whichever thread calls those.
    With ``require_terminal``, a console that is not a terminal cannot show
    notices and ``present`` raises ``NotificationUnavailable``.
    """

    title = "TAKE A NAP"

    def __init__(
        self, console: Optional[Console] = None, *, require_terminal: bool = False
    ) -> None:
        self._console = console or Console()
        self._require_terminal = require_terminal
        self._lock = threading.Lock()
        self._pending: Optional[PendingNotice] = None
        self._future: Optional[Future[None]] = None

    @property
    def pending(self) -> Optional[PendingNotice]:
        with self._lock:
            return self._pending

    def present(self, message: str, icon: str, *, silent: bool = False) -> Future[None]:
        if self._require_terminal and not self._console.is_terminal:
            raise NotificationUnavailable("output is not a terminal")
        future: Future[None] = Future()
        with self._lock:
            previous = self._future
            self._pending = PendingNotice(message=message, icon=icon)
            self._future = future
        if previous is not None:
            previous.cancel()
        emoji = _ICONS.get(icon, ":bell:")
        self._console.print(f"{emoji} [bold magenta]{self.title}[/bold magenta] {message}")
        if not silent:
            self._console.bell()
        log.info("Notice shown: %s", message)
        return future

    def acknowledge(self) -> bool:
        future = self._take()
        if future is None:
            return False
        future.set_result(None)
        return True

    def dismiss(self) -> bool:
        future = self._take()
        if future is None:
            return False
        future.set_exception(NotificationDismissed("notice dismissed"))
        return True

    def close_active(self) -> None:
        future = self._take()
        if future is not None:
            future.cancel()
            log.debug("Pending notice closed")

    def _take(self) -> Optional[Future[None]]:
        with self._lock:
            future, self._future, self._pending = self._future, None, None
        if future is None or future.done():
            return None
        return future
