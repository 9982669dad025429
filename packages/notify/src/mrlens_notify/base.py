"""Abstract notifier interface.

Notifiers record usage events (logins, analysis runs, chat messages) on a
best-effort basis. The core depends on BaseNotifier, not on a concrete
backend, and relies on one contract: ``notify()`` returns immediately and
never raises, whatever happens to the event afterwards.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from threading import Lock
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mrlens_notify.models import ActivityEvent

logger = logging.getLogger(__name__)


class BaseNotifier(ABC):
    """Fire-and-forget event sink.

    Delivery happens on a single background worker so a slow or broken
    backend never delays the caller. Subclasses implement ``_send`` and may
    raise freely; failures are logged here and go no further.
    """

    def __init__(self):
        self._executor: ThreadPoolExecutor | None = None
        self._executor_lock = Lock()

    def notify(self, event: ActivityEvent) -> None:
        """Queue ``event`` for delivery."""
        try:
            with self._executor_lock:
                if self._executor is None:
                    self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="mrlens-notify")
                self._executor.submit(self._deliver, event)
        except Exception as e:
            logger.warning("Could not queue %s event: %s", event.kind, e)

    def _deliver(self, event: ActivityEvent) -> None:
        try:
            self._send(event)
        except Exception as e:
            logger.warning("Could not track %s (%s): %s", event.kind, type(e).__name__, e)

    @abstractmethod
    def _send(self, event: ActivityEvent) -> None:
        """Record one event. May raise; callers never see it."""

    @abstractmethod
    def list_events(self, user_name: str | None = None, limit: int = 50) -> list[ActivityEvent]:
        """Return recorded events, newest first. Returns an empty list when there are none."""

    def close(self) -> None:
        """Wait for queued events to be delivered, then release resources.

        Subclasses holding connections should call super().close() first.
        """
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)
