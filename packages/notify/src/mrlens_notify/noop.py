"""No-op notifier — the default when no notifier is configured."""

from __future__ import annotations

from typing import TYPE_CHECKING

from mrlens_notify.base import BaseNotifier

if TYPE_CHECKING:
    from mrlens_notify.models import ActivityEvent


class NoOpNotifier(BaseNotifier):
    """Silently discards all events — zero configuration required."""

    def notify(self, event: ActivityEvent) -> None:
        pass  # nothing to queue

    def _send(self, event: ActivityEvent) -> None:
        pass

    def list_events(self, user_name: str | None = None, limit: int = 50) -> list[ActivityEvent]:
        return []
