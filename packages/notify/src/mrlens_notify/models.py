"""Activity event model.

Decoupled from mrlens_core so notifiers can be used independently and the
core has no knowledge of where (or whether) events are recorded.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

LOGIN = "login"
RUN = "run"
ACTION = "action"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class ActivityEvent:
    """A single usage event. Passed by value; notifiers never mutate it."""

    kind: str  # "login" | "run" | "action"
    user_name: str
    user_email: str = ""
    url: str = ""
    detail: str = ""  # target kind for runs, action name for actions
    occurred_at: str = field(default_factory=_now)  # ISO-8601 UTC timestamp


def login_event(user_name: str | None, user_email: str | None) -> ActivityEvent:
    return ActivityEvent(kind=LOGIN, user_name=user_name or "Unknown", user_email=user_email or "")


def run_event(user_name: str | None, user_email: str | None, url: str, target_kind: str) -> ActivityEvent:
    return ActivityEvent(
        kind=RUN,
        user_name=user_name or "Unknown",
        user_email=user_email or "",
        url=url,
        detail=target_kind,
    )


def action_event(user_name: str | None, action: str) -> ActivityEvent:
    return ActivityEvent(kind=ACTION, user_name=user_name or "Unknown", detail=action)
