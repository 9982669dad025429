"""SQLiteNotifier — local activity log.

Schema:
  events — one row per login, analysis run or tracked action.
"""

from __future__ import annotations

import logging
import sqlite3
from threading import Lock

from mrlens_notify.base import BaseNotifier
from mrlens_notify.models import ActivityEvent

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS events (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    kind         TEXT NOT NULL,
    user_name    TEXT NOT NULL,
    user_email   TEXT,
    url          TEXT,
    detail       TEXT,
    occurred_at  TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_events_user ON events (user_name);
"""


class SQLiteNotifier(BaseNotifier):
    """Records events in a local SQLite database file.

    The path defaults to `.mrlens.db` in the current working directory.
    Configure via .mrlens.yml: `notifier: sqlite` and `notifier_path: ...`.
    """

    def __init__(self, db_path: str = ".mrlens.db"):
        super().__init__()
        # Writes happen on the notifier worker thread, reads on the caller's.
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_SCHEMA)
        self._conn.commit()
        self._db_lock = Lock()

    def _send(self, event: ActivityEvent) -> None:
        with self._db_lock:
            self._conn.execute(
                """
                INSERT INTO events (kind, user_name, user_email, url, detail, occurred_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (event.kind, event.user_name, event.user_email, event.url, event.detail, event.occurred_at),
            )
            self._conn.commit()

    def list_events(self, user_name: str | None = None, limit: int = 50) -> list[ActivityEvent]:
        with self._db_lock:
            if user_name is not None:
                rows = self._conn.execute(
                    "SELECT * FROM events WHERE user_name=? ORDER BY occurred_at DESC, id DESC LIMIT ?",
                    (user_name, limit),
                ).fetchall()
            else:
                rows = self._conn.execute(
                    "SELECT * FROM events ORDER BY occurred_at DESC, id DESC LIMIT ?",
                    (limit,),
                ).fetchall()
        return [self._row_to_event(r) for r in rows]

    def close(self) -> None:
        super().close()
        with self._db_lock:
            self._conn.close()

    @staticmethod
    def _row_to_event(row: sqlite3.Row) -> ActivityEvent:
        return ActivityEvent(
            kind=row["kind"],
            user_name=row["user_name"],
            user_email=row["user_email"] or "",
            url=row["url"] or "",
            detail=row["detail"] or "",
            occurred_at=row["occurred_at"],
        )
