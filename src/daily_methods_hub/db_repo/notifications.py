from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Protocol

from daily_methods_hub.db_constants import NOTIFICATION_KINDS
from daily_methods_hub.db_converters import _row_to_notification, _ts
from daily_methods_hub.db_models import Notification
from daily_methods_hub.errors import ValidationError


class DbProtocol(Protocol):
    def _connect(self) -> sqlite3.Connection: ...


class NotificationMixin:
    def add_notification(
        self: DbProtocol,
        user_id: str,
        title: str,
        message: str,
        created_at: datetime,
        kind: str = "info",
    ) -> Notification:
        if kind not in NOTIFICATION_KINDS:
            raise ValidationError(f"Unknown notification kind: {kind}")
        with self._connect() as conn:
            cur = conn.execute(
                """
                INSERT INTO notifications(user_id, title, message, kind, is_read, created_at)
                VALUES (?, ?, ?, ?, 0, ?)
                """,
                (user_id, title, message, kind, _ts(created_at)),
            )
            row = conn.execute(
                "SELECT id, user_id, title, message, kind, is_read, created_at FROM notifications WHERE id = ?",
                (int(cur.lastrowid),),
            ).fetchone()
        return _row_to_notification(row)

    def list_notifications(self: DbProtocol, user_id: str, unread_only: bool = False, limit: int = 50) -> list[Notification]:
        query = "SELECT id, user_id, title, message, kind, is_read, created_at FROM notifications WHERE user_id = ?"
        if unread_only:
            query += " AND is_read = 0"
        with self._connect() as conn:
            rows = conn.execute(
                f"{query} ORDER BY created_at DESC, id DESC LIMIT ?",
                (user_id, max(1, limit)),
            ).fetchall()
        return [_row_to_notification(r) for r in rows]

    def count_unread_notifications(self: DbProtocol, user_id: str) -> int:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS n FROM notifications WHERE user_id = ? AND is_read = 0",
                (user_id,),
            ).fetchone()
        return int(row["n"])

    def mark_notification_read(self: DbProtocol, notification_id: int, user_id: str) -> bool:
        with self._connect() as conn:
            cur = conn.execute(
                "UPDATE notifications SET is_read = 1 WHERE id = ? AND user_id = ?",
                (notification_id, user_id),
            )
        return cur.rowcount > 0

    def mark_all_notifications_read(self: DbProtocol, user_id: str) -> int:
        with self._connect() as conn:
            cur = conn.execute(
                "UPDATE notifications SET is_read = 1 WHERE user_id = ? AND is_read = 0",
                (user_id,),
            )
        return cur.rowcount

    def delete_notification(self: DbProtocol, notification_id: int, user_id: str) -> bool:
        with self._connect() as conn:
            cur = conn.execute(
                "DELETE FROM notifications WHERE id = ? AND user_id = ?",
                (notification_id, user_id),
            )
        return cur.rowcount > 0
