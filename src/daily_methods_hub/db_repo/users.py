from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Protocol

from daily_methods_hub.db_converters import _row_to_profile, _ts
from daily_methods_hub.db_models import UserProfile

PROFILE_COLUMNS = "user_id, email, is_admin, plan_type, subscription_status"


class DbProtocol(Protocol):
    def _connect(self) -> sqlite3.Connection: ...
    def get_profile(self, user_id: str) -> UserProfile | None: ...


class UserMixin:
    def upsert_profile(self: DbProtocol, user_id: str, seen_at: datetime, email: str | None = None) -> UserProfile:
        stamp = _ts(seen_at)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO user_profiles(user_id, email, created_at, last_seen_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    email=COALESCE(excluded.email, user_profiles.email),
                    last_seen_at=excluded.last_seen_at
                """,
                (user_id, email, stamp, stamp),
            )
        profile = self.get_profile(user_id)
        assert profile is not None
        return profile

    def get_profile(self: DbProtocol, user_id: str) -> UserProfile | None:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {PROFILE_COLUMNS} FROM user_profiles WHERE user_id = ?",
                (user_id,),
            ).fetchone()
        return _row_to_profile(row) if row else None

    def set_admin(self: DbProtocol, user_id: str, is_admin: bool) -> bool:
        with self._connect() as conn:
            cur = conn.execute(
                "UPDATE user_profiles SET is_admin = ? WHERE user_id = ?",
                (1 if is_admin else 0, user_id),
            )
        return cur.rowcount > 0

    def set_subscription(self: DbProtocol, user_id: str, plan_type: str, status: str | None) -> bool:
        with self._connect() as conn:
            cur = conn.execute(
                "UPDATE user_profiles SET plan_type = ?, subscription_status = ? WHERE user_id = ?",
                (plan_type, status, user_id),
            )
        return cur.rowcount > 0

    def list_profiles(self: DbProtocol) -> list[UserProfile]:
        with self._connect() as conn:
            rows = conn.execute(f"SELECT {PROFILE_COLUMNS} FROM user_profiles ORDER BY user_id").fetchall()
        return [_row_to_profile(r) for r in rows]
