from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Protocol

from daily_methods_hub.db_converters import _row_to_streak, _ts
from daily_methods_hub.db_models import StreakState


class DbProtocol(Protocol):
    def _connect(self) -> sqlite3.Connection: ...


class StreakMixin:
    def get_streak(self: DbProtocol, user_id: str, now: datetime) -> StreakState:
        with self._connect() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO streaks(user_id, current_streak, longest_streak, updated_at) VALUES (?, 0, 0, ?)",
                (user_id, _ts(now)),
            )
            row = conn.execute(
                "SELECT user_id, current_streak, longest_streak, last_entry_date, updated_at FROM streaks WHERE user_id = ?",
                (user_id,),
            ).fetchone()
        assert row is not None
        return _row_to_streak(row)

    def put_streak(self: DbProtocol, state: StreakState) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO streaks(user_id, current_streak, longest_streak, last_entry_date, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    current_streak=excluded.current_streak,
                    longest_streak=excluded.longest_streak,
                    last_entry_date=excluded.last_entry_date,
                    updated_at=excluded.updated_at
                """,
                (
                    state.user_id,
                    state.current_streak,
                    state.longest_streak,
                    state.last_entry_date.isoformat() if state.last_entry_date else None,
                    _ts(state.updated_at),
                ),
            )
