from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Protocol

from daily_methods_hub.db_converters import _row_to_points, _row_to_referral, _ts
from daily_methods_hub.db_models import Referral, ReferralPoints
from daily_methods_hub.errors import DuplicateReferralError, ValidationError


class DbProtocol(Protocol):
    def _connect(self) -> sqlite3.Connection: ...
    def get_points(self, user_id: str, now: datetime) -> ReferralPoints: ...


class ReferralMixin:
    def get_points(self: DbProtocol, user_id: str, now: datetime) -> ReferralPoints:
        with self._connect() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO referral_points(user_id, points, lifetime_points, updated_at) VALUES (?, 0, 0, ?)",
                (user_id, _ts(now)),
            )
            row = conn.execute(
                "SELECT user_id, points, lifetime_points, updated_at FROM referral_points WHERE user_id = ?",
                (user_id,),
            ).fetchone()
        assert row is not None
        return _row_to_points(row)

    def add_points(self: DbProtocol, user_id: str, points: int, now: datetime) -> ReferralPoints:
        if points < 0:
            raise ValidationError("Points can only be added")
        stamp = _ts(now)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO referral_points(user_id, points, lifetime_points, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    points=referral_points.points + excluded.points,
                    lifetime_points=referral_points.lifetime_points + excluded.lifetime_points,
                    updated_at=excluded.updated_at
                """,
                (user_id, points, points, stamp),
            )
        return self.get_points(user_id, now)

    def insert_referral(self: DbProtocol, referrer_id: str, referred_user_id: str, now: datetime) -> Referral:
        if referrer_id == referred_user_id:
            raise ValidationError("You cannot refer yourself")
        try:
            with self._connect() as conn:
                cur = conn.execute(
                    "INSERT INTO referrals(referrer_id, referred_user_id, created_at) VALUES (?, ?, ?)",
                    (referrer_id, referred_user_id, _ts(now)),
                )
                row = conn.execute(
                    "SELECT id, referrer_id, referred_user_id, created_at FROM referrals WHERE id = ?",
                    (int(cur.lastrowid),),
                ).fetchone()
        except sqlite3.IntegrityError as exc:
            raise DuplicateReferralError("User already referred") from exc
        return _row_to_referral(row)

    def count_referrals(self: DbProtocol, referrer_id: str) -> int:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS c FROM referrals WHERE referrer_id = ?",
                (referrer_id,),
            ).fetchone()
        return int(row["c"]) if row else 0

    def list_recent_referrals(self: DbProtocol, referrer_id: str, limit: int = 10) -> list[Referral]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT id, referrer_id, referred_user_id, created_at
                FROM referrals
                WHERE referrer_id = ?
                ORDER BY created_at DESC, id DESC
                LIMIT ?
                """,
                (referrer_id, max(1, limit)),
            ).fetchall()
        return [_row_to_referral(r) for r in rows]
