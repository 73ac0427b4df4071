from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Any, Protocol

from daily_methods_hub.db_constants import DIFFICULTIES, METHOD_CATEGORIES
from daily_methods_hub.db_converters import _row_to_completion, _row_to_method, _ts
from daily_methods_hub.db_models import Method, MethodCompletion, MethodStats
from daily_methods_hub.errors import NotFoundError, ValidationError
from daily_methods_hub.time_utils import day_bounds, local_date

METHOD_COLUMNS = """
    id, user_id, title, description, category, earnings, difficulty, time_required,
    link, referral_code, icon_url, is_active, is_public, created_at, updated_at
"""

# model field -> column
METHOD_FIELD_COLUMNS = {
    "title": "title",
    "description": "description",
    "category": "category",
    "earnings_hint": "earnings",
    "difficulty": "difficulty",
    "time_required": "time_required",
    "link": "link",
    "referral_code": "referral_code",
    "icon_url": "icon_url",
    "is_active": "is_active",
    "is_public": "is_public",
}


class DbProtocol(Protocol):
    def _connect(self) -> sqlite3.Connection: ...
    def get_method(self, method_id: int) -> Method | None: ...


def _clean_method_fields(fields: dict[str, Any]) -> dict[str, Any]:
    cleaned = {k: v for k, v in fields.items() if k in METHOD_FIELD_COLUMNS}
    if "title" in cleaned:
        cleaned["title"] = str(cleaned["title"] or "").strip()
        if not cleaned["title"]:
            raise ValidationError("Title is required")
    if "difficulty" in cleaned and cleaned["difficulty"] not in DIFFICULTIES:
        raise ValidationError(f"Difficulty must be one of: {', '.join(DIFFICULTIES)}")
    if "category" in cleaned and cleaned["category"] not in METHOD_CATEGORIES:
        raise ValidationError(f"Category must be one of: {', '.join(METHOD_CATEGORIES)}")
    for text in ("description", "earnings_hint", "time_required"):
        if text in cleaned and cleaned[text] is None:
            cleaned[text] = ""
    for flag in ("is_active", "is_public"):
        if flag in cleaned:
            cleaned[flag] = 1 if cleaned[flag] else 0
    return cleaned


class MethodMixin:
    def insert_method(self: DbProtocol, owner_user_id: str, fields: dict[str, Any], now: datetime) -> Method:
        data = {
            "description": "",
            "category": "Other",
            "earnings_hint": "",
            "difficulty": "Easy",
            "time_required": "",
            "is_active": True,
            "is_public": False,
            **fields,
        }
        if "title" not in data:
            raise ValidationError("Title is required")
        cleaned = _clean_method_fields(data)
        columns = [METHOD_FIELD_COLUMNS[k] for k in cleaned]
        stamp = _ts(now)
        with self._connect() as conn:
            cur = conn.execute(
                f"""
                INSERT INTO methods(user_id, {', '.join(columns)}, created_at, updated_at)
                VALUES (?, {', '.join('?' for _ in columns)}, ?, ?)
                """,
                (owner_user_id, *cleaned.values(), stamp, stamp),
            )
            method_id = int(cur.lastrowid)
        method = self.get_method(method_id)
        assert method is not None
        return method

    def get_method(self: DbProtocol, method_id: int) -> Method | None:
        with self._connect() as conn:
            row = conn.execute(f"SELECT {METHOD_COLUMNS} FROM methods WHERE id = ?", (method_id,)).fetchone()
        return _row_to_method(row) if row else None

    def update_method(
        self: DbProtocol,
        method_id: int,
        owner_user_id: str,
        fields: dict[str, Any],
        now: datetime,
    ) -> Method:
        cleaned = _clean_method_fields(fields)
        with self._connect() as conn:
            exists = conn.execute(
                "SELECT 1 FROM methods WHERE id = ? AND user_id = ?",
                (method_id, owner_user_id),
            ).fetchone()
            if exists is None:
                raise NotFoundError("Method not found")
            if cleaned:
                assignments = ", ".join(f"{METHOD_FIELD_COLUMNS[k]} = ?" for k in cleaned)
                conn.execute(
                    f"UPDATE methods SET {assignments}, updated_at = ? WHERE id = ?",
                    (*cleaned.values(), _ts(now), method_id),
                )
        method = self.get_method(method_id)
        assert method is not None
        return method

    def delete_method(self: DbProtocol, method_id: int, owner_user_id: str) -> bool:
        with self._connect() as conn:
            cur = conn.execute(
                "DELETE FROM methods WHERE id = ? AND user_id = ?",
                (method_id, owner_user_id),
            )
            if cur.rowcount:
                conn.execute(
                    "DELETE FROM method_completions WHERE method_id = ? AND user_id = ?",
                    (method_id, owner_user_id),
                )
        return cur.rowcount > 0

    def list_methods(self: DbProtocol, owner_user_id: str) -> list[Method]:
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {METHOD_COLUMNS} FROM methods WHERE user_id = ? ORDER BY created_at DESC, id DESC",
                (owner_user_id,),
            ).fetchall()
        return [_row_to_method(r) for r in rows]

    def list_active_methods(self: DbProtocol, owner_user_id: str) -> list[Method]:
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {METHOD_COLUMNS} FROM methods WHERE user_id = ? AND is_active = 1 ORDER BY id",
                (owner_user_id,),
            ).fetchall()
        return [_row_to_method(r) for r in rows]

    def list_public_methods(self: DbProtocol, category: str | None = None) -> list[Method]:
        query = f"SELECT {METHOD_COLUMNS} FROM methods WHERE is_public = 1 AND is_active = 1"
        params: tuple[Any, ...] = ()
        if category:
            query += " AND category = ?"
            params = (category,)
        with self._connect() as conn:
            rows = conn.execute(f"{query} ORDER BY created_at DESC, id DESC", params).fetchall()
        return [_row_to_method(r) for r in rows]

    def method_stats(self: DbProtocol, owner_user_id: str, since: datetime) -> MethodStats:
        """Counts over the owner's methods. ``this_month_count`` counts rows created at or after ``since``."""
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT COUNT(*) AS total,
                       COALESCE(SUM(is_active), 0) AS active,
                       COALESCE(SUM(CASE WHEN created_at >= ? THEN 1 ELSE 0 END), 0) AS recent
                FROM methods
                WHERE user_id = ?
                """,
                (_ts(since), owner_user_id),
            ).fetchone()
            categories = conn.execute(
                "SELECT category, COUNT(*) AS n FROM methods WHERE user_id = ? GROUP BY category ORDER BY category",
                (owner_user_id,),
            ).fetchall()
        total = int(row["total"])
        active = int(row["active"])
        return MethodStats(
            total_count=total,
            active_count=active,
            inactive_count=total - active,
            this_month_count=int(row["recent"]),
            category_breakdown={str(r["category"]): int(r["n"]) for r in categories},
        )

    def insert_completion(self: DbProtocol, user_id: str, method_id: int, completed_at: datetime) -> MethodCompletion:
        with self._connect() as conn:
            cur = conn.execute(
                "INSERT INTO method_completions(user_id, method_id, completed_at) VALUES (?, ?, ?)",
                (user_id, method_id, _ts(completed_at)),
            )
            row = conn.execute(
                "SELECT id, user_id, method_id, completed_at FROM method_completions WHERE id = ?",
                (int(cur.lastrowid),),
            ).fetchone()
        return _row_to_completion(row)

    def list_completions_today(self: DbProtocol, user_id: str, now: datetime, tz_name: str) -> list[MethodCompletion]:
        start, end = day_bounds(local_date(now, tz_name), tz_name)
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT id, user_id, method_id, completed_at
                FROM method_completions
                WHERE user_id = ? AND completed_at >= ? AND completed_at < ?
                ORDER BY completed_at
                """,
                (user_id, _ts(start), _ts(end)),
            ).fetchall()
        return [_row_to_completion(r) for r in rows]
