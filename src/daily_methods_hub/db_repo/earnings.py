from __future__ import annotations

import math
import sqlite3
from datetime import date, datetime
from typing import Any, Protocol

from daily_methods_hub.db_converters import _row_to_entry, _ts
from daily_methods_hub.db_models import EarningEntry
from daily_methods_hub.errors import DuplicateEntryError, NotFoundError, ValidationError

ENTRY_SELECT = """
    SELECT e.id, e.user_id, e.method_id, e.amount, e.entry_date, e.notes,
           e.created_at, e.updated_at,
           m.title AS method_title, m.category AS method_category, m.icon_url AS method_icon_url
    FROM daily_earnings e
    LEFT JOIN methods m ON m.id = e.method_id
"""

EDITABLE_ENTRY_FIELDS = ("method_id", "amount", "entry_date", "notes")

# editable fields that cannot be cleared
REQUIRED_ENTRY_FIELDS = {
    "method_id": "Method is required",
    "amount": "Amount is required",
    "entry_date": "Date is required",
}


class DbProtocol(Protocol):
    def _connect(self) -> sqlite3.Connection: ...
    def get_entry(self, entry_id: int, user_id: str) -> EarningEntry | None: ...


def _check_amount(amount: Any) -> float:
    try:
        value = float(amount)
    except (TypeError, ValueError):
        raise ValidationError("Amount must be a non-negative number") from None
    if math.isnan(value) or math.isinf(value) or value < 0:
        raise ValidationError("Amount must be a non-negative number")
    return value


def _require_owned_method(conn: sqlite3.Connection, user_id: str, method_id: int) -> None:
    row = conn.execute(
        "SELECT 1 FROM methods WHERE id = ? AND user_id = ?",
        (method_id, user_id),
    ).fetchone()
    if row is None:
        raise NotFoundError("Method not found")


class EarningsMixin:
    def list_entries(
        self: DbProtocol,
        user_id: str,
        start: date | None = None,
        end: date | None = None,
    ) -> list[EarningEntry]:
        """Entries for ``user_id`` newest date first. ``start``/``end`` are inclusive."""
        clauses = ["e.user_id = ?"]
        params: list[Any] = [user_id]
        if start is not None:
            clauses.append("e.entry_date >= ?")
            params.append(start.isoformat())
        if end is not None:
            clauses.append("e.entry_date <= ?")
            params.append(end.isoformat())
        with self._connect() as conn:
            rows = conn.execute(
                f"{ENTRY_SELECT} WHERE {' AND '.join(clauses)} ORDER BY e.entry_date DESC, e.id DESC",
                params,
            ).fetchall()
        return [_row_to_entry(r) for r in rows]

    def get_entry(self: DbProtocol, entry_id: int, user_id: str) -> EarningEntry | None:
        with self._connect() as conn:
            row = conn.execute(
                f"{ENTRY_SELECT} WHERE e.id = ? AND e.user_id = ?",
                (entry_id, user_id),
            ).fetchone()
        return _row_to_entry(row) if row else None

    def insert_entry(
        self: DbProtocol,
        user_id: str,
        method_id: int,
        amount: float,
        entry_date: date,
        now: datetime,
        notes: str | None = None,
    ) -> EarningEntry:
        value = _check_amount(amount)
        stamp = _ts(now)
        try:
            with self._connect() as conn:
                _require_owned_method(conn, user_id, method_id)
                cur = conn.execute(
                    """
                    INSERT INTO daily_earnings(user_id, method_id, amount, entry_date, notes, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (user_id, method_id, value, entry_date.isoformat(), notes, stamp, stamp),
                )
                entry_id = int(cur.lastrowid)
        except sqlite3.IntegrityError as exc:
            raise DuplicateEntryError("You already have an entry for this method on this date") from exc
        entry = self.get_entry(entry_id, user_id)
        assert entry is not None
        return entry

    def update_entry(
        self: DbProtocol,
        entry_id: int,
        user_id: str,
        fields: dict[str, Any],
        now: datetime,
    ) -> EarningEntry:
        updates = {k: v for k, v in fields.items() if k in EDITABLE_ENTRY_FIELDS}
        for key, message in REQUIRED_ENTRY_FIELDS.items():
            if key in updates and updates[key] is None:
                raise ValidationError(message)
        if "method_id" in updates:
            try:
                updates["method_id"] = int(updates["method_id"])
            except (TypeError, ValueError):
                raise ValidationError("Invalid method") from None
        if "amount" in updates:
            updates["amount"] = _check_amount(updates["amount"])
        if isinstance(updates.get("entry_date"), date):
            updates["entry_date"] = updates["entry_date"].isoformat()

        try:
            with self._connect() as conn:
                exists = conn.execute(
                    "SELECT 1 FROM daily_earnings WHERE id = ? AND user_id = ?",
                    (entry_id, user_id),
                ).fetchone()
                if exists is None:
                    raise NotFoundError("Entry not found")
                if "method_id" in updates:
                    _require_owned_method(conn, user_id, updates["method_id"])
                if updates:
                    assignments = ", ".join(f"{k} = ?" for k in updates)
                    conn.execute(
                        f"UPDATE daily_earnings SET {assignments}, updated_at = ? WHERE id = ? AND user_id = ?",
                        (*updates.values(), _ts(now), entry_id, user_id),
                    )
        except sqlite3.IntegrityError as exc:
            raise DuplicateEntryError("You already have an entry for this method on this date") from exc
        entry = self.get_entry(entry_id, user_id)
        assert entry is not None
        return entry

    def delete_entry(self: DbProtocol, entry_id: int, user_id: str) -> bool:
        with self._connect() as conn:
            cur = conn.execute(
                "DELETE FROM daily_earnings WHERE id = ? AND user_id = ?",
                (entry_id, user_id),
            )
        return cur.rowcount > 0

    def list_entry_dates(self: DbProtocol, user_id: str) -> list[date]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT DISTINCT entry_date FROM daily_earnings WHERE user_id = ? ORDER BY entry_date",
                (user_id,),
            ).fetchall()
        return [date.fromisoformat(r["entry_date"]) for r in rows]

    def sum_amount(self: DbProtocol, user_id: str, start: date, end_exclusive: date) -> float:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT COALESCE(SUM(amount), 0) AS total
                FROM daily_earnings
                WHERE user_id = ? AND entry_date >= ? AND entry_date < ?
                """,
                (user_id, start.isoformat(), end_exclusive.isoformat()),
            ).fetchone()
        return float(row["total"]) if row else 0.0
