"""Translation between SQLite rows (snake_case columns) and the entity dataclasses.

Nothing outside the repository layer should read a ``sqlite3.Row``.
"""
from __future__ import annotations

import sqlite3
from datetime import date, datetime, timezone

from daily_methods_hub.db_models import (
    EarningEntry,
    Method,
    MethodCompletion,
    Notification,
    Referral,
    ReferralPoints,
    StreakState,
    UserProfile,
)


def _ts(dt: datetime) -> str:
    """Storage form of a timestamp: UTC ISO-8601. Naive values are taken as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat()


def _parse_ts(raw: str | None) -> datetime | None:
    if not raw:
        return None
    parsed = datetime.fromisoformat(str(raw))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_date(raw: str | None) -> date | None:
    return date.fromisoformat(str(raw)) if raw else None


def _row_to_entry(row: sqlite3.Row) -> EarningEntry:
    keys = row.keys()
    return EarningEntry(
        id=int(row["id"]),
        user_id=str(row["user_id"]),
        method_id=int(row["method_id"]),
        amount=float(row["amount"]),
        entry_date=date.fromisoformat(row["entry_date"]),
        notes=row["notes"],
        created_at=_parse_ts(row["created_at"]),
        updated_at=_parse_ts(row["updated_at"]),
        method_title=row["method_title"] if "method_title" in keys else None,
        method_category=row["method_category"] if "method_category" in keys else None,
        method_icon_url=row["method_icon_url"] if "method_icon_url" in keys else None,
    )


def _row_to_method(row: sqlite3.Row) -> Method:
    return Method(
        id=int(row["id"]),
        owner_user_id=str(row["user_id"]),
        title=row["title"],
        description=row["description"] or "",
        category=row["category"] or "Other",
        earnings_hint=row["earnings"] or "",
        difficulty=row["difficulty"],
        time_required=row["time_required"] or "",
        link=row["link"],
        referral_code=row["referral_code"],
        icon_url=row["icon_url"],
        is_active=bool(row["is_active"]),
        is_public=bool(row["is_public"]),
        created_at=_parse_ts(row["created_at"]),
        updated_at=_parse_ts(row["updated_at"]),
    )


def _row_to_completion(row: sqlite3.Row) -> MethodCompletion:
    completed_at = _parse_ts(row["completed_at"])
    assert completed_at is not None
    return MethodCompletion(
        id=int(row["id"]),
        user_id=str(row["user_id"]),
        method_id=int(row["method_id"]),
        completed_at=completed_at,
    )


def _row_to_streak(row: sqlite3.Row) -> StreakState:
    updated_at = _parse_ts(row["updated_at"])
    assert updated_at is not None
    return StreakState(
        user_id=str(row["user_id"]),
        current_streak=int(row["current_streak"]),
        longest_streak=int(row["longest_streak"]),
        last_entry_date=_parse_date(row["last_entry_date"]),
        updated_at=updated_at,
    )


def _row_to_points(row: sqlite3.Row) -> ReferralPoints:
    updated_at = _parse_ts(row["updated_at"])
    assert updated_at is not None
    return ReferralPoints(
        user_id=str(row["user_id"]),
        points=int(row["points"]),
        lifetime_points=int(row["lifetime_points"]),
        updated_at=updated_at,
    )


def _row_to_referral(row: sqlite3.Row) -> Referral:
    created_at = _parse_ts(row["created_at"])
    assert created_at is not None
    return Referral(
        id=int(row["id"]),
        referrer_id=str(row["referrer_id"]),
        referred_user_id=str(row["referred_user_id"]),
        created_at=created_at,
    )


def _row_to_profile(row: sqlite3.Row) -> UserProfile:
    return UserProfile(
        user_id=str(row["user_id"]),
        email=row["email"],
        is_admin=bool(row["is_admin"]),
        plan_type=str(row["plan_type"] or "free"),
        subscription_status=row["subscription_status"],
    )


def _row_to_notification(row: sqlite3.Row) -> Notification:
    created_at = _parse_ts(row["created_at"])
    assert created_at is not None
    return Notification(
        id=int(row["id"]),
        user_id=str(row["user_id"]),
        title=row["title"],
        message=row["message"],
        kind=row["kind"],
        is_read=bool(row["is_read"]),
        created_at=created_at,
    )
