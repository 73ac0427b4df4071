from __future__ import annotations

import functools
import logging
import sqlite3
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any

from daily_methods_hub.analytics import compute_analytics
from daily_methods_hub.csv_io import entries_to_csv, import_rows, parse_csv
from daily_methods_hub.db import Database
from daily_methods_hub.db_models import EarningEntry, Method, StreakState
from daily_methods_hub.errors import (
    DuplicateEntryError,
    HubError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from daily_methods_hub.points import (
    PointsAward,
    awards_for_entry,
    decode_referral_code,
    encode_referral_code,
    referral_signup_award,
)
from daily_methods_hub.streaks import (
    StreakStatus,
    compute_streak_update,
    evaluate_streak_status,
    next_milestone,
    recompute_streak,
)
from daily_methods_hub.summary import compute_summary
from daily_methods_hub.tasks import compute_available_tasks
from daily_methods_hub.time_utils import DEFAULT_TZ, local_date, month_key, parse_iso_date, start_of_day

logger = logging.getLogger(__name__)

UNEXPECTED_ERROR = "An unexpected error occurred"
PUBLIC_METHOD_DENIED = "Upgrade your account to post public methods"
DUPLICATE_METHOD_COPY = "You already have this method (or a similar one)"
RECENT_REFERRALS_LIMIT = 10


@dataclass(frozen=True)
class ActionResult:
    success: bool
    data: Any = None
    error: str | None = None
    message: str | None = None
    # validation / not_found / duplicate / permission / unexpected
    kind: str | None = field(default=None, compare=False)


@dataclass(frozen=True)
class EarningLogOutcome:
    entry: EarningEntry
    streak: StreakState
    points_awarded: int
    awards: list[PointsAward]


@dataclass(frozen=True)
class StreakView:
    streak: StreakState
    status: StreakStatus
    next_milestone: int | None


def _error_kind(exc: HubError) -> str:
    if isinstance(exc, ValidationError):
        return "validation"
    if isinstance(exc, NotFoundError):
        return "not_found"
    if isinstance(exc, DuplicateEntryError):
        return "duplicate"
    if isinstance(exc, PermissionDeniedError):
        return "permission"
    return "validation"


def action(fn: Callable[..., ActionResult]) -> Callable[..., ActionResult]:
    """Turn expected failures into ``ActionResult`` and log store faults."""

    @functools.wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> ActionResult:
        try:
            return fn(*args, **kwargs)
        except HubError as exc:
            logger.info("%s rejected: %s", fn.__name__, exc)
            return ActionResult(success=False, error=str(exc), kind=_error_kind(exc))
        except sqlite3.Error:
            logger.exception("store failure in %s", fn.__name__)
            return ActionResult(success=False, error=UNEXPECTED_ERROR, kind="unexpected")

    return wrapper


def _month_bounds(day: date) -> tuple[date, date]:
    start = day.replace(day=1)
    return start, (start + timedelta(days=32)).replace(day=1)


def _coerce_date(raw: Any) -> date:
    if isinstance(raw, date):
        return raw
    parsed = parse_iso_date(str(raw or ""))
    if parsed is None:
        raise ValidationError("Invalid date format (use YYYY-MM-DD)")
    return parsed


def _advance_streak(db: Database, user_id: str, entry_date: date, now: datetime) -> tuple[StreakState, StreakState]:
    previous = db.get_streak(user_id, now)
    backfill = previous.last_entry_date is not None and entry_date < previous.last_entry_date
    if backfill and db.get_app_config_value("streak.recompute_on_backfill"):
        updated = recompute_streak(previous, db.list_entry_dates(user_id), now)
    else:
        updated = compute_streak_update(previous, entry_date, now)
    if updated != previous:
        db.put_streak(updated)
    return previous, updated


def _award_entry_points(
    db: Database,
    user_id: str,
    entry: EarningEntry,
    streak_before: int,
    streak_after: int,
    now: datetime,
) -> list[PointsAward]:
    if not db.is_feature_enabled("points"):
        return []
    month_start, month_end = _month_bounds(entry.entry_date)
    monthly_after = db.sum_amount(user_id, month_start, month_end)
    monthly_before = monthly_after - entry.amount

    granted: list[PointsAward] = []
    for award in awards_for_entry(streak_before, streak_after, monthly_before, monthly_after, db.get_points_tuning()):
        if award.reason.startswith("monthly_volume_"):
            key = f"points:{award.reason}:{month_key(entry.entry_date)}"
            if not db.mark_event_sent(user_id, key, now):
                continue
        granted.append(award)

    total = sum(a.points for a in granted)
    if total:
        db.add_points(user_id, total, now)
    return granted


def _log_earning(
    db: Database,
    user_id: str,
    method_id: int,
    amount: float,
    entry_date: date,
    now: datetime,
    notes: str | None = None,
) -> EarningLogOutcome:
    entry = db.insert_entry(user_id, method_id, amount, entry_date, now, notes=notes)
    before, after = _advance_streak(db, user_id, entry_date, now)
    awards = _award_entry_points(db, user_id, entry, before.current_streak, after.current_streak, now)
    return EarningLogOutcome(
        entry=entry,
        streak=after,
        points_awarded=sum(a.points for a in awards),
        awards=awards,
    )


@action
def log_earning(
    db: Database,
    user_id: str,
    method_id: int,
    amount: float,
    entry_date: date | str,
    now: datetime,
    notes: str | None = None,
) -> ActionResult:
    outcome = _log_earning(db, user_id, method_id, amount, _coerce_date(entry_date), now, notes=notes)
    return ActionResult(success=True, data=outcome, message="Entry created successfully")


@action
def update_earning(db: Database, user_id: str, entry_id: int, fields: dict[str, Any], now: datetime) -> ActionResult:
    updates = dict(fields)
    if updates.get("entry_date") is not None:
        updates["entry_date"] = _coerce_date(updates["entry_date"])
    entry = db.update_entry(entry_id, user_id, updates, now)
    return ActionResult(success=True, data=entry, message="Entry updated successfully")


@action
def delete_earning(db: Database, user_id: str, entry_id: int) -> ActionResult:
    if not db.delete_entry(entry_id, user_id):
        raise NotFoundError("Entry not found")
    return ActionResult(success=True, message="Entry deleted successfully")


@action
def list_earnings(db: Database, user_id: str, start: date | None = None, end: date | None = None) -> ActionResult:
    return ActionResult(success=True, data=db.list_entries(user_id, start=start, end=end))


@action
def earnings_summary(db: Database, user_id: str, now: datetime, tz_name: str = DEFAULT_TZ) -> ActionResult:
    streak = db.get_streak(user_id, now)
    summary = compute_summary(db.list_entries(user_id), local_date(now, tz_name), streak.current_streak)
    return ActionResult(success=True, data=summary)


@action
def earnings_analytics(db: Database, user_id: str, now: datetime, tz_name: str = DEFAULT_TZ) -> ActionResult:
    as_of = local_date(now, tz_name)
    entries = db.list_entries(user_id)
    streak = db.get_streak(user_id, now)
    summary = compute_summary(entries, as_of, streak.current_streak)
    return ActionResult(success=True, data=compute_analytics(entries, as_of, summary=summary))


@action
def get_streak(db: Database, user_id: str, now: datetime) -> ActionResult:
    return ActionResult(success=True, data=db.get_streak(user_id, now))


@action
def streak_status(db: Database, user_id: str, now: datetime, tz_name: str = DEFAULT_TZ) -> ActionResult:
    streak = db.get_streak(user_id, now)
    view = StreakView(
        streak=streak,
        status=evaluate_streak_status(streak, local_date(now, tz_name)),
        next_milestone=next_milestone(streak.current_streak),
    )
    return ActionResult(success=True, data=view)


@action
def available_tasks(db: Database, user_id: str, now: datetime, tz_name: str = DEFAULT_TZ) -> ActionResult:
    tasks = compute_available_tasks(
        db.list_active_methods(user_id),
        db.list_completions_today(user_id, now, tz_name),
        now,
        tz_name=tz_name,
        unparsable_available=bool(db.get_app_config_value("tasks.unparsable_available")),
    )
    return ActionResult(success=True, data=tasks)


def _owned_method(db: Database, user_id: str, method_id: int) -> Method:
    method = db.get_method(method_id)
    if method is None or method.owner_user_id != user_id:
        raise NotFoundError("Method not found")
    return method


@action
def complete_task(db: Database, user_id: str, method_id: int, now: datetime) -> ActionResult:
    _owned_method(db, user_id, method_id)
    completion = db.insert_completion(user_id, method_id, now)
    return ActionResult(success=True, data=completion, message="Task marked as complete")


def _check_public_allowed(db: Database, user_id: str) -> None:
    if not db.is_feature_enabled("public_methods"):
        raise PermissionDeniedError("Public methods are disabled")
    profile = db.get_profile(user_id)
    if profile is None or not (profile.is_admin or profile.is_premium):
        raise PermissionDeniedError(PUBLIC_METHOD_DENIED)


@action
def create_method(db: Database, user_id: str, fields: dict[str, Any], now: datetime) -> ActionResult:
    if fields.get("is_public"):
        _check_public_allowed(db, user_id)
    method = db.insert_method(user_id, fields, now)
    return ActionResult(success=True, data=method, message="Method created successfully")


@action
def update_method(db: Database, user_id: str, method_id: int, fields: dict[str, Any], now: datetime) -> ActionResult:
    _owned_method(db, user_id, method_id)
    if fields.get("is_public"):
        _check_public_allowed(db, user_id)
    method = db.update_method(method_id, user_id, fields, now)
    return ActionResult(success=True, data=method, message="Method updated successfully")


@action
def delete_method(db: Database, user_id: str, method_id: int) -> ActionResult:
    if not db.delete_method(method_id, user_id):
        raise NotFoundError("Method not found")
    return ActionResult(success=True, message="Method deleted successfully")


@action
def duplicate_method(db: Database, user_id: str, method_id: int, now: datetime) -> ActionResult:
    original = _owned_method(db, user_id, method_id)
    copy = db.insert_method(
        user_id,
        {
            "title": f"{original.title} (Copy)",
            "description": original.description,
            "category": original.category,
            "earnings_hint": original.earnings_hint,
            "difficulty": original.difficulty,
            "time_required": original.time_required,
            "link": original.link,
            "icon_url": original.icon_url,
            "is_active": False,
        },
        now,
    )
    return ActionResult(success=True, data=copy, message="Method duplicated successfully")


@action
def list_methods(db: Database, user_id: str, active_only: bool = False) -> ActionResult:
    methods = db.list_active_methods(user_id) if active_only else db.list_methods(user_id)
    return ActionResult(success=True, data=methods)


@action
def get_method(db: Database, user_id: str, method_id: int) -> ActionResult:
    """An owned method, or any active public one."""
    method = db.get_method(method_id)
    visible = method is not None and (
        method.owner_user_id == user_id or (method.is_public and method.is_active)
    )
    if not visible:
        raise NotFoundError("Method not found")
    return ActionResult(success=True, data=method)


@action
def method_stats(db: Database, user_id: str, now: datetime, tz_name: str = DEFAULT_TZ) -> ActionResult:
    month_start = start_of_day(local_date(now, tz_name).replace(day=1), tz_name)
    return ActionResult(success=True, data=db.method_stats(user_id, month_start))


@action
def list_public_methods(db: Database, category: str | None = None) -> ActionResult:
    return ActionResult(success=True, data=db.list_public_methods(category=category))


def _base_link(link: str | None) -> str | None:
    if not link:
        return None
    return link.split("?", 1)[0]


@action
def copy_public_method(db: Database, user_id: str, method_id: int, now: datetime) -> ActionResult:
    source = db.get_method(method_id)
    if source is None or not source.is_public:
        raise NotFoundError("Method not found")

    base = _base_link(source.link)
    if base and any(_base_link(m.link) == base for m in db.list_methods(user_id)):
        raise DuplicateEntryError(DUPLICATE_METHOD_COPY)

    copy = db.insert_method(
        user_id,
        {
            "title": source.title,
            "description": source.description,
            "category": source.category,
            "earnings_hint": source.earnings_hint,
            "difficulty": source.difficulty,
            "time_required": source.time_required,
            "link": source.link,
            "referral_code": source.referral_code,
            "icon_url": source.icon_url,
            "is_active": True,
            "is_public": False,
        },
        now,
    )
    return ActionResult(success=True, data=copy, message="Method added to your list!")


@action
def export_csv(db: Database, user_id: str, start: date | None = None, end: date | None = None) -> ActionResult:
    return ActionResult(success=True, data=entries_to_csv(db.list_entries(user_id, start=start, end=end)))


@action
def import_csv(db: Database, user_id: str, text: str, now: datetime) -> ActionResult:
    if not db.is_feature_enabled("csv_import"):
        raise PermissionDeniedError("CSV import is disabled")
    rows = parse_csv(text)
    if not rows:
        raise ValidationError("No rows to import")

    method_ids = {m.title: m.id for m in db.list_methods(user_id)}
    limit = int(db.get_app_config_value("csv.max_import_errors") or 0)

    def insert(method_id: int, amount: float, entry_date: date, notes: str | None) -> None:
        _log_earning(db, user_id, method_id, amount, entry_date, now, notes=notes)

    result = import_rows(rows, method_ids, insert, max_errors=limit if limit > 0 else None)
    return ActionResult(
        success=True,
        data=result,
        message=f"Imported {result.success} entries, {result.failed} failed",
    )


@action
def record_referral(db: Database, referred_user_id: str, code: str, now: datetime) -> ActionResult:
    referrer_id = decode_referral_code(code)
    if referrer_id is None or db.get_profile(referrer_id) is None:
        raise ValidationError("Invalid referral code")
    referral = db.insert_referral(referrer_id, referred_user_id, now)
    if db.is_feature_enabled("points"):
        award = referral_signup_award(db.get_points_tuning())
        if award.points:
            db.add_points(referrer_id, award.points, now)
    return ActionResult(success=True, data=referral, message="Referral recorded")


@action
def referral_stats(db: Database, user_id: str, now: datetime) -> ActionResult:
    points = db.get_points(user_id, now)
    data = {
        "referral_code": encode_referral_code(user_id),
        "total_referrals": db.count_referrals(user_id),
        "points": points.points,
        "lifetime_points": points.lifetime_points,
        "recent_referrals": db.list_recent_referrals(user_id, limit=RECENT_REFERRALS_LIMIT),
    }
    return ActionResult(success=True, data=data)


@action
def get_points(db: Database, user_id: str, now: datetime) -> ActionResult:
    return ActionResult(success=True, data=db.get_points(user_id, now))


@action
def list_notifications(db: Database, user_id: str, unread_only: bool = False) -> ActionResult:
    return ActionResult(success=True, data=db.list_notifications(user_id, unread_only=unread_only))


@action
def unread_notification_count(db: Database, user_id: str) -> ActionResult:
    return ActionResult(success=True, data={"count": db.count_unread_notifications(user_id)})


@action
def mark_notification_read(db: Database, user_id: str, notification_id: int) -> ActionResult:
    if not db.mark_notification_read(notification_id, user_id):
        raise NotFoundError("Notification not found")
    return ActionResult(success=True)


@action
def mark_all_notifications_read(db: Database, user_id: str) -> ActionResult:
    return ActionResult(success=True, data={"updated": db.mark_all_notifications_read(user_id)})


@action
def delete_notification(db: Database, user_id: str, notification_id: int) -> ActionResult:
    if not db.delete_notification(notification_id, user_id):
        raise NotFoundError("Notification not found")
    return ActionResult(success=True)
