from __future__ import annotations

import logging
import sqlite3
from datetime import date, datetime, timedelta, timezone

from daily_methods_hub import service
from daily_methods_hub.db import Database
from daily_methods_hub.points import encode_referral_code


def _dt(y: int, m: int, d: int, h: int = 12) -> datetime:
    return datetime(y, m, d, h, 0, tzinfo=timezone.utc)


def _db(tmp_path) -> Database:
    return Database(tmp_path / "app.db")


def _method(db: Database, user_id: str = "u1", title: str = "Daily Survey", **fields) -> int:
    result = service.create_method(db, user_id, {"title": title, "category": "Survey", **fields}, _dt(2024, 1, 1))
    assert result.success, result.error
    return result.data.id


def _log(db: Database, method_id: int, day: date, amount: float, user_id: str = "u1"):
    return service.log_earning(db, user_id, method_id, amount, day, _dt(day.year, day.month, day.day))


def test_three_consecutive_days_build_streak_and_summary(tmp_path) -> None:
    db = _db(tmp_path)
    m1 = _method(db)
    for day, amount in ((1, 10), (2, 20), (3, 30)):
        assert _log(db, m1, date(2024, 1, day), amount).success

    streak = service.get_streak(db, "u1", _dt(2024, 1, 3)).data
    assert streak.current_streak == 3
    assert streak.longest_streak == 3

    summary = service.earnings_summary(db, "u1", _dt(2024, 1, 3)).data
    assert summary.total_lifetime == 60
    assert summary.daily_average == 20
    assert summary.current_streak == 3


def test_backfilled_entry_resets_streak_incrementally(tmp_path) -> None:
    db = _db(tmp_path)
    m1 = _method(db)
    m2 = _method(db, title="Cashback", category="Cashback")
    for day, amount in ((1, 10), (2, 20), (3, 30)):
        _log(db, m1, date(2024, 1, day), amount)

    result = _log(db, m2, date(2024, 1, 1), 5)
    assert result.success
    assert result.data.streak.current_streak == 1
    assert result.data.streak.longest_streak == 3


def test_backfill_recomputes_when_enabled(tmp_path) -> None:
    db = _db(tmp_path)
    db.set_app_config({"streak.recompute_on_backfill": True}, _dt(2024, 1, 1))
    m1 = _method(db)
    _log(db, m1, date(2024, 1, 1), 1)
    _log(db, m1, date(2024, 1, 3), 1)
    result = _log(db, m1, date(2024, 1, 2), 1)
    assert result.data.streak.current_streak == 3
    assert result.data.streak.last_entry_date == date(2024, 1, 3)


def test_same_day_second_method_keeps_streak(tmp_path) -> None:
    db = _db(tmp_path)
    m1 = _method(db)
    m2 = _method(db, title="Cashback", category="Cashback")
    _log(db, m1, date(2024, 1, 1), 1)
    _log(db, m1, date(2024, 1, 2), 1)
    result = _log(db, m2, date(2024, 1, 2), 1)
    assert result.data.streak.current_streak == 2


def test_duplicate_entry_is_a_user_error(tmp_path) -> None:
    db = _db(tmp_path)
    m1 = _method(db)
    _log(db, m1, date(2024, 1, 1), 1)
    result = _log(db, m1, date(2024, 1, 1), 2)
    assert result.success is False
    assert result.kind == "duplicate"
    assert result.error == "You already have an entry for this method on this date"


def test_invalid_inputs_are_validation_errors(tmp_path) -> None:
    db = _db(tmp_path)
    m1 = _method(db)
    bad_date = service.log_earning(db, "u1", m1, 1, "2024-02-30", _dt(2024, 2, 1))
    assert bad_date.kind == "validation"
    negative = service.log_earning(db, "u1", m1, -3, "2024-02-01", _dt(2024, 2, 1))
    assert negative.kind == "validation"
    missing = service.log_earning(db, "u1", 999, 1, "2024-02-01", _dt(2024, 2, 1))
    assert missing.kind == "not_found"


def test_update_does_not_touch_streak(tmp_path) -> None:
    db = _db(tmp_path)
    m1 = _method(db)
    entry = _log(db, m1, date(2024, 1, 1), 1).data.entry
    _log(db, m1, date(2024, 1, 2), 1)

    result = service.update_earning(db, "u1", entry.id, {"entry_date": "2023-12-01", "amount": 4}, _dt(2024, 1, 2))
    assert result.success
    assert result.data.entry_date == date(2023, 12, 1)
    assert service.get_streak(db, "u1", _dt(2024, 1, 2)).data.current_streak == 2

    assert service.delete_earning(db, "u1", entry.id).success
    assert service.delete_earning(db, "u1", entry.id).kind == "not_found"


def test_points_for_entries_and_streak_milestone(tmp_path) -> None:
    db = _db(tmp_path)
    m1 = _method(db)
    for day in range(1, 8):
        _log(db, m1, date(2024, 1, day), 1)
    points = service.get_points(db, "u1", _dt(2024, 1, 7)).data
    assert points.points == 7 * 1 + 10
    assert points.lifetime_points == points.points


def test_volume_milestone_paid_once_per_month(tmp_path) -> None:
    db = _db(tmp_path)
    m1 = _method(db)
    _log(db, m1, date(2024, 1, 1), 60)
    second = _log(db, m1, date(2024, 1, 2), 50)
    assert second.data.points_awarded == 1 + 10

    service.delete_earning(db, "u1", second.data.entry.id)
    third = _log(db, m1, date(2024, 1, 3), 50)
    assert third.data.points_awarded == 1
    assert service.get_points(db, "u1", _dt(2024, 1, 3)).data.points == 13


def test_points_feature_off(tmp_path) -> None:
    db = _db(tmp_path)
    db.set_app_config({"feature.points_enabled": False}, _dt(2024, 1, 1))
    m1 = _method(db)
    result = _log(db, m1, date(2024, 1, 1), 500)
    assert result.data.points_awarded == 0
    assert service.get_points(db, "u1", _dt(2024, 1, 1)).data.points == 0


def test_analytics_and_streak_status(tmp_path) -> None:
    db = _db(tmp_path)
    m1 = _method(db)
    _log(db, m1, date(2024, 1, 1), 12)
    analytics = service.earnings_analytics(db, "u1", _dt(2024, 1, 4)).data
    assert analytics.by_method[0].method_title == "Daily Survey"
    assert analytics.summary.total_lifetime == 12

    view = service.streak_status(db, "u1", _dt(2024, 1, 4)).data
    assert view.status.days_missed == 3
    assert view.status.needs_reminder is True
    assert view.next_milestone == 7


def test_tasks_and_completion(tmp_path) -> None:
    db = _db(tmp_path)
    m1 = _method(db, time_required="30 min")
    other = _method(db, user_id="u2", title="Theirs")
    now = _dt(2024, 1, 1, 9)

    assert service.complete_task(db, "u1", other, now).kind == "not_found"
    assert service.complete_task(db, "u1", m1, now).success

    tasks = service.available_tasks(db, "u1", now + timedelta(minutes=20)).data
    assert tasks[0].is_available is False
    assert tasks[0].time_until_available_ms == 600_000


def test_public_method_requires_premium_or_admin(tmp_path) -> None:
    db = _db(tmp_path)
    now = _dt(2024, 1, 1)
    db.upsert_profile("u1", now)
    denied = service.create_method(db, "u1", {"title": "Shared", "is_public": True}, now)
    assert denied.kind == "permission"
    assert denied.error == "Upgrade your account to post public methods"

    db.set_subscription("u1", "premium", "active")
    assert service.create_method(db, "u1", {"title": "Shared", "is_public": True}, now).success

    db.set_subscription("u1", "premium", "canceled")
    method_id = _method(db)
    assert service.update_method(db, "u1", method_id, {"is_public": True}, now).kind == "permission"

    db.set_admin("u1", True)
    assert service.update_method(db, "u1", method_id, {"is_public": True}, now).data.is_public is True

    db.set_app_config({"feature.public_methods_enabled": False}, now)
    assert service.create_method(db, "u1", {"title": "Again", "is_public": True}, now).kind == "permission"


def test_copy_public_method(tmp_path) -> None:
    db = _db(tmp_path)
    now = _dt(2024, 1, 1)
    db.upsert_profile("u1", now)
    db.set_admin("u1", True)
    source = _method(db, title="Survey Club", link="https://club.example/join?ref=u1", is_public=True)
    private = _method(db, title="Hidden")

    copied = service.copy_public_method(db, "u2", source, now)
    assert copied.success
    assert copied.data.owner_user_id == "u2"
    assert copied.data.is_public is False
    assert copied.data.is_active is True

    again = service.copy_public_method(db, "u2", source, now)
    assert again.kind == "duplicate"
    assert again.error == "You already have this method (or a similar one)"

    assert service.copy_public_method(db, "u2", private, now).kind == "not_found"
    assert [m.title for m in service.list_public_methods(db, category="Survey").data] == ["Survey Club"]


def test_duplicate_own_method(tmp_path) -> None:
    db = _db(tmp_path)
    m1 = _method(db)
    copy = service.duplicate_method(db, "u1", m1, _dt(2024, 1, 2)).data
    assert copy.title == "Daily Survey (Copy)"
    assert copy.is_active is False
    assert service.duplicate_method(db, "u2", m1, _dt(2024, 1, 2)).kind == "not_found"


def test_method_stats_month_follows_timezone(tmp_path) -> None:
    db = _db(tmp_path)
    late_january_utc = datetime(2024, 1, 31, 23, 30, tzinfo=timezone.utc)
    assert service.create_method(db, "u1", {"title": "Night Shift"}, late_january_utc).success

    now = _dt(2024, 2, 10)
    assert service.method_stats(db, "u1", now, tz_name="Europe/Oslo").data.this_month_count == 1
    assert service.method_stats(db, "u1", now, tz_name="UTC").data.this_month_count == 0


def test_get_method_hides_inactive_public_methods(tmp_path) -> None:
    db = _db(tmp_path)
    db.upsert_profile("u1", _dt(2024, 1, 1))
    db.set_admin("u1", True)
    method_id = _method(db, is_public=True, is_active=False)
    assert service.get_method(db, "u1", method_id).success
    hidden = service.get_method(db, "u2", method_id)
    assert (hidden.success, hidden.kind) == (False, "not_found")


def test_import_csv_through_log_path(tmp_path) -> None:
    db = _db(tmp_path)
    _method(db)
    text = "\n".join(
        [
            "Date,Method,Category,Amount,Notes",
            "2024-01-01,Daily Survey,Survey,5.00,first",
            "2024-01-01,Daily Survey,Survey,7.00,dup",
            "2024-01-02,Daily Survey,Survey,3.00,",
            "2024-01-03,Nope,Survey,1,",
        ]
    )
    result = service.import_csv(db, "u1", text, _dt(2024, 1, 3))
    assert result.success
    assert (result.data.success, result.data.failed) == (2, 2)
    assert result.data.errors == [
        "Row 2: You already have an entry for this method on this date",
        "Row 4: Method not found: Nope",
    ]
    assert service.get_streak(db, "u1", _dt(2024, 1, 3)).data.current_streak == 2

    exported = service.export_csv(db, "u1").data
    assert exported.splitlines()[1].startswith('"2024-01-02","Daily Survey"')


def test_import_csv_feature_flag_and_error_cap(tmp_path) -> None:
    db = _db(tmp_path)
    _method(db)
    text = "Date,Method,Amount\nbad,Daily Survey,1\nbad,Daily Survey,2\nbad,Daily Survey,3\n"
    db.set_app_config({"csv.max_import_errors": 1}, _dt(2024, 1, 1))
    capped = service.import_csv(db, "u1", text, _dt(2024, 1, 1)).data
    assert capped.failed == 3
    assert len(capped.errors) == 1

    db.set_app_config({"feature.csv_import_enabled": False}, _dt(2024, 1, 1))
    assert service.import_csv(db, "u1", text, _dt(2024, 1, 1)).kind == "permission"


def test_referrals_award_referrer(tmp_path) -> None:
    db = _db(tmp_path)
    now = _dt(2024, 1, 1)
    db.upsert_profile("u1", now)
    code = encode_referral_code("u1")

    assert service.record_referral(db, "u2", code, now).success
    dup = service.record_referral(db, "u2", code, now)
    assert dup.kind == "duplicate"
    assert dup.error == "User already referred"
    assert service.record_referral(db, "u3", "_w", now).kind == "validation"
    assert service.record_referral(db, "u1", code, now).kind == "validation"

    stats = service.referral_stats(db, "u1", now).data
    assert stats["referral_code"] == code
    assert stats["total_referrals"] == 1
    assert stats["points"] == 25
    assert [r.referred_user_id for r in stats["recent_referrals"]] == ["u2"]


def test_notifications_flow(tmp_path) -> None:
    db = _db(tmp_path)
    note = db.add_notification("u1", "Hi", "there", _dt(2024, 1, 1))
    assert service.mark_notification_read(db, "u2", note.id).kind == "not_found"
    assert service.mark_notification_read(db, "u1", note.id).success
    assert service.list_notifications(db, "u1", unread_only=True).data == []
    assert service.mark_all_notifications_read(db, "u1").data == {"updated": 0}
    assert service.delete_notification(db, "u1", note.id).success


def test_store_failure_becomes_unexpected_error(tmp_path, monkeypatch, caplog) -> None:
    db = _db(tmp_path)

    def broken(*args, **kwargs):
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(db, "list_entries", broken)
    with caplog.at_level(logging.ERROR, logger="daily_methods_hub.service"):
        result = service.earnings_summary(db, "u1", _dt(2024, 1, 1))
    assert result.success is False
    assert result.kind == "unexpected"
    assert result.error == "An unexpected error occurred"
    assert "store failure in earnings_summary" in caplog.text
