from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime

from daily_methods_hub.config import Settings
from daily_methods_hub.db import Database
from daily_methods_hub.streaks import StreakStatus, evaluate_streak_status
from daily_methods_hub.time_utils import local_date, now_utc

logger = logging.getLogger(__name__)

JOB_NAMES = ("check_streaks",)


@dataclass
class StreakCheckResult:
    checked: int = 0
    notified: int = 0
    errors: list[str] = field(default_factory=list)


def streak_reminder_text(days_missed: int) -> tuple[str, str]:
    if days_missed == 1:
        return (
            "Don't break the chain!",
            "You haven't logged any earnings today. Keep your streak alive!",
        )
    return (
        f"{days_missed} days since your last entry",
        f"It's been {days_missed} days since your last earnings entry. Log your earnings to restart your streak!",
    )


def should_remind(status: StreakStatus) -> bool:
    return status.needs_reminder and status.days_missed > 0


def check_streaks(db: Database, settings: Settings, now: datetime) -> StreakCheckResult:
    """Warn every user whose streak is lapsing, at most once per local day."""
    result = StreakCheckResult()
    today = local_date(now, settings.tz)
    event_key = f"streak-reminder:{today.isoformat()}"

    for profile in db.list_profiles():
        user_id = profile.user_id
        result.checked += 1
        try:
            status = evaluate_streak_status(db.get_streak(user_id, now), today)
            if not should_remind(status) or db.was_event_sent(user_id, event_key):
                continue
            title, message = streak_reminder_text(status.days_missed)
            db.add_notification(user_id, title, message, now, kind="warning")
            db.mark_event_sent(user_id, event_key, now)
            result.notified += 1
            logger.info("sent streak reminder user_id=%s days_missed=%s", user_id, status.days_missed)
        except sqlite3.Error as exc:
            logger.exception("streak check failed user_id=%s", user_id)
            result.errors.append(f"Error processing user {user_id}: {exc}")

    logger.info(
        "streak check completed checked=%s notified=%s errors=%s",
        result.checked,
        result.notified,
        len(result.errors),
    )
    return result


def run_check_streaks(db: Database, settings: Settings, now: datetime | None = None) -> StreakCheckResult | None:
    if not db.is_job_enabled("check_streaks"):
        logger.info("job disabled: check_streaks")
        return None
    return check_streaks(db, settings, now or now_utc())


def run_job(job_name: str, db: Database, settings: Settings) -> StreakCheckResult | None:
    if job_name not in JOB_NAMES:
        raise SystemExit(f"Unknown job '{job_name}'. Expected one of: {', '.join(JOB_NAMES)}")
    return run_check_streaks(db, settings)
