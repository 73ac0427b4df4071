from __future__ import annotations

from typing import Any

METHOD_CATEGORIES = ("Survey", "Cashback", "Task", "Referral", "Investment", "Other")
DIFFICULTIES = ("Easy", "Medium", "Hard")
NOTIFICATION_KINDS = ("info", "warning", "success")

STREAK_MILESTONES = (7, 30, 100)
MONTHLY_VOLUME_MILESTONES = (100, 500, 1000)

APP_CONFIG_DEFAULTS: dict[str, Any] = {
    "feature.points_enabled": True,
    "feature.public_methods_enabled": True,
    "feature.csv_import_enabled": True,
    "job.check_streaks_enabled": True,
    "points.referral_signup": 25,
    "points.daily_earning": 1,
    "points.streak_7": 10,
    "points.streak_30": 50,
    "points.streak_100": 200,
    "points.monthly_volume_100": 10,
    "points.monthly_volume_500": 30,
    "points.monthly_volume_1000": 75,
    # Incremental streak updates reset on a backfilled date unless this is on.
    "streak.recompute_on_backfill": False,
    "tasks.unparsable_available": True,
    # 0 = report every failing row.
    "csv.max_import_errors": 0,
}

JOB_CONFIG_KEYS = {
    "check_streaks": "job.check_streaks_enabled",
}
