from __future__ import annotations

from daily_methods_hub.db_models import (
    EarningEntry,
    Method,
    MethodCompletion,
    MethodStats,
    Notification,
    Referral,
    ReferralPoints,
    StreakState,
    UserProfile,
)
from daily_methods_hub.db_repo import (
    BaseDatabase,
    EarningsMixin,
    MethodMixin,
    NotificationMixin,
    ReferralMixin,
    StreakMixin,
    SystemMixin,
    UserMixin,
)

__all__ = [
    "Database",
    "EarningEntry",
    "Method",
    "MethodCompletion",
    "MethodStats",
    "Notification",
    "Referral",
    "ReferralPoints",
    "StreakState",
    "UserProfile",
]


class Database(
    BaseDatabase,
    EarningsMixin,
    StreakMixin,
    MethodMixin,
    UserMixin,
    ReferralMixin,
    NotificationMixin,
    SystemMixin,
):
    pass
