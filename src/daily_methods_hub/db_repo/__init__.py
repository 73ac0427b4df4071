from .base import BaseDatabase
from .earnings import EarningsMixin
from .methods import MethodMixin
from .notifications import NotificationMixin
from .referrals import ReferralMixin
from .streaks import StreakMixin
from .system import SystemMixin
from .users import UserMixin

__all__ = [
    "BaseDatabase",
    "EarningsMixin",
    "MethodMixin",
    "NotificationMixin",
    "ReferralMixin",
    "StreakMixin",
    "SystemMixin",
    "UserMixin",
]
