from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime


@dataclass(frozen=True)
class EarningEntry:
    id: int
    user_id: str
    method_id: int
    amount: float
    entry_date: date
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    method_title: str | None = None
    method_category: str | None = None
    method_icon_url: str | None = None


@dataclass(frozen=True)
class Method:
    id: int
    owner_user_id: str
    title: str
    description: str
    category: str
    earnings_hint: str
    difficulty: str
    time_required: str
    link: str | None = None
    referral_code: str | None = None
    icon_url: str | None = None
    is_active: bool = True
    is_public: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class MethodStats:
    total_count: int
    active_count: int
    inactive_count: int
    this_month_count: int
    category_breakdown: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class MethodCompletion:
    id: int
    user_id: str
    method_id: int
    completed_at: datetime


@dataclass(frozen=True)
class StreakState:
    user_id: str
    current_streak: int
    longest_streak: int
    last_entry_date: date | None
    updated_at: datetime


@dataclass(frozen=True)
class ReferralPoints:
    user_id: str
    points: int
    lifetime_points: int
    updated_at: datetime


@dataclass(frozen=True)
class Referral:
    id: int
    referrer_id: str
    referred_user_id: str
    created_at: datetime


@dataclass(frozen=True)
class UserProfile:
    user_id: str
    email: str | None
    is_admin: bool
    plan_type: str
    subscription_status: str | None

    @property
    def is_premium(self) -> bool:
        return self.plan_type == "premium" and self.subscription_status == "active"


@dataclass(frozen=True)
class Notification:
    id: int
    user_id: str
    title: str
    message: str
    kind: str
    is_read: bool
    created_at: datetime
