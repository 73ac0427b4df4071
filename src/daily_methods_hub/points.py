from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass

from daily_methods_hub.db_constants import MONTHLY_VOLUME_MILESTONES, STREAK_MILESTONES

DEFAULT_POINTS_TUNING = {
    "referral_signup": 25,
    "daily_earning": 1,
    "streak_7": 10,
    "streak_30": 50,
    "streak_100": 200,
    "monthly_volume_100": 10,
    "monthly_volume_500": 30,
    "monthly_volume_1000": 75,
}


@dataclass(frozen=True)
class PointsAward:
    reason: str
    points: int


def _effective_tuning(tuning: dict[str, int] | None = None) -> dict[str, int]:
    merged = dict(DEFAULT_POINTS_TUNING)
    if tuning:
        merged.update(tuning)
    return merged


def streak_milestone_award(
    streak_before: int,
    streak_after: int,
    tuning: dict[str, int] | None = None,
) -> PointsAward | None:
    if streak_after == streak_before or streak_after not in STREAK_MILESTONES:
        return None
    cfg = _effective_tuning(tuning)
    return PointsAward(reason=f"streak_{streak_after}", points=max(0, int(cfg[f"streak_{streak_after}"])))


def crossed_volume_milestones(monthly_before: float, monthly_after: float) -> list[int]:
    return [t for t in MONTHLY_VOLUME_MILESTONES if monthly_before < t <= monthly_after]


def awards_for_entry(
    streak_before: int,
    streak_after: int,
    monthly_before: float,
    monthly_after: float,
    tuning: dict[str, int] | None = None,
) -> list[PointsAward]:
    cfg = _effective_tuning(tuning)
    awards = [PointsAward(reason="daily_earning", points=max(0, int(cfg["daily_earning"])))]
    milestone = streak_milestone_award(streak_before, streak_after, tuning=cfg)
    if milestone:
        awards.append(milestone)
    for threshold in crossed_volume_milestones(monthly_before, monthly_after):
        key = f"monthly_volume_{threshold}"
        awards.append(PointsAward(reason=key, points=max(0, int(cfg[key]))))
    return awards


def referral_signup_award(tuning: dict[str, int] | None = None) -> PointsAward:
    cfg = _effective_tuning(tuning)
    return PointsAward(reason="referral_signup", points=max(0, int(cfg["referral_signup"])))


def encode_referral_code(user_id: str) -> str:
    return base64.urlsafe_b64encode(user_id.encode("utf-8")).decode("ascii").rstrip("=")


def decode_referral_code(code: str) -> str | None:
    raw = code.strip()
    if not raw:
        return None
    padded = raw + "=" * (-len(raw) % 4)
    try:
        decoded = base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")
    except (binascii.Error, UnicodeError, ValueError):
        return None
    return decoded or None
