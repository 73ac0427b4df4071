from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import date, datetime

from daily_methods_hub.db_constants import STREAK_MILESTONES
from daily_methods_hub.db_models import StreakState
from daily_methods_hub.time_utils import days_between

REMINDER_AFTER_DAYS = 2


@dataclass(frozen=True)
class StreakStatus:
    needs_reminder: bool
    days_missed: int


def empty_streak(user_id: str, now: datetime) -> StreakState:
    return StreakState(
        user_id=user_id,
        current_streak=0,
        longest_streak=0,
        last_entry_date=None,
        updated_at=now,
    )


def compute_streak_update(previous: StreakState, new_entry_date: date, now: datetime) -> StreakState:
    """Advance ``previous`` by one newly logged entry date.

    Same-day re-logs return ``previous`` untouched. A consecutive day extends
    the run, any other gap (including a date before ``last_entry_date``)
    starts a new run of 1.
    """
    last = previous.last_entry_date
    if last is None:
        current = 1
    else:
        diff = days_between(last, new_entry_date)
        if diff == 0:
            return previous
        if diff == 1:
            current = previous.current_streak + 1
        else:
            current = 1

    return replace(
        previous,
        current_streak=current,
        longest_streak=max(previous.longest_streak, current),
        last_entry_date=new_entry_date,
        updated_at=now,
    )


def _runs(days: list[date]) -> list[int]:
    runs: list[int] = []
    run = 0
    prev: date | None = None
    for day in days:
        if prev is not None and days_between(prev, day) == 1:
            run += 1
        else:
            if run:
                runs.append(run)
            run = 1
        prev = day
    if run:
        runs.append(run)
    return runs


def recompute_streak(previous: StreakState, entry_dates: Iterable[date], now: datetime) -> StreakState:
    """Rebuild the streak from every distinct entry date.

    The current streak is the run ending at the latest date, so a backfilled
    day can join two runs instead of resetting the count.
    """
    days = sorted(set(entry_dates))
    if not days:
        return replace(previous, current_streak=0, last_entry_date=None, updated_at=now)

    runs = _runs(days)
    current = runs[-1]
    return replace(
        previous,
        current_streak=current,
        longest_streak=max(previous.longest_streak, max(runs)),
        last_entry_date=days[-1],
        updated_at=now,
    )


def evaluate_streak_status(streak: StreakState, today: date) -> StreakStatus:
    if streak.last_entry_date is None:
        return StreakStatus(needs_reminder=True, days_missed=0)
    missed = days_between(streak.last_entry_date, today)
    return StreakStatus(needs_reminder=missed >= REMINDER_AFTER_DAYS, days_missed=missed)


def next_milestone(current_streak: int) -> int | None:
    for milestone in STREAK_MILESTONES:
        if current_streak < milestone:
            return milestone
    return None
