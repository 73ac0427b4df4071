from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date

from daily_methods_hub.db_models import EarningEntry


@dataclass(frozen=True)
class BestDay:
    date: date
    amount: float


@dataclass(frozen=True)
class EarningsSummary:
    total_lifetime: float
    total_yearly: float
    total_monthly: float
    total_daily: float
    daily_average: float
    best_day: BestDay | None
    current_streak: int
    total_entries: int


def daily_totals(entries: Iterable[EarningEntry]) -> dict[date, float]:
    totals: dict[date, float] = {}
    for entry in entries:
        totals[entry.entry_date] = totals.get(entry.entry_date, 0.0) + entry.amount
    return totals


def best_day_of(totals: dict[date, float]) -> BestDay | None:
    # strict ">" keeps the first date seen on ties
    best: BestDay | None = None
    for day, amount in totals.items():
        if best is None or amount > best.amount:
            best = BestDay(date=day, amount=amount)
    return best


def compute_summary(
    entries: Iterable[EarningEntry],
    as_of: date,
    current_streak: int = 0,
) -> EarningsSummary:
    lifetime = 0.0
    yearly = 0.0
    monthly = 0.0
    daily = 0.0
    count = 0
    totals: dict[date, float] = {}

    for entry in entries:
        amount = entry.amount
        day = entry.entry_date
        count += 1
        lifetime += amount
        if day.year == as_of.year:
            yearly += amount
            if day.month == as_of.month:
                monthly += amount
        if day == as_of:
            daily += amount
        totals[day] = totals.get(day, 0.0) + amount

    unique_days = len(totals)
    average = lifetime / unique_days if unique_days else 0.0

    return EarningsSummary(
        total_lifetime=lifetime,
        total_yearly=yearly,
        total_monthly=monthly,
        total_daily=daily,
        daily_average=average,
        best_day=best_day_of(totals),
        current_streak=current_streak,
        total_entries=count,
    )
