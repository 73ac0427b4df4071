from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, timedelta

from daily_methods_hub.db_models import EarningEntry
from daily_methods_hub.summary import EarningsSummary, compute_summary, daily_totals

UNKNOWN_METHOD_TITLE = "Unknown"
FALLBACK_CATEGORY = "other"
TREND_WINDOW_DAYS = 30

AMOUNT_BUCKETS: tuple[tuple[str, float, float], ...] = (
    ("$0-$10", 0, 10),
    ("$10-$25", 10, 25),
    ("$25-$50", 25, 50),
    ("$50-$100", 50, 100),
    ("$100+", 100, math.inf),
)


@dataclass(frozen=True)
class MethodBreakdown:
    method_id: int
    method_title: str
    total: float
    count: int


@dataclass(frozen=True)
class CategoryBreakdown:
    category: str
    total: float
    count: int


@dataclass(frozen=True)
class DailyAmount:
    date: date
    amount: float


@dataclass(frozen=True)
class DistributionBucket:
    range: str
    count: int


@dataclass(frozen=True)
class AnalyticsData:
    summary: EarningsSummary
    by_method: list[MethodBreakdown]
    by_category: list[CategoryBreakdown]
    last_30_days: list[DailyAmount]
    amount_distribution: list[DistributionBucket]


def amount_distribution(totals: Iterable[float]) -> list[DistributionBucket]:
    counts = [0] * len(AMOUNT_BUCKETS)
    for amount in totals:
        for idx, (_, low, high) in enumerate(AMOUNT_BUCKETS):
            if low <= amount < high:
                counts[idx] += 1
                break
    return [DistributionBucket(range=label, count=counts[idx]) for idx, (label, _, _) in enumerate(AMOUNT_BUCKETS)]


def compute_analytics(
    entries: Iterable[EarningEntry],
    as_of: date,
    summary: EarningsSummary | None = None,
) -> AnalyticsData:
    rows = list(entries)
    window_start = as_of - timedelta(days=TREND_WINDOW_DAYS)

    methods: dict[int, list] = {}
    categories: dict[str, list] = {}
    recent: list[EarningEntry] = []
    for entry in rows:
        m = methods.setdefault(entry.method_id, [entry.method_title or UNKNOWN_METHOD_TITLE, 0.0, 0])
        m[1] += entry.amount
        m[2] += 1

        c = categories.setdefault(entry.method_category or FALLBACK_CATEGORY, [0.0, 0])
        c[0] += entry.amount
        c[1] += 1

        if entry.entry_date >= window_start:
            recent.append(entry)

    recent_totals = daily_totals(recent)

    return AnalyticsData(
        summary=summary if summary is not None else compute_summary(rows, as_of),
        by_method=[
            MethodBreakdown(method_id=method_id, method_title=title, total=total, count=count)
            for method_id, (title, total, count) in methods.items()
        ],
        by_category=[
            CategoryBreakdown(category=category, total=total, count=count)
            for category, (total, count) in categories.items()
        ],
        last_30_days=[DailyAmount(date=day, amount=recent_totals[day]) for day in sorted(recent_totals)],
        amount_distribution=amount_distribution(recent_totals.values()),
    )


def pad_daily_series(points: Iterable[DailyAmount], as_of: date, days: int = TREND_WINDOW_DAYS) -> list[DailyAmount]:
    """Dense series of the last ``days`` days ending at ``as_of``, zero where nothing was logged."""
    by_day = {p.date: p.amount for p in points}
    start = as_of - timedelta(days=days - 1)
    return [
        DailyAmount(date=start + timedelta(days=i), amount=by_day.get(start + timedelta(days=i), 0.0))
        for i in range(days)
    ]
