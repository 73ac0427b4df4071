from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta

from daily_methods_hub.db_models import Method, MethodCompletion
from daily_methods_hub.time_utils import DEFAULT_TZ, local_date

TIME_REQUIRED_PATTERN = re.compile(r"(\d+)\s*(min|hour|day)", re.IGNORECASE)
EARNINGS_PATTERN = re.compile(r"\d+")

UNIT_MINUTES = {"min": 1, "hour": 60, "day": 24 * 60}


@dataclass(frozen=True)
class TaskStatus:
    method: Method
    is_available: bool
    next_available: datetime | None
    time_until_available_ms: int
    earnings_value: int
    last_completed: datetime | None
    time_required_minutes: int


def parse_time_required_minutes(raw: str | None) -> int | None:
    """Minutes encoded in free text like "10 min", "2 hours" or "1 day"; None when nothing matches."""
    if not raw:
        return None
    match = TIME_REQUIRED_PATTERN.search(raw)
    if not match:
        return None
    return int(match.group(1)) * UNIT_MINUTES[match.group(2).lower()]


def parse_earnings_value(raw: str | None) -> int:
    if not raw:
        return 0
    match = EARNINGS_PATTERN.search(raw)
    return int(match.group(0)) if match else 0


def latest_completions_today(
    completions: Iterable[MethodCompletion],
    now: datetime,
    tz_name: str = DEFAULT_TZ,
) -> dict[int, datetime]:
    today = local_date(now, tz_name)
    latest: dict[int, datetime] = {}
    for completion in completions:
        if local_date(completion.completed_at, tz_name) != today:
            continue
        seen = latest.get(completion.method_id)
        if seen is None or completion.completed_at > seen:
            latest[completion.method_id] = completion.completed_at
    return latest


def task_status(
    method: Method,
    last_completed: datetime | None,
    now: datetime,
    unparsable_available: bool = True,
) -> TaskStatus:
    cooldown_minutes = parse_time_required_minutes(method.time_required)
    next_available: datetime | None = None
    is_available = True
    wait_ms = 0

    if last_completed is not None:
        if cooldown_minutes is not None:
            next_available = last_completed + timedelta(minutes=cooldown_minutes)
            is_available = now >= next_available
            wait_ms = max(0, int((next_available - now).total_seconds() * 1000))
        else:
            is_available = unparsable_available

    return TaskStatus(
        method=method,
        is_available=is_available,
        next_available=next_available,
        time_until_available_ms=wait_ms,
        earnings_value=parse_earnings_value(method.earnings_hint),
        last_completed=last_completed,
        time_required_minutes=cooldown_minutes or 0,
    )


def _sort_key(task: TaskStatus) -> tuple[int, int, int, int]:
    if task.is_available:
        return (0, task.time_required_minutes, -task.earnings_value, 0)
    return (1, 0, 0, task.time_until_available_ms)


def compute_available_tasks(
    methods: Iterable[Method],
    completions: Iterable[MethodCompletion],
    now: datetime,
    tz_name: str = DEFAULT_TZ,
    unparsable_available: bool = True,
) -> list[TaskStatus]:
    """Active methods with their cooldown state, available ones first.

    Available tasks are ordered by time required (shortest first) then by
    earnings (highest first); unavailable ones by how soon they free up.
    """
    latest = latest_completions_today(completions, now, tz_name)
    tasks = [
        task_status(method, latest.get(method.id), now, unparsable_available=unparsable_available)
        for method in methods
        if method.is_active
    ]
    return sorted(tasks, key=_sort_key)
