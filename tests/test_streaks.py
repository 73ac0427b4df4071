from __future__ import annotations

from datetime import date, datetime, timezone

from daily_methods_hub.streaks import (
    compute_streak_update,
    empty_streak,
    evaluate_streak_status,
    next_milestone,
    recompute_streak,
)

NOW = datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)


def _log(dates: list[date]):
    state = empty_streak("u1", NOW)
    history = []
    for day in dates:
        state = compute_streak_update(state, day, NOW)
        history.append(state)
    return state, history


def test_first_entry_starts_streak_at_one() -> None:
    state, _ = _log([date(2024, 1, 1)])
    assert state.current_streak == 1
    assert state.longest_streak == 1
    assert state.last_entry_date == date(2024, 1, 1)


def test_consecutive_days_extend_streak() -> None:
    state, _ = _log([date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 3)])
    assert state.current_streak == 3
    assert state.longest_streak == 3


def test_same_day_relog_returns_previous_unchanged() -> None:
    state, _ = _log([date(2024, 1, 1), date(2024, 1, 2)])
    again = compute_streak_update(state, date(2024, 1, 2), datetime(2024, 1, 11, tzinfo=timezone.utc))
    assert again is state


def test_gap_resets_current_but_keeps_longest() -> None:
    state, _ = _log([date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 3), date(2024, 1, 6)])
    assert state.current_streak == 1
    assert state.longest_streak == 3
    assert state.last_entry_date == date(2024, 1, 6)


def test_backfill_resets_with_incremental_rule() -> None:
    state, _ = _log([date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 3)])
    backfilled = compute_streak_update(state, date(2024, 1, 1), NOW)
    assert backfilled.current_streak == 1
    assert backfilled.longest_streak == 3
    assert backfilled.last_entry_date == date(2024, 1, 1)


def test_longest_never_below_current() -> None:
    days = [
        date(2024, 1, 1),
        date(2024, 1, 2),
        date(2024, 1, 5),
        date(2024, 1, 4),
        date(2024, 1, 5),
        date(2024, 1, 6),
        date(2024, 1, 7),
        date(2024, 1, 7),
        date(2023, 12, 1),
    ]
    _, history = _log(days)
    assert all(s.longest_streak >= s.current_streak for s in history)


def test_recompute_joins_runs_around_backfilled_day() -> None:
    state, _ = _log([date(2024, 1, 1), date(2024, 1, 3)])
    rebuilt = recompute_streak(state, [date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 3)], NOW)
    assert rebuilt.current_streak == 3
    assert rebuilt.longest_streak == 3
    assert rebuilt.last_entry_date == date(2024, 1, 3)


def test_recompute_keeps_longer_historic_run() -> None:
    state = empty_streak("u1", NOW)
    dates = [date(2024, 1, d) for d in (1, 2, 3, 4, 8, 9)]
    rebuilt = recompute_streak(state, dates, NOW)
    assert rebuilt.current_streak == 2
    assert rebuilt.longest_streak == 4


def test_recompute_without_dates_zeroes_current() -> None:
    state, _ = _log([date(2024, 1, 1), date(2024, 1, 2)])
    rebuilt = recompute_streak(state, [], NOW)
    assert rebuilt.current_streak == 0
    assert rebuilt.longest_streak == 2
    assert rebuilt.last_entry_date is None


def test_status_without_entries_needs_reminder() -> None:
    status = evaluate_streak_status(empty_streak("u1", NOW), date(2024, 1, 10))
    assert status.needs_reminder is True
    assert status.days_missed == 0


def test_status_reminds_after_two_days() -> None:
    state, _ = _log([date(2024, 1, 8)])
    assert evaluate_streak_status(state, date(2024, 1, 9)).needs_reminder is False
    status = evaluate_streak_status(state, date(2024, 1, 10))
    assert status.needs_reminder is True
    assert status.days_missed == 2


def test_next_milestone() -> None:
    assert next_milestone(0) == 7
    assert next_milestone(7) == 30
    assert next_milestone(99) == 100
    assert next_milestone(100) is None
