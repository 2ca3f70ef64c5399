"""Streak logic for consecutive days kept within budget."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Mapping, Optional

from . import dates
from .dates import DateLike
from .models import BudgetStatus, DailyStats


def compute_streak(timeline: Mapping[date, DailyStats], *, today: Optional[DateLike] = None) -> int:
    """Count consecutive past days that were not over budget.

    Today only matters when it is already over budget, which resets the
    streak to zero.  Counting starts yesterday and walks backwards; challenge
    days are skipped without breaking the streak, and the walk stops at the
    first over-budget day or at the first day with no recorded stats.
    """

    current = dates.parse_date(today) if today is not None else dates.today()
    todays_stats = timeline.get(current)
    if todays_stats is not None and todays_stats.status is BudgetStatus.OVER_BUDGET:
        return 0

    streak = 0
    cursor = current - timedelta(days=1)
    while True:
        stats = timeline.get(cursor)
        if stats is None:
            break
        if stats.is_challenge_day:
            cursor -= timedelta(days=1)
            continue
        if stats.status is BudgetStatus.OVER_BUDGET:
            break
        streak += 1
        cursor -= timedelta(days=1)
    return streak


__all__ = ["compute_streak"]
