"""Daily ledger: derive the per-day statistics timeline from settings and entries.

The timeline is rebuilt from scratch on every call.  The walk over calendar
days is an explicit fold: :class:`LedgerState` carries the rollover, the
rollover frozen while a challenge runs, and the running challenge savings
from one day to the next, and :func:`advance` produces the next state along
with the day's :class:`~brewbalance.models.DailyStats`.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, Iterator, Mapping, Optional, Sequence, Tuple

from . import dates
from .dates import DateLike
from .models import BudgetStatus, DailyStats, Entry, Settings
from .money import ZERO


@dataclass(frozen=True, slots=True)
class LedgerState:
    """Accumulator threaded through the day-by-day fold."""

    rollover: Decimal = ZERO
    preserved_rollover: Optional[Decimal] = None
    challenge_savings: Decimal = ZERO
    challenge_id: Optional[str] = None


class StatsTimeline(Mapping[date, DailyStats]):
    """Read-only, date-ordered mapping of computed :class:`DailyStats`.

    Keys may be given as :class:`date` objects or ISO strings.
    """

    __slots__ = ("_stats",)

    def __init__(self, stats: Iterable[DailyStats] = ()) -> None:
        self._stats: Dict[date, DailyStats] = {}
        for record in sorted(stats, key=lambda item: item.date):
            self._stats[record.date] = record

    def __getitem__(self, key: DateLike) -> DailyStats:
        try:
            day = dates.parse_date(key)
        except (TypeError, ValueError) as exc:
            raise KeyError(key) from exc
        return self._stats[day]

    def __iter__(self) -> Iterator[date]:
        return iter(self._stats)

    def __len__(self) -> int:
        return len(self._stats)

    def __repr__(self) -> str:
        return f"StatsTimeline(first={self.first_date}, last={self.last_date}, days={len(self)})"

    @property
    def first_date(self) -> Optional[date]:
        return next(iter(self._stats), None)

    @property
    def last_date(self) -> Optional[date]:
        return next(reversed(self._stats), None)

    def lookup(self, day: DateLike) -> DailyStats:
        """Return the stats for ``day`` or a zeroed record when the day was not computed."""

        parsed = dates.parse_date(day)
        return self._stats.get(parsed) or DailyStats.empty(parsed)

    def between(self, start: DateLike, end: DateLike) -> Tuple[DailyStats, ...]:
        return tuple(self._stats[day] for day in dates.iter_days(start, end) if day in self._stats)

    def to_iso_dict(self) -> Dict[str, DailyStats]:
        return {day.isoformat(): record for day, record in self._stats.items()}


def classify(spent: Decimal, total_available: Decimal, alarm_threshold: Decimal) -> BudgetStatus:
    if spent > total_available:
        return BudgetStatus.OVER_BUDGET
    if total_available > 0 and spent >= total_available * alarm_threshold:
        return BudgetStatus.WARNING
    return BudgetStatus.UNDER_ALARM


def base_budget(settings: Settings, day: date) -> tuple[Decimal, bool]:
    """Return the day's base budget (0 outside the configured range) and the custom flag."""

    if not settings.in_budget_range(day):
        return ZERO, False
    return settings.allowance_for(day)


def advance(
    state: LedgerState,
    day: date,
    *,
    settings: Settings,
    entries: Sequence[Entry],
    today: date,
) -> tuple[LedgerState, DailyStats]:
    """Apply one calendar day to ``state``."""

    challenge = settings.challenge_for(day)
    if challenge is None:
        challenge_id: Optional[str] = None
        savings = ZERO
    elif challenge.id != state.challenge_id:
        challenge_id = challenge.id
        savings = ZERO
    else:
        challenge_id = state.challenge_id
        savings = state.challenge_savings

    budget, is_custom_budget = base_budget(settings, day)
    spent = sum((entry.amount for entry in entries), ZERO)

    rollover = state.rollover
    preserved = state.preserved_rollover
    custom_rollover = settings.custom_rollovers.get(day)
    is_custom_rollover = custom_rollover is not None
    if is_custom_rollover:
        rollover = custom_rollover
        preserved = None

    if challenge is not None:
        if preserved is None and not is_custom_rollover:
            preserved = rollover
        total_available = budget + rollover if is_custom_rollover else budget
        remaining = total_available - spent
        savings += remaining
        recorded_rollover = rollover if is_custom_rollover else ZERO
        next_rollover = ZERO
    else:
        if preserved is not None and not is_custom_rollover:
            rollover = preserved
            preserved = None
        total_available = budget + rollover
        remaining = total_available - spent
        recorded_rollover = rollover
        # open days (today onwards) are not carried forward yet
        next_rollover = remaining if day < today else ZERO

    record = DailyStats(
        date=day,
        base_budget=budget,
        rollover=recorded_rollover,
        total_available=total_available,
        spent=spent,
        remaining=remaining,
        status=classify(spent, total_available, settings.alarm_threshold),
        entries=tuple(entries),
        is_custom_budget=is_custom_budget,
        is_custom_rollover=is_custom_rollover,
        is_challenge_day=challenge is not None,
        challenge_name=challenge.name if challenge is not None else None,
        challenge_saved_so_far=savings if challenge is not None else None,
    )
    next_state = LedgerState(
        rollover=next_rollover,
        preserved_rollover=preserved,
        challenge_savings=savings,
        challenge_id=challenge_id,
    )
    return next_state, record


def group_entries(entries: Iterable[Entry]) -> Dict[date, Tuple[Entry, ...]]:
    grouped: Dict[date, list[Entry]] = defaultdict(list)
    for entry in sorted(entries, key=lambda item: item.timestamp):
        grouped[entry.date].append(entry)
    return {day: tuple(items) for day, items in grouped.items()}


def fold_days(
    settings: Settings,
    entries_by_day: Mapping[date, Sequence[Entry]],
    start: DateLike,
    end: DateLike,
    *,
    today: date,
    initial: LedgerState = LedgerState(),
) -> tuple[StatsTimeline, LedgerState]:
    """Fold every day from ``start`` to ``end`` inclusive, starting from ``initial``."""

    state = initial
    records: list[DailyStats] = []
    for day in dates.iter_days(start, end):
        state, record = advance(
            state,
            day,
            settings=settings,
            entries=entries_by_day.get(day, ()),
            today=today,
        )
        records.append(record)
    return StatsTimeline(records), state


def compute_stats(
    settings: Settings,
    entries: Iterable[Entry],
    target_date: Optional[DateLike] = None,
    *,
    today: Optional[DateLike] = None,
) -> StatsTimeline:
    """Build the timeline from ``settings.start_date`` to the furthest relevant day.

    The walk ends at the latest of today, ``target_date`` and the latest entry
    date, so it always covers at least today.
    """

    current_day = dates.parse_date(today) if today is not None else dates.today()
    grouped = group_entries(entries)
    end = current_day
    if target_date is not None:
        end = max(end, dates.parse_date(target_date))
    if grouped:
        end = max(end, max(grouped))
    timeline, _ = fold_days(settings, grouped, settings.start_date, end, today=current_day)
    return timeline


__all__ = [
    "LedgerState",
    "StatsTimeline",
    "advance",
    "base_budget",
    "classify",
    "compute_stats",
    "fold_days",
    "group_entries",
]
