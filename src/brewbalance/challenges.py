"""Budget, failure and progress calculations for savings challenges."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Mapping

from . import dates
from .dates import DateLike
from .models import Challenge, DailyStats, Settings
from .money import ZERO, AmountLike, to_decimal

FAILURE_TOLERANCE = Decimal("0.01")
SUCCESS_TOLERANCE = Decimal("0.001")


class ChallengePhase(str, Enum):
    """Display state of a running challenge."""

    UPCOMING = "upcoming"
    ON_TRACK = "on_track"
    BEHIND = "behind"
    FAILED = "failed"
    FINISHED_SUCCESS = "finished_success"
    FINISHED_FAILED = "finished_failed"


@dataclass(frozen=True, slots=True)
class ChallengeProgress:
    """Snapshot of how a challenge is going on a given day."""

    total_budget: Decimal
    saved_so_far: Decimal
    target_amount: Decimal
    days_left: int
    day_number: int
    total_days: int
    phase: ChallengePhase


def _allocated(settings: Settings, start: date, end: date) -> Decimal:
    return sum((settings.allowance_for(day)[0] for day in dates.iter_days(start, end)), ZERO)


def total_budget(challenge: Challenge, settings: Settings) -> Decimal:
    """Sum of the allowance for every day of the challenge."""

    return _allocated(settings, challenge.start_date, challenge.end_date)


def budget_so_far(challenge: Challenge, settings: Settings, through_date: DateLike) -> Decimal:
    """Allowance allocated from the challenge start through ``through_date`` (inclusive)."""

    through = dates.parse_date(through_date)
    if through < challenge.start_date:
        return ZERO
    return _allocated(settings, challenge.start_date, min(through, challenge.end_date))


def target_amount(challenge: Challenge, total: Decimal) -> Decimal:
    return total * Decimal(challenge.target_percentage) / Decimal(100)


def is_failed(challenge: Challenge, settings: Settings, saved_so_far: AmountLike, today: DateLike) -> bool:
    """Return ``True`` once the target can no longer be reached even with zero further spending."""

    total = total_budget(challenge, settings)
    spent_so_far = budget_so_far(challenge, settings, today) - to_decimal(saved_so_far)
    best_case = total - spent_so_far
    return best_case < target_amount(challenge, total) - FAILURE_TOLERANCE


def is_successful(challenge: Challenge, total: Decimal, final_saved: AmountLike) -> bool:
    return to_decimal(final_saved) >= target_amount(challenge, total) - SUCCESS_TOLERANCE


def saved_through(challenge: Challenge, timeline: Mapping[date, DailyStats], day: DateLike) -> Decimal:
    """Return the challenge savings recorded on ``day`` (0 when not recorded)."""

    stats = timeline.get(dates.parse_date(day))
    if stats is None or stats.challenge_saved_so_far is None:
        return ZERO
    return stats.challenge_saved_so_far


def challenge_progress(
    challenge: Challenge,
    settings: Settings,
    timeline: Mapping[date, DailyStats],
    *,
    today: DateLike,
) -> ChallengeProgress:
    current = dates.parse_date(today)
    total = total_budget(challenge, settings)
    target = target_amount(challenge, total)
    is_past_end = current > challenge.end_date
    saved = saved_through(challenge, timeline, challenge.end_date if is_past_end else current)

    if current < challenge.start_date:
        phase = ChallengePhase.UPCOMING
    elif is_past_end:
        phase = ChallengePhase.FINISHED_SUCCESS if saved >= target else ChallengePhase.FINISHED_FAILED
    elif is_failed(challenge, settings, saved, current):
        phase = ChallengePhase.FAILED
    else:
        duration = challenge.duration_days
        elapsed = dates.days_between(challenge.start_date, current)
        if duration > 0:
            ratio = max(Decimal(0), min(Decimal(1), Decimal(elapsed) / Decimal(duration)))
        else:
            ratio = Decimal(1)
        phase = ChallengePhase.ON_TRACK if saved >= target * ratio else ChallengePhase.BEHIND

    total_days = challenge.duration_days + 1
    day_number = max(0, min(total_days, dates.days_between(challenge.start_date, current) + 1))
    return ChallengeProgress(
        total_budget=total,
        saved_so_far=saved,
        target_amount=target,
        days_left=max(0, dates.days_between(current, challenge.end_date)),
        day_number=day_number,
        total_days=total_days,
        phase=phase,
    )


__all__ = [
    "ChallengePhase",
    "ChallengeProgress",
    "FAILURE_TOLERANCE",
    "SUCCESS_TOLERANCE",
    "budget_so_far",
    "challenge_progress",
    "is_failed",
    "is_successful",
    "saved_through",
    "target_amount",
    "total_budget",
]
