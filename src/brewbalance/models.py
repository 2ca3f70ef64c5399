"""Domain models used by the BrewBalance package."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Mapping, Optional, Tuple, Union
from uuid import uuid4

from . import dates
from .dates import DateLike
from .money import ZERO, AmountLike, require_positive, to_decimal, to_ratio

DEFAULT_ALARM_THRESHOLD = Decimal("0.8")
DEFAULT_CURRENCY = "JPY"


class BudgetStatus(str, Enum):
    """Traffic-light classification of a day's spending."""

    UNDER_ALARM = "GREEN"
    WARNING = "YELLOW"
    OVER_BUDGET = "RED"


class Recurrence(str, Enum):
    """How a challenge regenerates itself once it expires."""

    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    BI_WEEKLY = "bi-weekly"
    MONTHLY = "monthly"


class ChallengeStatus(str, Enum):
    """Lifecycle state of a challenge."""

    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


def _optional_date(value: Optional[DateLike]) -> Optional[date]:
    if value is None or value == "":
        return None
    return dates.parse_date(value)


def _amount_map(values: Optional[Mapping[DateLike, AmountLike]]) -> dict[date, Decimal]:
    return {dates.parse_date(key): to_decimal(amount) for key, amount in (values or {}).items()}


@dataclass(frozen=True, slots=True)
class Entry:
    """A single expense attributed to a calendar day."""

    date: date
    amount: Decimal
    note: str = ""
    id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=dates.utc_now)

    def __post_init__(self) -> None:
        amount = to_decimal(self.amount)
        require_positive(amount)
        object.__setattr__(self, "amount", amount)
        object.__setattr__(self, "date", dates.parse_date(self.date))
        object.__setattr__(self, "note", (self.note or "").strip())
        if self.timestamp.tzinfo is None:
            # naive timestamps are UTC
            object.__setattr__(self, "timestamp", self.timestamp.replace(tzinfo=timezone.utc))


@dataclass(frozen=True, slots=True)
class Challenge:
    """A time-boxed savings goal over an inclusive date range."""

    name: str
    start_date: date
    end_date: date
    purpose: str = ""
    target_percentage: int = 100
    recurrence: Recurrence = Recurrence.NONE
    recurrence_end_date: Optional[date] = None
    status: ChallengeStatus = ChallengeStatus.ACTIVE
    final_saved: Optional[Decimal] = None
    final_total_budget: Optional[Decimal] = None
    id: str = field(default_factory=lambda: str(uuid4()))

    def __post_init__(self) -> None:
        object.__setattr__(self, "start_date", dates.parse_date(self.start_date))
        object.__setattr__(self, "end_date", dates.parse_date(self.end_date))
        object.__setattr__(self, "recurrence_end_date", _optional_date(self.recurrence_end_date))
        object.__setattr__(self, "recurrence", Recurrence(self.recurrence or Recurrence.NONE))
        object.__setattr__(self, "status", ChallengeStatus(self.status or ChallengeStatus.ACTIVE))
        object.__setattr__(self, "target_percentage", int(self.target_percentage))
        if self.final_saved is not None:
            object.__setattr__(self, "final_saved", to_decimal(self.final_saved))
        if self.final_total_budget is not None:
            object.__setattr__(self, "final_total_budget", to_decimal(self.final_total_budget))

    @property
    def is_active(self) -> bool:
        return self.status is ChallengeStatus.ACTIVE

    @property
    def duration_days(self) -> int:
        """Number of days from start to end (0 for a single-day challenge)."""

        return dates.days_between(self.start_date, self.end_date)

    def contains(self, day: DateLike) -> bool:
        return self.start_date <= dates.parse_date(day) <= self.end_date

    def archived(
        self,
        status: ChallengeStatus,
        *,
        final_saved: AmountLike,
        final_total_budget: AmountLike,
    ) -> "Challenge":
        """Return the frozen history record for this challenge."""

        if status is ChallengeStatus.ACTIVE:
            raise ValueError("Archived challenges cannot be active.")
        return replace(
            self,
            status=status,
            final_saved=to_decimal(final_saved),
            final_total_budget=to_decimal(final_total_budget),
        )


@dataclass(frozen=True, slots=True)
class NoActiveChallenge:
    """Challenge slot state when no challenge is running."""


@dataclass(frozen=True, slots=True)
class ActiveChallenge:
    """Challenge slot state holding the single running challenge."""

    challenge: Challenge

    def __post_init__(self) -> None:
        if not self.challenge.is_active:
            raise ValueError("Only an active challenge can occupy the active slot.")


ChallengeSlot = Union[NoActiveChallenge, ActiveChallenge]


@dataclass(frozen=True, slots=True)
class Settings:
    """Budget configuration plus the challenge slot and archive."""

    weekday_budget: Decimal = ZERO
    weekend_budget: Decimal = ZERO
    alarm_threshold: Decimal = DEFAULT_ALARM_THRESHOLD
    start_date: date = field(default_factory=dates.today)
    end_date: Optional[date] = None
    currency: str = DEFAULT_CURRENCY
    user_name: str = ""
    custom_budgets: Mapping[date, Decimal] = field(default_factory=dict)
    custom_rollovers: Mapping[date, Decimal] = field(default_factory=dict)
    current_challenge: ChallengeSlot = field(default_factory=NoActiveChallenge)
    past_challenges: Tuple[Challenge, ...] = ()

    def __post_init__(self) -> None:
        weekday = require_positive(to_decimal(self.weekday_budget), allow_zero=True)
        weekend = require_positive(to_decimal(self.weekend_budget), allow_zero=True)
        threshold = to_ratio(self.alarm_threshold)
        if not Decimal("0") <= threshold <= Decimal("1"):
            raise ValueError("alarm_threshold must be between 0 and 1.")
        start = dates.parse_date(self.start_date)
        end = _optional_date(self.end_date)
        if end is not None and end < start:
            raise ValueError("end_date cannot be before start_date.")
        custom_budgets = _amount_map(self.custom_budgets)
        for amount in custom_budgets.values():
            require_positive(amount, allow_zero=True)
        past = tuple(self.past_challenges)
        if any(challenge.is_active for challenge in past):
            raise ValueError("Archived challenges cannot be active.")

        object.__setattr__(self, "weekday_budget", weekday)
        object.__setattr__(self, "weekend_budget", weekend)
        object.__setattr__(self, "alarm_threshold", threshold)
        object.__setattr__(self, "start_date", start)
        object.__setattr__(self, "end_date", end)
        object.__setattr__(self, "custom_budgets", custom_budgets)
        object.__setattr__(self, "custom_rollovers", _amount_map(self.custom_rollovers))
        object.__setattr__(self, "current_challenge", self.current_challenge or NoActiveChallenge())
        object.__setattr__(self, "past_challenges", past)

    @property
    def active_challenge(self) -> Optional[Challenge]:
        slot = self.current_challenge
        return slot.challenge if isinstance(slot, ActiveChallenge) else None

    def in_budget_range(self, day: date) -> bool:
        if day < self.start_date:
            return False
        return self.end_date is None or day <= self.end_date

    def allowance_for(self, day: date) -> tuple[Decimal, bool]:
        """Return the day's allowance and whether it came from a custom override."""

        custom = self.custom_budgets.get(day)
        if custom is not None:
            return custom, True
        return (self.weekend_budget if dates.is_weekend(day) else self.weekday_budget), False

    def challenge_for(self, day: date) -> Optional[Challenge]:
        """Return the challenge owning ``day``: the active one first, then the archive in order."""

        active = self.active_challenge
        if active is not None and active.contains(day):
            return active
        for challenge in self.past_challenges:
            if challenge.contains(day):
                return challenge
        return None

    def with_active(self, challenge: Optional[Challenge]) -> "Settings":
        slot: ChallengeSlot = ActiveChallenge(challenge) if challenge is not None else NoActiveChallenge()
        return replace(self, current_challenge=slot)


@dataclass(frozen=True, slots=True)
class DailyStats:
    """Derived, never persisted, statistics for a single calendar day."""

    date: date
    base_budget: Decimal = ZERO
    rollover: Decimal = ZERO
    total_available: Decimal = ZERO
    spent: Decimal = ZERO
    remaining: Decimal = ZERO
    status: BudgetStatus = BudgetStatus.UNDER_ALARM
    entries: Tuple[Entry, ...] = ()
    is_custom_budget: bool = False
    is_custom_rollover: bool = False
    is_challenge_day: bool = False
    challenge_name: Optional[str] = None
    challenge_saved_so_far: Optional[Decimal] = None

    @classmethod
    def empty(cls, day: DateLike) -> "DailyStats":
        """Zeroed record used when a date has no computed stats."""

        return cls(date=dates.parse_date(day))


__all__ = [
    "ActiveChallenge",
    "BudgetStatus",
    "Challenge",
    "ChallengeSlot",
    "ChallengeStatus",
    "DailyStats",
    "Entry",
    "NoActiveChallenge",
    "Recurrence",
    "Settings",
]
