"""BrewBalance: a daily spending allowance with rollover and savings challenges."""

from .challenges import (
    ChallengePhase,
    ChallengeProgress,
    budget_so_far,
    challenge_progress,
    is_failed,
    total_budget,
)
from .codec import SnapshotCodec
from .exceptions import (
    BrewBalanceError,
    ChallengeValidationError,
    EntryNotFoundError,
    NoActiveChallengeError,
    PersistenceError,
)
from .export import export_history_csv
from .ledger import LedgerState, StatsTimeline, compute_stats, fold_days
from .lifecycle import (
    Transition,
    archive_expired,
    edit_challenge,
    end_challenge,
    next_cycle,
    start_challenge,
    validate_challenge,
)
from .models import (
    ActiveChallenge,
    BudgetStatus,
    Challenge,
    ChallengeSlot,
    ChallengeStatus,
    DailyStats,
    Entry,
    NoActiveChallenge,
    Recurrence,
    Settings,
)
from .ops import StructuredLogger
from .persistence import DocumentStore
from .service import BrewBalance
from .streaks import compute_streak

__all__ = [
    "ActiveChallenge",
    "BrewBalance",
    "BrewBalanceError",
    "BudgetStatus",
    "Challenge",
    "ChallengePhase",
    "ChallengeProgress",
    "ChallengeSlot",
    "ChallengeStatus",
    "ChallengeValidationError",
    "DailyStats",
    "DocumentStore",
    "Entry",
    "EntryNotFoundError",
    "LedgerState",
    "NoActiveChallenge",
    "NoActiveChallengeError",
    "PersistenceError",
    "Recurrence",
    "Settings",
    "SnapshotCodec",
    "StatsTimeline",
    "StructuredLogger",
    "Transition",
    "archive_expired",
    "budget_so_far",
    "challenge_progress",
    "compute_stats",
    "compute_streak",
    "edit_challenge",
    "end_challenge",
    "export_history_csv",
    "fold_days",
    "is_failed",
    "next_cycle",
    "start_challenge",
    "total_budget",
    "validate_challenge",
]
