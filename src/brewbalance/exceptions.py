"""Custom exception hierarchy for the BrewBalance package."""

from __future__ import annotations


class BrewBalanceError(Exception):
    """Base class for all BrewBalance specific errors."""


class ChallengeValidationError(BrewBalanceError):
    """Raised when a challenge creation or edit is rejected."""


class NoActiveChallengeError(BrewBalanceError):
    """Raised when an operation needs an active challenge and there is none."""


class EntryNotFoundError(BrewBalanceError):
    """Raised when an entry lookup by id fails."""


class PersistenceError(BrewBalanceError):
    """Raised when settings or entries cannot be read from or written to storage."""
