"""Challenge lifecycle: start, edit, end, expiry archival and recurrence.

Every transition takes the current :class:`~brewbalance.models.Settings` and
returns a :class:`Transition` carrying the replacement settings, so the
archived record and any successor are applied in a single update.  The
computed timeline is the source of truth for how much a challenge saved.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from typing import Any, Mapping, Optional

from . import dates
from .challenges import is_successful, saved_through, total_budget
from .dates import DateLike
from .exceptions import ChallengeValidationError, NoActiveChallengeError
from .models import Challenge, ChallengeStatus, DailyStats, Recurrence, Settings
from .money import ZERO

EDITABLE_FIELDS = frozenset(
    {"name", "purpose", "start_date", "end_date", "target_percentage", "recurrence", "recurrence_end_date"}
)


@dataclass(frozen=True, slots=True)
class Transition:
    """Result of a lifecycle operation."""

    settings: Settings
    archived: Optional[Challenge] = None
    active: Optional[Challenge] = None


def _coerce_date(value: Optional[DateLike], label: str) -> Optional[date]:
    if value is None or value == "":
        return None
    try:
        return dates.parse_date(value)
    except (TypeError, ValueError) as exc:
        raise ChallengeValidationError(f"Invalid {label}: {value!r}.") from exc


def validate_challenge(
    *,
    name: Optional[str],
    start_date: Optional[DateLike],
    end_date: Optional[DateLike],
    today: DateLike,
    target_percentage: Any = 100,
    recurrence: Any = Recurrence.NONE,
    recurrence_end_date: Optional[DateLike] = None,
    original_start: Optional[DateLike] = None,
) -> dict[str, Any]:
    """Check challenge fields and return them normalised.

    ``original_start`` is the stored start date when editing; an unchanged
    start date is allowed to lie in the past.
    """

    clean_name = (name or "").strip()
    if not clean_name:
        raise ChallengeValidationError("Please enter a challenge name.")
    start = _coerce_date(start_date, "start date")
    if start is None:
        raise ChallengeValidationError("Please select a start date.")
    end = _coerce_date(end_date, "end date")
    if end is None:
        raise ChallengeValidationError("Please select an end date for the challenge.")
    if end < start:
        raise ChallengeValidationError("End date must be after start date.")
    unchanged = original_start is not None and dates.parse_date(original_start) == start
    if start < dates.parse_date(today) and not unchanged:
        raise ChallengeValidationError("Start date cannot be in the past.")
    try:
        target = int(target_percentage)
    except (TypeError, ValueError) as exc:
        raise ChallengeValidationError(f"Invalid target percentage: {target_percentage!r}.") from exc
    if not 1 <= target <= 100:
        raise ChallengeValidationError("Target percentage must be between 1 and 100.")
    try:
        cadence = Recurrence(recurrence or Recurrence.NONE)
    except ValueError as exc:
        raise ChallengeValidationError(f"Unknown recurrence: {recurrence!r}.") from exc
    recurrence_end = _coerce_date(recurrence_end_date, "recurrence end date")
    if recurrence_end is not None and recurrence_end < end:
        raise ChallengeValidationError("Recurrence end date cannot be before the challenge end date.")
    return {
        "name": clean_name,
        "start_date": start,
        "end_date": end,
        "target_percentage": target,
        "recurrence": cadence,
        "recurrence_end_date": recurrence_end,
    }


def _require_active(settings: Settings) -> Challenge:
    active = settings.active_challenge
    if active is None:
        raise NoActiveChallengeError("There is no active challenge.")
    return active


def _archive(settings: Settings, record: Challenge, successor: Optional[Challenge] = None) -> Settings:
    updated = replace(settings, past_challenges=(record, *settings.past_challenges))
    return updated.with_active(successor)


def start_challenge(
    settings: Settings,
    timeline: Mapping[date, DailyStats],
    *,
    today: DateLike,
    name: str,
    start_date: DateLike,
    end_date: DateLike,
    purpose: str = "",
    target_percentage: int = 100,
    recurrence: Recurrence | str = Recurrence.NONE,
    recurrence_end_date: Optional[DateLike] = None,
) -> Transition:
    """Install a new active challenge, cancelling the current one first."""

    fields = validate_challenge(
        name=name,
        start_date=start_date,
        end_date=end_date,
        today=today,
        target_percentage=target_percentage,
        recurrence=recurrence,
        recurrence_end_date=recurrence_end_date,
    )
    challenge = Challenge(purpose=(purpose or "").strip(), **fields)

    cancelled: Optional[Challenge] = None
    base = settings
    previous = settings.active_challenge
    if previous is not None:
        # the cancellation snapshot does not recompute the budget to date
        cancelled = previous.archived(
            ChallengeStatus.CANCELLED,
            final_saved=saved_through(previous, timeline, today),
            final_total_budget=ZERO,
        )
        base = _archive(settings, cancelled)
    return Transition(settings=base.with_active(challenge), archived=cancelled, active=challenge)


def edit_challenge(settings: Settings, *, today: DateLike, **changes: Any) -> Transition:
    """Apply field edits to the active challenge, all or nothing."""

    active = _require_active(settings)
    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise ChallengeValidationError(f"Cannot edit challenge field(s): {', '.join(sorted(unknown))}.")

    merged = {
        "name": active.name,
        "start_date": active.start_date,
        "end_date": active.end_date,
        "target_percentage": active.target_percentage,
        "recurrence": active.recurrence,
        "recurrence_end_date": active.recurrence_end_date,
    }
    merged.update({key: value for key, value in changes.items() if key != "purpose"})
    fields = validate_challenge(today=today, original_start=active.start_date, **merged)
    purpose = changes.get("purpose", active.purpose)
    updated = replace(active, purpose=(purpose or "").strip(), **fields)
    return Transition(settings=settings.with_active(updated), active=updated)


def _evaluate(challenge: Challenge, settings: Settings, timeline: Mapping[date, DailyStats]) -> Challenge:
    total = total_budget(challenge, settings)
    final_saved = saved_through(challenge, timeline, challenge.end_date)
    status = ChallengeStatus.COMPLETED if is_successful(challenge, total, final_saved) else ChallengeStatus.FAILED
    return challenge.archived(status, final_saved=final_saved, final_total_budget=total)


def end_challenge(settings: Settings, timeline: Mapping[date, DailyStats], *, today: DateLike) -> Transition:
    """End the active challenge by hand.

    Before its end date the challenge is cancelled; from the end date on it is
    judged against its target like an expired challenge.  No successor is
    created.
    """

    active = _require_active(settings)
    current = dates.parse_date(today)
    if current >= active.end_date:
        record = _evaluate(active, settings, timeline)
    else:
        record = active.archived(
            ChallengeStatus.CANCELLED,
            final_saved=saved_through(active, timeline, current),
            final_total_budget=total_budget(active, settings),
        )
    return Transition(settings=_archive(settings, record), archived=record)


def next_cycle(challenge: Challenge) -> Optional[Challenge]:
    """Return the successor of a recurring challenge, or ``None``."""

    cadence = challenge.recurrence
    if cadence is Recurrence.NONE:
        return None
    if cadence is Recurrence.MONTHLY:
        start = dates.add_months(challenge.start_date, 1)
        end = dates.add_months(challenge.end_date, 1)
    else:
        offset = {Recurrence.DAILY: 1, Recurrence.WEEKLY: 7, Recurrence.BI_WEEKLY: 14}[cadence]
        start = dates.add_days(challenge.start_date, offset)
        end = dates.add_days(challenge.end_date, offset)

    if start <= challenge.end_date:
        start = dates.add_days(challenge.end_date, 1)
        end = dates.add_days(start, challenge.duration_days)

    if challenge.recurrence_end_date is not None and start > challenge.recurrence_end_date:
        return None
    return Challenge(
        name=challenge.name,
        purpose=challenge.purpose,
        start_date=start,
        end_date=end,
        target_percentage=challenge.target_percentage,
        recurrence=challenge.recurrence,
        recurrence_end_date=challenge.recurrence_end_date,
    )


def archive_expired(
    settings: Settings,
    timeline: Mapping[date, DailyStats],
    *,
    today: DateLike,
) -> Optional[Transition]:
    """Archive the active challenge once ``today`` is past its end date."""

    active = settings.active_challenge
    if active is None or dates.parse_date(today) <= active.end_date:
        return None
    record = _evaluate(active, settings, timeline)
    successor = next_cycle(active)
    return Transition(settings=_archive(settings, record, successor), archived=record, active=successor)


__all__ = [
    "EDITABLE_FIELDS",
    "Transition",
    "archive_expired",
    "edit_challenge",
    "end_challenge",
    "next_cycle",
    "start_challenge",
    "validate_challenge",
]
