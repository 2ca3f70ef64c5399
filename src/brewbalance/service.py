"""High level service owning the budget state and recomputing the ledger on change."""

from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime
from typing import Any, Callable, Iterable, List, Optional, Tuple

from . import dates
from .challenges import ChallengeProgress, challenge_progress, is_failed, saved_through
from .config import DEFAULT_CURRENCY, LOG_FILE, STATS_HORIZON_YEARS
from .dates import DateLike
from .exceptions import EntryNotFoundError, PersistenceError
from .export import export_history_csv
from .ledger import StatsTimeline, compute_stats, fold_days, group_entries
from .lifecycle import Transition, archive_expired, edit_challenge, end_challenge, start_challenge
from .models import Challenge, ChallengeStatus, DailyStats, Entry, Settings
from .money import AmountLike, require_positive, to_decimal
from .ops import StructuredLogger
from .persistence import DocumentStore
from .streaks import compute_streak

SETTINGS_FIELDS = frozenset(
    {"weekday_budget", "weekend_budget", "alarm_threshold", "start_date", "end_date", "currency", "user_name"}
)


class BrewBalance:
    """Single-owner budget tracker: settings, entries, challenges and derived stats."""

    __slots__ = (
        "_settings",
        "_entries",
        "_store",
        "_logger",
        "_clock",
        "_horizon_years",
        "_timeline",
    )

    def __init__(
        self,
        settings: Optional[Settings] = None,
        entries: Iterable[Entry] = (),
        *,
        store: Optional[DocumentStore] = None,
        logger: Optional[StructuredLogger] = None,
        clock: Optional[Callable[[], date]] = None,
        horizon_years: int = STATS_HORIZON_YEARS,
    ) -> None:
        self._clock: Callable[[], date] = clock or dates.today
        self._settings: Settings = settings or self.default_settings()
        self._entries: List[Entry] = list(entries)
        self._store = store
        self._logger = logger or StructuredLogger(path=LOG_FILE)
        self._horizon_years = horizon_years
        self._timeline: Optional[Tuple[date, StatsTimeline]] = None

    @classmethod
    def load(
        cls,
        store: DocumentStore,
        *,
        logger: Optional[StructuredLogger] = None,
        clock: Optional[Callable[[], date]] = None,
    ) -> "BrewBalance":
        """Restore state from ``store``, falling back to defaults for unreadable documents."""

        log = logger or StructuredLogger(path=LOG_FILE)
        day = (clock or dates.today)()
        defaults = Settings(start_date=day, currency=DEFAULT_CURRENCY)
        try:
            settings = store.load_settings(defaults=defaults)
        except PersistenceError as exc:
            log.log("persistence_failed", operation="load_settings", error=str(exc))
            settings = None
        try:
            entries = store.load_entries()
        except PersistenceError as exc:
            log.log("persistence_failed", operation="load_entries", error=str(exc))
            entries = []
        service = cls(settings or defaults, entries, store=store, logger=log, clock=clock)
        service.archive_expired_challenges()
        return service

    def default_settings(self) -> Settings:
        return Settings(start_date=self.today(), currency=DEFAULT_CURRENCY)

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------
    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def entries(self) -> Tuple[Entry, ...]:
        return tuple(self._entries)

    @property
    def logger(self) -> StructuredLogger:
        return self._logger

    def today(self) -> date:
        return self._clock()

    def stats(self, target_date: Optional[DateLike] = None) -> StatsTimeline:
        """Return the timeline, by default extended to the configured horizon."""

        today = self.today()
        if target_date is not None:
            return compute_stats(self._settings, self._entries, target_date, today=today)
        if self._timeline is None or self._timeline[0] != today:
            horizon = dates.add_months(today, 12 * self._horizon_years)
            self._timeline = (today, compute_stats(self._settings, self._entries, horizon, today=today))
        return self._timeline[1]

    def today_stats(self) -> DailyStats:
        return self.stats().lookup(self.today())

    def streak(self) -> int:
        return compute_streak(self.stats(), today=self.today())

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------
    def add_entry(self, amount: AmountLike, note: str = "", *, day: Optional[DateLike] = None) -> Entry:
        entry = Entry(date=day if day is not None else self.today(), amount=amount, note=note)
        self._entries.append(entry)
        self._logger.log("entry_added", entry_id=entry.id, date=entry.date.isoformat(), amount=float(entry.amount))
        self._commit_entries()
        return entry

    def get_entry(self, entry_id: str) -> Entry:
        for entry in self._entries:
            if entry.id == entry_id:
                return entry
        raise EntryNotFoundError(f"Entry '{entry_id}' does not exist.")

    def update_entry(
        self,
        entry_id: str,
        *,
        amount: Optional[AmountLike] = None,
        note: Optional[str] = None,
        day: Optional[DateLike] = None,
    ) -> Entry:
        current = self.get_entry(entry_id)
        changes: dict[str, Any] = {}
        if amount is not None:
            changes["amount"] = amount
        if note is not None:
            changes["note"] = note
        if day is not None:
            changes["date"] = day
        updated = replace(current, **changes)
        self._entries = [updated if entry.id == entry_id else entry for entry in self._entries]
        self._logger.log("entry_updated", entry_id=entry_id, date=updated.date.isoformat(), amount=float(updated.amount))
        self._commit_entries()
        return updated

    def delete_entry(self, entry_id: str) -> Entry:
        removed = self.get_entry(entry_id)
        self._entries = [entry for entry in self._entries if entry.id != entry_id]
        self._logger.log("entry_deleted", entry_id=entry_id)
        self._commit_entries()
        return removed

    def entries_on(self, day: DateLike) -> Tuple[Entry, ...]:
        target = dates.parse_date(day)
        return tuple(sorted((e for e in self._entries if e.date == target), key=lambda e: e.timestamp))

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------
    def update_settings(self, **changes: Any) -> Settings:
        unknown = set(changes) - SETTINGS_FIELDS
        if unknown:
            raise ValueError(f"Cannot update setting(s): {', '.join(sorted(unknown))}.")
        updated = replace(self._settings, **changes)
        self._logger.log("settings_updated", fields=sorted(changes))
        self._commit_settings(updated)
        return updated

    def set_custom_budget(self, day: DateLike, amount: AmountLike) -> Settings:
        value = require_positive(to_decimal(amount), allow_zero=True)
        budgets = dict(self._settings.custom_budgets)
        budgets[dates.parse_date(day)] = value
        self._commit_settings(replace(self._settings, custom_budgets=budgets))
        return self._settings

    def clear_custom_budget(self, day: DateLike) -> Settings:
        budgets = dict(self._settings.custom_budgets)
        budgets.pop(dates.parse_date(day), None)
        self._commit_settings(replace(self._settings, custom_budgets=budgets))
        return self._settings

    def set_custom_rollover(self, day: DateLike, amount: AmountLike) -> Settings:
        rollovers = dict(self._settings.custom_rollovers)
        rollovers[dates.parse_date(day)] = to_decimal(amount)
        self._commit_settings(replace(self._settings, custom_rollovers=rollovers))
        return self._settings

    def clear_custom_rollover(self, day: DateLike) -> Settings:
        rollovers = dict(self._settings.custom_rollovers)
        rollovers.pop(dates.parse_date(day), None)
        self._commit_settings(replace(self._settings, custom_rollovers=rollovers))
        return self._settings

    # ------------------------------------------------------------------
    # Challenges
    # ------------------------------------------------------------------
    def start_challenge(self, name: str, start_date: DateLike, end_date: DateLike, **options: Any) -> Challenge:
        transition = start_challenge(
            self._settings,
            self.stats(),
            today=self.today(),
            name=name,
            start_date=start_date,
            end_date=end_date,
            **options,
        )
        if transition.archived is not None:
            self._log_archived(transition.archived)
        self._logger.log(
            "challenge_started",
            challenge_id=transition.active.id,
            name=transition.active.name,
            start=transition.active.start_date.isoformat(),
            end=transition.active.end_date.isoformat(),
        )
        self._apply(transition)
        return transition.active

    def edit_challenge(self, **changes: Any) -> Challenge:
        transition = edit_challenge(self._settings, today=self.today(), **changes)
        self._logger.log("challenge_edited", challenge_id=transition.active.id, fields=sorted(changes))
        self._apply(transition)
        return transition.active

    def end_challenge(self) -> Challenge:
        transition = end_challenge(self._settings, self.stats(), today=self.today())
        self._log_archived(transition.archived)
        self._apply(transition)
        return transition.archived

    def archive_expired_challenges(self) -> Tuple[Challenge, ...]:
        """Archive expired challenges, catching up on every missed recurrence.

        Archiving a challenge does not change any day up to its end date, so
        each pass resumes the ledger fold from the day after the previous
        challenge ended instead of walking the whole history again.
        """

        archived: List[Challenge] = []
        today = self.today()
        active = self._settings.active_challenge
        if active is None or today <= active.end_date:
            return ()
        grouped = group_entries(self._entries)
        start = self._settings.start_date
        timeline, state = fold_days(self._settings, grouped, start, active.end_date, today=today)
        while True:
            transition = archive_expired(self._settings, timeline, today=today)
            if transition is None:
                break
            resume_from = max(start, dates.add_days(transition.archived.end_date, 1))
            self._log_archived(transition.archived)
            if transition.active is not None:
                self._logger.log(
                    "challenge_recurred",
                    challenge_id=transition.active.id,
                    start=transition.active.start_date.isoformat(),
                    end=transition.active.end_date.isoformat(),
                )
            self._settings = transition.settings
            archived.append(transition.archived)
            successor = transition.active
            if successor is None or today <= successor.end_date:
                break
            timeline, state = fold_days(
                self._settings, grouped, resume_from, successor.end_date, today=today, initial=state
            )
        self._commit_settings(self._settings)
        return tuple(archived)

    def challenge_progress(self) -> Optional[ChallengeProgress]:
        active = self._settings.active_challenge
        if active is None:
            return None
        return challenge_progress(active, self._settings, self.stats(), today=self.today())

    def is_challenge_failed(self) -> bool:
        active = self._settings.active_challenge
        if active is None:
            return False
        today = self.today()
        reference = min(today, active.end_date)
        return is_failed(active, self._settings, saved_through(active, self.stats(), reference), today)

    # ------------------------------------------------------------------
    # Export / reset
    # ------------------------------------------------------------------
    def export_csv(self) -> str:
        return export_history_csv(self.stats(), today=self.today())

    def export_filename(self, *, at: Optional[datetime] = None) -> str:
        moment = at or datetime.now()
        return f"brewbalance_history_{moment:%Y-%m-%d_%H-%M-%S}.csv"

    def reset(self) -> None:
        """Drop every entry and challenge and start over from today."""

        self._settings = self.default_settings()
        self._entries = []
        self._timeline = None
        self._logger.log("reset", start=self._settings.start_date.isoformat())
        self._persist("clear", lambda store: store.clear())

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _apply(self, transition: Transition) -> None:
        self._commit_settings(transition.settings)

    def _log_archived(self, challenge: Challenge) -> None:
        self._logger.log(
            "challenge_cancelled" if challenge.status is ChallengeStatus.CANCELLED else "challenge_archived",
            challenge_id=challenge.id,
            status=challenge.status.value,
            final_saved=float(challenge.final_saved or 0),
            final_total_budget=float(challenge.final_total_budget or 0),
        )

    def _commit_settings(self, settings: Settings) -> None:
        self._settings = settings
        self._timeline = None
        self._persist("save_settings", lambda store: store.save_settings(settings))

    def _commit_entries(self) -> None:
        self._timeline = None
        snapshot = tuple(self._entries)
        self._persist("save_entries", lambda store: store.save_entries(snapshot))

    def _persist(self, operation: str, action: Callable[[DocumentStore], None]) -> None:
        if self._store is None:
            return
        try:
            action(self._store)
        except PersistenceError as exc:
            self._logger.log("persistence_failed", operation=operation, error=str(exc))


__all__ = ["BrewBalance"]
