import json
from datetime import date, datetime
from decimal import Decimal

import pytest

from brewbalance.challenges import ChallengePhase
from brewbalance.exceptions import EntryNotFoundError, NoActiveChallengeError, PersistenceError
from brewbalance.ledger import compute_stats
from brewbalance.models import Challenge, ChallengeStatus, Entry, Recurrence, Settings
from brewbalance.ops import StructuredLogger
from brewbalance.service import BrewBalance


class Clock:
    def __init__(self, day: date) -> None:
        self.day = day

    def __call__(self) -> date:
        return self.day


class FailingStore:
    def save_settings(self, settings) -> None:
        raise PersistenceError("settings unavailable")

    def save_entries(self, entries) -> None:
        raise PersistenceError("entries unavailable")

    def clear(self) -> None:
        raise PersistenceError("cannot clear")


def make_service(day: date = date(2024, 3, 4), **kwargs) -> BrewBalance:
    settings = Settings(weekday_budget=1000, weekend_budget=2000, start_date="2024-03-01")
    kwargs.setdefault("logger", StructuredLogger())
    kwargs.setdefault("clock", Clock(day))
    return BrewBalance(settings, horizon_years=1, **kwargs)


def test_entry_crud_updates_stats() -> None:
    service = make_service()

    beer = service.add_entry(300, "Beer")
    snacks = service.add_entry("120.5", "Snacks", day="2024-03-03")
    assert beer.date == date(2024, 3, 4)
    assert service.today_stats().spent == Decimal("300.00")
    assert service.entries_on("2024-03-03") == (snacks,)

    updated = service.update_entry(beer.id, amount=250, note="Craft beer")
    assert updated.id == beer.id
    assert service.get_entry(beer.id).amount == Decimal("250.00")
    assert service.today_stats().spent == Decimal("250.00")

    moved = service.update_entry(snacks.id, day="2024-03-04")
    assert service.entries_on("2024-03-04") == (updated, moved)

    service.delete_entry(beer.id)
    with pytest.raises(EntryNotFoundError):
        service.get_entry(beer.id)
    with pytest.raises(EntryNotFoundError):
        service.delete_entry("missing")
    assert len(service.logger.events("entry_added")) == 2
    assert len(service.logger.events("entry_deleted")) == 1


def test_invalid_entry_amount_is_rejected() -> None:
    service = make_service()

    with pytest.raises(ValueError):
        service.add_entry(0)
    assert service.entries == ()


def test_settings_updates_invalidate_cached_timeline() -> None:
    service = make_service()
    assert service.today_stats().base_budget == Decimal("1000.00")

    service.update_settings(weekday_budget=500, user_name="Sam")
    assert service.settings.user_name == "Sam"
    assert service.today_stats().base_budget == Decimal("500.00")

    service.set_custom_budget("2024-03-04", 50)
    assert service.today_stats().base_budget == Decimal("50.00")
    assert service.today_stats().is_custom_budget
    service.clear_custom_budget("2024-03-04")
    assert service.today_stats().base_budget == Decimal("500.00")

    service.set_custom_rollover("2024-03-04", -100)
    assert service.today_stats().rollover == Decimal("-100.00")
    service.clear_custom_rollover("2024-03-04")
    assert service.today_stats().is_custom_rollover is False

    with pytest.raises(ValueError):
        service.update_settings(past_challenges=())
    with pytest.raises(ValueError):
        service.set_custom_budget("2024-03-05", -1)


def test_stats_cover_horizon_and_explicit_target() -> None:
    service = make_service()

    assert service.stats().last_date == date(2025, 3, 4)
    assert service.stats("2024-03-06").last_date == date(2024, 3, 6)
    assert service.streak() == 3


def test_challenge_flow_through_service() -> None:
    service = make_service()

    challenge = service.start_challenge("Dry week", "2024-03-04", "2024-03-10", purpose="Save up")
    assert service.settings.active_challenge == challenge
    progress = service.challenge_progress()
    assert progress.phase is ChallengePhase.ON_TRACK
    assert service.is_challenge_failed() is False

    service.add_entry(500)
    assert service.is_challenge_failed() is True

    edited = service.edit_challenge(target_percentage=90)
    assert edited.target_percentage == 90
    assert service.is_challenge_failed() is False

    record = service.end_challenge()
    assert record.status is ChallengeStatus.CANCELLED
    assert service.challenge_progress() is None
    assert service.is_challenge_failed() is False
    assert service.logger.events("challenge_cancelled")[0]["challenge_id"] == challenge.id
    with pytest.raises(NoActiveChallengeError):
        service.end_challenge()


def test_expired_recurring_challenge_catches_up() -> None:
    clock = Clock(date(2024, 3, 1))
    service = make_service(clock=clock)
    service.start_challenge("Weekly", "2024-03-01", "2024-03-07", recurrence="weekly")

    clock.day = date(2024, 3, 20)
    archived = service.archive_expired_challenges()

    assert [record.status for record in archived] == [ChallengeStatus.COMPLETED, ChallengeStatus.COMPLETED]
    assert [record.start_date for record in archived] == [date(2024, 3, 1), date(2024, 3, 8)]
    active = service.settings.active_challenge
    assert (active.start_date, active.end_date) == (date(2024, 3, 15), date(2024, 3, 21))
    assert len(service.logger.events("challenge_recurred")) == 2
    assert service.archive_expired_challenges() == ()


def test_persistence_failures_are_logged_and_state_is_kept() -> None:
    service = make_service(store=FailingStore())

    entry = service.add_entry(100)
    service.update_settings(weekday_budget=800)
    service.reset()

    failures = service.logger.events("persistence_failed")
    assert [event["operation"] for event in failures] == ["save_entries", "save_settings", "clear"]
    assert failures[0]["error"] == "entries unavailable"
    assert service.entries == ()
    assert entry.amount == Decimal("100.00")


def test_reset_starts_over_from_today() -> None:
    service = make_service()
    service.add_entry(100)
    service.start_challenge("Dry week", "2024-03-04", "2024-03-10")

    service.reset()

    assert service.entries == ()
    assert service.settings.start_date == date(2024, 3, 4)
    assert service.settings.active_challenge is None
    assert service.settings.past_challenges == ()
    assert service.logger.events("reset")


def test_export_through_service() -> None:
    service = make_service()
    service.add_entry(100, "Lunch")

    lines = service.export_csv().splitlines()

    assert lines[1] == "2024-03-04,1000.00,5000.00,100.00,Lunch,5900.00,"
    assert service.export_filename(at=datetime(2024, 3, 4, 21, 5, 9)) == "brewbalance_history_2024-03-04_21-05-09.csv"


def test_structured_logger_writes_json_lines(tmp_path) -> None:
    path = tmp_path / "logs" / "events.jsonl"
    service = make_service(logger=StructuredLogger(path=path))

    service.add_entry(42, "Coffee")

    records = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert records[0]["event"] == "entry_added"
    assert records[0]["amount"] == 42.0
    assert service.logger.tail(1)[0]["event"] == "entry_added"


def test_catch_up_over_hundreds_of_daily_cycles_matches_full_recompute() -> None:
    start = Challenge(name="One a day", start_date="2023-01-02", end_date="2023-01-02", recurrence=Recurrence.DAILY)
    settings = Settings(weekday_budget=1000, weekend_budget=2000, start_date="2023-01-01").with_active(start)
    entries = [Entry(date="2023-01-03", amount=1500), Entry(date="2023-03-15", amount=200)]
    service = BrewBalance(
        settings, entries, clock=Clock(date(2023, 10, 1)), logger=StructuredLogger(), horizon_years=1
    )

    archived = service.archive_expired_challenges()

    assert len(archived) == 272
    assert service.settings.active_challenge.start_date == date(2023, 10, 1)
    assert archived[1].status is ChallengeStatus.FAILED
    assert archived[1].final_saved == Decimal("-500.00")
    full = compute_stats(service.settings, entries, today=date(2023, 10, 1))
    for record in archived:
        assert record.final_saved == full[record.end_date].challenge_saved_so_far
        assert record.final_total_budget == full[record.end_date].base_budget


def test_saved_entries_and_settings_reach_the_store(tmp_path) -> None:
    pytest.importorskip("sqlmodel")
    from brewbalance.persistence import DocumentStore

    store = DocumentStore(f"sqlite:///{tmp_path / 'brewbalance.db'}")
    service = make_service(store=store)

    entry = service.add_entry(100, "Pint", day="2024-01-10")
    service.update_settings(user_name="Sam")

    assert store.load_entries() == [entry]
    assert store.load_settings().user_name == "Sam"
    assert service.logger.events("persistence_failed") == ()


def test_logger_keeps_bounded_history() -> None:
    logger = StructuredLogger(history=3)
    for index in range(5):
        logger.log("entry_added", index=index)
    logger.log("reset")

    assert [record["index"] for record in logger.events("entry_added")] == [3, 4]
    assert len(logger.events("entry_added", "reset")) == 3
    assert logger.tail(1)[0]["event"] == "reset"
    assert logger.tail(0) == ()
