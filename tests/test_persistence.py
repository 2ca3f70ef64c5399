from datetime import date
from decimal import Decimal

import pytest

pytest.importorskip("sqlmodel")

from brewbalance.codec import SnapshotCodec
from brewbalance.config import ENTRIES_KEY, SETTINGS_KEY
from brewbalance.exceptions import PersistenceError
from brewbalance.models import Challenge, ChallengeStatus, Entry, Recurrence, Settings
from brewbalance.ops import StructuredLogger
from brewbalance.persistence import DocumentStore
from brewbalance.service import BrewBalance


@pytest.fixture()
def store(tmp_path) -> DocumentStore:
    return DocumentStore(f"sqlite:///{tmp_path / 'brewbalance.db'}")


def sample_settings() -> Settings:
    archived = Challenge(
        name="January",
        start_date="2024-01-01",
        end_date="2024-01-31",
        status=ChallengeStatus.COMPLETED,
        final_saved="31000",
        final_total_budget="31000",
    )
    active = Challenge(
        name="Weekly",
        purpose="Bike",
        start_date="2024-03-04",
        end_date="2024-03-10",
        target_percentage=70,
        recurrence=Recurrence.WEEKLY,
        recurrence_end_date="2024-06-30",
    )
    settings = Settings(
        weekday_budget=1000,
        weekend_budget="2500.50",
        alarm_threshold="0.75",
        start_date="2024-01-01",
        end_date="2024-12-31",
        currency="EUR",
        user_name="Sam",
        custom_budgets={"2024-03-05": 0},
        custom_rollovers={"2024-03-06": "-120"},
        past_challenges=(archived,),
    )
    return settings.with_active(active)


def test_empty_store_has_no_documents(store: DocumentStore) -> None:
    assert store.load_settings() is None
    assert store.load_entries() == []


def test_settings_and_entries_round_trip(store: DocumentStore) -> None:
    settings = sample_settings()
    entries = [Entry(date="2024-03-04", amount="12.34", note="Pint"), Entry(date="2024-03-05", amount=7)]

    store.save_settings(settings)
    store.save_entries(entries)

    assert store.load_settings() == settings
    assert store.load_entries() == entries

    store.save_settings(settings.with_active(None))
    assert store.load_settings().active_challenge is None


def test_partial_settings_document_is_merged_over_defaults(store: DocumentStore) -> None:
    defaults = Settings(weekday_budget=900, weekend_budget=1800, start_date="2024-02-01")
    store.write(SETTINGS_KEY, '{"weekday_budget": "1500", "currency": "USD"}')

    loaded = store.load_settings(defaults=defaults)

    assert loaded.weekday_budget == Decimal("1500.00")
    assert loaded.weekend_budget == Decimal("1800.00")
    assert loaded.start_date == date(2024, 2, 1)
    assert loaded.currency == "USD"


def test_corrupt_documents_raise_persistence_error(store: DocumentStore) -> None:
    store.write(SETTINGS_KEY, "not json")
    store.write(ENTRIES_KEY, '{"date": "2024-01-01"}')

    with pytest.raises(PersistenceError):
        store.load_settings()
    with pytest.raises(PersistenceError):
        store.load_entries()


def test_clear_removes_documents(store: DocumentStore) -> None:
    store.save_settings(sample_settings())
    store.save_entries([Entry(date="2024-03-04", amount=1)])

    store.clear()

    assert store.read(SETTINGS_KEY) is None
    assert store.read(ENTRIES_KEY) is None


def test_codec_stores_amounts_as_strings_and_dates_as_iso() -> None:
    payload = SnapshotCodec().settings_to_dict(sample_settings())

    assert payload["weekend_budget"] == "2500.50"
    assert payload["custom_budgets"] == {"2024-03-05": "0.00"}
    assert payload["active_challenge"]["recurrence"] == "weekly"
    assert payload["past_challenges"][0]["final_saved"] == "31000.00"


def test_service_state_survives_reload(store: DocumentStore) -> None:
    clock = lambda: date(2024, 3, 4)  # noqa: E731
    service = BrewBalance(Settings(weekday_budget=1000, start_date="2024-03-01"), store=store, clock=clock)
    entry = service.add_entry(300, "Beer")
    service.start_challenge("Dry week", "2024-03-04", "2024-03-10")

    restored = BrewBalance.load(store, logger=StructuredLogger(), clock=clock)

    assert restored.entries == (entry,)
    assert restored.settings == service.settings


def test_load_archives_challenges_that_expired_while_away(store: DocumentStore) -> None:
    store.save_settings(sample_settings())

    restored = BrewBalance.load(store, logger=StructuredLogger(), clock=lambda: date(2024, 3, 12))

    assert restored.settings.past_challenges[0].name == "Weekly"
    assert restored.settings.active_challenge.start_date == date(2024, 3, 11)


def test_load_falls_back_to_defaults_on_corrupt_data(store: DocumentStore) -> None:
    store.write(SETTINGS_KEY, "[]")
    logger = StructuredLogger()

    restored = BrewBalance.load(store, logger=logger, clock=lambda: date(2024, 5, 1))

    assert restored.settings.start_date == date(2024, 5, 1)
    assert restored.settings.weekday_budget == Decimal("0.00")
    assert logger.events("persistence_failed")[0]["operation"] == "load_settings"
