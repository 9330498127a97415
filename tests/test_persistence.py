"""
Tests for the persistence service

Test strategy:
1. Round trips through a store, as a restart would see them
2. Corrupted or missing keys fall back per slice
3. History degradation when the store is full
"""

import json
from decimal import Decimal

import pytest

from barcontrol.exceptions import StorageError
from barcontrol.models import (
    AuditEventType,
    BudgetConfig,
    ConsumptionItem,
    ConsumptionSession,
)
from barcontrol.services.storage import (
    BUDGET_LIMIT_KEY,
    BUDGET_LOCATION_KEY,
    HISTORY_KEY,
    ITEMS_KEY,
    SCHEMA_VERSION,
    SCHEMA_VERSION_KEY,
    MemoryKeyValueStore,
    PersistenceService,
    SaveOutcome,
    entry_size,
    serialize_history,
)
from barcontrol.sessions import finalize


BIG_PHOTO = "data:image/jpeg;base64," + "A" * 2000


class BrokenKeyStore(MemoryKeyValueStore):
    """Memory store where reading one key always fails."""

    def __init__(self, broken_key: str, **kwargs):
        super().__init__(**kwargs)
        self.broken_key = broken_key

    def get(self, key):
        if key == self.broken_key:
            raise StorageError(f"cannot read {key}")
        return super().get(key)


def make_sessions(count: int, photo: str = BIG_PHOTO) -> list[ConsumptionSession]:
    """`count` sessions, newest first, each with one photographed item."""
    sessions = []
    for index in range(count):
        item = ConsumptionItem(name=f"Beer {index}", price=Decimal("10"), photo=photo)
        sessions.append(finalize([item], split_count=1, include_tip=False, location=f"Bar {index}"))
    return sessions


class TestLoadDefaults:
    """Tests for loading from an empty or damaged store."""

    def test_empty_store(self, persistence):
        """Test that a first run starts with an empty tab and no limit."""
        state = persistence.load()
        assert state.items == []
        assert state.history == []
        assert state.budget == BudgetConfig()

    def test_default_budget_limit_is_configurable(self, store):
        persistence = PersistenceService(store, default_budget_limit=Decimal("300"))
        assert persistence.load().budget.limit == Decimal("300")

    def test_corrupted_key_only_resets_its_slice(self, store, persistence, event_types):
        """Test that bad JSON in one key does not stop the others loading."""
        persistence.save_history(make_sessions(2))
        store.set(ITEMS_KEY, "{not json")

        state = persistence.load()

        assert state.items == []
        assert len(state.history) == 2
        assert AuditEventType.SLICE_LOAD_FAILED in event_types()

    def test_wrong_shape_resets_slice(self, store, persistence):
        store.set(HISTORY_KEY, json.dumps([{"id": "x", "total": "lots"}]))
        assert persistence.load().history == []

    def test_unreadable_key_resets_slice(self, audit_logger, event_types):
        store = BrokenKeyStore(HISTORY_KEY)
        persistence = PersistenceService(store, audit_logger)
        persistence.save_items([ConsumptionItem(name="Beer", price=Decimal("10"))])

        state = persistence.load()

        assert len(state.items) == 1
        assert state.history == []
        assert AuditEventType.SLICE_LOAD_FAILED in event_types()

    @pytest.mark.parametrize("raw", ["abc", "-5", "NaN", ""])
    def test_bad_budget_limit_uses_default(self, store, persistence, raw):
        store.set(BUDGET_LIMIT_KEY, raw)
        assert persistence.load().budget.limit == Decimal("0")

    def test_newer_schema_still_loads(self, store, persistence, event_types):
        """Test that a newer schema version is reported but not fatal."""
        persistence.save_items([ConsumptionItem(name="Beer", price=Decimal("10"))])
        store.set(SCHEMA_VERSION_KEY, str(SCHEMA_VERSION + 1))
        assert len(persistence.load().items) == 1
        assert AuditEventType.SYSTEM_ERROR in event_types()


class TestRoundTrip:
    """Tests that saved state comes back equal."""

    def test_items_history_and_budget(self, store, persistence, photo):
        """Test a full save and reload."""
        items = [
            ConsumptionItem(name="Wings", price=Decimal("15")),
            ConsumptionItem(name="Beer", price=Decimal("10"), photo=photo),
        ]
        history = [finalize(items, split_count=2, include_tip=True, location="Bar do Zé")]
        budget = BudgetConfig(limit=Decimal("150.50"), location="Bar do Zé")

        assert persistence.save_items(items) == SaveOutcome.SAVED
        assert persistence.save_history(history) == SaveOutcome.SAVED
        assert persistence.save_budget(budget) == SaveOutcome.SAVED

        state = PersistenceService(store).load()

        assert state.items == items
        assert state.history == history
        assert state.budget == budget

    def test_stored_shape(self, store, persistence):
        """Test the keys and JSON written to the store."""
        items = [ConsumptionItem(name="Beer", price=Decimal("10"))]
        persistence.save_history([finalize(items, split_count=2, include_tip=True)])
        persistence.save_budget(BudgetConfig(limit=Decimal("100")))

        session = json.loads(store.get(HISTORY_KEY))[0]
        assert session["splitCount"] == 2
        assert session["hasTip"] is True
        assert session["tipAmount"] == 1.0
        assert session["totalPerPerson"] == 5.5
        assert isinstance(session["date"], int)
        assert store.get(BUDGET_LIMIT_KEY) == "100"
        assert store.get(SCHEMA_VERSION_KEY) == str(SCHEMA_VERSION)

    def test_clearing_location_deletes_key(self, store, persistence):
        persistence.save_budget(BudgetConfig(limit=Decimal("100"), location="Bar"))
        persistence.save_budget(BudgetConfig(limit=Decimal("100")))
        assert store.get(BUDGET_LOCATION_KEY) is None
        assert persistence.load().budget.location is None

    def test_legacy_history_loads(self, store, persistence):
        """Test history written before split, tip and location existed."""
        store.set(HISTORY_KEY, json.dumps([{
            "id": 1712345678901,
            "items": [{"id": 1712345670000, "name": "Chopp", "price": 9.9, "timestamp": 1712345670000}],
            "date": 1712345678901,
            "total": 9.9,
            "totalPerPerson": 9.9,
        }]))

        session = persistence.load().history[0]

        assert session.id == "1712345678901"
        assert session.total == Decimal("9.9")
        assert session.split_count == 1
        assert session.has_tip is False
        assert session.items[0].photo is None

    @pytest.mark.parametrize("name", ["  ", "x" * 121])
    def test_legacy_names_outside_input_rules_load(self, store, persistence, name):
        """Test that old sessions with blank or long names survive load and the next save."""
        store.set(HISTORY_KEY, json.dumps([
            {
                "id": "1712345678901",
                "items": [{"id": "1", "name": "Chopp", "price": 9.9, "timestamp": 1712345670000}],
                "date": 1712345678901,
                "total": 9.9,
                "totalPerPerson": 9.9,
            },
            {
                "id": "1712345679999",
                "items": [{"id": "2", "name": name, "price": 5, "timestamp": 1712345671000}],
                "date": 1712345679999,
                "total": 5,
                "totalPerPerson": 5,
                "location": "y" * 200,
            },
        ]))

        history = persistence.load().history
        assert [session.id for session in history] == ["1712345678901", "1712345679999"]
        assert history[1].items[0].name == name

        closed = finalize([ConsumptionItem(name="Beer", price=Decimal("10"))], 1, False)
        persistence.save_history([closed] + history)

        reloaded = PersistenceService(store).load().history
        assert [session.id for session in reloaded] == [closed.id, "1712345678901", "1712345679999"]

    def test_bad_record_does_not_hide_the_rest(self, store, persistence, event_types):
        """Test that one invalid session is skipped while the others load."""
        good = make_sessions(2, photo=None)
        payload = json.loads(serialize_history(good))
        payload.insert(1, {"id": "broken", "total": "lots"})
        store.set(HISTORY_KEY, json.dumps(payload))

        history = persistence.load().history

        assert [session.id for session in history] == [session.id for session in good]
        assert AuditEventType.SLICE_LOAD_FAILED in event_types()

    def test_non_list_history_resets_slice(self, store, persistence):
        store.set(HISTORY_KEY, json.dumps({"sessions": []}))
        assert persistence.load().history == []


class TestHistoryDegradation:
    """Tests for saving history when the store is full."""

    def test_photos_dropped_past_newest_five(self, audit_logger):
        """Test 8 sessions that fit only without the three oldest photos."""
        sessions = make_sessions(8)
        reduced = serialize_history(sessions, keep_photos=5)
        assert len(serialize_history(sessions)) - len(reduced) > 1000

        store = MemoryKeyValueStore(capacity_bytes=entry_size(HISTORY_KEY, reduced) + 100)
        persistence = PersistenceService(store, audit_logger)

        assert persistence.save_history(sessions) == SaveOutcome.DEGRADED

        loaded = PersistenceService(store).load().history
        assert [session.items[0].photo for session in loaded[:5]] == [BIG_PHOTO] * 5
        assert [session.items[0].photo for session in loaded[5:]] == [None] * 3
        for saved, original in zip(loaded, sessions):
            assert saved.id == original.id
            assert saved.total == original.total
            assert saved.location == original.location
            assert saved.items[0].name == original.items[0].name

        degraded = [e for e in audit_logger.recent_events if e.event_type == AuditEventType.SAVE_DEGRADED]
        assert degraded[0].details["stripped_sessions"] == 3

    def test_in_memory_history_keeps_photos(self):
        """Test that degrading the stored copy does not touch the sessions."""
        sessions = make_sessions(8)
        reduced = serialize_history(sessions, keep_photos=5)
        store = MemoryKeyValueStore(capacity_bytes=entry_size(HISTORY_KEY, reduced) + 100)

        PersistenceService(store).save_history(sessions)

        assert all(session.items[0].photo == BIG_PHOTO for session in sessions)

    def test_nothing_fits(self, audit_logger, event_types):
        """Test that a store too small even for the reduced history fails softly."""
        store = MemoryKeyValueStore(capacity_bytes=100)
        persistence = PersistenceService(store, audit_logger)

        assert persistence.save_history(make_sessions(8)) == SaveOutcome.FAILED
        assert store.get(HISTORY_KEY) is None
        assert AuditEventType.SAVE_FAILED in event_types()

    def test_previous_history_survives_failed_save(self):
        """Test that a failed write leaves the last good history readable."""
        small = make_sessions(1, photo=None)
        store = MemoryKeyValueStore(capacity_bytes=entry_size(HISTORY_KEY, serialize_history(small)) + 100)
        persistence = PersistenceService(store)
        persistence.save_history(small)

        assert persistence.save_history(make_sessions(8)) == SaveOutcome.FAILED
        assert [session.id for session in persistence.load().history] == [small[0].id]

    def test_active_items_are_not_degraded(self):
        """Test that the tab is written whole or not at all."""
        items = [ConsumptionItem(name="Beer", price=Decimal("10"), photo=BIG_PHOTO)]
        store = MemoryKeyValueStore(capacity_bytes=500)
        assert PersistenceService(store).save_items(items) == SaveOutcome.FAILED
        assert store.get(ITEMS_KEY) is None
