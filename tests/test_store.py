"""
Tests for the stores: SQLite round trips, legacy state migration, id de-duplication.
"""

import json
import sqlite3

import pytest

from prioritizer import build_service
from prioritizer.models import Item, Stage
from prioritizer.service import PrioritizerService
from prioritizer.state import AppState
from prioritizer.store import InMemoryStore, SQLiteStore


@pytest.fixture
def sqlite_store(tmp_path):
    return SQLiteStore(tmp_path / "data" / "prioritizer.db")


class TestSQLiteStore:
    def test_empty_store_yields_defaults(self, sqlite_store):
        state = sqlite_store.load_state()
        assert state.current_stage == Stage.ITEM_LISTING
        assert state.locked is True
        assert sqlite_store.load_items() == []

    def test_round_trip_keeps_item_order(self, sqlite_store):
        items = [Item(id=f"id-{n}", name=f"Item {n}") for n in (3, 1, 2)]
        sqlite_store.save_items(items)

        loaded = sqlite_store.load_items()

        assert [i.id for i in loaded] == ["id-3", "id-1", "id-2"]

    def test_state_round_trip(self, sqlite_store):
        state = AppState(current_stage=Stage.VALUE, locked=False)
        state.mark_visited(Stage.URGENCY)
        state.mark_visited(Stage.VALUE)
        state.buckets.set_title("urgency", 1, "LATER")
        sqlite_store.save_state(state)

        loaded = sqlite_store.load_state()

        assert loaded.current_stage == Stage.VALUE
        assert loaded.locked is False
        assert loaded.visited_stages == [Stage.ITEM_LISTING, Stage.URGENCY, Stage.VALUE]
        assert loaded.buckets.title_for("urgency", 1) == "LATER"

    def test_service_survives_restart(self, tmp_path):
        db = tmp_path / "restart.db"
        first = PrioritizerService(SQLiteStore(db))
        first.add_item("Persisted")
        first.advance_stage()

        second = PrioritizerService(SQLiteStore(db))

        assert second.get_current_stage()["currentStage"] == "urgency"
        assert [i["name"] for i in second.get_items()["items"]] == ["Persisted"]

    def test_save_writes_state_and_items_together(self, sqlite_store):
        sqlite_store.save(AppState(current_stage=Stage.URGENCY), [Item(id="a", name="A")])

        assert sqlite_store.load_state().current_stage == Stage.URGENCY
        assert [i.id for i in sqlite_store.load_items()] == ["a"]

    def test_failed_item_write_rolls_back_state(self, sqlite_store, monkeypatch):
        sqlite_store.save(AppState(), [Item(id="a", name="A")])

        def fail(conn, data):
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr(SQLiteStore, "_put_items", staticmethod(fail))
        state = AppState(current_stage=Stage.RESULTS, results_manually_reordered=True)
        with pytest.raises(sqlite3.OperationalError):
            sqlite_store.save(state, [Item(id="b", name="B")])

        loaded = sqlite_store.load_state()
        assert loaded.current_stage == Stage.ITEM_LISTING
        assert loaded.results_manually_reordered is False
        assert [i.id for i in sqlite_store.load_items()] == ["a"]

    def test_clear_and_clear_items(self, sqlite_store):
        sqlite_store.save_state(AppState(current_stage=Stage.URGENCY))
        sqlite_store.save_items([Item(id="a", name="A")])

        sqlite_store.clear_items()
        assert sqlite_store.load_items() == []
        assert sqlite_store.load_state().current_stage == Stage.URGENCY

        sqlite_store.clear()
        assert sqlite_store.load_state().current_stage == Stage.ITEM_LISTING

    def test_corrupt_state_falls_back_to_defaults(self, sqlite_store):
        conn = sqlite3.connect(sqlite_store.db_path)
        conn.execute("INSERT INTO app_state (key, value) VALUES ('state', '{not json')")
        conn.commit()
        conn.close()

        assert sqlite_store.load_state().current_stage == Stage.ITEM_LISTING

    def test_build_service_uses_configured_db(self, isolated_home, monkeypatch):
        db = isolated_home / "custom.db"
        monkeypatch.setenv("PRIORITIZER_DB", str(db))

        service = build_service()
        service.add_item("A")

        assert db.exists()

    def test_build_service_reads_bucket_overrides(self, isolated_home):
        config_dir = isolated_home / "config"
        config_dir.mkdir(parents=True)
        (config_dir / "buckets.yaml").write_text(
            "urgency:\n  3:\n    weight: 5\n    title: CRITICAL\n"
        )

        buckets = build_service().get_app_state()["state"]["buckets"]

        assert buckets["urgency"]["3"]["weight"] == 5
        assert buckets["urgency"]["3"]["title"] == "CRITICAL"


class TestMigration:
    def test_legacy_cd3_stage_becomes_results(self):
        store = InMemoryStore(state={"currentStage": "CD3"})
        state = store.load_state()
        assert state.current_stage == Stage.RESULTS
        assert state.visited_stages[-1] == Stage.RESULTS
        assert len(state.visited_stages) == 5

    def test_entry_stage_is_read(self):
        state = InMemoryStore(state={"entryStage": "value"}).load_state()
        assert state.current_stage == Stage.VALUE
        assert state.visited_stages == [Stage.ITEM_LISTING, Stage.URGENCY, Stage.VALUE]

    def test_unknown_stage_falls_back(self, caplog):
        state = InMemoryStore(state={"currentStage": "Planning"}).load_state()
        assert state.current_stage == Stage.ITEM_LISTING
        assert "Unknown stored stage" in caplog.text

    def test_missing_locked_uses_store_default(self):
        store = InMemoryStore(state={"currentStage": "urgency"}, default_locked=False)
        assert store.load_state().locked is False

    def test_legacy_item_flags_are_derived(self):
        store = InMemoryStore(items=[{"id": "a", "name": "Old", "urgency": 2, "value": 0}])
        item = store.load_items()[0]
        assert item.urgency_set is True
        assert item.value_set is False
        assert item.active is True

    def test_string_notes_are_upgraded(self):
        store = InMemoryStore(items=[{"id": "a", "name": "Old", "notes": ["remember"]}])
        note = store.load_items()[0].notes[0]
        assert note.text == "remember"
        assert note.created_at == note.modified_at

    def test_duplicate_ids_are_reissued(self, caplog):
        store = InMemoryStore(
            items=[{"id": "dup", "name": "First"}, {"id": "dup", "name": "Second"}]
        )
        first, second = store.load_items()

        assert first.id == "dup"
        assert second.id.startswith("dup-")
        assert "Duplicate item id" in caplog.text

    def test_in_memory_store_copies(self):
        store = InMemoryStore()
        items = [Item(id="a", name="A")]
        store.save_items(items)
        items[0].name = "changed"

        assert store.load_items()[0].name == "A"

    def test_saved_state_is_json_serializable(self):
        state = AppState()
        assert json.loads(json.dumps(state.to_dict()))["currentStage"] == "Item Listing"
