"""Tests for record stores and preferences."""

import pytest

from scholarag.config import Config
from scholarag.core.models import FeaturePreference
from scholarag.exceptions import ConfigurationError, InvalidInput, StorageError
from scholarag.providers.registry import build_default_registry
from scholarag.storage.preferences import PreferenceStore
from scholarag.storage.record_store import (
    InMemoryRecordStore,
    SQLiteRecordStore,
    create_record_store,
)


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        yield InMemoryRecordStore()
    else:
        store = SQLiteRecordStore(str(tmp_path / "records.db"))
        yield store
        store.close()


class TestRecordStore:
    """Behaviour shared by every backend."""

    def test_put_assigns_id(self, store):
        record = store.put("notes", {"user_id": "alice", "text": "hi"})
        assert record["id"]
        assert store.get("notes") == [record]

    def test_filters_and_order(self, store):
        store.put("notes", {"user_id": "alice", "n": 1})
        store.put("notes", {"user_id": "bob", "n": 2})
        store.put("notes", {"user_id": "alice", "n": 3})

        assert [r["n"] for r in store.get("notes", {"user_id": "alice"})] == [1, 3]
        assert store.get_one("notes", {"user_id": "carol"}) is None

    def test_tables_are_separate(self, store):
        store.put("a", {"x": 1})
        assert store.get("b") == []

    def test_update(self, store):
        store.put("notes", {"id": "n1", "user_id": "alice", "active": True})
        store.put("notes", {"id": "n2", "user_id": "alice", "active": True})

        assert store.update("notes", {"id": "n1"}, {"active": False}) == 1
        assert store.get_one("notes", {"id": "n1"})["active"] is False
        assert store.get_one("notes", {"id": "n2"})["active"] is True
        assert store.update("notes", {"id": "missing"}, {"active": False}) == 0

    def test_delete(self, store):
        store.put("notes", {"user_id": "alice"})
        store.put("notes", {"user_id": "bob"})

        assert store.delete("notes", {"user_id": "alice"}) == 1
        assert [r["user_id"] for r in store.get("notes")] == ["bob"]

    def test_duplicate_id(self, store):
        store.put("notes", {"id": "same"})
        with pytest.raises(StorageError):
            store.put("notes", {"id": "same"})

    def test_set_exclusive(self, store):
        for key_id, user in [("k1", "alice"), ("k2", "alice"), ("k3", "bob")]:
            store.put("keys", {"id": key_id, "user_id": user, "active": True})

        assert store.set_exclusive("keys", {"user_id": "alice"}, {"id": "k2"}, "active") == 1
        assert [r["id"] for r in store.get("keys", {"active": True})] == ["k2", "k3"]
        assert store.get_one("keys", {"id": "k1"})["active"] is False

    def test_set_exclusive_without_match_changes_nothing(self, store):
        store.put("keys", {"id": "k1", "user_id": "alice", "active": True})

        assert store.set_exclusive("keys", {"user_id": "alice"}, {"id": "gone"}, "active") == 0
        assert store.get_one("keys", {"id": "k1"})["active"] is True

    def test_returned_records_are_copies(self, store):
        store.put("notes", {"id": "n1", "tags": ["a"]})
        store.get_one("notes", {"id": "n1"})["tags"].append("b")
        assert store.get_one("notes", {"id": "n1"})["tags"] == ["a"]


def test_sqlite_persists(tmp_path):
    path = str(tmp_path / "nested" / "records.db")
    first = SQLiteRecordStore(path)
    first.put("api_keys", {"id": "k1", "provider_name": "claude"})
    first.close()

    second = SQLiteRecordStore(path)
    assert second.get_one("api_keys", {"id": "k1"})["provider_name"] == "claude"
    second.close()


def test_create_record_store(tmp_path):
    assert isinstance(create_record_store(Config(record_store_backend="memory")), InMemoryRecordStore)
    sqlite_store = create_record_store(
        Config(record_store_backend="sqlite", sqlite_path=str(tmp_path / "r.db"))
    )
    assert isinstance(sqlite_store, SQLiteRecordStore)
    sqlite_store.close()
    with pytest.raises(ConfigurationError):
        create_record_store(Config(record_store_backend="postgres"))


class TestPreferenceStore:
    """Test per-feature preference validation and upsert."""

    @pytest.fixture
    def preferences(self, record_store):
        return PreferenceStore(record_store, build_default_registry(Config()))

    def test_save_and_get(self, preferences):
        preferences.save_preference(FeaturePreference("alice", "chat", "claude", "claude-3-opus-20240229"))

        stored = preferences.get_preference("alice", "chat")
        assert stored.preferred_provider == "claude"
        assert stored.preferred_model == "claude-3-opus-20240229"
        assert stored.fallback_enabled

    def test_save_replaces(self, preferences):
        preferences.save_preference(FeaturePreference("alice", "chat", "claude"))
        preferences.save_preference(FeaturePreference("alice", "chat", "openai", "gpt-4o-mini"))

        assert len(preferences.list_preferences("alice")) == 1
        assert preferences.get_preference("alice", "chat").preferred_provider == "openai"

    @pytest.mark.parametrize("preference", [
        FeaturePreference("alice", "dancing", "claude"),
        FeaturePreference("alice", "chat", "nobody"),
        FeaturePreference("alice", "chat", "claude", "gpt-4o"),
    ])
    def test_rejects_unknown_values(self, preferences, preference):
        with pytest.raises(InvalidInput):
            preferences.save_preference(preference)

    def test_delete(self, preferences):
        preferences.save_preference(FeaturePreference("alice", "summarize", "gemini"))
        assert preferences.delete_preference("alice", "summarize")
        assert preferences.get_preference("alice", "summarize") is None
        assert not preferences.delete_preference("alice", "summarize")
