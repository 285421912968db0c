"""Tests for the local key-value store."""

import json
from datetime import datetime, timedelta, timezone

from leafnote.db.schemas import BookLists, ReadItem, Recommendation, RecommendationSource, ToReadItem
from leafnote.db.store import (
    ANON_ID_KEY,
    LISTS_KEY,
    MAGIC_LINK_KEY_PREFIX,
    PASSWORD_RESET_KEY_PREFIX,
    RECOMMENDATIONS_CACHE_KEY,
    LocalStore,
    get_store,
    normalize_email,
    reset_store,
)


class TestRawKeys:
    """Tests for raw key operations."""

    def test_get_missing_key(self, store):
        """Test that a missing key reads as None."""
        assert store.get_raw("nope") is None

    def test_set_and_overwrite(self, store):
        """Test writing a key twice keeps the last value."""
        store.set_raw("k", "one")
        store.set_raw("k", "two")
        assert store.get_raw("k") == "two"

    def test_delete(self, store):
        """Test deleting a key."""
        store.set_raw("k", "v")
        store.delete("k")
        assert store.get_raw("k") is None

    def test_keys_with_prefix(self, store):
        """Test listing keys by prefix."""
        store.set_raw("a:1", "x")
        store.set_raw("a:2", "x")
        store.set_raw("b:1", "x")

        assert store.keys("a:") == ["a:1", "a:2"]
        assert len(store.keys()) == 3

    def test_file_backed_store_persists(self, tmp_path):
        """Test that data survives reopening a file-backed store."""
        path = tmp_path / "sub" / "leafnote.db"
        first = LocalStore(str(path))
        first.create_tables()
        first.set_json("doc", {"a": 1})

        second = LocalStore(str(path))
        assert second.get_json("doc") == {"a": 1}


class TestLists:
    """Tests for list persistence."""

    def test_load_when_empty(self, store):
        """Test loading with nothing stored gives empty lists."""
        lists = store.load_lists()
        assert lists.is_empty
        assert lists.owner is None

    def test_save_and_load(self, store, sample_lists):
        """Test lists round-trip through the store."""
        sample_lists.owner = "user-1"
        store.save_lists(sample_lists)

        loaded = store.load_lists()

        assert [b.title for b in loaded.read_books] == ["Foundation", "Twilight"]
        assert [b.title for b in loaded.to_read_books] == ["Dune", "Emma"]
        assert loaded.owner == "user-1"

    def test_stored_under_legacy_key(self, store):
        """Test the lists document key and shape."""
        store.save_lists(BookLists(to_read_books=[ToReadItem(title="Emma", id="t")]))

        data = json.loads(store.get_raw(LISTS_KEY))

        assert data["readBooks"] == []
        assert data["toReadBooks"][0]["id"] == "t"

    def test_corrupt_json_resets(self, store):
        """Test unparseable data resets both lists."""
        store.set_raw(LISTS_KEY, "{not json")
        assert store.load_lists().is_empty

    def test_wrong_shape_resets(self, store):
        """Test a non-object document resets both lists."""
        store.set_raw(LISTS_KEY, json.dumps(["a", "b"]))
        assert store.load_lists().is_empty

    def test_invalid_items_reset(self, store):
        """Test items failing validation reset both lists."""
        store.set_raw(LISTS_KEY, json.dumps({
            "readBooks": [{"title": "Dune", "rating": 9}],
            "toReadBooks": [{"title": "Emma"}],
        }))
        assert store.load_lists().is_empty

    def test_non_list_field_treated_as_empty(self, store):
        """Test a non-list field is read as an empty list."""
        store.set_raw(LISTS_KEY, json.dumps({
            "readBooks": "oops",
            "toReadBooks": [{"title": "Emma"}],
        }))

        lists = store.load_lists()

        assert lists.read_books == []
        assert lists.to_read_books[0].title == "Emma"


class TestRecommendationCache:
    """Tests for the external results cache."""

    def test_missing_cache(self, store):
        """Test an absent cache reads as None."""
        assert store.load_recommendation_cache() is None

    def test_save_and_load(self, store):
        """Test cache entries round-trip with their timestamp."""
        ts = datetime(2024, 1, 1, tzinfo=timezone.utc)
        rec = Recommendation(title="A", reason="r", source=RecommendationSource.FROM_EXTERNAL)
        store.save_recommendation_cache([rec], ts=ts)

        entry = store.load_recommendation_cache()

        assert entry.ts == ts
        assert entry.results == [rec]

    def test_corrupt_cache_ignored(self, store):
        """Test a corrupt cache reads as None."""
        store.set_raw(RECOMMENDATIONS_CACHE_KEY, "garbage")
        assert store.load_recommendation_cache() is None

    def test_clear(self, store):
        """Test clearing the cache."""
        store.save_recommendation_cache([])
        store.clear_recommendation_cache()
        assert store.load_recommendation_cache() is None


class TestMarkersAndIds:
    """Tests for magic-link markers, reset cooldowns and the anonymous id."""

    def test_normalize_email(self):
        """Test e-mail normalization."""
        assert normalize_email("  Reader@Example.COM ") == "reader@example.com"

    def test_magic_link_marker(self, store):
        """Test markers are keyed by normalized e-mail."""
        store.mark_magic_link_sent("Reader@Example.com")

        assert store.has_magic_link_marker("reader@example.com ")
        assert store.keys(MAGIC_LINK_KEY_PREFIX) == [f"{MAGIC_LINK_KEY_PREFIX}reader@example.com"]

        store.clear_magic_link_marker("READER@example.com")
        assert not store.has_magic_link_marker("reader@example.com")

    def test_password_reset_wait(self, store):
        """Test the reset cooldown counts down from the last send."""
        sent = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)
        store.mark_password_reset_sent("Reader@Example.com", ts=sent)

        assert store.password_reset_wait("reader@example.com", 60, now=sent + timedelta(seconds=15)) == 45
        assert store.password_reset_wait("reader@example.com", 60, now=sent + timedelta(seconds=90)) == 0
        assert store.password_reset_wait("other@example.com", 60, now=sent) == 0

    def test_password_reset_wait_corrupt_marker(self, store):
        """Test an unreadable marker does not block resets."""
        store.set_raw(f"{PASSWORD_RESET_KEY_PREFIX}reader@example.com", "yesterday")
        assert store.password_reset_wait("reader@example.com", 60) == 0

    def test_anon_id_is_stable(self, store):
        """Test the anonymous id is created once and reused."""
        first = store.get_or_create_anon_id()
        assert store.get_or_create_anon_id() == first
        assert store.get_raw(ANON_ID_KEY) == first


class TestGlobalStore:
    """Tests for the cached global store."""

    def test_get_store_uses_env_path(self, tmp_path, monkeypatch):
        """Test the global store honours LEAFNOTE_DB_PATH and is cached."""
        reset_store()
        monkeypatch.setenv("LEAFNOTE_DB_PATH", str(tmp_path / "env.db"))
        try:
            store = get_store()
            assert store.db_path == tmp_path / "env.db"
            assert get_store() is store
        finally:
            reset_store()
