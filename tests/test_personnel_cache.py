"""
Tests for the roster snapshot cache and its storage backends.
"""

import json
from datetime import datetime, timedelta, timezone

import pytest

from roster_gate.clients.local_storage import FileStorage, InMemoryStorage
from roster_gate.config import CacheConfig
from roster_gate.services.personnel_cache import PersonnelCache

ROSTER = [{"phoneNumber": "+972501234567", "firstName": "דנה", "lastName": "כהן", "rank": "סגן"}]
START = 1_700_000_000.0


class FakeTime:
    def __init__(self, now: float):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestPersonnelCache:
    """Test cases for PersonnelCache."""

    @pytest.fixture
    def storage(self):
        return InMemoryStorage()

    @pytest.fixture
    def fake_time(self):
        return FakeTime(START)

    @pytest.fixture
    def cache(self, storage, fake_time):
        return PersonnelCache(storage, CacheConfig(ttl=timedelta(hours=24)), fake_time)

    def test_empty_cache(self, cache):
        assert cache.get() is None
        assert cache.is_valid() is False
        assert cache.age() is None

    def test_fresh_entry_returned(self, cache, fake_time):
        cache.set(ROSTER)
        fake_time.now += 23 * 3600

        entry = cache.get()

        assert entry is not None
        assert entry.data == ROSTER
        assert entry.timestamp == START
        assert cache.age() == timedelta(hours=23)

    def test_expired_entry_evicted(self, cache, storage, fake_time):
        cache.set(ROSTER)
        fake_time.now += 25 * 3600

        assert cache.get() is None
        assert storage.get_item("admin-personnel-data") is None

    def test_corrupt_entry_cleared(self, cache, storage):
        storage.set_item("admin-personnel-data", "{not json")

        assert cache.get() is None
        assert storage.get_item("admin-personnel-data") is None

    def test_entry_missing_fields_cleared(self, cache, storage):
        storage.set_item("admin-personnel-data", json.dumps({"data": ROSTER}))

        assert cache.get() is None
        assert storage.get_item("admin-personnel-data") is None

    @pytest.mark.parametrize("payload", [
        {"data": "abc", "timestamp": START},
        {"data": {"phoneNumber": "+972501234567"}, "timestamp": START},
        {"data": [], "timestamp": START + 10 * 24 * 3600},
        {"data": [], "timestamp": float("nan")},
        {"data": [], "timestamp": float("inf")},
    ])
    def test_malformed_entry_cleared(self, cache, storage, payload):
        storage.set_item("admin-personnel-data", json.dumps(payload))

        assert cache.get() is None
        assert storage.get_item("admin-personnel-data") is None

    def test_future_entry_never_served(self, cache, storage, fake_time):
        fake_time.now = START + 10 * 24 * 3600
        cache.set(ROSTER)
        fake_time.now = START

        assert cache.get() is None
        assert cache.age() is None

    def test_manual_refresh_recorded(self, cache):
        cache.set(ROSTER)
        assert cache.last_manual_refresh() is None

        cache.set(ROSTER, is_manual_refresh=True)

        assert cache.last_manual_refresh() == datetime.fromtimestamp(START, tz=timezone.utc)

    def test_clear(self, cache):
        cache.set(ROSTER)
        cache.clear()

        assert cache.is_valid() is False


class TestFileStorage:
    """Test cases for FileStorage."""

    def test_set_get_remove(self, tmp_path):
        storage = FileStorage(tmp_path / "cache")

        storage.set_item("admin-personnel-data", "שלום")

        assert storage.get_item("admin-personnel-data") == "שלום"
        assert (tmp_path / "cache" / "admin-personnel-data.json").exists()

        storage.remove_item("admin-personnel-data")
        storage.remove_item("admin-personnel-data")

        assert storage.get_item("admin-personnel-data") is None

    def test_unsafe_key_characters_replaced(self, tmp_path):
        storage = FileStorage(tmp_path)

        storage.set_item("../escape", "value")

        assert storage.get_item("../escape") == "value"
        assert not (tmp_path.parent / "escape.json").exists()

    def test_cache_survives_new_instance(self, tmp_path):
        fake_time = FakeTime(START)
        PersonnelCache(FileStorage(tmp_path), clock=fake_time).set(ROSTER)

        entry = PersonnelCache(FileStorage(tmp_path), clock=fake_time).get()

        assert entry.data == ROSTER
