"""
Tests for key-value storage backends.

Test plan:
- Both backends: get missing -> None, set overwrites, remove is
  idempotent, keys lists everything
- SqliteStorage: file-backed data survives reopening
- Both satisfy the KeyValueStorage protocol
"""

import pytest

from near_connect.storage import KeyValueStorage, MemoryStorage, SqliteStorage


@pytest.fixture(params=["memory", "sqlite"])
def storage(request):
    if request.param == "memory":
        yield MemoryStorage()
    else:
        s = SqliteStorage()
        yield s
        s.close()


class TestStorageContract:
    def test_missing_key(self, storage) -> None:
        assert storage.get("nope") is None

    def test_set_overwrites(self, storage) -> None:
        storage.set("k", "1")
        storage.set("k", "2")
        assert storage.get("k") == "2"

    def test_remove_idempotent(self, storage) -> None:
        storage.set("k", "1")
        storage.remove("k")
        storage.remove("k")
        assert storage.get("k") is None

    def test_keys(self, storage) -> None:
        storage.set("b", "1")
        storage.set("a", "2")
        assert sorted(storage.keys()) == ["a", "b"]

    def test_protocol(self, storage) -> None:
        assert isinstance(storage, KeyValueStorage)


class TestSqliteStorage:
    def test_persists_across_instances(self, tmp_path) -> None:
        db = tmp_path / "session.db"
        first = SqliteStorage(db)
        first.set("signedAccountId:mainnet", "alice.near")
        first.close()

        second = SqliteStorage(db)
        assert second.get("signedAccountId:mainnet") == "alice.near"
