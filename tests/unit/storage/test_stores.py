"""Tests for key-value store backends."""

import pytest

from stagegate.core.config import Settings
from stagegate.core.errors import StorageError
from stagegate.db.session import create_session_factory
from stagegate.storage import JsonFileStore, MemoryStore, create_store
from stagegate.storage.sql import SqlAlchemyStore


@pytest.fixture(params=["memory", "json", "sql"])
def any_store(request, tmp_path):
    if request.param == "memory":
        return MemoryStore()
    if request.param == "json":
        return JsonFileStore(str(tmp_path / "data"))
    return SqlAlchemyStore(create_session_factory("sqlite://"))


class TestKeyValueContract:
    """Test behaviour shared by every backend."""

    def test_missing_key(self, any_store):
        assert any_store.load("nothing") is None

    def test_save_and_load(self, any_store):
        value = {"roles": {"r": {"view": "*"}}, "users": {}}
        any_store.save("rbac_data", value)
        assert any_store.load("rbac_data") == value

    def test_overwrite(self, any_store):
        any_store.save("k", [1, 2])
        any_store.save("k", [3])
        assert any_store.load("k") == [3]

    def test_keys_are_independent(self, any_store):
        any_store.save("a", [1])
        any_store.save("b", [2])
        assert any_store.load("a") == [1]
        assert any_store.load("b") == [2]


class TestMemoryStore:
    """Test MemoryStore specifics."""

    def test_values_are_copied(self):
        """Test mutating a saved or loaded value does not change the store."""
        store = MemoryStore()
        value = {"a": [1]}
        store.save("k", value)
        value["a"].append(2)
        loaded = store.load("k")
        loaded["a"].append(3)
        assert store.load("k") == {"a": [1]}

    def test_rejects_non_json(self):
        with pytest.raises(StorageError):
            MemoryStore().save("k", {"when": object()})

    def test_corrupt_value(self):
        store = MemoryStore()
        store.put_raw("k", "{oops")
        with pytest.raises(StorageError):
            store.load("k")


class TestJsonFileStore:
    """Test JsonFileStore specifics."""

    def test_file_layout(self, tmp_path):
        """Test one file per key, no temporary files left behind."""
        store = JsonFileStore(str(tmp_path))
        store.save("ledger_entries", [])
        assert sorted(p.name for p in tmp_path.iterdir()) == ["ledger_entries.json"]

    def test_corrupt_file(self, tmp_path):
        (tmp_path / "k.json").write_text("{oops")
        with pytest.raises(StorageError):
            JsonFileStore(str(tmp_path)).load("k")

    @pytest.mark.parametrize("key", ["../escape", "a/b", ".hidden", ""])
    def test_invalid_keys(self, tmp_path, key):
        with pytest.raises(StorageError):
            JsonFileStore(str(tmp_path)).save(key, {})


class TestCreateStore:
    """Test backend selection from settings."""

    def test_memory_default(self):
        assert isinstance(create_store(Settings()), MemoryStore)

    def test_json_backend(self, tmp_path):
        store = create_store(Settings(storage_backend="json", data_dir=str(tmp_path)))
        assert isinstance(store, JsonFileStore)

    def test_sqlalchemy_backend(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'gov.db'}"
        store = create_store(Settings(storage_backend="sqlalchemy", database_url=url))
        assert isinstance(store, SqlAlchemyStore)
        store.save("k", {"x": 1})
        assert create_store(Settings(storage_backend="sqlalchemy", database_url=url)).load("k") == {"x": 1}
