"""Key-value persistence port and its backends."""

from stagegate.core.config import Settings, StorageBackend

from .base import KeyValueStore, StoredComponent
from .memory import MemoryStore
from .files import JsonFileStore


def create_store(settings: Settings) -> KeyValueStore:
    """Create the store selected by ``settings.storage_backend``."""
    backend = StorageBackend(settings.storage_backend)
    if backend == StorageBackend.JSON:
        return JsonFileStore(settings.data_dir)
    if backend == StorageBackend.SQLALCHEMY:
        from stagegate.db.session import create_session_factory
        from .sql import SqlAlchemyStore

        return SqlAlchemyStore(create_session_factory(settings.database_url))
    return MemoryStore()


__all__ = [
    "KeyValueStore",
    "StoredComponent",
    "MemoryStore",
    "JsonFileStore",
    "create_store",
]
