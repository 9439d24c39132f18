"""SQLAlchemy-backed key-value store."""

from typing import Any, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stagegate.core.errors import StorageError
from stagegate.db.models import KeyValueEntry
from .base import KeyValueStore


class SqlAlchemyStore(KeyValueStore):
    """Stores each key as a row in the ``kv_entries`` table.

    Every call opens its own session from ``session_factory`` and commits
    before returning.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def save(self, key: str, value: Any) -> None:
        try:
            with self._session_factory() as session:
                entry = session.get(KeyValueEntry, key)
                if entry is None:
                    session.add(KeyValueEntry(key=key, value=value))
                else:
                    entry.value = value
                session.commit()
        except (SQLAlchemyError, TypeError, ValueError) as e:
            raise StorageError(f"Failed to save {key}: {e}", key=key)

    def load(self, key: str) -> Optional[Any]:
        try:
            with self._session_factory() as session:
                entry = session.get(KeyValueEntry, key)
                return entry.value if entry is not None else None
        except (SQLAlchemyError, ValueError) as e:
            raise StorageError(f"Failed to load {key}: {e}", key=key)
