"""Base classes for the key-value persistence port.

Each governance component is handed a :class:`KeyValueStore` at construction
and owns exactly one key in it. Stores deal in JSON-compatible values only;
components serialize their own state.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from stagegate.core.config import StoragePolicy
from stagegate.core.errors import StorageError


class KeyValueStore(ABC):
    """Abstract key-value store.

    Implementations raise :class:`StorageError` when the backend is
    unavailable or a stored value cannot be decoded.
    """

    @abstractmethod
    def save(self, key: str, value: Any) -> None:
        """Persist a JSON-compatible value under ``key``."""

    @abstractmethod
    def load(self, key: str) -> Optional[Any]:
        """Return the value stored under ``key``, or None if absent."""


class StoredComponent:
    """Mixin applying a :class:`StoragePolicy` around store access."""

    _store: KeyValueStore
    _storage_key: str
    _on_storage_error: StoragePolicy
    _logger: logging.Logger

    def _init_storage(
        self,
        store: KeyValueStore,
        storage_key: str,
        on_storage_error: StoragePolicy,
        logger: logging.Logger,
    ) -> None:
        self._store = store
        self._storage_key = storage_key
        self._on_storage_error = StoragePolicy(on_storage_error)
        self._logger = logger

    @property
    def storage_key(self) -> str:
        return self._storage_key

    def _handle_storage_error(self, error: StorageError, operation: str) -> None:
        if self._on_storage_error == StoragePolicy.FAIL:
            raise error
        self._logger.warning(
            f"Failed to {operation} '{self._storage_key}', "
            f"continuing with in-memory state: {error}"
        )

    def _load_state(self) -> Optional[Any]:
        try:
            return self._store.load(self._storage_key)
        except StorageError as e:
            self._handle_storage_error(e, "load")
            return None

    def _save_state(self, value: Any) -> None:
        try:
            self._store.save(self._storage_key, value)
        except StorageError as e:
            self._handle_storage_error(e, "save")

    def _decode_failed(self, error: Exception) -> None:
        """Report a stored value that loaded but could not be decoded."""
        self._handle_storage_error(
            StorageError(f"Corrupt value: {error}", key=self._storage_key),
            "decode",
        )
