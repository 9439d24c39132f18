"""In-process key-value store."""

import json
import threading
from typing import Any, Dict, Optional

from stagegate.core.errors import StorageError
from .base import KeyValueStore


class MemoryStore(KeyValueStore):
    """Keeps values as serialized JSON text in a dictionary.

    Values are serialized on save so callers can never alias stored state,
    and non-JSON values are rejected the same way a durable backend would.
    """

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()
        for key, value in (initial or {}).items():
            self.save(key, value)

    def save(self, key: str, value: Any) -> None:
        try:
            text = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Value for {key} is not JSON-compatible: {e}", key=key)
        with self._lock:
            self._data[key] = text

    def load(self, key: str) -> Optional[Any]:
        with self._lock:
            text = self._data.get(key)
        if text is None:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise StorageError(f"Stored value for {key} is not valid JSON: {e}", key=key)

    def put_raw(self, key: str, text: str) -> None:
        """Store raw text without validation (for simulating corrupt data)."""
        with self._lock:
            self._data[key] = text

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._data)
