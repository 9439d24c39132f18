"""Directory-backed key-value store, one JSON file per key."""

import json
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Optional

from stagegate.core.errors import StorageError
from .base import KeyValueStore


_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


class JsonFileStore(KeyValueStore):
    """Stores each key as ``<directory>/<key>.json``.

    Writes go to a temporary file in the same directory and are moved into
    place with :func:`os.replace`, so a crash never leaves a half-written file.
    """

    def __init__(self, directory: str):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        if not _SAFE_KEY.match(key) or key.startswith("."):
            raise StorageError(f"Invalid storage key: {key!r}", key=key)
        return self.directory / f"{key}.json"

    def save(self, key: str, value: Any) -> None:
        path = self._path(key)
        try:
            text = json.dumps(value, indent=2)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Value for {key} is not JSON-compatible: {e}", key=key)

        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(text)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise StorageError(f"Failed to write {path}: {e}", key=key)

    def load(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as f:
                return json.load(f)
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}", key=key)
        except json.JSONDecodeError as e:
            raise StorageError(f"Corrupt JSON in {path}: {e}", key=key)
