"""Database models for stagegate."""

from stagegate.db.models.kv import KeyValueEntry

__all__ = [
    "KeyValueEntry",
]
