"""Key-value entry model backing :class:`stagegate.storage.sql.SqlAlchemyStore`."""

from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, JSON

from stagegate.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class KeyValueEntry(Base):
    """
    One component namespace (role/user map, approval list, ledger entries).

    The whole serialized state lives in ``value``; rows are replaced on every
    save rather than patched.
    """
    __tablename__ = "kv_entries"

    key = Column(String(255), primary_key=True)
    value = Column(JSON, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def __repr__(self) -> str:
        return f"<KeyValueEntry {self.key}>"
