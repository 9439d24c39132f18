"""Ledger entry and verification result models.

Entries are frozen: once appended, no field can be reassigned. Serialized
with camelCase keys (``projectId``, ``previousHash``, ...).
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


# previousHash of the first entry in a chain
GENESIS_HASH = "0"


class LedgerEntry(BaseModel):
    """
    One immutable, hash-chained ledger record.

    ``hash`` is the content hash of every other field, ``previous_hash`` the
    stored hash of the entry before it (GENESIS_HASH for the first entry).
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    timestamp: str
    action: str
    project_id: Optional[str] = None
    user_id: Optional[str] = None
    details: Any = None
    previous_hash: str
    hash: str

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class VerificationResult(BaseModel):
    """Outcome of walking the chain.

    On failure ``index`` is the position of the first bad entry and
    ``entry`` that entry as stored.
    """

    model_config = ConfigDict(frozen=True)

    valid: bool
    message: str
    index: Optional[int] = None
    entry: Optional[LedgerEntry] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"valid": self.valid, "message": self.message}
        if self.index is not None:
            data["index"] = self.index
        if self.entry is not None:
            data["entry"] = self.entry.to_dict()
        return data
