"""Audit ledger module for stagegate.

Append-only, hash-chained activity log with integrity verification and
JSON/CSV export.
"""

from .actions import ActionType, is_known_action
from .hashing import HashAlgorithm, HashlibAlgorithm, canonical_payload, content_hash, get_hash_algorithm
from .models import GENESIS_HASH, LedgerEntry, VerificationResult
from .ledger import AuditLedger, CSV_COLUMNS

__all__ = [
    "ActionType",
    "is_known_action",
    "HashAlgorithm",
    "HashlibAlgorithm",
    "canonical_payload",
    "content_hash",
    "get_hash_algorithm",
    "GENESIS_HASH",
    "LedgerEntry",
    "VerificationResult",
    "AuditLedger",
    "CSV_COLUMNS",
]
