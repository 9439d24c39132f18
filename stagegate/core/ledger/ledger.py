"""Append-only, hash-chained audit ledger.

Every governed action is recorded as a :class:`LedgerEntry` whose hash
covers its content and its predecessor's hash. Rewriting any stored entry
breaks either that entry's hash or the link from its successor, which
:meth:`AuditLedger.verify` reports.
"""

import csv
import io
import json
import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import ValidationError

from stagegate.core.config import StoragePolicy
from stagegate.core.errors import ConfirmationRequired
from stagegate.storage.base import KeyValueStore, StoredComponent

from .actions import ActionType, action_value
from .hashing import HashAlgorithm, content_hash, get_hash_algorithm
from .models import GENESIS_HASH, LedgerEntry, VerificationResult

logger = logging.getLogger(__name__)


CSV_COLUMNS = ["timestamp", "action", "projectId", "userId", "details", "hash"]


def generate_entry_id() -> str:
    return f"LED-{uuid.uuid4().hex}"


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_timestamp(value: Union[str, datetime]) -> datetime:
    """Parse an ISO 8601 timestamp; naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    else:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class AuditLedger(StoredComponent):
    """
    Tamper-evident activity log.

    Appends and clears are serialized by an instance lock, so an entry's
    ``previous_hash`` is always the hash of the entry actually before it.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        storage_key: str = "ledger_entries",
        hash_algorithm: Union[HashAlgorithm, str, None] = None,
        id_factory: Callable[[], str] = generate_entry_id,
        clock: Callable[[], str] = utc_timestamp,
        on_storage_error: StoragePolicy = StoragePolicy.DEGRADE,
    ):
        """
        Initialize the ledger and load persisted entries.

        Args:
            store: Key-value store holding the entry list
            storage_key: Namespace key owned by this ledger
            hash_algorithm: HashAlgorithm instance or hashlib name (default sha256)
            id_factory: Generates entry identifiers
            clock: Returns ISO 8601 timestamps
            on_storage_error: Degrade to empty state or raise on storage failure
        """
        self._init_storage(store, storage_key, on_storage_error, logger)
        if hash_algorithm is None or isinstance(hash_algorithm, str):
            hash_algorithm = get_hash_algorithm(hash_algorithm or "sha256")
        self.hash_algorithm = hash_algorithm
        self._id_factory = id_factory
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: List[LedgerEntry] = []
        self._load()

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def record(
        self,
        action: Union[ActionType, str],
        *,
        project_id: Optional[str] = None,
        user_id: Optional[str] = None,
        details: Any = None,
    ) -> str:
        """
        Append an entry to the ledger.

        Args:
            action: ActionType or any other action tag
            project_id: Project the action concerns
            user_id: User who performed the action
            details: Free-form JSON-compatible detail payload

        Returns:
            The new entry id
        """
        with self._lock:
            fields = {
                "id": self._id_factory(),
                "timestamp": self._clock(),
                "action": action_value(action),
                "projectId": project_id,
                "userId": user_id,
                "details": details if details is not None else {},
                "previousHash": self._last_hash(),
            }
            # Round-trip through JSON so the hash covers exactly what is stored
            fields = json.loads(json.dumps(fields))
            entry = LedgerEntry.model_validate(
                {**fields, "hash": content_hash(fields, self.hash_algorithm)}
            )
            self._commit(self._entries + [entry])

        logger.debug(f"Recorded {entry.action} as {entry.id}")
        return entry.id

    def clear(self, *, confirm: bool = False) -> None:
        """
        Destroy every entry. Irreversible.

        Raises:
            ConfirmationRequired: Unless called with ``confirm=True``
        """
        if confirm is not True:
            raise ConfirmationRequired(
                "Clearing the ledger destroys the audit trail; pass confirm=True"
            )
        with self._lock:
            count = len(self._entries)
            self._commit([])
        logger.warning(f"Ledger '{self.storage_key}' cleared ({count} entries destroyed)")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def entries(self) -> List[LedgerEntry]:
        """Snapshot of all entries in append order."""
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def get_history(self, project_id: str) -> List[LedgerEntry]:
        """Get every entry for a project, in append order."""
        return [e for e in self.entries if e.project_id == project_id]

    def get_by_action(self, action: Union[ActionType, str]) -> List[LedgerEntry]:
        tag = action_value(action)
        return [e for e in self.entries if e.action == tag]

    def get_by_user(self, user_id: str) -> List[LedgerEntry]:
        return [e for e in self.entries if e.user_id == user_id]

    def get_by_date_range(
        self, start: Union[str, datetime], end: Union[str, datetime]
    ) -> List[LedgerEntry]:
        """
        Get entries whose timestamp lies within ``[start, end]``.

        Entries with unparseable timestamps are never matched.
        """
        start_dt, end_dt = parse_timestamp(start), parse_timestamp(end)
        matched = []
        for entry in self.entries:
            try:
                when = parse_timestamp(entry.timestamp)
            except ValueError:
                continue
            if start_dt <= when <= end_dt:
                matched.append(entry)
        return matched

    # ------------------------------------------------------------------
    # Integrity
    # ------------------------------------------------------------------

    def verify(self) -> VerificationResult:
        """
        Walk the chain and report the first inconsistency.

        Checks each entry's stored hash against its recomputed content hash,
        and each entry's previous_hash against its predecessor's stored hash.
        """
        entries = self.entries
        for i, entry in enumerate(entries):
            fields = entry.to_dict()
            if content_hash(fields, self.hash_algorithm) != entry.hash:
                return self._verification_failed(i, entry, "has invalid hash")

            expected_previous = entries[i - 1].hash if i > 0 else GENESIS_HASH
            if entry.previous_hash != expected_previous:
                return self._verification_failed(i, entry, "has broken chain")

        return VerificationResult(
            valid=True, message=f"Ledger integrity verified ({len(entries)} entries)"
        )

    def _verification_failed(self, index: int, entry: LedgerEntry, problem: str) -> VerificationResult:
        message = f"Entry {index} ({entry.id}) {problem}"
        logger.warning(f"Ledger '{self.storage_key}' failed verification: {message}")
        return VerificationResult(valid=False, message=message, index=index, entry=entry)

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export_data(self) -> Dict[str, Any]:
        """Entries plus the current verification result, JSON-compatible."""
        with self._lock:
            entries = [e.to_dict() for e in self._entries]
            integrity = self.verify()
        return {
            "exportDate": utc_timestamp(),
            "entries": entries,
            "integrity": integrity.to_dict(),
        }

    def export(self) -> str:
        """Export the ledger as JSON for external audit."""
        return json.dumps(self.export_data(), indent=2)

    def export_csv(self) -> str:
        """
        Export the ledger as CSV.

        Every data cell is quoted, embedded quotes doubled. An empty ledger
        exports as an empty string.
        """
        entries = self.entries
        if not entries:
            return ""

        output = io.StringIO()
        output.write(",".join(CSV_COLUMNS) + "\n")
        writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")
        for e in entries:
            writer.writerow([
                e.timestamp,
                e.action,
                e.project_id or "",
                e.user_id or "",
                json.dumps(
                    e.details if e.details is not None else {},
                    separators=(",", ":"),
                    ensure_ascii=False,
                ),
                e.hash or "",
            ])
        return output.getvalue().rstrip("\n")

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _last_hash(self) -> str:
        if not self._entries:
            return GENESIS_HASH
        return self._entries[-1].hash

    def _commit(self, entries: List[LedgerEntry]) -> None:
        """Persist ``entries``, then make them current.

        A save that raises leaves the in-memory chain untouched.
        """
        self._save_state([e.to_dict() for e in entries])
        self._entries = entries

    def _load(self) -> None:
        data = self._load_state()
        if data is None:
            return
        try:
            if not isinstance(data, list):
                raise TypeError(f"expected a list, got {type(data).__name__}")
            self._entries = [LedgerEntry.model_validate(item) for item in data]
        except (TypeError, ValidationError) as e:
            self._decode_failed(e)
            self._entries = []
