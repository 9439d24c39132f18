"""Content hashing for ledger entries.

An entry's hash covers its canonical fields (everything except the hash
itself) serialized as sorted-key compact JSON. The digest algorithm is
pluggable; any object with a ``name`` and a ``digest(bytes) -> str`` method
will do. The default is SHA-256.
"""

import hashlib
import json
from typing import Any, Dict, Mapping, Protocol, runtime_checkable


# Fields covered by the content hash, in JSON (camelCase) form
HASHED_FIELDS = ("id", "timestamp", "action", "projectId", "userId", "details", "previousHash")

DEFAULT_HASH_ALGORITHM = "sha256"


@runtime_checkable
class HashAlgorithm(Protocol):
    """Digest function used to chain ledger entries."""

    name: str

    def digest(self, data: bytes) -> str:
        """Return the hex digest of ``data``."""
        ...


class HashlibAlgorithm:
    """Any :mod:`hashlib` algorithm with a fixed-length hex digest."""

    def __init__(self, name: str = DEFAULT_HASH_ALGORITHM):
        try:
            probe = hashlib.new(name)
        except (ValueError, TypeError) as e:
            raise ValueError(f"Unsupported hash algorithm: {name}") from e
        if probe.digest_size == 0:
            raise ValueError(f"Hash algorithm {name} needs an explicit digest length")
        self.name = name

    def digest(self, data: bytes) -> str:
        return hashlib.new(self.name, data).hexdigest()

    def __repr__(self) -> str:
        return f"HashlibAlgorithm({self.name!r})"


def get_hash_algorithm(name: str = DEFAULT_HASH_ALGORITHM) -> HashAlgorithm:
    """Resolve a configured algorithm name (e.g. 'sha256', 'sha3_256', 'blake2b')."""
    return HashlibAlgorithm(name.lower())


def canonical_payload(fields: Mapping[str, Any]) -> bytes:
    """Serialize the hashed fields deterministically.

    Missing fields serialize as null so absent and null are equivalent.
    """
    canonical: Dict[str, Any] = {name: fields.get(name) for name in HASHED_FIELDS}
    return json.dumps(
        canonical, sort_keys=True, separators=(",", ":"), ensure_ascii=False
    ).encode("utf-8")


def content_hash(fields: Mapping[str, Any], algorithm: HashAlgorithm) -> str:
    """Hash an entry's canonical fields; any ``hash`` key is ignored."""
    return algorithm.digest(canonical_payload(fields))
