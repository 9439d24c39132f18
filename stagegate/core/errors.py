"""Error kinds and result values shared by the governance components.

Not-found conditions are reported as :class:`Result` values carrying an
:class:`ErrorKind`, so callers can branch on the outcome without exception
handling. ``Result.unwrap()`` converts a failed result into the matching
exception for callers that prefer to propagate.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Failure kinds returned by governance operations."""

    ROLE_NOT_FOUND = "role_not_found"
    APPROVAL_NOT_FOUND = "approval_not_found"


class GovernanceError(Exception):
    """Base class for all stagegate errors."""


class RoleNotFound(GovernanceError):
    """Raised when assigning a role that was never defined."""

    kind = ErrorKind.ROLE_NOT_FOUND

    def __init__(self, role_id: str):
        super().__init__(f"Role {role_id} does not exist")
        self.role_id = role_id


class ApprovalNotFound(GovernanceError):
    """Raised when acting on an unknown approval request id."""

    kind = ErrorKind.APPROVAL_NOT_FOUND

    def __init__(self, request_id: str):
        super().__init__(f"Approval request {request_id} not found")
        self.request_id = request_id


class StorageError(GovernanceError):
    """Raised when persisted state cannot be loaded or saved."""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key


class ConfirmationRequired(GovernanceError):
    """Raised when a destructive operation is called without confirmation."""


class PermissionDenied(GovernanceError):
    """Raised when a user lacks the permission an action requires."""

    def __init__(self, user_id: str, level: str, resource_type: str):
        super().__init__(f"Permission denied: {user_id} cannot {level} {resource_type}")
        self.user_id = user_id
        self.level = level
        self.resource_type = resource_type


@dataclass(frozen=True)
class Result:
    """Outcome of an operation that can fail with a known error kind."""

    ok: bool
    value: Any = None
    error: Optional[ErrorKind] = None
    message: Optional[str] = None
    subject: Optional[str] = None  # id of the role or request that was missing

    @classmethod
    def success(cls, value: Any = None) -> "Result":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: GovernanceError) -> "Result":
        subject = getattr(error, "role_id", None) or getattr(error, "request_id", None)
        return cls(
            ok=False,
            error=getattr(error, "kind", None),
            message=str(error),
            subject=subject,
        )

    def __bool__(self) -> bool:
        return self.ok

    def unwrap(self) -> Any:
        """Return the value, or raise the exception matching the error kind."""
        if self.ok:
            return self.value
        if self.error == ErrorKind.ROLE_NOT_FOUND:
            raise RoleNotFound(self.subject or "")
        if self.error == ErrorKind.APPROVAL_NOT_FOUND:
            raise ApprovalNotFound(self.subject or "")
        raise GovernanceError(self.message or "operation failed")
