"""stagegate: governance primitives for staged, multi-stakeholder projects.

Provides a permission resolver, a quorum-based approval workflow and a
hash-chained audit ledger.
"""

from .core.rbac import PermissionResolver, PermissionLevel, ROLE_TEMPLATES
from .core.approval import ApprovalWorkflow, ApprovalStatus
from .core.ledger import AuditLedger, ActionType
from .core.errors import (
    ApprovalNotFound,
    ConfirmationRequired,
    ErrorKind,
    GovernanceError,
    PermissionDenied,
    Result,
    RoleNotFound,
    StorageError,
)

__version__ = "0.1.0"

__all__ = [
    "PermissionResolver",
    "PermissionLevel",
    "ROLE_TEMPLATES",
    "ApprovalWorkflow",
    "ApprovalStatus",
    "AuditLedger",
    "ActionType",
    "ApprovalNotFound",
    "ConfirmationRequired",
    "ErrorKind",
    "GovernanceError",
    "PermissionDenied",
    "Result",
    "RoleNotFound",
    "StorageError",
]
