"""Action types recorded in the audit ledger.

The vocabulary is enumerated but open: entries store the action as a plain
string, so tags added later by other systems still load and verify.
"""

from enum import Enum
from typing import Any


class ActionType(str, Enum):
    """Known ledger action tags."""

    # Project lifecycle
    PROJECT_CREATED = "PROJECT_CREATED"
    STATUS_CHANGE = "STATUS_CHANGE"
    FIELD_UPDATE = "FIELD_UPDATE"

    # Approvals
    APPROVAL_REQUESTED = "APPROVAL_REQUESTED"
    APPROVAL_GRANTED = "APPROVAL_GRANTED"
    APPROVAL_REJECTED = "APPROVAL_REJECTED"

    # Payments and funding
    PAYMENT_REQUESTED = "PAYMENT_REQUESTED"
    PAYMENT_DISBURSED = "PAYMENT_DISBURSED"
    FUNDING_COMMITTED = "FUNDING_COMMITTED"

    # Quality assurance
    QA_CHECKPOINT_CREATED = "QA_CHECKPOINT_CREATED"
    QA_PASSED = "QA_PASSED"
    QA_FAILED = "QA_FAILED"

    # Collaboration
    DOCUMENT_UPLOADED = "DOCUMENT_UPLOADED"
    COMMENT_ADDED = "COMMENT_ADDED"

    # Access
    USER_LOGIN = "USER_LOGIN"
    PERMISSION_CHANGED = "PERMISSION_CHANGED"


def action_value(action: Any) -> str:
    """Normalize an ActionType or free-form tag to its string value."""
    if isinstance(action, ActionType):
        return action.value
    return str(action)


def is_known_action(action: Any) -> bool:
    """Check if a tag belongs to the built-in vocabulary."""
    return action_value(action) in ActionType._value2member_map_
