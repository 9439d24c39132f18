"""Approval request records.

Serialized with camelCase keys (``projectId``, ``requiredApprovers``, ...),
the shape persisted by :class:`~stagegate.core.approval.workflow.ApprovalWorkflow`.
"""

from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from .states import ApprovalStatus


class _Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ApprovalAction(_Record):
    """One approval given by one approver."""

    model_config = ConfigDict(frozen=True)

    approver_id: str
    outcome: Literal["approved"] = "approved"
    comment: str = ""
    timestamp: str


class ApprovalRequest(_Record):
    """A request for sign-off on a project milestone."""

    id: str
    project_id: str
    milestone: Optional[str] = None
    payload: Dict[str, Any] = {}
    required_approvers: Tuple[str, ...] = ()
    approvals: List[ApprovalAction] = []
    status: ApprovalStatus = ApprovalStatus.PENDING
    created_at: str
    requested_by: Optional[str] = None
    approved_at: Optional[str] = None
    rejected_by: Optional[str] = None
    rejection_reason: Optional[str] = None
    rejected_at: Optional[str] = None

    @field_validator("required_approvers", mode="before")
    @classmethod
    def _dedupe_approvers(cls, value: Any) -> Tuple[str, ...]:
        if value is None:
            return ()
        if isinstance(value, str):
            value = [value]
        return tuple(dict.fromkeys(str(v) for v in value))

    @property
    def approver_ids(self) -> set[str]:
        """Distinct approvers present in the approval log."""
        return {action.approver_id for action in self.approvals}
