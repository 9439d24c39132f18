"""Approval state machine implementation.

Applies approval and rejection events to a single request, enforcing the
transition table in :mod:`.states` and the quorum rule.
"""

import logging
from typing import Any, Mapping, Union

from .models import ApprovalAction, ApprovalRequest
from .states import (
    ApprovalStatus,
    ApprovalTransition,
    TERMINAL_STATES,
    can_transition,
    get_transition_rule,
)

logger = logging.getLogger(__name__)


class TransitionError(Exception):
    """Raised when a status transition is invalid."""

    def __init__(self, message: str, from_state: ApprovalStatus, transition: ApprovalTransition):
        super().__init__(message)
        self.from_state = from_state
        self.transition = transition


def is_fully_approved(request: Union[ApprovalRequest, Mapping[str, Any]]) -> bool:
    """Check if every required approver appears in the approval log.

    Quorum is set membership: repeat approvals by one approver count once.
    Accepts a request model or its serialized mapping; only
    ``requiredApprovers`` and each approval's ``approverId`` are read.
    """
    if isinstance(request, ApprovalRequest):
        return set(request.required_approvers) <= request.approver_ids
    approvals = request.get("approvals") or []
    approver_ids = {a.get("approverId") for a in approvals if isinstance(a, Mapping)}
    return set(request.get("requiredApprovers") or []) <= approver_ids


class ApprovalStateMachine:
    """
    State machine for one approval request.

    Mutates the request it wraps; persistence is the caller's concern.
    """

    def __init__(self, request: ApprovalRequest):
        self.request = request

    @property
    def state(self) -> ApprovalStatus:
        """Current status of the request."""
        return self.request.status

    @property
    def is_terminal(self) -> bool:
        return self.request.status in TERMINAL_STATES

    def transition(self, transition: ApprovalTransition) -> ApprovalStatus:
        """
        Move the request along a transition.

        Raises:
            TransitionError: If the transition is invalid from the current status
        """
        if not can_transition(self.state, transition):
            raise TransitionError(
                f"Cannot perform {transition.value} from state {self.state.value}",
                self.state,
                transition,
            )
        rule = get_transition_rule(self.state, transition)
        if rule.late_veto:
            logger.warning(
                f"Approval request {self.request.id} was approved and is now being rejected"
            )
        self.request.status = rule.to_state
        return self.request.status

    def approve(self, approver_id: str, comment: str, timestamp: str) -> ApprovalStatus:
        """
        Append an approval and re-check quorum.

        The action is always logged. Only a pending request can move to
        APPROVED; approvals on terminal requests leave the status unchanged.
        """
        self.request.approvals.append(
            ApprovalAction(approver_id=approver_id, comment=comment or "", timestamp=timestamp)
        )

        if self.is_terminal:
            logger.warning(
                f"Approval by {approver_id} recorded on {self.state.value} "
                f"request {self.request.id}; status unchanged"
            )
            return self.state

        if is_fully_approved(self.request):
            self.transition(ApprovalTransition.QUORUM_MET)
            self.request.approved_at = timestamp
        return self.state

    def reject(self, user_id: str, reason: str, timestamp: str) -> ApprovalStatus:
        """Reject the request regardless of its current status."""
        self.transition(ApprovalTransition.REJECT)
        self.request.rejected_by = user_id
        self.request.rejection_reason = reason
        self.request.rejected_at = timestamp
        return self.state
