"""Approval workflow module for stagegate.

Implements quorum-based milestone approval requests.
"""

from .states import ApprovalStatus, ApprovalTransition, TERMINAL_STATES, VALID_TRANSITIONS
from .models import ApprovalAction, ApprovalRequest
from .machine import ApprovalStateMachine, TransitionError, is_fully_approved
from .workflow import ApprovalWorkflow

__all__ = [
    "ApprovalStatus",
    "ApprovalTransition",
    "TERMINAL_STATES",
    "VALID_TRANSITIONS",
    "ApprovalAction",
    "ApprovalRequest",
    "ApprovalStateMachine",
    "TransitionError",
    "is_fully_approved",
    "ApprovalWorkflow",
]
