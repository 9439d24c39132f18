"""Approval workflow states and transitions.

State Machine Diagram:

    ┌──────────┐
    │ PENDING  │ ← Initial state (request opened)
    └────┬─────┘
         │
         ├──────────────────────┐
         │ quorum met           │ reject
    ┌────▼─────┐          ┌─────▼──────┐
    │ APPROVED │─────────►│  REJECTED  │
    └──────────┘  reject  └────────────┘

REJECTED is reachable from every state: a reject call always wins, including
against a request that has already reached quorum (late veto). Whether a late
veto is intended policy is left to the adopting system; it is logged.
"""

from enum import Enum
from typing import Dict, NamedTuple, Optional, Set


class ApprovalStatus(str, Enum):
    """Statuses of an approval request."""

    PENDING = "pending"      # Waiting for required approvers
    APPROVED = "approved"    # Every required approver has approved
    REJECTED = "rejected"    # Vetoed by a reject call


class ApprovalTransition(str, Enum):
    """Events that move a request between statuses."""

    QUORUM_MET = "quorum_met"  # PENDING → APPROVED
    REJECT = "reject"          # any → REJECTED


class TransitionRule(NamedTuple):
    """Defines a valid status transition."""
    from_state: ApprovalStatus
    to_state: ApprovalStatus
    transition: ApprovalTransition
    late_veto: bool = False


TRANSITION_RULES: list[TransitionRule] = [
    TransitionRule(ApprovalStatus.PENDING, ApprovalStatus.APPROVED, ApprovalTransition.QUORUM_MET),
    TransitionRule(ApprovalStatus.PENDING, ApprovalStatus.REJECTED, ApprovalTransition.REJECT),
    TransitionRule(ApprovalStatus.APPROVED, ApprovalStatus.REJECTED, ApprovalTransition.REJECT,
                   late_veto=True),
    TransitionRule(ApprovalStatus.REJECTED, ApprovalStatus.REJECTED, ApprovalTransition.REJECT),
]

# Build lookup tables for efficient access
VALID_TRANSITIONS: Dict[ApprovalStatus, Set[ApprovalTransition]] = {}
TRANSITION_TARGETS: Dict[tuple[ApprovalStatus, ApprovalTransition], TransitionRule] = {}

for rule in TRANSITION_RULES:
    VALID_TRANSITIONS.setdefault(rule.from_state, set()).add(rule.transition)
    TRANSITION_TARGETS[(rule.from_state, rule.transition)] = rule


# Terminal states (nothing but a reject call leaves them)
TERMINAL_STATES: Set[ApprovalStatus] = {
    ApprovalStatus.APPROVED,
    ApprovalStatus.REJECTED,
}


def can_transition(from_state: ApprovalStatus, transition: ApprovalTransition) -> bool:
    """Check if a transition is valid from the given state."""
    return transition in VALID_TRANSITIONS.get(from_state, set())


def get_transition_rule(
    from_state: ApprovalStatus, transition: ApprovalTransition
) -> Optional[TransitionRule]:
    """Get the transition rule for a state/event combination."""
    return TRANSITION_TARGETS.get((from_state, transition))


def get_target_state(
    from_state: ApprovalStatus, transition: ApprovalTransition
) -> Optional[ApprovalStatus]:
    """Get the target state for a transition."""
    rule = get_transition_rule(from_state, transition)
    return rule.to_state if rule else None
