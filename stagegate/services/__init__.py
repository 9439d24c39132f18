"""Services composing the governance components."""

from .governance import GovernanceService, build_governance

__all__ = ["GovernanceService", "build_governance"]
