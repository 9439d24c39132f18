"""Reference composition of the governance components.

The resolver, workflow and ledger never call each other. This service owns
the sequencing: check permission, act, then record what happened.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from stagegate.common.logger import setup_logger
from stagegate.core.approval import ApprovalStatus, ApprovalWorkflow
from stagegate.core.config import Settings, get_settings
from stagegate.core.errors import PermissionDenied, Result
from stagegate.core.ledger import ActionType, AuditLedger
from stagegate.core.rbac import PermissionLevel, PermissionResolver
from stagegate.storage import KeyValueStore, create_store

logger = logging.getLogger(__name__)


# Resource types checked before each governed action
APPROVAL_RESOURCE = "approval"
ROLES_RESOURCE = "roles"


@dataclass
class GovernanceService:
    """
    Orchestrates milestone approvals and role changes.

    Every action is permission-checked first and recorded in the ledger after
    it succeeds.
    """

    resolver: PermissionResolver
    workflow: ApprovalWorkflow
    ledger: AuditLedger

    def _require(self, user_id: str, level: PermissionLevel, resource_type: str,
                 resource_id: Optional[str] = None) -> None:
        if not self.resolver.can(user_id, level, resource_type, resource_id):
            logger.info(f"Denied {level.value} on {resource_type} for {user_id}")
            raise PermissionDenied(user_id, level.value, resource_type)

    def request_milestone_approval(
        self,
        user_id: str,
        project_id: str,
        milestone: str,
        required_approvers: Iterable[str],
        payload: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Open an approval request for a milestone.

        Requires 'edit' on the project.

        Raises:
            PermissionDenied: If the user may not edit the project
        """
        self._require(user_id, PermissionLevel.EDIT, "project", project_id)
        approvers = list(required_approvers)
        request_id = self.workflow.request_approval(
            project_id,
            approvers,
            milestone=milestone,
            payload=payload,
            requested_by=user_id,
        )
        self.ledger.record(
            ActionType.APPROVAL_REQUESTED,
            project_id=project_id,
            user_id=user_id,
            details={
                "approvalId": request_id,
                "milestone": milestone,
                "requiredApprovers": approvers,
                "payload": payload or {},
            },
        )
        return request_id

    def approve_milestone(self, user_id: str, request_id: str, comment: str = "") -> Result:
        """
        Approve a request on behalf of ``user_id``.

        Requires 'approve' on approvals. Unknown requests come back as a
        failed Result and nothing is recorded.
        """
        self._require(user_id, PermissionLevel.APPROVE, APPROVAL_RESOURCE, request_id)
        result = self.workflow.approve(request_id, user_id, comment)
        if not result.ok:
            return result

        request = self.workflow.get(request_id)
        self.ledger.record(
            ActionType.APPROVAL_GRANTED,
            project_id=request.project_id,
            user_id=user_id,
            details={
                "approvalId": request_id,
                "comment": comment,
                "status": result.value.value,
                "fullyApproved": result.value == ApprovalStatus.APPROVED,
            },
        )
        return result

    def reject_milestone(self, user_id: str, request_id: str, reason: str) -> Result:
        """Reject a request; requires 'approve' on approvals."""
        self._require(user_id, PermissionLevel.APPROVE, APPROVAL_RESOURCE, request_id)
        result = self.workflow.reject(request_id, user_id, reason)
        if not result.ok:
            return result

        request = self.workflow.get(request_id)
        self.ledger.record(
            ActionType.APPROVAL_REJECTED,
            project_id=request.project_id,
            user_id=user_id,
            details={"approvalId": request_id, "reason": reason},
        )
        return result

    def change_role(self, admin_id: str, user_id: str, role_id: str, *, grant: bool = True) -> Result:
        """
        Grant or revoke a role; requires 'admin' on roles.

        Returns:
            Result; fails with ErrorKind.ROLE_NOT_FOUND for an undefined role
        """
        self._require(admin_id, PermissionLevel.ADMIN, ROLES_RESOURCE)
        if grant:
            result = self.resolver.assign_role(user_id, role_id)
            if not result.ok:
                return result
        else:
            self.resolver.remove_role(user_id, role_id)
            result = Result.success(role_id)

        self.ledger.record(
            ActionType.PERMISSION_CHANGED,
            user_id=admin_id,
            details={"targetUser": user_id, "role": role_id, "grant": grant},
        )
        return result


def build_governance(
    settings: Optional[Settings] = None, store: Optional[KeyValueStore] = None
) -> GovernanceService:
    """Wire the three components to one store as configured."""
    settings = settings or get_settings()
    setup_logger(
        "stagegate",
        log_dir=settings.log_dir,
        level=settings.log_level,
        file_logging=settings.file_logging,
    )
    store = store or create_store(settings)

    resolver = PermissionResolver(
        store,
        storage_key=settings.rbac_storage_key,
        on_storage_error=settings.on_storage_error,
    )
    if settings.seed_role_templates:
        resolver.install_role_templates()

    workflow = ApprovalWorkflow(
        store,
        storage_key=settings.approvals_storage_key,
        on_storage_error=settings.on_storage_error,
    )
    ledger = AuditLedger(
        store,
        storage_key=settings.ledger_storage_key,
        hash_algorithm=settings.hash_algorithm,
        on_storage_error=settings.on_storage_error,
    )
    return GovernanceService(resolver=resolver, workflow=workflow, ledger=ledger)
