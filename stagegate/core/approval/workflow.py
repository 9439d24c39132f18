"""Approval workflow for project milestones.

Opens approval requests, applies approvals and rejections through the state
machine, and persists the request list through the injected store. The
workflow does not check permissions; callers do that before acting.
"""

import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError

from stagegate.core.config import StoragePolicy
from stagegate.core.errors import ApprovalNotFound, Result
from stagegate.storage.base import KeyValueStore, StoredComponent

from .machine import ApprovalStateMachine, is_fully_approved
from .models import ApprovalRequest
from .states import ApprovalStatus

logger = logging.getLogger(__name__)


def generate_approval_id() -> str:
    return f"APR-{uuid.uuid4().hex[:16]}"


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class ApprovalWorkflow(StoredComponent):
    """
    Quorum-based approval requests.

    Handles:
    - Opening requests with a fixed required-approver set
    - Recording approvals and moving requests to APPROVED on quorum
    - Rejections (always applied, see states.py)
    - Querying pending requests
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        storage_key: str = "approval_requests",
        id_factory: Callable[[], str] = generate_approval_id,
        clock: Callable[[], str] = utc_timestamp,
        on_storage_error: StoragePolicy = StoragePolicy.DEGRADE,
    ):
        """
        Initialize the workflow and load persisted requests.

        Args:
            store: Key-value store holding the request list
            storage_key: Namespace key owned by this workflow
            id_factory: Generates request identifiers
            clock: Returns ISO 8601 timestamps
            on_storage_error: Degrade to empty state or raise on storage failure
        """
        self._init_storage(store, storage_key, on_storage_error, logger)
        self._lock = threading.RLock()
        self._id_factory = id_factory
        self._clock = clock
        self._requests: List[ApprovalRequest] = []
        self._load()

    def request_approval(
        self,
        project_id: str,
        required_approvers: Iterable[str],
        *,
        milestone: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
        requested_by: Optional[str] = None,
    ) -> str:
        """
        Open a new pending approval request.

        Args:
            project_id: Project the milestone belongs to
            required_approvers: Users who must all approve (fixed from now on)
            milestone: Milestone label
            payload: Free-form detail (amount, documents, ...)
            requested_by: User opening the request

        Returns:
            The new request id
        """
        with self._lock:
            request = ApprovalRequest(
                id=self._id_factory(),
                project_id=project_id,
                milestone=milestone,
                payload=payload or {},
                required_approvers=list(required_approvers),
                created_at=self._clock(),
                requested_by=requested_by,
            )
            self._commit(self._requests + [request])

        logger.info(
            f"Opened approval request {request.id} for project {project_id} "
            f"({len(request.required_approvers)} approvers required)"
        )
        return request.id

    def approve(self, request_id: str, approver_id: str, comment: str = "") -> Result:
        """
        Record an approval.

        Returns:
            Result carrying the request status; fails with
            ErrorKind.APPROVAL_NOT_FOUND for an unknown id
        """
        with self._lock:
            index = self._index(request_id)
            if index is None:
                return Result.failure(ApprovalNotFound(request_id))

            request = self._requests[index].model_copy(deep=True)
            previous = request.status
            status = ApprovalStateMachine(request).approve(approver_id, comment, self._clock())
            self._replace(index, request)

        if status != previous:
            logger.info(f"Approval request {request_id} reached quorum")
        return Result.success(status)

    def reject(self, request_id: str, approver_id: str, reason: str) -> Result:
        """
        Reject a request, whatever its current status.

        Returns:
            Result carrying the request status; fails with
            ErrorKind.APPROVAL_NOT_FOUND for an unknown id
        """
        with self._lock:
            index = self._index(request_id)
            if index is None:
                return Result.failure(ApprovalNotFound(request_id))

            request = self._requests[index].model_copy(deep=True)
            status = ApprovalStateMachine(request).reject(approver_id, reason, self._clock())
            self._replace(index, request)

        logger.info(f"Approval request {request_id} rejected by {approver_id}")
        return Result.success(status)

    def is_fully_approved(self, request: Union[ApprovalRequest, Mapping[str, Any]]) -> bool:
        """Check if every required approver has approved ``request``."""
        return is_fully_approved(request)

    def get(self, request_id: str) -> Optional[ApprovalRequest]:
        """Get a copy of a request by id."""
        with self._lock:
            index = self._index(request_id)
            if index is None:
                return None
            return self._requests[index].model_copy(deep=True)

    def get_pending(self, user_id: Optional[str] = None) -> List[ApprovalRequest]:
        """
        Get pending requests.

        Args:
            user_id: When given, only requests this user is required to approve
        """
        with self._lock:
            return [
                r.model_copy(deep=True)
                for r in self._requests
                if r.status == ApprovalStatus.PENDING
                and (user_id is None or user_id in r.required_approvers)
            ]

    def list_for_project(self, project_id: str) -> List[ApprovalRequest]:
        with self._lock:
            return [r.model_copy(deep=True) for r in self._requests if r.project_id == project_id]

    def __len__(self) -> int:
        return len(self._requests)

    def _index(self, request_id: str) -> Optional[int]:
        for i, request in enumerate(self._requests):
            if request.id == request_id:
                return i
        return None

    def _replace(self, index: int, request: ApprovalRequest) -> None:
        requests = list(self._requests)
        requests[index] = request
        self._commit(requests)

    def _commit(self, requests: List[ApprovalRequest]) -> None:
        # Stored first; a raising save leaves the current list in place
        self._save_state([r.to_dict() for r in requests])
        self._requests = requests

    def _load(self) -> None:
        data = self._load_state()
        if data is None:
            return
        try:
            if not isinstance(data, list):
                raise TypeError(f"expected a list, got {type(data).__name__}")
            self._requests = [ApprovalRequest.model_validate(item) for item in data]
        except (TypeError, ValidationError) as e:
            self._decode_failed(e)
            self._requests = []
