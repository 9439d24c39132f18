"""Permission resolution for stagegate.

Decides whether a user, through the roles assigned to them, may act at a
given permission level on a resource type or a specific resource instance.
"""

import logging
import threading
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from stagegate.core.config import StoragePolicy
from stagegate.core.errors import Result, RoleNotFound
from stagegate.storage.base import KeyValueStore, StoredComponent

from .permissions import (
    PERMISSION_LEVELS,
    PermissionLevel,
    RolePermissions,
    granted_resources,
    is_valid_level,
)
from .roles import ROLE_TEMPLATES, SUPERUSER_ROLES, get_role_template, superuser_role

logger = logging.getLogger(__name__)


REDACTED = "***RESTRICTED***"
DEFAULT_RESOURCE_TYPE = "project"


def _item_attr(item: Any, *names: str) -> Any:
    """Read the first present attribute/key of ``item`` among ``names``."""
    for name in names:
        if isinstance(item, Mapping):
            if item.get(name) is not None:
                return item[name]
        else:
            value = getattr(item, name, None)
            if value is not None:
                return value
    return None


class PermissionResolver(StoredComponent):
    """Resolves user permissions from their assigned roles.

    Role definitions and user role assignments are persisted together under
    one storage key as ``{"roles": {...}, "users": {...}}``.

    Holding the ``superuser`` or ``admin`` role is an escape hatch: such a
    user passes every check regardless of role definitions.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        storage_key: str = "rbac_data",
        on_storage_error: StoragePolicy = StoragePolicy.DEGRADE,
    ):
        """
        Initialize the resolver and load persisted roles and users.

        Args:
            store: Key-value store holding the role/user map
            storage_key: Namespace key owned by this resolver
            on_storage_error: Degrade to empty state or raise on storage failure
        """
        self._init_storage(store, storage_key, on_storage_error, logger)
        self._lock = threading.RLock()
        self._roles: Dict[str, RolePermissions] = {}
        self._users: Dict[str, List[str]] = {}
        self._current_user: Optional[str] = None
        self._load()

    # ------------------------------------------------------------------
    # Role and assignment management
    # ------------------------------------------------------------------

    def define_role(
        self, role_id: str, spec: Union[RolePermissions, Mapping[str, Any]]
    ) -> RolePermissions:
        """
        Register a role, replacing any existing definition with that id.

        Redefinition does not merge with the previous spec.

        Args:
            role_id: Role identifier
            spec: RolePermissions or JSON-style mapping of level -> spec

        Returns:
            The stored role
        """
        if isinstance(spec, RolePermissions):
            role = RolePermissions(
                id=role_id,
                view=spec.view,
                edit=spec.edit,
                approve=spec.approve,
                admin=spec.admin,
            )
        else:
            data = {k: v for k, v in spec.items() if k != "createdAt"}
            role = RolePermissions.from_dict(role_id, data)

        with self._lock:
            if role_id in self._roles:
                logger.debug(f"Redefining role {role_id}")
            self._commit({**self._roles, role_id: role}, self._users)
        return role

    def get_role(self, role_id: str) -> Optional[RolePermissions]:
        with self._lock:
            return self._roles.get(role_id)

    def list_roles(self) -> List[str]:
        with self._lock:
            return list(self._roles)

    def install_role_templates(self) -> None:
        """Define the built-in templates and the superuser marker roles."""
        with self._lock:
            roles = dict(self._roles)
            for key in ROLE_TEMPLATES:
                roles[key] = get_role_template(key)
            for role_id in sorted(SUPERUSER_ROLES):
                roles[role_id] = superuser_role(role_id)
            self._commit(roles, self._users)
        logger.info(f"Installed {len(ROLE_TEMPLATES)} role templates")

    def assign_role(self, user_id: str, role_id: str) -> Result:
        """
        Assign a role to a user.

        Assigning a role the user already holds changes nothing.

        Returns:
            Result; fails with ErrorKind.ROLE_NOT_FOUND if the role is undefined
        """
        with self._lock:
            if role_id not in self._roles:
                return Result.failure(RoleNotFound(role_id))

            users = self._copy_users()
            roles = users.setdefault(user_id, [])
            if role_id not in roles:
                roles.append(role_id)
            self._commit(self._roles, users)
        return Result.success(role_id)

    def remove_role(self, user_id: str, role_id: str) -> None:
        """Remove a role from a user; no-op if the user does not hold it."""
        with self._lock:
            if role_id not in self._users.get(user_id, []):
                return
            users = self._copy_users()
            users[user_id].remove(role_id)
            self._commit(self._roles, users)

    def get_user_roles(self, user_id: str) -> List[str]:
        with self._lock:
            return list(self._users.get(user_id, []))

    def has_role(self, user_id: str, role_id: str) -> bool:
        return role_id in self.get_user_roles(user_id)

    def set_current_user(self, user_id: Optional[str]) -> None:
        """Designate the user for ambient-context checks (None clears it)."""
        with self._lock:
            self._current_user = user_id

    @property
    def current_user(self) -> Optional[str]:
        return self._current_user

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def can(
        self,
        user_id: str,
        level: Union[PermissionLevel, str],
        resource_type: str,
        resource_id: Optional[str] = None,
    ) -> bool:
        """
        Check if a user may act at ``level`` on a resource.

        Args:
            user_id: User identifier
            level: 'view', 'edit', 'approve' or 'admin'
            resource_type: Resource type (e.g. 'project', 'budget', 'qa-gate')
            resource_id: Optional specific resource instance

        Returns:
            True if any held role grants access. Unknown users, roles and
            levels resolve to False.
        """
        if not isinstance(user_id, str) or not isinstance(resource_type, str):
            return False

        with self._lock:
            role_ids = self._users.get(user_id)
            if role_ids is None:
                return False

            if any(role_id in SUPERUSER_ROLES for role_id in role_ids):
                return True

            if not is_valid_level(level):
                return False

            for role_id in role_ids:
                role = self._roles.get(role_id)
                if role is None:
                    continue
                if role.spec_for(level).grants(resource_type, resource_id):
                    return True

        return False

    def can_current(
        self,
        level: Union[PermissionLevel, str],
        resource_type: str,
        resource_id: Optional[str] = None,
    ) -> bool:
        """Check the current user; False when no current user is set."""
        user_id = self._current_user
        if user_id is None:
            return False
        return self.can(user_id, level, resource_type, resource_id)

    def get_user_permissions(self, user_id: str) -> Dict[str, List[str]]:
        """
        Aggregate what a user's roles grant at each level.

        Values appear in the order first seen while walking the user's roles.
        Wildcards are kept alongside explicit entries.

        Returns:
            Mapping of level name -> list of resource types and wildcards
        """
        aggregated: Dict[str, Dict[str, None]] = {level.value: {} for level in PERMISSION_LEVELS}

        with self._lock:
            for role_id in self._users.get(user_id, []):
                role = self._roles.get(role_id)
                if role is None:
                    continue
                for level in PERMISSION_LEVELS:
                    for resource in granted_resources(role.spec_for(level)):
                        aggregated[level.value].setdefault(resource, None)

        return {level: list(values) for level, values in aggregated.items()}

    def filter_by_permission(
        self,
        user_id: str,
        items: Iterable[Any],
        level: Union[PermissionLevel, str] = PermissionLevel.VIEW,
    ) -> List[Any]:
        """
        Keep the items the user may access at ``level``.

        Each item's resource type is read from ``resourceType`` /
        ``resource_type`` (default 'project') and its instance from ``id``.
        """
        kept = []
        for item in items:
            resource_type = _item_attr(item, "resourceType", "resource_type") or DEFAULT_RESOURCE_TYPE
            resource_id = _item_attr(item, "id")
            if self.can(user_id, level, resource_type, resource_id):
                kept.append(item)
        return kept

    def mask_fields(
        self,
        user_id: str,
        record: Mapping[str, Any],
        sensitive_fields: Iterable[str] = (),
    ) -> Dict[str, Any]:
        """
        Redact sensitive fields the user may not view.

        Each field name is checked as a resource type at the 'view' level.
        Fields not listed pass through unchanged.
        """
        masked = dict(record)
        for field_name in sensitive_fields:
            if not self.can(user_id, PermissionLevel.VIEW, field_name):
                masked[field_name] = REDACTED
        return masked

    # ------------------------------------------------------------------
    # Import / export and persistence
    # ------------------------------------------------------------------

    def export(self) -> Dict[str, Any]:
        """Export roles and user assignments as a JSON-compatible mapping."""
        with self._lock:
            return self._serialize(self._roles, self._users)

    def import_data(self, data: Mapping[str, Any]) -> None:
        """Replace all roles and assignments with ``data``."""
        roles, users = self._deserialize(data)
        with self._lock:
            self._commit(roles, users)

    @staticmethod
    def _serialize(
        roles: Mapping[str, RolePermissions], users: Mapping[str, List[str]]
    ) -> Dict[str, Any]:
        return {
            "roles": {role_id: role.to_dict() for role_id, role in roles.items()},
            "users": {
                user_id: {"id": user_id, "roles": list(role_ids)}
                for user_id, role_ids in users.items()
            },
        }

    @staticmethod
    def _deserialize(data: Mapping[str, Any]):
        roles = {
            str(role_id): RolePermissions.from_dict(str(role_id), role_data)
            for role_id, role_data in (data.get("roles") or {}).items()
        }
        users: Dict[str, List[str]] = {}
        for user_id, user_data in (data.get("users") or {}).items():
            users[str(user_id)] = list(dict.fromkeys(user_data.get("roles") or []))
        return roles, users

    def _copy_users(self) -> Dict[str, List[str]]:
        return {user_id: list(roles) for user_id, roles in self._users.items()}

    def _commit(
        self, roles: Dict[str, RolePermissions], users: Dict[str, List[str]]
    ) -> None:
        """Persist ``roles`` and ``users``, then make them current.

        A save that raises leaves the in-memory state untouched.
        """
        self._save_state(self._serialize(roles, users))
        self._roles = roles
        self._users = users

    def _load(self) -> None:
        data = self._load_state()
        if data is None:
            return
        try:
            if not isinstance(data, Mapping):
                raise TypeError(f"expected a mapping, got {type(data).__name__}")
            self._roles, self._users = self._deserialize(data)
        except (AttributeError, TypeError, ValueError) as e:
            self._decode_failed(e)
            self._roles, self._users = {}, {}
