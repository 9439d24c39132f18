"""RBAC (Role-Based Access Control) module for stagegate.

This module defines the permission spec model, the built-in role templates,
and the permission resolver.
"""

from .permissions import (
    AllInstances,
    AllResources,
    InstanceIdList,
    PermissionLevel,
    PermissionSpec,
    ResourceList,
    ResourceMap,
    RolePermissions,
    parse_permission_spec,
)
from .roles import ROLE_TEMPLATES, SUPERUSER_ROLES
from .resolver import PermissionResolver, REDACTED

__all__ = [
    "AllInstances",
    "AllResources",
    "InstanceIdList",
    "PermissionLevel",
    "PermissionSpec",
    "ResourceList",
    "ResourceMap",
    "RolePermissions",
    "parse_permission_spec",
    "ROLE_TEMPLATES",
    "SUPERUSER_ROLES",
    "PermissionResolver",
    "REDACTED",
]
