"""Permission model for stagegate RBAC.

A role grants access per permission level. At each level a role holds one
permission spec, which is one of:

  - AllResources: every resource type (JSON ``"*"``)
  - ResourceList: a set of resource type names (JSON ``["budget", ...]``)
  - ResourceMap: resource type -> AllInstances or InstanceIdList
    (JSON ``{"project": "*", "budget": ["b-1", "b-2"]}``)

Examples:
  - view: "*"
  - edit: ["budget", "funding", "payments"]
  - approve: {"payment": ["pay-17"]}
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union


WILDCARD = "*"


class PermissionLevel(str, Enum):
    """Levels along which access is checked independently of resource type."""

    VIEW = "view"
    EDIT = "edit"
    APPROVE = "approve"
    ADMIN = "admin"


PERMISSION_LEVELS = tuple(PermissionLevel)


@dataclass(frozen=True)
class AllResources:
    """Grants every resource type and instance."""

    def grants(self, resource_type: str, resource_id: Optional[str] = None) -> bool:
        return True


@dataclass(frozen=True)
class ResourceList:
    """Grants every instance of the listed resource types.

    ``resources`` is kept in declaration order without duplicates.
    """

    resources: Tuple[str, ...] = ()

    def grants(self, resource_type: str, resource_id: Optional[str] = None) -> bool:
        # A "*" inside a list is honoured as a wildcard for stored legacy data
        return resource_type in self.resources or WILDCARD in self.resources


@dataclass(frozen=True)
class AllInstances:
    """Grants every instance of one resource type."""


@dataclass(frozen=True)
class InstanceIdList:
    """Grants only the listed instances of one resource type."""

    instance_ids: Tuple[str, ...] = ()


InstanceSpec = Union[AllInstances, InstanceIdList]


@dataclass(frozen=True)
class ResourceMap:
    """Grants per resource type, either all instances or specific ids."""

    entries: Mapping[str, InstanceSpec] = field(default_factory=dict)

    def grants(self, resource_type: str, resource_id: Optional[str] = None) -> bool:
        spec = self.entries.get(resource_type)
        if isinstance(spec, AllInstances):
            return True
        if isinstance(spec, InstanceIdList):
            return resource_id is not None and resource_id in spec.instance_ids
        return False


PermissionSpec = Union[AllResources, ResourceList, ResourceMap]


def _unique(values: Iterable[Any]) -> Tuple[str, ...]:
    return tuple(dict.fromkeys(str(v) for v in values))


def parse_instance_spec(value: Any) -> InstanceSpec:
    if isinstance(value, (AllInstances, InstanceIdList)):
        return value
    if value == WILDCARD:
        return AllInstances()
    if isinstance(value, (list, tuple, set, frozenset)):
        return InstanceIdList(_unique(value))
    raise ValueError(f"Invalid instance spec: {value!r}")


def parse_permission_spec(value: Any) -> PermissionSpec:
    """Parse the JSON form of a permission spec.

    A missing or empty value grants nothing.
    """
    if isinstance(value, (AllResources, ResourceList, ResourceMap)):
        return value
    if value is None or value == "":
        return ResourceList()
    if value == WILDCARD:
        return AllResources()
    if isinstance(value, (list, tuple, set, frozenset)):
        return ResourceList(_unique(value))
    if isinstance(value, Mapping):
        return ResourceMap({str(k): parse_instance_spec(v) for k, v in value.items()})
    raise ValueError(f"Invalid permission spec: {value!r}")


def dump_permission_spec(spec: PermissionSpec) -> Any:
    """Convert a permission spec back to its JSON form."""
    if isinstance(spec, AllResources):
        return WILDCARD
    if isinstance(spec, ResourceList):
        return list(spec.resources)
    if isinstance(spec, ResourceMap):
        return {
            resource: WILDCARD if isinstance(inst, AllInstances) else list(inst.instance_ids)
            for resource, inst in spec.entries.items()
        }
    raise TypeError(f"Unknown permission spec type: {type(spec).__name__}")


def granted_resources(spec: PermissionSpec) -> list[str]:
    """Resource types (or the wildcard) a spec names, in declaration order."""
    if isinstance(spec, AllResources):
        return [WILDCARD]
    if isinstance(spec, ResourceList):
        return list(spec.resources)
    if isinstance(spec, ResourceMap):
        return list(spec.entries)
    return []


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class RolePermissions:
    """A role: one permission spec per level.

    Roles are never edited in place; redefining a role replaces it.
    """

    id: str
    view: PermissionSpec = ResourceList()
    edit: PermissionSpec = ResourceList()
    approve: PermissionSpec = ResourceList()
    admin: PermissionSpec = ResourceList()
    created_at: str = field(default_factory=_utcnow_iso)

    def spec_for(self, level: Union[PermissionLevel, str]) -> PermissionSpec:
        return getattr(self, PermissionLevel(level).value)

    @classmethod
    def from_dict(cls, role_id: str, data: Mapping[str, Any]) -> "RolePermissions":
        kwargs: Dict[str, Any] = {
            level.value: parse_permission_spec(data.get(level.value))
            for level in PERMISSION_LEVELS
        }
        created_at = data.get("createdAt")
        if created_at:
            kwargs["created_at"] = str(created_at)
        return cls(id=role_id, **kwargs)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id}
        for level in PERMISSION_LEVELS:
            data[level.value] = dump_permission_spec(self.spec_for(level))
        data["createdAt"] = self.created_at
        return data


def is_valid_level(level: Any) -> bool:
    """Check if a value names a permission level."""
    try:
        PermissionLevel(level)
    except (TypeError, ValueError):
        return False
    return True
