"""
Permission vocabulary for resource-scoped access control.

Defines the resource types a grant can point at, the permission kinds a
grant can carry, the PermissionSet value type and the ResourceRef tag used
at the API boundary.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Union
from uuid import UUID

from dockmanager.core.exceptions import InvalidPermission, InvalidResourceType


class ResourceType(str, Enum):
    """Kinds of resource a permission grant can reference"""
    ORGANIZATION = "organization"
    PROJECT = "project"
    CONTAINER = "container"
    CONTAINER_INSTANCE = "container_instance"


class PermissionKind(str, Enum):
    """Permissions that can be granted on a resource"""
    READ = "read"
    WRITE = "write"
    DELETE = "delete"
    DEPLOY = "deploy"
    MANAGE = "manage"


# Serialization order of PermissionSet.to_list()
PERMISSION_ORDER: List[PermissionKind] = [
    PermissionKind.READ,
    PermissionKind.WRITE,
    PermissionKind.DELETE,
    PermissionKind.DEPLOY,
    PermissionKind.MANAGE,
]


def parse_resource_type(value: Union[str, ResourceType]) -> ResourceType:
    """
    Coerce a raw tag into a ResourceType.

    Raises:
        InvalidResourceType: If the tag is not one of the recognized types
    """
    if isinstance(value, ResourceType):
        return value
    try:
        return ResourceType(value)
    except ValueError:
        raise InvalidResourceType(str(value))


def parse_permission(value: Union[str, PermissionKind]) -> PermissionKind:
    """
    Coerce a raw tag into a PermissionKind.

    Raises:
        InvalidPermission: If the tag is not one of the five kinds
    """
    if isinstance(value, PermissionKind):
        return value
    try:
        return PermissionKind(value)
    except ValueError:
        raise InvalidPermission(str(value))


@dataclass(frozen=True)
class PermissionSet:
    """
    Five independent permission flags.

    Stored as an ordered list of tags, e.g. ["read", "deploy"].
    """
    read: bool = False
    write: bool = False
    delete: bool = False
    deploy: bool = False
    manage: bool = False

    @classmethod
    def from_list(cls, permissions: Iterable[Union[str, PermissionKind]]) -> "PermissionSet":
        """
        Build a set from tags, validating each one.

        Raises:
            InvalidPermission: On the first unrecognized tag
        """
        kinds = {parse_permission(p) for p in permissions}
        return cls(**{kind.value: True for kind in kinds})

    def to_list(self) -> List[str]:
        return [kind.value for kind in PERMISSION_ORDER if getattr(self, kind.value)]

    def has(self, permission: Union[str, PermissionKind]) -> bool:
        """Unknown permission names are never held."""
        try:
            kind = PermissionKind(permission)
        except ValueError:
            return False
        return getattr(self, kind.value)

    def __iter__(self):
        return iter(self.to_list())


@dataclass(frozen=True)
class ResourceRef:
    """
    Reference to one resource of a given type.

    Persisted as the (resource_type, resource_id) pair of a grant.
    """
    type: ResourceType
    id: UUID

    @classmethod
    def organization(cls, id: UUID) -> "ResourceRef":
        return cls(ResourceType.ORGANIZATION, id)

    @classmethod
    def project(cls, id: UUID) -> "ResourceRef":
        return cls(ResourceType.PROJECT, id)

    @classmethod
    def container(cls, id: UUID) -> "ResourceRef":
        return cls(ResourceType.CONTAINER, id)

    @classmethod
    def container_instance(cls, id: UUID) -> "ResourceRef":
        return cls(ResourceType.CONTAINER_INSTANCE, id)

    @classmethod
    def parse(cls, resource_type: Union[str, ResourceType], resource_id: UUID) -> "ResourceRef":
        return cls(parse_resource_type(resource_type), resource_id)

    def __str__(self) -> str:
        return f"{self.type.value}:{self.id}"
