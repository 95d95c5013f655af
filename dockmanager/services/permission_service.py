"""
Permission engine.

Validates resource types and permission kinds, upserts grants, and answers
authorization queries with lazy expiry: a grant whose expires_at is in the
past is ignored by every check, but stays stored until revoked or deleted.
"""

from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence, Union
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from dockmanager.core.exceptions import NotFoundError, PermissionDenied
from dockmanager.core.permissions import (
    PermissionKind,
    PermissionSet,
    ResourceRef,
    ResourceType,
    parse_resource_type,
)
from dockmanager.logging import get_logger
from dockmanager.models.permission import UserPermission
from dockmanager.repositories.permission_repository import PermissionRepository

logger = get_logger(__name__)


def normalize_expiry(expires_at: Optional[datetime]) -> Optional[datetime]:
    """Store expiry in UTC; naive values are taken as UTC."""
    if expires_at is None:
        return None
    if expires_at.tzinfo is None:
        return expires_at.replace(tzinfo=timezone.utc)
    return expires_at.astimezone(timezone.utc)


class PermissionService:
    def __init__(self, repo: PermissionRepository):
        self.repo = repo

    @classmethod
    def for_session(cls, db: AsyncSession) -> "PermissionService":
        return cls(PermissionRepository(db))

    async def grant_permission(
        self,
        user_id: UUID,
        resource: ResourceRef,
        permissions: Iterable[Union[str, PermissionKind]],
        granted_by: Optional[UUID],
        expires_at: Optional[datetime] = None
    ) -> UserPermission:
        """
        Grant permissions to a user on a resource.

        Re-granting the same (user, resource) replaces the stored set,
        grantor and expiry; the grant id and granted_at are kept.

        Raises:
            InvalidPermission: Unknown permission kind
        """
        permission_set = PermissionSet.from_list(permissions)

        grant = await self.repo.upsert_for_resource(
            user_id=user_id,
            resource_type=resource.type.value,
            resource_id=resource.id,
            permissions=permission_set.to_list(),
            granted_by=granted_by,
            expires_at=normalize_expiry(expires_at)
        )
        logger.info(
            "Permission granted",
            user_id=user_id,
            resource=resource,
            permissions=",".join(permission_set.to_list()),
            granted_by=granted_by
        )
        return grant

    async def revoke_permission(self, user_id: UUID, resource: ResourceRef) -> None:
        """Delete the user's grant on the resource. Missing grants are a no-op."""
        deleted = await self.repo.delete_for_resource(user_id, resource.type.value, resource.id)
        if deleted:
            logger.info("Permission revoked", user_id=user_id, resource=resource)

    async def get_user_permissions(
        self,
        user_id: UUID,
        active_only: bool = False
    ) -> List[UserPermission]:
        """
        All grants held by a user.

        Expired grants are included unless active_only is set; each record
        reports its own expiry through UserPermission.expired.
        """
        grants = await self.repo.get_by_user(user_id)
        return self._filter(grants, active_only)

    async def get_resource_permissions(
        self,
        resource: ResourceRef,
        active_only: bool = False
    ) -> List[UserPermission]:
        """All grants on a resource, same expiry policy as get_user_permissions."""
        grants = await self.repo.get_by_resource(resource.type.value, resource.id)
        return self._filter(grants, active_only)

    async def has_permission(
        self,
        user_id: UUID,
        resource: ResourceRef,
        permission: Union[str, PermissionKind]
    ) -> bool:
        """
        Whether the user currently holds `permission` on the resource.

        False without a grant or once the grant expired. Database errors
        propagate; they are not a denial.
        """
        grant = await self.repo.get_for_resource(user_id, resource.type.value, resource.id)
        if grant is None:
            return False
        if grant.is_expired():
            return False
        return grant.permission_set.has(permission)

    async def check_permission(
        self,
        user_id: UUID,
        resource: ResourceRef,
        permission: Union[str, PermissionKind]
    ) -> None:
        """
        Raises:
            PermissionDenied: If has_permission is False
        """
        if not await self.has_permission(user_id, resource, permission):
            perm = permission.value if isinstance(permission, PermissionKind) else permission
            raise PermissionDenied(f"Insufficient permissions: {perm} on {resource.type.value}")

    async def get_user_resources_by_type(
        self,
        user_id: UUID,
        resource_type: Union[str, ResourceType]
    ) -> List[UUID]:
        """
        Resource ids of the given type reachable through non-expired grants.

        Raises:
            InvalidResourceType: Unknown resource type
        """
        rtype = parse_resource_type(resource_type)
        grants = await self.repo.get_by_user_and_type(user_id, rtype.value)
        now = datetime.now(timezone.utc)
        return [grant.resource_id for grant in grants if not grant.is_expired(now)]

    async def update_permission(
        self,
        grant_id: UUID,
        permissions: Iterable[Union[str, PermissionKind]],
        expires_at: Optional[datetime] = None
    ) -> UserPermission:
        """
        Replace a grant's permission set and expiry. Grantor and granted_at
        are left untouched.

        Raises:
            NotFoundError: No grant with that id
            InvalidPermission: Unknown permission kind
        """
        grant = await self.repo.get_by_id(grant_id)
        if grant is None:
            raise NotFoundError("Permission not found")

        permission_set = PermissionSet.from_list(permissions)
        grant.permissions = permission_set.to_list()
        grant.expires_at = normalize_expiry(expires_at)
        return await self.repo.update(grant)

    async def delete_permission(self, grant_id: UUID) -> None:
        """
        Raises:
            NotFoundError: No grant with that id
        """
        if not await self.repo.delete(grant_id):
            raise NotFoundError("Permission not found")
        logger.info("Permission deleted", permission_id=grant_id)

    @staticmethod
    def _filter(grants: Sequence[UserPermission], active_only: bool) -> List[UserPermission]:
        if not active_only:
            return list(grants)
        now = datetime.now(timezone.utc)
        return [grant for grant in grants if not grant.is_expired(now)]
