"""
Persistence for permission grants.

All methods run on the caller's AsyncSession; writes commit before
returning.
"""

from datetime import datetime
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dockmanager.models.permission import UserPermission, utcnow


class PermissionRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, grant_id: UUID) -> Optional[UserPermission]:
        result = await self.db.execute(
            select(UserPermission).where(UserPermission.id == grant_id)
        )
        return result.scalar_one_or_none()

    async def get_by_user(self, user_id: UUID) -> Sequence[UserPermission]:
        result = await self.db.execute(
            select(UserPermission)
            .where(UserPermission.user_id == user_id)
            .order_by(UserPermission.granted_at)
        )
        return result.scalars().all()

    async def get_by_resource(self, resource_type: str, resource_id: UUID) -> Sequence[UserPermission]:
        result = await self.db.execute(
            select(UserPermission)
            .where(
                UserPermission.resource_type == resource_type,
                UserPermission.resource_id == resource_id
            )
            .order_by(UserPermission.granted_at)
        )
        return result.scalars().all()

    async def get_by_user_and_type(self, user_id: UUID, resource_type: str) -> Sequence[UserPermission]:
        result = await self.db.execute(
            select(UserPermission).where(
                UserPermission.user_id == user_id,
                UserPermission.resource_type == resource_type
            )
        )
        return result.scalars().all()

    async def get_for_resource(
        self,
        user_id: UUID,
        resource_type: str,
        resource_id: UUID,
        for_update: bool = False
    ) -> Optional[UserPermission]:
        """Grant for the (user, type, resource) triple, if any."""
        query = select(UserPermission).where(
            UserPermission.user_id == user_id,
            UserPermission.resource_type == resource_type,
            UserPermission.resource_id == resource_id
        )
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def upsert_for_resource(
        self,
        user_id: UUID,
        resource_type: str,
        resource_id: UUID,
        permissions: List[str],
        granted_by: Optional[UUID],
        expires_at: Optional[datetime]
    ) -> UserPermission:
        """
        Create the grant for the triple or overwrite the existing one.

        The lookup locks the row. If a concurrent transaction inserts the
        same triple first, the unique constraint rejects our insert and the
        winner's row is updated instead, so one grant remains either way.
        An update keeps the original id and granted_at.
        """
        existing = await self.get_for_resource(user_id, resource_type, resource_id, for_update=True)

        if existing is None:
            grant = UserPermission(
                user_id=user_id,
                resource_type=resource_type,
                resource_id=resource_id,
                permissions=permissions,
                granted_by=granted_by,
                granted_at=utcnow(),
                expires_at=expires_at
            )
            self.db.add(grant)
            try:
                await self.db.flush()
            except IntegrityError:
                await self.db.rollback()
                existing = await self.get_for_resource(user_id, resource_type, resource_id, for_update=True)
                if existing is None:
                    raise

        if existing is not None:
            existing.permissions = permissions
            existing.granted_by = granted_by
            existing.expires_at = expires_at
            grant = existing

        await self.db.commit()
        await self.db.refresh(grant)
        return grant

    async def update(self, grant: UserPermission) -> UserPermission:
        await self.db.commit()
        await self.db.refresh(grant)
        return grant

    async def delete(self, grant_id: UUID) -> bool:
        """Returns False when no grant had that id."""
        result = await self.db.execute(
            delete(UserPermission).where(UserPermission.id == grant_id)
        )
        await self.db.commit()
        return result.rowcount > 0

    async def delete_for_resource(self, user_id: UUID, resource_type: str, resource_id: UUID) -> int:
        result = await self.db.execute(
            delete(UserPermission).where(
                UserPermission.user_id == user_id,
                UserPermission.resource_type == resource_type,
                UserPermission.resource_id == resource_id
            )
        )
        await self.db.commit()
        return result.rowcount
