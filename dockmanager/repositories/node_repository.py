"""
Persistence for Docker node profiles.

Soft-deleted nodes (deleted_at set) are invisible to every read.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from dockmanager.models.node import Node
from dockmanager.models.organization import Organization


class NodeRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    def _active(self):
        return select(Node).where(Node.deleted_at.is_(None))

    async def create(self, node: Node) -> Node:
        self.db.add(node)
        await self.db.commit()
        await self.db.refresh(node)
        return node

    async def get_by_id(self, node_id: UUID) -> Optional[Node]:
        result = await self.db.execute(self._active().where(Node.id == node_id))
        return result.scalar_one_or_none()

    async def list(
        self,
        organization_id: Optional[UUID] = None,
        skip: int = 0,
        limit: int = 100
    ) -> Tuple[Sequence[Node], int]:
        """Page of nodes, newest first, plus the total count."""
        query = self._active()
        count_query = select(func.count(Node.id)).where(Node.deleted_at.is_(None))
        if organization_id is not None:
            query = query.where(Node.organization_id == organization_id)
            count_query = count_query.where(Node.organization_id == organization_id)

        query = query.order_by(Node.created_at.desc()).offset(skip).limit(limit)

        result = await self.db.execute(query)
        total = await self.db.execute(count_query)
        return result.scalars().all(), total.scalar()

    async def update(self, node: Node) -> Node:
        await self.db.commit()
        await self.db.refresh(node)
        return node

    async def refresh(self, node: Node) -> Node:
        """Reload the node's columns after a bulk update_fields write."""
        await self.db.refresh(node)
        return node

    async def update_fields(self, node_id: UUID, values: Dict[str, Any]) -> None:
        """
        Write only the given columns.

        Used for bookkeeping after engine calls so concurrent actions on the
        same node only race on the columns they touch (last writer wins).
        """
        await self.db.execute(
            update(Node)
            .where(Node.id == node_id, Node.deleted_at.is_(None))
            .values(**values, updated_at=datetime.now(timezone.utc))
        )
        await self.db.commit()

    async def clear_default(self, organization_id: UUID, keep_id: Optional[UUID] = None) -> None:
        """Unset is_default on the organization's other nodes."""
        stmt = update(Node).where(
            Node.organization_id == organization_id,
            Node.is_default.is_(True)
        )
        if keep_id is not None:
            stmt = stmt.where(Node.id != keep_id)
        await self.db.execute(stmt.values(is_default=False))

    async def soft_delete(self, node: Node) -> None:
        node.deleted_at = datetime.now(timezone.utc)
        node.is_default = False
        await self.db.commit()

    async def get_default_organization_id(self) -> Optional[UUID]:
        """Oldest organization, used when a node is registered without one."""
        result = await self.db.execute(
            select(Organization.id).order_by(Organization.created_at).limit(1)
        )
        return result.scalar_one_or_none()

    async def organization_exists(self, organization_id: UUID) -> bool:
        result = await self.db.execute(
            select(Organization.id).where(Organization.id == organization_id)
        )
        return result.scalar_one_or_none() is not None
