import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, String, DateTime, JSON, Uuid, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from dockmanager.db.base import Base
from dockmanager.core.permissions import PermissionSet


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_aware(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class UserPermission(Base):
    """
    Grant of a permission set to a user on one resource.

    Polymorphic reference:
        resource_type: 'organization', 'project', 'container' or 'container_instance'
        resource_id: id of the resource in its own table (not a database FK)

    At most one grant exists per (user_id, resource_type, resource_id);
    granting again updates it. Expiry is checked on read only.
    """
    __tablename__ = "user_permissions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # Polymorphic fields
    resource_type = Column(String(32), nullable=False, index=True)
    resource_id = Column(Uuid, nullable=False, index=True)

    permissions = Column(JSON, nullable=False, default=list)  # ordered list of tags

    # Audit fields
    granted_by = Column(Uuid, nullable=True)
    granted_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    user = relationship("User", foreign_keys=[user_id])

    # Constraints
    __table_args__ = (
        UniqueConstraint('user_id', 'resource_type', 'resource_id', name='uq_user_permission_resource'),
    )

    def __repr__(self):
        return (
            f"<UserPermission(user_id={self.user_id}, resource='{self.resource_type}:{self.resource_id}', "
            f"permissions={self.permissions})>"
        )

    @property
    def permission_set(self) -> PermissionSet:
        return PermissionSet.from_list(self.permissions or [])

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """True once expires_at is strictly in the past."""
        if self.expires_at is None:
            return False
        return as_aware(self.expires_at) < (now or utcnow())

    @property
    def expired(self) -> bool:
        return self.is_expired()
