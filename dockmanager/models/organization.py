import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, Uuid
from sqlalchemy.orm import relationship
from dockmanager.db.base import Base


class Organization(Base):
    """
    Tenant that owns Docker nodes.

    Permission grants may also point at an organization through the
    (resource_type='organization', resource_id) pair.
    """
    __tablename__ = "organizations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False, index=True)
    slug = Column(String(120), unique=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    # Relationships
    nodes = relationship("Node", back_populates="organization")

    def __repr__(self):
        return f"<Organization(id={self.id}, slug='{self.slug}')>"
