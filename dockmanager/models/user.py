import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, Uuid
from dockmanager.db.base import Base


class User(Base):
    """
    API caller.

    Accounts are provisioned elsewhere; here they only back authentication
    (token_version) and the admin gate (role).
    """
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(100), index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    role = Column(String(20), nullable=False, default="user")  # 'admin', 'user'
    token_version = Column(Integer, default=1, nullable=False)  # invalidate old JWTs
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"
