"""
Pydantic schemas for permission grants.

resource_type and permissions are plain strings on input; the permission
service validates them so bad values surface as 400s with the domain message.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel, Field


class PermissionGrantCreate(BaseModel):
    """Schema for granting permissions on a resource"""
    user_id: UUID
    resource_type: str = Field(..., min_length=1, max_length=32)
    resource_id: UUID
    permissions: List[str]
    expires_at: Optional[datetime] = None


class PermissionRevoke(BaseModel):
    """Schema for revoking a user's grant on a resource"""
    user_id: UUID
    resource_type: str = Field(..., min_length=1, max_length=32)
    resource_id: UUID


class PermissionUpdate(BaseModel):
    """Schema for updating a grant by id"""
    permissions: List[str]
    expires_at: Optional[datetime] = None


class PermissionOut(BaseModel):
    """Schema for grant output. Expired grants are listed with expired=True."""
    id: UUID
    user_id: UUID
    resource_type: str
    resource_id: UUID
    permissions: List[str]
    granted_by: Optional[UUID] = None
    granted_at: datetime
    expires_at: Optional[datetime] = None
    expired: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PermissionCheckOut(BaseModel):
    """Result of an authorization query for the current user"""
    resource_type: str
    resource_id: UUID
    permission: str
    allowed: bool


class UserResourcesOut(BaseModel):
    """Resource ids of one type reachable through non-expired grants"""
    resource_type: str
    data: List[UUID]


class MessageOut(BaseModel):
    message: str
