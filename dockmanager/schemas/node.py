"""
Pydantic schemas for Docker nodes.

SSH keys and TLS material are write-only: they are accepted on create and
update but never returned.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID
from pydantic import BaseModel, Field

HOST_PATTERN = r"^$|^(unix|tcp|http|https|ssh|npipe)://.+"


class NodeBase(BaseModel):
    """Base schema for node with common fields"""
    name: str = Field(..., min_length=1, max_length=100)
    host: str = Field("", max_length=255, pattern=HOST_PATTERN)
    description: Optional[str] = None
    is_default: bool = False
    use_ssh: bool = False
    ssh_user: Optional[str] = Field(None, max_length=100)
    ssh_port: int = Field(22, ge=1, le=65535)
    tls_enabled: bool = False
    labels: Optional[Dict[str, str]] = None


class NodeCreate(NodeBase):
    """Schema for registering a node. organization_id defaults to the oldest organization."""
    organization_id: Optional[UUID] = None
    ssh_key: Optional[str] = None
    tls_cert: Optional[str] = None
    tls_key: Optional[str] = None
    tls_ca: Optional[str] = None


class NodeUpdate(BaseModel):
    """Schema for updating a node"""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    host: Optional[str] = Field(None, max_length=255, pattern=HOST_PATTERN)
    description: Optional[str] = None
    is_default: Optional[bool] = None
    use_ssh: Optional[bool] = None
    ssh_user: Optional[str] = Field(None, max_length=100)
    ssh_key: Optional[str] = None
    ssh_port: Optional[int] = Field(None, ge=1, le=65535)
    tls_enabled: Optional[bool] = None
    tls_cert: Optional[str] = None
    tls_key: Optional[str] = None
    tls_ca: Optional[str] = None
    labels: Optional[Dict[str, str]] = None


class NodeOut(NodeBase):
    """Schema for node output"""
    id: UUID
    organization_id: UUID
    status: str
    auth_method: str
    docker_version: Optional[str] = None
    os: Optional[str] = None
    architecture: Optional[str] = None
    cpus: Optional[int] = None
    memory: Optional[int] = None
    last_ping_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class NodeList(BaseModel):
    data: List[NodeOut]
    total: int
    skip: int
    limit: int


class PruneRequest(BaseModel):
    """type: images, containers, volumes, networks, builder or system"""
    type: str = Field(..., min_length=1)


class PruneOut(BaseModel):
    message: str
    type: str
    space_reclaimed: Dict[str, int]


class NodeActionOut(BaseModel):
    message: str
    details: Optional[Dict[str, Any]] = None
