"""
Nodes API Endpoints

Registry of Docker engine endpoints and the administrative actions run
against them (ping, prune, helper actions, engine info).
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from dockmanager.api.dependencies import (
    get_current_user,
    get_node_service,
    get_permission_service,
    require_admin,
    require_resource_permission,
)
from dockmanager.core.permissions import PermissionKind, ResourceRef, ResourceType
from dockmanager.models.user import User
from dockmanager.schemas.node import (
    NodeActionOut,
    NodeCreate,
    NodeList,
    NodeOut,
    NodeUpdate,
    PruneOut,
    PruneRequest,
)
from dockmanager.schemas.permission import MessageOut
from dockmanager.services.node_service import NodeService
from dockmanager.services.permission_service import PermissionService

router = APIRouter()


# ==================== Node CRUD ====================

@router.post("/", response_model=NodeOut, status_code=status.HTTP_201_CREATED)
async def create_node(
    node_data: NodeCreate,
    current_user: User = Depends(require_admin),
    service: NodeService = Depends(get_node_service)
):
    """
    Register a Docker node.

    Without organization_id the node is attached to the oldest organization.
    Marking it default clears the flag on the organization's other nodes.
    """
    return await service.create_node(node_data.model_dump())


@router.get("/", response_model=NodeList)
async def list_nodes(
    organization_id: Optional[UUID] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=100),
    current_user: User = Depends(
        require_resource_permission(ResourceType.ORGANIZATION, PermissionKind.READ, "organization_id")
    ),
    service: NodeService = Depends(get_node_service)
):
    """
    List nodes, newest first.

    Query parameters:
    - organization_id: Only nodes of this organization (required for non-admins)
    - skip: Number of records to skip (pagination)
    - limit: Maximum number of records to return
    """
    nodes, total = await service.list_nodes(organization_id, skip, limit)
    return {"data": nodes, "total": total, "skip": skip, "limit": limit}


@router.get("/{node_id}", response_model=NodeOut)
async def get_node(
    node_id: UUID,
    current_user: User = Depends(get_current_user),
    service: NodeService = Depends(get_node_service),
    permissions: PermissionService = Depends(get_permission_service)
):
    """Get a node. Non-admins need read access on the node's organization."""
    node = await service.get_node(node_id)
    if not current_user.is_admin:
        await permissions.check_permission(
            current_user.id, ResourceRef.organization(node.organization_id), PermissionKind.READ
        )
    return node


@router.put("/{node_id}", response_model=NodeOut)
async def update_node(
    node_id: UUID,
    node_update: NodeUpdate,
    current_user: User = Depends(require_admin),
    service: NodeService = Depends(get_node_service)
):
    return await service.update_node(node_id, node_update.model_dump(exclude_unset=True))


@router.delete("/{node_id}", response_model=MessageOut)
async def delete_node(
    node_id: UUID,
    current_user: User = Depends(require_admin),
    service: NodeService = Depends(get_node_service)
):
    await service.delete_node(node_id)
    return {"message": "Node deleted"}


# ==================== Engine actions ====================

@router.post("/{node_id}/test", response_model=NodeOut)
async def test_node_connection(
    node_id: UUID,
    current_user: User = Depends(require_admin),
    service: NodeService = Depends(get_node_service)
):
    """
    Ping the node's engine.

    The node is marked online on success. On failure it is marked offline
    and the call answers 502 with the transport error.
    """
    return await service.ping(node_id)


@router.post("/{node_id}/prune", response_model=PruneOut)
async def prune_node(
    node_id: UUID,
    prune_data: PruneRequest,
    current_user: User = Depends(require_admin),
    service: NodeService = Depends(get_node_service)
):
    """
    Remove unused engine resources.

    type: images, containers, volumes, networks, builder or system.
    system prunes containers, networks and images in that order and stops at
    the first failure; volumes are never included.
    """
    reclaimed = await service.prune(node_id, prune_data.type)
    return {
        "message": f"{prune_data.type} pruned successfully",
        "type": prune_data.type,
        "space_reclaimed": reclaimed
    }


@router.post("/{node_id}/actions/{action}", response_model=NodeActionOut)
async def run_node_action(
    node_id: UUID,
    action: str,
    current_user: User = Depends(require_admin),
    service: NodeService = Depends(get_node_service)
):
    details = await service.run_helper_action(node_id, action)
    return {"message": f"{action} completed", "details": details}


@router.post("/{node_id}/redis/reload", response_model=NodeActionOut)
async def reload_redis(
    node_id: UUID,
    current_user: User = Depends(require_admin),
    service: NodeService = Depends(get_node_service)
):
    """Restart the node's redis helper container."""
    details = await service.restart_helper_container(node_id, "redis")
    return {"message": "Redis container restarted successfully", "details": details}


@router.get("/{node_id}/info", response_model=NodeOut)
async def sync_node_info(
    node_id: UUID,
    current_user: User = Depends(require_admin),
    service: NodeService = Depends(get_node_service)
):
    """Read engine metadata (version, OS, architecture, CPUs, memory) and store it on the node."""
    return await service.sync_engine_info(node_id)
