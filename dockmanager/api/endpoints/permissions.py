"""
Permissions API Endpoints

Grant, revoke and inspect per-resource permission grants.
Grant management is admin-only; users may read their own grants.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from dockmanager.api.dependencies import (
    get_current_user,
    get_permission_service,
    require_admin,
)
from dockmanager.core.permissions import ResourceRef
from dockmanager.models.user import User
from dockmanager.schemas.permission import (
    MessageOut,
    PermissionCheckOut,
    PermissionGrantCreate,
    PermissionOut,
    PermissionRevoke,
    PermissionUpdate,
    UserResourcesOut,
)
from dockmanager.services.permission_service import PermissionService

router = APIRouter()


def ensure_self_or_admin(user_id: UUID, current_user: User) -> None:
    if current_user.id != user_id and not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only view your own permissions"
        )


# ==================== Grants ====================

@router.post("/", response_model=PermissionOut, status_code=status.HTTP_201_CREATED)
async def grant_permission(
    grant_data: PermissionGrantCreate,
    current_user: User = Depends(require_admin),
    service: PermissionService = Depends(get_permission_service)
):
    """
    Grant permissions to a user on a resource.

    Granting again on the same resource replaces the stored permissions and
    expiry instead of creating a second grant.
    """
    return await service.grant_permission(
        user_id=grant_data.user_id,
        resource=ResourceRef.parse(grant_data.resource_type, grant_data.resource_id),
        permissions=grant_data.permissions,
        granted_by=current_user.id,
        expires_at=grant_data.expires_at
    )


@router.post("/revoke", response_model=MessageOut)
async def revoke_permission(
    revoke_data: PermissionRevoke,
    current_user: User = Depends(require_admin),
    service: PermissionService = Depends(get_permission_service)
):
    """Remove a user's grant on a resource. Revoking a missing grant succeeds."""
    await service.revoke_permission(
        revoke_data.user_id,
        ResourceRef.parse(revoke_data.resource_type, revoke_data.resource_id)
    )
    return {"message": "Permission revoked"}


@router.put("/{permission_id}", response_model=PermissionOut)
async def update_permission(
    permission_id: UUID,
    update_data: PermissionUpdate,
    current_user: User = Depends(require_admin),
    service: PermissionService = Depends(get_permission_service)
):
    return await service.update_permission(
        permission_id,
        update_data.permissions,
        update_data.expires_at
    )


@router.delete("/{permission_id}", response_model=MessageOut)
async def delete_permission(
    permission_id: UUID,
    current_user: User = Depends(require_admin),
    service: PermissionService = Depends(get_permission_service)
):
    await service.delete_permission(permission_id)
    return {"message": "Permission deleted"}


# ==================== Queries ====================

@router.get("/check", response_model=PermissionCheckOut)
async def check_permission(
    resource_type: str = Query(...),
    resource_id: UUID = Query(...),
    permission: str = Query(...),
    current_user: User = Depends(get_current_user),
    service: PermissionService = Depends(get_permission_service)
):
    """Whether the current user holds `permission` on the resource right now."""
    resource = ResourceRef.parse(resource_type, resource_id)
    allowed = await service.has_permission(current_user.id, resource, permission)
    return {
        "resource_type": resource_type,
        "resource_id": resource_id,
        "permission": permission,
        "allowed": allowed
    }


@router.get("/resources", response_model=List[PermissionOut])
async def list_resource_permissions(
    resource_type: str = Query(...),
    resource_id: UUID = Query(...),
    active_only: bool = Query(False),
    current_user: User = Depends(require_admin),
    service: PermissionService = Depends(get_permission_service)
):
    """
    List every grant on a resource.

    Query parameters:
    - active_only: Leave out expired grants (by default they are listed with expired=true)
    """
    resource = ResourceRef.parse(resource_type, resource_id)
    return await service.get_resource_permissions(resource, active_only=active_only)


@router.get("/users/{user_id}", response_model=List[PermissionOut])
async def list_user_permissions(
    user_id: UUID,
    active_only: bool = Query(False),
    current_user: User = Depends(get_current_user),
    service: PermissionService = Depends(get_permission_service)
):
    """
    List every grant held by a user.

    Query parameters:
    - active_only: Leave out expired grants (by default they are listed with expired=true)
    """
    ensure_self_or_admin(user_id, current_user)
    return await service.get_user_permissions(user_id, active_only=active_only)


@router.get("/users/{user_id}/resources", response_model=UserResourcesOut)
async def list_user_resources(
    user_id: UUID,
    resource_type: str = Query(..., alias="type", description="organization, project, container or container_instance"),
    current_user: User = Depends(get_current_user),
    service: PermissionService = Depends(get_permission_service)
):
    """Resource ids of one type the user can currently reach."""
    ensure_self_or_admin(user_id, current_user)
    resource_ids = await service.get_user_resources_by_type(user_id, resource_type)
    return {"resource_type": resource_type, "data": resource_ids}
