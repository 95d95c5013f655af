from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from dockmanager.db.session import SessionAsync
from dockmanager.models.user import User
from dockmanager.core.security import decode_access_token
from dockmanager.core.permissions import PermissionKind, ResourceRef, ResourceType
from dockmanager.services.docker_engine import EngineConnector
from dockmanager.services.node_service import NodeService
from dockmanager.services.permission_service import PermissionService

oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl="/api/auth/token",
    description="Bearer JWT issued for a user"
)


async def get_db():
    async with SessionAsync() as session:
        yield session


async def get_current_user(
    request: Request,
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_access_token(token)
        user_id = UUID(str(payload.get("sub")))
        tv = payload.get("tv")
        if tv is None:
            raise credentials_exception
    except (JWTError, ValueError):
        raise credentials_exception

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user or int(tv) != int(user.token_version or 1):
        raise credentials_exception

    # Picked up by AccessLoggingMiddleware
    request.state.user = user
    return user


async def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required"
        )
    return current_user


# ==================== Services ====================

def get_engine_connector() -> EngineConnector:
    """Overridden in tests to hand out fake Docker clients."""
    return EngineConnector()


def get_permission_service(db: AsyncSession = Depends(get_db)) -> PermissionService:
    return PermissionService.for_session(db)


def get_node_service(
    db: AsyncSession = Depends(get_db),
    connector: EngineConnector = Depends(get_engine_connector)
) -> NodeService:
    return NodeService.for_session(db, connector)


# ==================== Permission Dependencies ====================

def require_resource_permission(resource_type: ResourceType, permission: PermissionKind, param: str = "resource_id"):
    """
    Factory to create a dependency that checks the caller's grant on a resource.

    The resource id is read from the path or query parameter named `param`. Admins
    pass without a grant.

    Usage:
        @router.get("/")
        async def list_nodes(
            organization_id: Optional[UUID] = None,
            user = Depends(require_resource_permission(ResourceType.ORGANIZATION, PermissionKind.READ, "organization_id")),
        ):
            ...

    Raises:
        HTTPException 403: If the user lacks the permission
    """
    async def permission_checker(
        request: Request,
        current_user: User = Depends(get_current_user),
        service: PermissionService = Depends(get_permission_service)
    ) -> User:
        if current_user.is_admin:
            return current_user

        raw = request.path_params.get(param) or request.query_params.get(param)
        if raw is None:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"{param} is required for non-admin users"
            )
        try:
            resource_id = UUID(str(raw))
        except ValueError:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Resource not found")

        # PermissionDenied is mapped to 403 by the app's exception handlers
        await service.check_permission(current_user.id, ResourceRef.parse(resource_type, resource_id), permission)
        return current_user

    return permission_checker
