from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dockmanager.api.endpoints import nodes, permissions
from dockmanager.core.config import settings
from dockmanager.core.exceptions import (
    EngineConnectionError,
    NotFoundError,
    PermissionDenied,
    ValidationError,
)
from dockmanager.core.logging import capture_error, init_sentry, setup_logging
from dockmanager.db.base import Base
from dockmanager.db.session import engine
from dockmanager.helpers.getters import isDebugMode
from dockmanager.middleware.logging import AccessLoggingMiddleware


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    description="""
## 🔐 Authentication

Every endpoint expects a bearer JWT (`Authorization: Bearer <token>`) whose
`sub` is the user id and `tv` the user's token version.

## 🐳 Nodes

Docker engines reachable over a unix socket, plain TCP or TCP with client
TLS certificates. Nodes can be pinged, pruned and asked to restart their
helper containers.

## 🛡️ Permissions

Per-resource grants (`read`, `write`, `delete`, `deploy`, `manage`) on
organizations, projects, containers and container instances, with optional
expiry.
    """,
    version="2.0.0",
    lifespan=lifespan
)

# Initialize logging and error tracking
setup_logging()
init_sentry()

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Access logs are noisy while debugging locally
app.add_middleware(AccessLoggingMiddleware, enabled=not isDebugMode())


# ==================== Error mapping ====================

@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": exc.message})


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": exc.message})


@app.exception_handler(PermissionDenied)
async def permission_denied_handler(request: Request, exc: PermissionDenied):
    return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={"detail": exc.message})


@app.exception_handler(EngineConnectionError)
async def engine_connection_error_handler(request: Request, exc: EngineConnectionError):
    capture_error(
        exc,
        context={"node": {"node_id": str(exc.node_id) if exc.node_id else None}},
        tags={"path": request.url.path}
    )
    return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content={"detail": exc.message})


app.include_router(permissions.router, prefix="/api/permissions", tags=["permissions"])
app.include_router(nodes.router, prefix="/api/nodes", tags=["nodes"])


@app.get("/")
def root():
    return {"message": f"{settings.APP_NAME} API. See /docs for the OpenAPI schema"}
