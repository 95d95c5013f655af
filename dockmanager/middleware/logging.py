"""
Access Logging Middleware

Tags every API request with a request id and logs method, path, status
and duration. Requests slower than SLOW_REQUEST_SECONDS are also logged
at the slow level.
"""

import time
import uuid
from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from dockmanager.core.config import settings
from dockmanager.logging import get_logger

logger = get_logger("access")

UNLOGGED_PATHS = frozenset({"/", "/health", "/docs", "/openapi.json"})


class AccessLoggingMiddleware(BaseHTTPMiddleware):
    """
    Request ids are assigned to every request, including unlogged paths and
    when ``enabled`` is False. An incoming X-Request-ID is reused.
    """

    def __init__(self, app: ASGIApp, enabled: bool = True):
        super().__init__(app)
        self.enabled = enabled

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id

        if not self.enabled or request.url.path in UNLOGGED_PATHS:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.error(
                "Request failed with unhandled error",
                method=request.method,
                path=request.url.path,
                request_id=request_id
            )
            raise
        elapsed = round(time.perf_counter() - started, 3)

        # set by get_current_user on authenticated routes
        user = getattr(request.state, "user", None)
        logger.request(
            "API request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration=elapsed,
            request_id=request_id,
            user_id=user.id if user else None,
            ip=client_ip(request)
        )
        if elapsed > settings.SLOW_REQUEST_SECONDS:
            logger.slow(
                "Slow API request",
                duration=elapsed,
                threshold=settings.SLOW_REQUEST_SECONDS,
                method=request.method,
                path=request.url.path,
                request_id=request_id
            )

        response.headers["X-Request-ID"] = request_id
        return response


def client_ip(request: Request) -> str:
    """First X-Forwarded-For hop when proxied, else the peer address."""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else "unknown"
