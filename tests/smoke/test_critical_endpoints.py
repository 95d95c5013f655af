"""
Smoke tests for critical endpoints.

Fast tests to detect critical breaks in CI/CD pipeline.
"""

import uuid

import pytest
from httpx import AsyncClient


@pytest.mark.smoke
@pytest.mark.asyncio
class TestCriticalEndpoints:
    """Smoke tests for critical application endpoints."""

    async def test_root(self, client: AsyncClient):
        response = await client.get("/")
        assert response.status_code == 200
        assert "message" in response.json()

    async def test_openapi_schema(self, client: AsyncClient):
        response = await client.get("/openapi.json")
        assert response.status_code == 200
        paths = response.json()["paths"]
        assert "/api/permissions/check" in paths
        assert "/api/nodes/{node_id}/prune" in paths

    async def test_permission_check(self, client: AsyncClient, auth_headers):
        response = await client.get(
            "/api/permissions/check",
            headers=auth_headers,
            params={"resource_type": "organization", "resource_id": str(uuid.uuid4()), "permission": "read"}
        )
        assert response.status_code == 200
        assert response.json()["allowed"] is False

    async def test_node_list(self, client: AsyncClient, node, admin_auth_headers):
        response = await client.get("/api/nodes/", headers=admin_auth_headers)
        assert response.status_code == 200
        assert response.json()["total"] == 1

    async def test_node_ping(self, client: AsyncClient, node, admin_auth_headers):
        response = await client.post(f"/api/nodes/{node.id}/test", headers=admin_auth_headers)
        assert response.status_code == 200

    async def test_bad_token_rejected(self, client: AsyncClient):
        response = await client.get("/api/nodes/", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401
