"""
Node registry and engine dispatcher.

CRUD over stored node profiles, plus the administrative actions that open a
transient engine connection per call: ping, prune, helper actions and engine
info sync. Docker SDK calls are blocking and run in the threadpool.
"""

import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Sequence, Tuple, TypeVar
from uuid import UUID

import docker
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from dockmanager.core.config import settings
from dockmanager.core.exceptions import EngineConnectionError, NotFoundError, ValidationError
from dockmanager.logging import get_logger
from dockmanager.models.node import Node
from dockmanager.repositories.node_repository import NodeRepository
from dockmanager.services.docker_engine import (
    ConnectionProfile,
    EngineConnector,
    RestartContainerByName,
    get_helper_action,
    prune_steps,
    read_engine_info,
    run_prune,
)

logger = get_logger(__name__)

T = TypeVar("T")

NODE_FIELDS = {
    "organization_id", "name", "host", "description", "is_default",
    "use_ssh", "ssh_user", "ssh_key", "ssh_port",
    "tls_enabled", "tls_cert", "tls_key", "tls_ca", "labels",
}

# Explicit nulls for these are ignored on update
REQUIRED_FIELDS = {"name", "host", "is_default", "use_ssh", "ssh_port", "tls_enabled"}


class NodeService:
    def __init__(self, repo: NodeRepository, connector: Optional[EngineConnector] = None):
        self.repo = repo
        self.connector = connector or EngineConnector()

    @classmethod
    def for_session(cls, db: AsyncSession, connector: Optional[EngineConnector] = None) -> "NodeService":
        return cls(NodeRepository(db), connector)

    # ==================== Registry ====================

    async def create_node(self, data: Dict[str, Any]) -> Node:
        """
        Register a node.

        Without organization_id the node goes to the oldest organization.

        Raises:
            ValidationError: No organization available, or TLS enabled without material
        """
        fields = {k: v for k, v in data.items() if k in NODE_FIELDS}

        organization_id = fields.get("organization_id")
        if organization_id is None:
            organization_id = await self.repo.get_default_organization_id()
            if organization_id is None:
                raise ValidationError("failed to assign organization to node: no organization exists")
            fields["organization_id"] = organization_id
        elif not await self.repo.organization_exists(organization_id):
            raise ValidationError(f"organization {organization_id} does not exist")

        self._validate_connection(fields)
        node = Node(**fields)

        if node.is_default:
            await self.repo.clear_default(organization_id)

        node = await self.repo.create(node)
        logger.info("Node registered", node_id=node.id, name=node.name, organization_id=organization_id)
        return node

    async def get_node(self, node_id: UUID) -> Node:
        """
        Raises:
            NotFoundError: Node missing or soft-deleted
        """
        node = await self.repo.get_by_id(node_id)
        if node is None:
            raise NotFoundError("Node not found")
        return node

    async def list_nodes(
        self,
        organization_id: Optional[UUID] = None,
        skip: int = 0,
        limit: int = 100
    ) -> Tuple[Sequence[Node], int]:
        return await self.repo.list(organization_id, skip, limit)

    async def update_node(self, node_id: UUID, changes: Dict[str, Any]) -> Node:
        """Apply a partial update. organization_id cannot change."""
        node = await self.get_node(node_id)
        fields = {
            k: v for k, v in changes.items()
            if k in NODE_FIELDS and k != "organization_id" and not (v is None and k in REQUIRED_FIELDS)
        }

        self._validate_connection({
            key: fields.get(key, getattr(node, key)) for key in ("tls_enabled", "tls_cert", "tls_key")
        })
        for field, value in fields.items():
            setattr(node, field, value)

        if changes.get("is_default"):
            await self.repo.clear_default(node.organization_id, keep_id=node.id)

        return await self.repo.update(node)

    async def delete_node(self, node_id: UUID) -> None:
        node = await self.get_node(node_id)
        await self.repo.soft_delete(node)
        logger.info("Node deleted", node_id=node_id)

    @staticmethod
    def _validate_connection(fields: Dict[str, Any]) -> None:
        if fields.get("tls_enabled") and not (fields.get("tls_cert") and fields.get("tls_key")):
            raise ValidationError("TLS node requires tls_cert and tls_key")

    # ==================== Engine actions ====================

    async def ping(self, node_id: UUID, timeout: Optional[int] = None) -> Node:
        """
        Health-check the node's engine and record the outcome.

        Success sets status 'online' and last_ping_at; a transport failure
        sets 'offline' (whatever the previous status) and re-raises. The
        status is written before returning either way.

        Raises:
            NotFoundError: Unknown node
            UnsupportedAuthMethod: Node needs a connection strategy we lack
            EngineConnectionError: Engine unreachable or ping refused
        """
        node = await self.get_node(node_id)

        def ping(client: docker.DockerClient) -> bool:
            if not client.ping():
                raise EngineConnectionError("engine did not answer ping", node_id=node_id)
            return True

        try:
            await self._dispatch(node, "ping", ping, timeout)
        except EngineConnectionError as e:
            await self.repo.update_fields(node.id, {"status": "offline"})
            logger.error("Node is offline", exc_info=False, node_id=node_id, error=e.message)
            raise

        await self.repo.update_fields(node.id, {
            "status": "online",
            "last_ping_at": datetime.now(timezone.utc),
        })
        await self.repo.refresh(node)
        logger.great("Node is online", node_id=node_id)
        return node

    async def prune(self, node_id: UUID, category: str, timeout: Optional[int] = None) -> Dict[str, int]:
        """
        Reclaim unused engine resources of one category.

        The category is checked before the node is loaded or contacted.

        Raises:
            UnknownPruneCategory: Not one of images, containers, volumes, networks, builder, system
            NotFoundError: Unknown node
            EngineConnectionError: A prune step failed; later steps did not run
        """
        steps = prune_steps(category)
        node = await self.get_node(node_id)

        reclaimed = await self._dispatch(node, f"prune:{category}", lambda client: run_prune(client, steps), timeout)
        logger.info("Prune finished", node_id=node_id, category=category, space_reclaimed=sum(reclaimed.values()))
        return reclaimed

    async def run_helper_action(self, node_id: UUID, action: str, timeout: Optional[int] = None) -> Dict[str, Any]:
        """
        Run a registered helper action (see docker_engine.HELPER_ACTIONS).

        Raises:
            UnknownHelperAction: action is not registered
            NotFoundError: Unknown node, or the action's target is missing
            EngineConnectionError: Engine failure
        """
        helper = get_helper_action(action)
        node = await self.get_node(node_id)

        result = await self._dispatch(node, action, helper.run, timeout)
        logger.info("Helper action done", node_id=node_id, action=action, description=helper.description)
        return result

    async def restart_helper_container(
        self,
        node_id: UUID,
        name: str = "redis",
        timeout: Optional[int] = None
    ) -> Dict[str, Any]:
        """Restart the helper container called `name` (the 'redis-reload' action by default)."""
        node = await self.get_node(node_id)
        return await self._dispatch(node, f"restart:{name}", RestartContainerByName(name).run, timeout)

    async def sync_engine_info(self, node_id: UUID, timeout: Optional[int] = None) -> Node:
        """Refresh docker_version, os, architecture, cpus and memory from the engine."""
        node = await self.get_node(node_id)

        info = await self._dispatch(node, "info", read_engine_info, timeout)
        await self.repo.update_fields(node.id, info)
        await self.repo.refresh(node)
        return node

    async def _dispatch(
        self,
        node: Node,
        operation: str,
        fn: Callable[[docker.DockerClient], T],
        timeout: Optional[int]
    ) -> T:
        """Open a connection for the node, run fn with the client in the threadpool, close it."""
        profile = ConnectionProfile.from_node(node)
        self.connector.strategy_for(profile)

        def call() -> T:
            with self.connector.connect(profile, timeout) as client:
                return fn(client)

        started = time.monotonic()
        try:
            return await run_in_threadpool(call)
        finally:
            duration = time.monotonic() - started
            if duration > settings.SLOW_ENGINE_CALL_SECONDS:
                logger.slow(
                    "Engine call exceeded threshold",
                    duration=round(duration, 3),
                    threshold=settings.SLOW_ENGINE_CALL_SECONDS,
                    node_id=node.id,
                    operation=operation
                )
