"""
Docker engine connections for stored node profiles.

A node's auth method picks the strategy that builds its DockerClient:

    plain  unix socket or TCP, no client certificates
    tls    TCP with client certificate, key and optional CA (PEM stored on the node)

Anything else (SSH tunnels included) is rejected before a connection is
attempted. Every connection is scoped to one `with` block: the client is
closed and any certificate files are removed when it exits.

All calls here are blocking; NodeService runs them in the threadpool.
"""

import os
import shutil
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, Optional, Tuple
from uuid import UUID

import docker
import requests
from docker.errors import DockerException
from docker.tls import TLSConfig

from dockmanager.core.config import settings
from dockmanager.core.exceptions import (
    EngineConnectionError,
    NotFoundError,
    ValidationError,
    UnknownHelperAction,
    UnknownPruneCategory,
    UnsupportedAuthMethod,
)

TRANSPORT_ERRORS = (DockerException, requests.exceptions.RequestException)


@dataclass(frozen=True)
class ConnectionProfile:
    """Snapshot of the node fields needed to connect, safe to hand to a worker thread."""
    node_id: Optional[UUID]
    host: str
    auth_method: str
    tls_cert: Optional[str] = None
    tls_key: Optional[str] = None
    tls_ca: Optional[str] = None

    @classmethod
    def from_node(cls, node) -> "ConnectionProfile":
        return cls(
            node_id=node.id,
            host=node.host or "",
            auth_method=node.auth_method,
            tls_cert=node.tls_cert,
            tls_key=node.tls_key,
            tls_ca=node.tls_ca,
        )

    @property
    def base_url(self) -> str:
        return self.host or settings.DOCKER_HOST


class ConnectionStrategy:
    needs_workdir = False

    def build(self, profile: ConnectionProfile, timeout: int, workdir: Optional[str]) -> docker.DockerClient:
        raise NotImplementedError


class PlainConnection(ConnectionStrategy):
    def build(self, profile, timeout, workdir=None):
        return docker.DockerClient(
            base_url=profile.base_url,
            version=settings.DOCKER_API_VERSION,
            timeout=timeout,
        )


class TLSConnection(ConnectionStrategy):
    """Mutual TLS; the PEM blobs are written to a private directory for the client's lifetime."""
    needs_workdir = True

    def build(self, profile, timeout, workdir):
        if not profile.tls_cert or not profile.tls_key:
            raise ValidationError("TLS node requires tls_cert and tls_key")

        cert_path = _write_secret(workdir, "cert.pem", profile.tls_cert)
        key_path = _write_secret(workdir, "key.pem", profile.tls_key)
        ca_path = _write_secret(workdir, "ca.pem", profile.tls_ca) if profile.tls_ca else None

        tls_config = TLSConfig(
            client_cert=(cert_path, key_path),
            ca_cert=ca_path,
            verify=True,
        )
        return docker.DockerClient(
            base_url=profile.base_url,
            tls=tls_config,
            version=settings.DOCKER_API_VERSION,
            timeout=timeout,
        )


def _write_secret(workdir: str, filename: str, content: str) -> str:
    path = os.path.join(workdir, filename)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w") as fh:
        fh.write(content)
    return path


DEFAULT_STRATEGIES: Dict[str, ConnectionStrategy] = {
    "plain": PlainConnection(),
    "tls": TLSConnection(),
}


class EngineConnector:
    """Opens short-lived DockerClients for node profiles."""

    def __init__(self, strategies: Optional[Dict[str, ConnectionStrategy]] = None):
        self.strategies = strategies if strategies is not None else DEFAULT_STRATEGIES

    def strategy_for(self, profile: ConnectionProfile) -> ConnectionStrategy:
        """
        Raises:
            UnsupportedAuthMethod: No strategy handles the profile's auth method
        """
        strategy = self.strategies.get(profile.auth_method)
        if strategy is None:
            raise UnsupportedAuthMethod(profile.auth_method)
        return strategy

    @contextmanager
    def connect(self, profile: ConnectionProfile, timeout: Optional[int] = None) -> Iterator[docker.DockerClient]:
        """
        Yield a connected client.

        Transport failures while connecting or inside the block are raised
        as EngineConnectionError with the underlying message.
        """
        strategy = self.strategy_for(profile)
        workdir = tempfile.mkdtemp(prefix="dockmanager-") if strategy.needs_workdir else None
        client = None
        try:
            try:
                client = strategy.build(profile, timeout or settings.DOCKER_TIMEOUT, workdir)
                yield client
            except TRANSPORT_ERRORS as e:
                raise EngineConnectionError(str(e), node_id=profile.node_id) from e
        finally:
            if client is not None:
                client.close()
            if workdir is not None:
                shutil.rmtree(workdir, ignore_errors=True)


# ==================== Prune ====================

def _space(result: Optional[Dict[str, Any]]) -> int:
    return int((result or {}).get("SpaceReclaimed") or 0)


PRUNE_OPERATIONS: Dict[str, Callable[[docker.DockerClient], Dict[str, Any]]] = {
    "containers": lambda client: client.containers.prune(),
    "images": lambda client: client.images.prune(),
    "volumes": lambda client: client.volumes.prune(),
    "networks": lambda client: client.networks.prune(),
    "builder": lambda client: client.api.prune_builds(),
}

# Volumes are never part of "system": dangling volumes need an explicit prune.
PRUNE_CATEGORIES: Dict[str, Tuple[str, ...]] = {
    "images": ("images",),
    "containers": ("containers",),
    "volumes": ("volumes",),
    "networks": ("networks",),
    "builder": ("builder",),
    "system": ("containers", "networks", "images"),
}


def prune_steps(category: str) -> Tuple[str, ...]:
    """
    Raises:
        UnknownPruneCategory: category is not a prune category
    """
    try:
        return PRUNE_CATEGORIES[category]
    except KeyError:
        raise UnknownPruneCategory(category)


def run_prune(client: docker.DockerClient, steps: Tuple[str, ...]) -> Dict[str, int]:
    """
    Run prune steps in order, stopping at the first failure.

    Returns bytes reclaimed per completed step.
    """
    reclaimed: Dict[str, int] = {}
    for step in steps:
        reclaimed[step] = _space(PRUNE_OPERATIONS[step](client))
    return reclaimed


# ==================== Helper actions ====================

def container_has_name(container, name: str) -> bool:
    names = container.attrs.get("Names") or []
    return any(candidate in (f"/{name}", name) for candidate in names)


class HelperAction:
    description = ""

    def run(self, client: docker.DockerClient) -> Dict[str, Any]:
        raise NotImplementedError


@dataclass(frozen=True)
class RestartContainerByName(HelperAction):
    """Restart the first container (running or stopped) named exactly `name`."""
    name: str

    @property
    def description(self) -> str:
        return f"restart container '{self.name}'"

    def run(self, client):
        for container in client.containers.list(all=True, sparse=True):
            if container_has_name(container, self.name):
                container.restart()
                return {"container_id": container.id, "name": self.name}
        raise NotFoundError(f"{self.name} container not found")


HELPER_ACTIONS: Dict[str, HelperAction] = {
    "redis-reload": RestartContainerByName("redis"),
}


def get_helper_action(action: str) -> HelperAction:
    """
    Raises:
        UnknownHelperAction: action is not registered
    """
    try:
        return HELPER_ACTIONS[action]
    except KeyError:
        raise UnknownHelperAction(action)


# ==================== Engine info ====================

def read_engine_info(client: docker.DockerClient) -> Dict[str, Any]:
    """Engine metadata in node column names."""
    info = client.info()
    return {
        "docker_version": info.get("ServerVersion"),
        "os": info.get("OperatingSystem"),
        "architecture": info.get("Architecture"),
        "cpus": info.get("NCPU"),
        "memory": info.get("MemTotal"),
    }
