import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, BigInteger, String, Boolean, DateTime, Text, JSON, Uuid, ForeignKey
from sqlalchemy.orm import relationship
from dockmanager.db.base import Base


class Node(Base):
    """
    Docker engine connection profile.

    host is a unix socket (unix:///var/run/docker.sock) or a TCP address
    (tcp://host:2376). An empty host means the engine configured in
    settings.DOCKER_HOST.

    Status: 'unknown' until the first ping, then 'online' / 'offline'.
    'error' is reserved for health checks other than a plain ping.
    """
    __tablename__ = "nodes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    host = Column(String(255), nullable=False, default="")
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="unknown")  # 'unknown', 'online', 'offline', 'error'
    is_default = Column(Boolean, default=False, nullable=False)

    # SSH connection
    use_ssh = Column(Boolean, default=False, nullable=False)
    ssh_user = Column(String(100), nullable=True)
    ssh_key = Column(Text, nullable=True)
    ssh_port = Column(Integer, default=22, nullable=False)

    # TLS connection (PEM material)
    tls_enabled = Column(Boolean, default=False, nullable=False)
    tls_cert = Column(Text, nullable=True)
    tls_key = Column(Text, nullable=True)
    tls_ca = Column(Text, nullable=True)

    # Engine metadata, refreshed from the engine's info endpoint
    docker_version = Column(String(50), nullable=True)
    os = Column(String(100), nullable=True)
    architecture = Column(String(50), nullable=True)
    cpus = Column(Integer, nullable=True)
    memory = Column(BigInteger, nullable=True)

    last_ping_at = Column(DateTime(timezone=True), nullable=True)
    labels = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))
    deleted_at = Column(DateTime(timezone=True), nullable=True, index=True)  # Soft delete

    # Relationships
    organization = relationship("Organization", back_populates="nodes")

    def __repr__(self):
        return f"<Node(id={self.id}, name='{self.name}', host='{self.host}', status='{self.status}')>"

    @property
    def uses_ssh(self) -> bool:
        """SSH transport, either flagged or implied by an ssh:// host."""
        return bool(self.use_ssh) or (self.host or "").lower().startswith("ssh://")

    @property
    def auth_method(self) -> str:
        """
        Connection strategy implied by the profile.

        'ssh', 'tls', 'plain', or 'ssh+tls' when both apply
        (no strategy handles that combination).
        """
        if self.uses_ssh and self.tls_enabled:
            return "ssh+tls"
        if self.uses_ssh:
            return "ssh"
        if self.tls_enabled:
            return "tls"
        return "plain"
