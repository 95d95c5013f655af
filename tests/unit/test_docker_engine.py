"""
Unit tests for dockmanager/services/docker_engine.py

Connection strategies, error wrapping, prune plans and helper actions.
No engine is contacted: DockerClient is replaced with fakes.
"""

import os
import stat
import uuid
from unittest.mock import MagicMock

import pytest
import requests
from docker.errors import APIError, DockerException
from docker.tls import TLSConfig

from dockmanager.core.config import settings
from dockmanager.core.exceptions import (
    EngineConnectionError,
    NotFoundError,
    UnknownHelperAction,
    UnknownPruneCategory,
    UnsupportedAuthMethod,
    ValidationError,
)
from dockmanager.services import docker_engine
from dockmanager.services.docker_engine import (
    HELPER_ACTIONS,
    ConnectionProfile,
    EngineConnector,
    RestartContainerByName,
    container_has_name,
    get_helper_action,
    prune_steps,
    read_engine_info,
    run_prune,
)
from tests.factories.containers import fake_container
from tests.factories.node import TEST_CERT, TEST_KEY


def make_profile(auth_method="plain", host="tcp://10.0.0.5:2375", **kwargs) -> ConnectionProfile:
    return ConnectionProfile(node_id=uuid.uuid4(), host=host, auth_method=auth_method, **kwargs)


class RecordingDockerClient:
    """Stands in for docker.DockerClient; records how it was built."""
    instances = []

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.closed = False
        tls = kwargs.get("tls")
        self.cert_files = list(tls.cert) if tls is not None else []
        RecordingDockerClient.instances.append(self)

    def close(self):
        self.closed = True


@pytest.fixture
def recording_client(monkeypatch):
    RecordingDockerClient.instances = []
    monkeypatch.setattr(docker_engine.docker, "DockerClient", RecordingDockerClient)
    return RecordingDockerClient


class TestConnectionProfile:
    def test_empty_host_uses_configured_engine(self):
        assert make_profile(host="").base_url == settings.DOCKER_HOST

    def test_explicit_host(self):
        assert make_profile(host="unix:///tmp/docker.sock").base_url == "unix:///tmp/docker.sock"


class TestStrategySelection:
    @pytest.mark.parametrize("auth_method", ["ssh", "ssh+tls"])
    def test_ssh_is_unsupported(self, auth_method, recording_client):
        connector = EngineConnector()
        with pytest.raises(UnsupportedAuthMethod):
            with connector.connect(make_profile(auth_method)):
                pass
        assert recording_client.instances == []

    def test_plain_client(self, recording_client):
        connector = EngineConnector()
        with connector.connect(make_profile(), timeout=7) as client:
            assert client.kwargs["base_url"] == "tcp://10.0.0.5:2375"
            assert client.kwargs["timeout"] == 7
            assert client.kwargs["version"] == settings.DOCKER_API_VERSION
            assert "tls" not in client.kwargs
        assert client.closed is True

    def test_default_timeout(self, recording_client):
        with EngineConnector().connect(make_profile()) as client:
            assert client.kwargs["timeout"] == settings.DOCKER_TIMEOUT


class TestTLSConnection:
    def test_certificates_written_privately_and_removed(self, recording_client):
        profile = make_profile("tls", tls_cert=TEST_CERT, tls_key=TEST_KEY, tls_ca=TEST_CERT)

        with EngineConnector().connect(profile) as client:
            assert isinstance(client.kwargs["tls"], TLSConfig)
            cert_path, key_path = client.cert_files
            assert open(cert_path).read() == TEST_CERT
            assert open(key_path).read() == TEST_KEY
            assert stat.S_IMODE(os.stat(key_path).st_mode) == 0o600
            workdir = os.path.dirname(cert_path)

        assert client.closed is True
        assert not os.path.exists(workdir)

    def test_workdir_removed_on_failure(self, recording_client):
        profile = make_profile("tls", tls_cert=TEST_CERT, tls_key=TEST_KEY)

        with pytest.raises(EngineConnectionError):
            with EngineConnector().connect(profile) as client:
                workdir = os.path.dirname(client.cert_files[0])
                raise requests.exceptions.ConnectionError("connection reset")

        assert not os.path.exists(workdir)

    def test_missing_key_rejected(self, recording_client):
        profile = make_profile("tls", tls_cert=TEST_CERT)
        with pytest.raises(ValidationError):
            with EngineConnector().connect(profile):
                pass
        assert recording_client.instances == []


class TestErrorWrapping:
    def test_connect_failure(self, monkeypatch):
        def refuse(**kwargs):
            raise DockerException("Error while fetching server API version")

        monkeypatch.setattr(docker_engine.docker, "DockerClient", refuse)
        profile = make_profile()

        with pytest.raises(EngineConnectionError) as exc:
            with EngineConnector().connect(profile):
                pass
        assert "Error while fetching server API version" in exc.value.message
        assert exc.value.node_id == profile.node_id

    def test_failure_inside_block_closes_client(self, recording_client):
        with pytest.raises(EngineConnectionError) as exc:
            with EngineConnector().connect(make_profile()) as client:
                raise requests.exceptions.ReadTimeout("read timed out")
        assert "read timed out" in exc.value.message
        assert client.closed is True

    def test_domain_errors_pass_through(self, recording_client):
        with pytest.raises(NotFoundError):
            with EngineConnector().connect(make_profile()):
                raise NotFoundError("redis container not found")


class TestPrune:
    def test_system_plan(self):
        assert prune_steps("system") == ("containers", "networks", "images")

    def test_system_never_prunes_volumes(self):
        assert "volumes" not in prune_steps("system")

    @pytest.mark.parametrize("category", ["images", "containers", "volumes", "networks", "builder"])
    def test_single_categories(self, category):
        assert prune_steps(category) == (category,)

    def test_unknown_category(self):
        with pytest.raises(UnknownPruneCategory) as exc:
            prune_steps("everything")
        assert exc.value.message == "unknown prune type: everything"

    def test_reports_space_per_step(self):
        client = MagicMock()
        client.containers.prune.return_value = {"SpaceReclaimed": 100}
        client.networks.prune.return_value = {"NetworksDeleted": ["n1"]}
        client.images.prune.return_value = {"SpaceReclaimed": 2048}

        assert run_prune(client, prune_steps("system")) == {"containers": 100, "networks": 0, "images": 2048}

    def test_builder_uses_low_level_api(self):
        client = MagicMock()
        client.api.prune_builds.return_value = {"SpaceReclaimed": 5}
        assert run_prune(client, ("builder",)) == {"builder": 5}

    def test_stops_at_first_failure(self):
        client = MagicMock()
        client.containers.prune.return_value = {"SpaceReclaimed": 0}
        client.networks.prune.side_effect = APIError("a prune operation is already running")

        with pytest.raises(APIError):
            run_prune(client, prune_steps("system"))

        client.containers.prune.assert_called_once()
        client.images.prune.assert_not_called()


class TestHelperActions:
    @pytest.mark.parametrize("names,expected", [
        (["/redis"], True),
        (["redis"], True),
        (["/app", "/redis"], True),
        (["/redis-cache"], False),
        (["/my_redis"], False),
        ([], False),
    ])
    def test_exact_name_match(self, names, expected):
        assert container_has_name(fake_container(names), "redis") is expected

    def test_restarts_first_match(self):
        other = fake_container(["/redis-cache"], "c1")
        first = fake_container(["/redis"], "c2")
        second = fake_container(["/redis"], "c3")
        client = MagicMock()
        client.containers.list.return_value = [other, first, second]

        result = RestartContainerByName("redis").run(client)

        assert result == {"container_id": "c2", "name": "redis"}
        client.containers.list.assert_called_once_with(all=True, sparse=True)
        first.restart.assert_called_once()
        other.restart.assert_not_called()
        second.restart.assert_not_called()

    def test_missing_container(self):
        client = MagicMock()
        client.containers.list.return_value = [fake_container(["/web"])]

        with pytest.raises(NotFoundError) as exc:
            RestartContainerByName("redis").run(client)
        assert exc.value.message == "redis container not found"

    def test_registry(self):
        assert get_helper_action("redis-reload") is HELPER_ACTIONS["redis-reload"]
        with pytest.raises(UnknownHelperAction):
            get_helper_action("reboot")


class TestEngineInfo:
    def test_maps_info_fields(self):
        client = MagicMock()
        client.info.return_value = {
            "ServerVersion": "24.0.7",
            "OperatingSystem": "Ubuntu 22.04.3 LTS",
            "Architecture": "x86_64",
            "NCPU": 8,
            "MemTotal": 16777216000,
            "Containers": 12,
        }

        assert read_engine_info(client) == {
            "docker_version": "24.0.7",
            "os": "Ubuntu 22.04.3 LTS",
            "architecture": "x86_64",
            "cpus": 8,
            "memory": 16777216000,
        }
