import os
import sys
import subprocess
from pathlib import Path
from uuid import uuid4

import filelock
import pytest

project_root_dir = os.path.abspath(os.path.join(__file__, "../" * 3))
sys.path.insert(0, project_root_dir)

from keycloak_testcontainer.config import KeycloakConfig
from keycloak_testcontainer.keycloak.container import KeycloakContainerBuilder
from keycloak_testcontainer.keycloak.request import LaunchRequest
from keycloak_testcontainer.util.container_manager import ContainerManager

from tests.data_generators import DataGenerator, ADMIN_USERNAME, ADMIN_PASSWORD, REALM, CLIENT_ID
from tests.fake_keycloak import FakeKeycloakServer
from tests.util import docker_available


TESTDATA_DIR = Path(__file__).parent.parent / "testdata"
REALM_EXPORT_FILE = TESTDATA_DIR / "realm-export.json"
TLS_CERT_FILE = TESTDATA_DIR / "tls.crt"
TLS_KEY_FILE = TESTDATA_DIR / "tls.key"

# File lock for pulling the image once across xdist workers
_lock_dir = Path(__file__).parent
_keycloak_image_lock_path = _lock_dir / "keycloak_image.lock"
keycloak_image_lock = filelock.FileLock(_keycloak_image_lock_path, timeout=600)


def pytest_collection_modifyitems(config, items):
    """ Skips integration tests, if Docker is unavailable. """
    integration_items = [item for item in items if "integration" in item.keywords]
    if integration_items and not docker_available():
        skip = pytest.mark.skip(reason="Docker is not available.")
        for item in integration_items:
            item.add_marker(skip)


class FakeDocker:
    """
    Replacement of `docker` CLI calls made by `ContainerManager`.
    Records issued commands and returns canned outputs.
    """
    def __init__(self):
        self.calls: list[list[str]] = []
        self.inputs: list[bytes | None] = []
        self.ports: dict[str, str] = {"8080/tcp": "0.0.0.0:32768\n[::]:32768\n", "8443/tcp": "0.0.0.0:32769\n"}
        self.logs = ""
        self.running = True
        self.failing_commands: set[str] = set()
        """ `docker` subcommands, which exit with an error. """
    
    def __call__(self, args: list[str], input: bytes | None = None) -> subprocess.CompletedProcess:
        self.calls.append(args)
        self.inputs.append(input)
        subcommand = args[1]

        if subcommand in self.failing_commands:
            raise subprocess.CalledProcessError(1, args, output="", stderr=f"{subcommand} failed")
        
        stdout = ""
        if subcommand == "port":
            if args[3] not in self.ports:
                raise subprocess.CalledProcessError(1, args, output="", stderr="no public port")
            stdout = self.ports[args[3]]
        elif subcommand == "logs":
            stdout = self.logs
        elif subcommand == "ps" and "{{.Names}}" in args:
            name = args[args.index("--filter") + 1].removeprefix("name=^").removesuffix("$")
            stdout = f"{name}\n"
        elif subcommand == "ps":
            stdout = "Up 5 seconds\n" if self.running else ""
        return subprocess.CompletedProcess(args, 0, stdout=stdout, stderr="")
    
    def subcommands(self) -> list[str]:
        return [args[1] for args in self.calls]


############ Test-scoped fixtures (unit tests) ############
@pytest.fixture
def data_generator():
    return DataGenerator()


@pytest.fixture
def kc_config() -> KeycloakConfig:
    return KeycloakConfig(hub_image_name_prefix="", startup_timeout=1, poll_interval=0)


@pytest.fixture
def builder(kc_config: KeycloakConfig) -> KeycloakContainerBuilder:
    return KeycloakContainerBuilder(kc_config)


@pytest.fixture
def fake_docker(monkeypatch) -> FakeDocker:
    fake = FakeDocker()
    monkeypatch.setattr("keycloak_testcontainer.util.container_manager.run_subprocess", fake)
    monkeypatch.delenv("DOCKER_HOST", raising=False)
    return fake


@pytest.fixture
def container_manager(fake_docker: FakeDocker) -> ContainerManager:
    """ Manager of a container, which is "running" in `fake_docker`. """
    return ContainerManager(LaunchRequest(image="keycloak", name="kc-test"))


@pytest.fixture
def fake_keycloak() -> FakeKeycloakServer:
    return FakeKeycloakServer(
        username=ADMIN_USERNAME,
        password=ADMIN_PASSWORD,
        clients={REALM: DataGenerator().clients.realm_clients(CLIENT_ID)}
    )


############ Module-scoped fixtures (integration tests) ############
@pytest.fixture(scope="module")
def integration_config() -> KeycloakConfig:
    config = KeycloakConfig(startup_timeout=300)

    # Pull the image once, instead of racing pulls on first container start
    with keycloak_image_lock:
        subprocess.run(["docker", "pull", config.resolved_image], check=True, capture_output=True)
    
    return config


@pytest.fixture(scope="module")
def keycloak_container(integration_config: KeycloakConfig):
    """ Keycloak with a context path, imported test realm and custom admin credentials. """
    container = (
        KeycloakContainerBuilder(integration_config)
        .with_name(f"kc-test-{uuid4().hex[:8]}")
        .with_args("--health-enabled=false")
        .with_context_path("/auth")
        .with_realm_import_file(REALM_EXPORT_FILE)
        .with_admin_username(ADMIN_USERNAME)
        .with_admin_password(ADMIN_PASSWORD)
        .run()
    )
    with container:
        yield container


@pytest.fixture(scope="module")
def keycloak_tls_container(integration_config: KeycloakConfig):
    """ Keycloak serving HTTPS only, with the imported test realm. """
    container = (
        KeycloakContainerBuilder(integration_config)
        .with_tls(TLS_CERT_FILE, TLS_KEY_FILE)
        .with_context_path("/auth")
        .with_realm_import_file(REALM_EXPORT_FILE)
        .with_admin_username(ADMIN_USERNAME)
        .with_admin_password(ADMIN_PASSWORD)
        .run()
    )
    with container:
        yield container
