from pathlib import Path
from typing import Self

import httpx
from pydantic import BaseModel, ConfigDict, Field

from keycloak_testcontainer.config import KeycloakConfig
from keycloak_testcontainer.keycloak.admin import AdminClient
from keycloak_testcontainer.keycloak.request import LaunchRequest, ContainerFile, \
    process_keycloak_args, resolve_host_file, \
    ADMIN_USERNAME_ENV, ADMIN_PASSWORD_ENV, CONTEXT_PATH_ENV, TLS_ENV
from keycloak_testcontainer.util.container_manager import ContainerManager
from keycloak_testcontainer.util.wait import WaitStrategy, AllWaitStrategy, HttpWaitStrategy, \
    LogWaitStrategy


class KeycloakContainer(BaseModel):
    """ A started Keycloak container and the settings it was launched with. """
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    container: ContainerManager
    username: str
    password: str
    context_path: str = ""
    tls_enabled: bool = False
    config: KeycloakConfig = Field(default_factory=KeycloakConfig)

    def __enter__(self) -> Self:
        return self
    
    def __exit__(self, exc_type, exc_value, exc_tb) -> None:
        self.terminate()

    def get_auth_server_url(self) -> str:
        """
        Returns the base URL of the server, reachable from the host.
        Throws `ContainerResolutionException`, if the published port can't be resolved.
        """
        host = self.container.host()
        if self.tls_enabled:
            port = self.container.mapped_port(self.config.https_port)
            return f"https://{host}:{port}{self.context_path}"
        port = self.container.mapped_port(self.config.http_port)
        return f"http://{host}:{port}{self.context_path}"
    
    def get_admin_client(
        self,
        transport: httpx.BaseTransport | None = None,
        verify: bool | None = None
    ) -> AdminClient:
        """
        Returns an admin client, authenticated with the container's admin credentials.
        Certificate verification is disabled by default, if TLS is enabled.
        """
        return AdminClient(
            self.get_auth_server_url(),
            self.username,
            self.password,
            transport=transport,
            timeout=self.config.http_timeout,
            verify=verify if verify is not None else not self.tls_enabled
        )

    def terminate(self) -> None:
        self.container.terminate()


class KeycloakContainerBuilder:
    """
    Accumulates Keycloak container options into a launch request.
    Each `with_*` method returns the builder.
    """
    def __init__(self, config: KeycloakConfig | None = None, image: str | None = None):
        self.config = config if config is not None else KeycloakConfig()
        image = image if image is not None else self.config.image
        self.request = LaunchRequest(
            image=self.config.model_copy(update={"image": image}).resolved_image,
            env={
                ADMIN_USERNAME_ENV: self.config.admin_username,
                ADMIN_PASSWORD_ENV: self.config.admin_password
            },
            exposed_ports=[self.config.http_port]
        )
    
    def _add_args(self, *args: str) -> None:
        process_keycloak_args(self.request, list(args), self.config.startup_command)
    
    def _container_file(self, host_path: str | Path, container_path: str) -> ContainerFile:
        return ContainerFile(
            host_path=resolve_host_file(host_path),
            container_path=container_path,
            mode=self.config.file_mode
        )

    def with_admin_username(self, username: str) -> Self:
        self.request.env[ADMIN_USERNAME_ENV] = username or self.config.admin_username
        return self
    
    def with_admin_password(self, password: str) -> Self:
        self.request.env[ADMIN_PASSWORD_ENV] = password or self.config.admin_password
        return self
    
    def with_context_path(self, context_path: str) -> Self:
        context_path = context_path or self.config.context_path
        self.request.env[CONTEXT_PATH_ENV] = context_path
        self._add_args(f"--http-relative-path={context_path}")
        return self
    
    def with_realm_import_file(self, realm_import_file: str | Path) -> Self:
        """ Imports the realm file on startup. """
        container_path = self.config.realm_import_dir.rstrip("/") + "/" + Path(realm_import_file).name
        self.request.files.append(self._container_file(realm_import_file, container_path))
        self._add_args("--import-realm")
        return self
    
    def with_providers(self, *provider_files: str | Path) -> Self:
        """
        Adds provider JAR files to the server
        (https://www.keycloak.org/server/configuration-provider).
        """
        providers_dir = self.config.providers_dir.rstrip("/")
        files = [self._container_file(p, f"{providers_dir}/{Path(p).name}") for p in provider_files]
        self.request.files.extend(files)
        return self
    
    def with_tls(self, cert_file: str | Path, key_file: str | Path) -> Self:
        """ Serves HTTPS only, using the provided certificate & key files. """
        tls_dir = self.config.tls_dir.rstrip("/")
        cert_path, key_path = f"{tls_dir}/tls.crt", f"{tls_dir}/tls.key"
        files = [self._container_file(cert_file, cert_path), self._container_file(key_file, key_path)]

        self.request.exposed_ports = [self.config.https_port]
        self.request.files.extend(files)
        self.request.env[TLS_ENV] = "true"
        self._add_args(
            f"--https-certificate-file={cert_path}",
            f"--https-certificate-key-file={key_path}"
        )
        return self
    
    def with_args(self, *args: str) -> Self:
        """ Appends arbitrary arguments to the startup command. """
        self._add_args(*args)
        return self
    
    def with_command(self, *command: str) -> Self:
        """ Replaces the container command as is. """
        self.request.command = list(command)
        return self
    
    def with_env(self, key: str, value: str) -> Self:
        self.request.env[key] = value
        return self
    
    def with_name(self, name: str) -> Self:
        self.request.name = name
        return self
    
    def waiting_for(self, strategy: WaitStrategy) -> Self:
        self.request.waiting_for = strategy
        return self
    
    @property
    def tls_enabled(self) -> bool:
        return bool(self.request.env.get(TLS_ENV))
    
    def default_wait_strategy(self) -> WaitStrategy:
        """
        HTTP check of the context path on the active port
        combined with the startup log line.
        """
        context_path = self.request.env.get(CONTEXT_PATH_ENV) or self.config.context_path
        timing = {"startup_timeout": self.config.startup_timeout, "poll_interval": self.config.poll_interval}
        tls = self.tls_enabled
        return AllWaitStrategy(
            HttpWaitStrategy(
                context_path,
                port=self.config.https_port if tls else self.config.http_port,
                tls=tls,
                allow_insecure=tls,
                request_timeout=self.config.http_timeout,
                **timing
            ),
            LogWaitStrategy(self.config.startup_log_line, **timing),
            **timing
        )
    
    def build(self) -> LaunchRequest:
        """ Returns the launch request with a readiness condition set. """
        if self.request.waiting_for is None:
            self.request.waiting_for = self.default_wait_strategy()
        return self.request
    
    def run(self) -> KeycloakContainer:
        """ Launches the container and waits for it to be ready. """
        manager = ContainerManager(self.build(), debug=self.config.debug)
        manager.run()
        return self.container_for(manager)
    
    def container_for(self, manager: ContainerManager) -> KeycloakContainer:
        env = self.request.env
        return KeycloakContainer(
            container=manager,
            username=env[ADMIN_USERNAME_ENV],
            password=env[ADMIN_PASSWORD_ENV],
            context_path=env.get(CONTEXT_PATH_ENV, ""),
            tls_enabled=self.tls_enabled,
            config=self.config
        )


def run_keycloak_container(
    config: KeycloakConfig | None = None,
    image: str | None = None,
    **options
) -> KeycloakContainer:
    """
    Builds and launches a Keycloak container.
    Keyword `options` map to builder methods without the `with_` prefix
    (e.g. `context_path="/auth"`, `providers=["a.jar"]`, `tls=("tls.crt", "tls.key")`)
    and are applied in the given order.
    """
    builder = KeycloakContainerBuilder(config, image)
    for name, value in options.items():
        method = getattr(builder, f"with_{name}", None)
        if method is None:
            raise TypeError(f"Unknown Keycloak container option '{name}'.")
        if isinstance(value, (list, tuple)):
            method(*value)
        else:
            method(value)
    return builder.run()
