from pathlib import Path
from pydantic import BaseModel, ConfigDict, Field

from keycloak_testcontainer.exceptions import ConfigurationException
from keycloak_testcontainer.util.wait import WaitStrategy


ADMIN_USERNAME_ENV = "KEYCLOAK_ADMIN"
ADMIN_PASSWORD_ENV = "KEYCLOAK_ADMIN_PASSWORD"
CONTEXT_PATH_ENV = "KEYCLOAK_CONTEXT_PATH"
TLS_ENV = "KEYCLOAK_TLS"


class ContainerFile(BaseModel):
    """ A host file, which is copied into the container before it is started. """
    host_path: Path
    container_path: str
    mode: int = Field(default=0o755, ge=0, le=0o7777)


class LaunchRequest(BaseModel):
    """ Parameters of a container, which is about to be launched. """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    image: str = Field(min_length=1)
    name: str | None = None
    env: dict[str, str] = Field(default_factory=dict)
    exposed_ports: list[int] = Field(default_factory=list)
    command: list[str] = Field(default_factory=list)
    files: list[ContainerFile] = Field(default_factory=list)
    waiting_for: WaitStrategy | None = None


def resolve_host_file(path: str | Path) -> Path:
    """ Returns an absolute path of an existing host file or throws. """
    try:
        resolved = Path(path).expanduser().resolve(strict=True)
    except (OSError, RuntimeError) as e:
        raise ConfigurationException(f"Failed to resolve host file path '{path}'.") from e
    
    if not resolved.is_file():
        raise ConfigurationException(f"Host path '{path}' is not a file.")
    return resolved


def process_keycloak_args(request: LaunchRequest, args: list[str], startup_command: str) -> None:
    """
    Appends `args` to the request command, ensuring it starts with `startup_command` exactly once.
    A command without the startup verb is kept after it.
    """
    if not request.command:
        request.command = [startup_command, *args]
    elif request.command[0] == startup_command:
        request.command.extend(args)
    else:
        request.command = [startup_command, *request.command, *args]
