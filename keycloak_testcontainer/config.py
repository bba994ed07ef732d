import os
from pathlib import Path
from pydantic import BaseModel, Field
import yaml


HUB_IMAGE_NAME_PREFIX_ENV = "TESTCONTAINERS_HUB_IMAGE_NAME_PREFIX"


class KeycloakConfig(BaseModel):
    image: str = Field(default="quay.io/keycloak/keycloak:24.0", min_length=1)
    hub_image_name_prefix: str = Field(
        default_factory=lambda: os.environ.get(HUB_IMAGE_NAME_PREFIX_ENV, "")
    )
    """ Registry prefix for images without an explicit registry. """

    admin_username: str = Field(default="admin", min_length=1)
    admin_password: str = Field(default="admin", min_length=1)
    context_path: str = Field(default="/", min_length=1)

    startup_command: str = Field(default="start-dev", min_length=1)
    realm_import_dir: str = "/opt/keycloak/data/import/"
    providers_dir: str = "/opt/keycloak/providers/"
    tls_dir: str = "/opt/keycloak/conf"
    file_mode: int = Field(default=0o755, ge=0, le=0o7777)

    http_port: int = Field(default=8080, ge=1, le=65535)
    https_port: int = Field(default=8443, ge=1, le=65535)

    startup_log_line: str = "Running the server"
    startup_timeout: float = Field(default=120.0, ge=0)
    poll_interval: float = Field(default=0.5, ge=0)
    http_timeout: float | None = Field(default=None, ge=0)
    """ Timeout for HTTP calls; `None` keeps the httpx default. """

    debug: bool = False

    @property
    def resolved_image(self) -> str:
        return resolve_image(self.image, self.hub_image_name_prefix)


class Config(BaseModel):
    keycloak: KeycloakConfig = Field(default_factory=KeycloakConfig)


def resolve_image(image: str, prefix: str) -> str:
    """
    Prepends `prefix` to `image`, unless the prefix is empty
    or the image already references a registry.
    """
    if not prefix:
        return image
    
    first_segment = image.split("/")[0]
    has_registry = "/" in image and (
        "." in first_segment or ":" in first_segment or first_segment == "localhost"
    )
    if has_registry:
        return image
    return f"{prefix.rstrip('/')}/{image}"


def load_config(path: str | os.PathLike) -> Config:
    with open(Path(path)) as f:
        data = yaml.safe_load(f) or {}
    return Config(**data)
