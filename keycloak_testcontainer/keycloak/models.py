from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Token(BaseModel):
    """ Token endpoint response. """
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    access_token: str
    id_token: str | None = None
    expires_in: int | None = None
    refresh_expires_in: int | None = None
    refresh_token: str | None = None
    token_type: str | None = None
    not_before_policy: int | None = Field(default=None, alias="not-before-policy")
    session_state: str | None = None
    scope: str | None = None


class Client(BaseModel):
    """
    Keycloak client representation
    (https://www.keycloak.org/docs-api/latest/rest-api/index.html#ClientRepresentation).
    """
    model_config = ConfigDict(extra="ignore", populate_by_name=True, alias_generator=to_camel)

    access: dict[str, Any] | None = None
    admin_url: str | None = None
    attributes: dict[str, str] | None = None
    authentication_flow_binding_overrides: dict[str, str] | None = None
    authorization_services_enabled: bool | None = None
    base_url: str | None = None
    bearer_only: bool | None = None
    client_authenticator_type: str | None = None
    client_id: str | None = None
    consent_required: bool | None = None
    default_client_scopes: list[str] | None = None
    default_roles: list[str] | None = None
    description: str | None = None
    direct_access_grants_enabled: bool | None = None
    enabled: bool | None = None
    frontchannel_logout: bool | None = None
    full_scope_allowed: bool | None = None
    id: str | None = None
    implicit_flow_enabled: bool | None = None
    name: str | None = None
    node_re_registration_timeout: int | None = None
    not_before: int | None = None
    optional_client_scopes: list[str] | None = None
    origin: str | None = None
    protocol: str | None = None
    public_client: bool | None = None
    redirect_uris: list[str] | None = None
    registered_nodes: dict[str, int] | None = None
    registration_access_token: str | None = None
    root_url: str | None = None
    secret: str | None = None
    service_accounts_enabled: bool | None = None
    standard_flow_enabled: bool | None = None
    surrogate_auth_required: bool | None = None
    web_origins: list[str] | None = None
