from typing import Self

import httpx
from pydantic import TypeAdapter, ValidationError

from keycloak_testcontainer.exceptions import NetworkException, DecodeException, \
    ClientNotFoundException
from keycloak_testcontainer.keycloak.models import Token, Client


ADMIN_CLIENT_ID = "admin-cli"
MASTER_REALM = "master"

_clients_adapter = TypeAdapter(list[Client])


class AdminClient:
    """
    Minimal Keycloak admin API client.

    Authenticates as `username` in the master realm on construction
    and again before each admin API call; tokens are not reused.
    """
    def __init__(
        self,
        server_url: str,
        username: str,
        password: str,
        transport: httpx.BaseTransport | None = None,
        timeout: float | None = None,
        verify: bool = True
    ):
        self.server_url = server_url
        self.realm = MASTER_REALM
        self.username = username
        self.password = password
        self.client_id = ADMIN_CLIENT_ID

        kwargs = {} if timeout is None else {"timeout": timeout}
        self.http = httpx.Client(transport=transport, verify=verify, **kwargs)

        # Test connection & credentials
        try:
            self.get_token()
        except Exception:
            self.http.close()
            raise
    
    def __enter__(self) -> Self:
        return self
    
    def __exit__(self, exc_type, exc_value, exc_tb) -> None:
        self.close()
    
    def close(self) -> None:
        self.http.close()
    
    def url(self, path: str) -> str:
        return self.server_url.rstrip("/") + path
    
    def get_token(self) -> Token:
        """ Fetches a new token with the password grant of the admin CLI client. """
        url = self.url(f"/realms/{self.realm}/protocol/openid-connect/token")
        try:
            response = self.http.post(url, data={
                "grant_type": "password",
                "client_id": self.client_id,
                "username": self.username,
                "password": self.password
            })
        except httpx.TransportError as e:
            raise NetworkException(url, str(e)) from e
        
        try:
            return Token.model_validate_json(response.content)
        except ValidationError as e:
            raise DecodeException(url, response.status_code, str(e)) from e
    
    def get_clients(self, realm: str) -> list[Client]:
        """ Returns all clients of the `realm` in server order. """
        token = self.get_token()
        url = self.url(f"/admin/realms/{realm}/clients")
        try:
            response = self.http.get(url, headers={"Authorization": f"Bearer {token.access_token}"})
        except httpx.TransportError as e:
            raise NetworkException(url, str(e)) from e
        
        try:
            return _clients_adapter.validate_json(response.content)
        except ValidationError as e:
            raise DecodeException(url, response.status_code, str(e)) from e
    
    def get_client(self, realm: str, client_id: str) -> Client:
        """
        Returns the first client of the `realm` with the matching `client_id`.
        Throws `ClientNotFoundException`, if there is none.
        """
        for client in self.get_clients(realm):
            if client.client_id == client_id:
                return client
        raise ClientNotFoundException(realm, client_id)
