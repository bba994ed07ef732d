class KeycloakContainerException(Exception):
    pass


class ConfigurationException(KeycloakContainerException):
    """ A container option received an unusable value (e.g. a missing host file). """
    pass


class ContainerLaunchException(KeycloakContainerException):
    pass


class ContainerResolutionException(KeycloakContainerException):
    """ Host or mapped port of a container could not be resolved. """
    pass


class AdminClientException(KeycloakContainerException):
    pass


class NetworkException(AdminClientException):
    def __init__(self, url: str, message: str = ""):
        self.url = url
        super().__init__(f"Request to {url} failed" + (f": {message}" if message else "."))


class DecodeException(AdminClientException):
    def __init__(self, url: str, status_code: int, message: str = ""):
        self.url = url
        self.status_code = status_code
        super().__init__(
            f"Failed to decode response from {url} (status {status_code})"
            + (f": {message}" if message else ".")
        )


class ClientNotFoundException(AdminClientException):
    def __init__(self, realm: str, client_id: str):
        self.realm = realm
        self.client_id = client_id
        super().__init__(f"Client '{client_id}' not found in realm '{realm}'.")
