from time import monotonic, sleep
from typing import Protocol

import httpx

from keycloak_testcontainer.exceptions import ContainerLaunchException


class WaitTarget(Protocol):
    """ Container interface required by wait strategies. """
    name: str

    def host(self) -> str: ...
    def mapped_port(self, port: int) -> int: ...
    def logs(self) -> str: ...
    def is_running(self) -> bool: ...


class WaitStrategy:
    """
    Base class for readiness conditions, which are checked
    after a container is started.
    """
    def __init__(self, startup_timeout: float = 120.0, poll_interval: float = 0.5):
        self.startup_timeout = startup_timeout
        self.poll_interval = poll_interval
    
    def with_startup_timeout(self, startup_timeout: float) -> "WaitStrategy":
        self.startup_timeout = startup_timeout
        return self
    
    def with_poll_interval(self, poll_interval: float) -> "WaitStrategy":
        self.poll_interval = poll_interval
        return self

    def wait_until_ready(self, target: WaitTarget, deadline: float | None = None) -> None:
        """
        Blocks until the condition is met.
        Throws `TimeoutError` if `deadline` (or startup timeout) is exceeded.
        """
        deadline = deadline if deadline is not None else monotonic() + self.startup_timeout

        while True:
            if self.is_ready(target):
                return
            if monotonic() >= deadline:
                raise TimeoutError(f"Failed to await for {self.describe()} in container '{target.name}'.")
            sleep(self.poll_interval)
    
    def is_ready(self, target: WaitTarget) -> bool:
        raise NotImplementedError
    
    def describe(self) -> str:
        return type(self).__name__


class HttpWaitStrategy(WaitStrategy):
    """ Waits for an HTTP 200 response on `path` of the container `port`. """
    def __init__(
        self,
        path: str = "/",
        port: int = 8080,
        tls: bool = False,
        allow_insecure: bool = False,
        request_timeout: float | None = None,
        **kwargs
    ):
        super().__init__(**kwargs)
        self.path = path
        self.port = port
        self.tls = tls
        self.allow_insecure = allow_insecure
        self.request_timeout = request_timeout
    
    def url(self, target: WaitTarget) -> str:
        scheme = "https" if self.tls else "http"
        path = self.path if self.path.startswith("/") else f"/{self.path}"
        return f"{scheme}://{target.host()}:{target.mapped_port(self.port)}{path}"
    
    def is_ready(self, target: WaitTarget) -> bool:
        url = self.url(target)
        kwargs = {} if self.request_timeout is None else {"timeout": self.request_timeout}
        try:
            result = httpx.get(
                url,
                verify=not self.allow_insecure,
                follow_redirects=True,
                **kwargs
            )
            return result.status_code == 200
        except httpx.TransportError:
            # Server socket is not accepting connections yet
            return False
    
    def describe(self) -> str:
        return f"HTTP 200 on port {self.port}, path '{self.path}'"


class LogWaitStrategy(WaitStrategy):
    """ Waits for `message` to appear in container logs `occurrences` times. """
    def __init__(self, message: str, occurrences: int = 1, **kwargs):
        super().__init__(**kwargs)
        self.message = message
        self.occurrences = occurrences
    
    def is_ready(self, target: WaitTarget) -> bool:
        if target.logs().count(self.message) >= self.occurrences:
            return True
        if not target.is_running():
            raise ContainerLaunchException(
                f"Container '{target.name}' exited before logging '{self.message}'."
            )
        return False
    
    def describe(self) -> str:
        return f"log line '{self.message}'"


class AllWaitStrategy(WaitStrategy):
    """ Waits for each of `strategies` in order under a single shared deadline. """
    def __init__(self, *strategies: WaitStrategy, **kwargs):
        super().__init__(**kwargs)
        self.strategies = list(strategies)
    
    def wait_until_ready(self, target: WaitTarget, deadline: float | None = None) -> None:
        deadline = deadline if deadline is not None else monotonic() + self.startup_timeout
        for strategy in self.strategies:
            strategy.wait_until_ready(target, deadline)
    
    def describe(self) -> str:
        return " and ".join(s.describe() for s in self.strategies)
