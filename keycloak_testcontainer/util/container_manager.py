import io
import os
import subprocess
import tarfile
from urllib.parse import urlparse
from uuid import uuid4

from keycloak_testcontainer.exceptions import ContainerLaunchException, ContainerResolutionException
from keycloak_testcontainer.keycloak.request import LaunchRequest


def run_subprocess(args: list[str], input: bytes | None = None) -> subprocess.CompletedProcess:
    if input is None:
        return subprocess.run(args, check=True, capture_output=True, text=True)
    return subprocess.run(args, check=True, capture_output=True, input=input)


def format_process_error(e: subprocess.CalledProcessError) -> str:
    stderr = e.stderr.decode(errors="replace") if isinstance(e.stderr, bytes) else (e.stderr or "")
    return f"`{' '.join(e.cmd)}` exited with code {e.returncode}: {stderr.strip()}"


def docker_host() -> str:
    """ Returns the hostname, on which published container ports are reachable. """
    url = os.environ.get("DOCKER_HOST", "")
    if url.startswith("tcp://"):
        return urlparse(url).hostname or "localhost"
    return "localhost"


class ContainerManager:
    """ Manages a single container via `docker` CLI. """
    def __init__(
            self,
            request: LaunchRequest,
            debug: bool = False
        ):
        self.request = request
        """ Container launch parameters. """
        self.name = request.name or f"keycloak-{uuid4().hex[:12]}"
        """ Container name. """
        self._debug = debug
    
    def print_debug(self, msg: str):
        if self._debug:
            print(f"{self.name} > {msg}")
    
    @property
    def create_args(self) -> list[str]:
        """ `docker create` command for the launch request. """
        args = ["docker", "create", "--name", self.name]
        for key, value in self.request.env.items():
            args += ["-e", f"{key}={value}"]
        for port in self.request.exposed_ports:
            # Publish on an ephemeral host port
            args += ["-p", str(port)]
        return args + [self.request.image] + self.request.command

    def files_archive(self) -> bytes:
        """ Returns a tar archive with request files placed at their container paths. """
        buffer = io.BytesIO()
        with tarfile.open(fileobj=buffer, mode="w") as tar:
            for file in self.request.files:
                info = tar.gettarinfo(str(file.host_path), arcname=file.container_path.lstrip("/"))
                info.mode = file.mode
                info.uid = info.gid = 0
                info.uname = info.gname = "root"
                with open(file.host_path, "rb") as f:
                    tar.addfile(info, f)
        return buffer.getvalue()
    
    def exists(self) -> bool:
        """ Check if the container exists. """
        result = run_subprocess([
            "docker", "ps",
            "-a",   # show stopped containers as well
            "--filter", f"name=^{self.name}$",
            "--format", "{{.Names}}"
        ])
        exists = self.name in result.stdout.split()
        self.print_debug(f"Container exists: {exists}.")
        return exists

    def is_running(self) -> bool:
        """ Check if the container is running. """
        result = run_subprocess([
            "docker", "ps",
            "--filter", f"name=^{self.name}$",
            "--format", "{{.Status}}"
        ])
        is_running = "Up" in result.stdout
        self.print_debug(f"Container is running: {is_running}.")
        return is_running

    def create(self) -> None:
        try:
            run_subprocess(self.create_args)
        except subprocess.CalledProcessError as e:
            raise ContainerLaunchException(format_process_error(e)) from e
        self.print_debug(f"Created a new container from {self.request.image}.")
    
    def copy_files(self) -> None:
        """ Copies request files into the created container. """
        if not self.request.files:
            return
        try:
            run_subprocess(["docker", "cp", "-", f"{self.name}:/"], input=self.files_archive())
        except subprocess.CalledProcessError as e:
            raise ContainerLaunchException(format_process_error(e)) from e
        self.print_debug(f"Copied {len(self.request.files)} file(s) into the container.")

    def start(self) -> None:
        try:
            run_subprocess(["docker", "start", self.name])
        except subprocess.CalledProcessError as e:
            raise ContainerLaunchException(format_process_error(e)) from e
        self.print_debug("Started the container.")
    
    def run(self) -> None:
        """
        Creates the container, copies request files into it, starts it
        and waits for its readiness condition.
        Removes the container, if any of the steps fail.
        """
        self.create()
        try:
            self.copy_files()
            self.start()
            self.wait_until_ready()
        except Exception:
            self._remove_after_failure()
            raise

    def wait_until_ready(self) -> None:
        """
        Waits for the readiness condition of the request, if it's set.
        Port lookup and `docker` CLI failures during the wait are launch errors,
        since the container may have exited during startup.
        """
        if self.request.waiting_for is None:
            return
        try:
            self.request.waiting_for.wait_until_ready(self)
        except TimeoutError as e:
            raise ContainerLaunchException(str(e)) from e
        except ContainerResolutionException as e:
            raise ContainerLaunchException(f"Container '{self.name}' is not reachable during startup: {e}") from e
        except subprocess.CalledProcessError as e:
            raise ContainerLaunchException(format_process_error(e)) from e
        self.print_debug("Container is ready.")

    def _remove_after_failure(self) -> None:
        """ Removes a container, which failed to launch, keeping the launch error as the raised one. """
        try:
            self.remove()
        except subprocess.CalledProcessError as e:
            self.print_debug(f"Failed to remove the container: {format_process_error(e)}")

    def host(self) -> str:
        return docker_host()
    
    def mapped_port(self, port: int) -> int:
        """ Returns the host port published for container `port`. """
        try:
            result = run_subprocess(["docker", "port", self.name, f"{port}/tcp"])
        except subprocess.CalledProcessError as e:
            raise ContainerResolutionException(format_process_error(e)) from e
        
        # Output lines look like "0.0.0.0:32768" or "[::]:32768"
        for line in result.stdout.splitlines():
            _, _, host_port = line.strip().rpartition(":")
            if host_port.isdigit():
                return int(host_port)
        raise ContainerResolutionException(
            f"Port {port}/tcp of container '{self.name}' is not published."
        )

    def logs(self) -> str:
        result = run_subprocess(["docker", "logs", self.name])
        return result.stdout + result.stderr

    def stop(self) -> None:
        """ Stop the container if it's running. """
        run_subprocess(["docker", "stop", self.name])
        self.print_debug("Stopped the container.")
    
    def remove(self) -> None:
        """ Remove the container and its volumes. """
        run_subprocess([
            "docker", "rm",
            "--force", "--volumes",
            self.name
        ])
        self.print_debug("Removed the container.")
    
    def terminate(self) -> None:
        self.remove()
