"""Container runtime capability interface and its Docker API implementation.

The orchestrator only depends on ``ContainerRuntime``. ``DockerRuntime``
implements it with the docker SDK, which also speaks to Podman's
docker-compatible API socket.
"""

from __future__ import annotations

import logging
import os
import selectors
import sys
import termios
import time
import tty
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

import docker
from docker.errors import APIError, DockerException, NotFound

from localstack_build.errors import ContainerRuntimeError

logger = logging.getLogger(__name__)

# Seconds between container state polls
POLL_INTERVAL = 0.5


@dataclass(frozen=True)
class ContainerEnvironment:
    """Everything needed to create the build container.

    Attributes:
        name: Well-known container name.
        image: Image tag.
        volumes: Named volume -> mount path inside the container.
        binds: Host directory -> mount path inside the container.
        command: Long-running command keeping the container alive.
        environment: Container environment variables.
    """

    name: str
    image: str
    volumes: Mapping[str, str] = field(default_factory=dict)
    binds: Mapping[str, str] = field(default_factory=dict)
    command: Sequence[str] = ("sleep", "infinity")
    environment: Mapping[str, str] = field(default_factory=dict)


class ContainerRuntime(Protocol):
    """Narrow set of runtime capabilities used by the orchestrator."""

    def ensure_volume(self, name: str) -> bool: ...

    def container_exists(self, name: str) -> bool: ...

    def create_container(self, env: ContainerEnvironment) -> str: ...

    def start(self, name: str) -> None: ...

    def wait_for_state(self, name: str, state: str, timeout: float) -> None: ...

    def exec_attached(
        self,
        name: str,
        command: Sequence[str],
        environment: Mapping[str, str] | None = None,
    ) -> int: ...

    def stop(self, name: str, timeout: int = 10) -> None: ...

    def wait(self, name: str) -> int: ...

    def remove(self, name: str) -> None: ...

    def build_image(self, context_dir: Path, tag: str) -> None: ...


@contextmanager
def _translate(action: str) -> Iterator[None]:
    try:
        yield
    except APIError as e:
        raise ContainerRuntimeError(
            f"Failed to {action}: {e.explanation or e}", code="api_error"
        ) from e
    except DockerException as e:
        raise ContainerRuntimeError(f"Failed to {action}: {e}") from e


def _pump_terminal(sock: Any) -> None:
    """Proxy the local terminal to an exec socket until the remote side closes."""
    raw = getattr(sock, "_sock", sock)
    stdin_fd = sys.stdin.fileno()
    stdout = sys.stdout.buffer
    saved = termios.tcgetattr(stdin_fd)
    selector = selectors.DefaultSelector()
    try:
        tty.setraw(stdin_fd)
        selector.register(raw, selectors.EVENT_READ)
        selector.register(stdin_fd, selectors.EVENT_READ)
        while True:
            for key, _ in selector.select():
                if key.fileobj is raw:
                    data = raw.recv(4096)
                    if not data:
                        return
                    stdout.write(data)
                    stdout.flush()
                else:
                    data = os.read(stdin_fd, 1024)
                    if data:
                        raw.sendall(data)
                    else:
                        selector.unregister(stdin_fd)
    finally:
        selector.close()
        termios.tcsetattr(stdin_fd, termios.TCSADRAIN, saved)
        sock.close()


class DockerRuntime:
    """ContainerRuntime backed by the docker SDK.

    Args:
        client: Docker client connected to the runtime socket.
    """

    def __init__(self, client: docker.DockerClient) -> None:
        self.client = client

    @classmethod
    def from_socket(cls, socket_path: Path, timeout: int = 60) -> DockerRuntime:
        """Connect to a docker-compatible API on a unix socket."""
        with _translate(f"connect to {socket_path}"):
            client = docker.DockerClient(
                base_url=f"unix://{socket_path}", timeout=timeout
            )
        return cls(client)

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except DockerException:
            return False

    def ensure_volume(self, name: str) -> bool:
        """Create a named volume if absent.

        Returns:
            True if the volume was created, False if it already existed.
        """
        with _translate(f"set up volume {name}"):
            try:
                self.client.volumes.get(name)
                logger.debug("Volume %s already exists", name)
                return False
            except NotFound:
                self.client.volumes.create(name=name)
                logger.info("Created volume %s", name)
                return True

    def container_exists(self, name: str) -> bool:
        with _translate(f"look up container {name}"):
            try:
                self.client.containers.get(name)
                return True
            except NotFound:
                return False

    def create_container(self, env: ContainerEnvironment) -> str:
        volumes: dict[str, dict[str, str]] = {
            volume: {"bind": path, "mode": "rw"} for volume, path in env.volumes.items()
        }
        volumes.update(
            {host: {"bind": path, "mode": "rw"} for host, path in env.binds.items()}
        )
        with _translate(f"create container {env.name}"):
            container = self.client.containers.create(
                env.image,
                command=list(env.command),
                name=env.name,
                volumes=volumes,
                environment=dict(env.environment),
                tty=True,
                stdin_open=True,
                detach=True,
            )
        logger.info("Created container %s (%s)", env.name, container.short_id)
        return container.id

    def start(self, name: str) -> None:
        with _translate(f"start container {name}"):
            self.client.containers.get(name).start()

    def wait_for_state(self, name: str, state: str, timeout: float = 60) -> None:
        """Poll until the container reports ``state``.

        Raises:
            ContainerRuntimeError: If the state is not reached within timeout.
        """
        deadline = time.monotonic() + timeout
        with _translate(f"inspect container {name}"):
            container = self.client.containers.get(name)
            while True:
                container.reload()
                if container.status == state:
                    return
                if time.monotonic() >= deadline:
                    raise ContainerRuntimeError(
                        f"Container {name} is {container.status}, not {state}, "
                        f"after {timeout} seconds",
                        code="state_timeout",
                    )
                time.sleep(POLL_INTERVAL)

    def exec_attached(
        self,
        name: str,
        command: Sequence[str],
        environment: Mapping[str, str] | None = None,
    ) -> int:
        """Run a command in the container with the terminal attached.

        Returns:
            The command's exit code (always 0; non-zero raises).

        Raises:
            ContainerRuntimeError: If the exec fails or exits non-zero.
        """
        interactive = sys.stdin.isatty()
        with _translate(f"exec in container {name}"):
            container = self.client.containers.get(name)
            exec_id = self.client.api.exec_create(
                container.id,
                list(command),
                stdin=interactive,
                tty=interactive,
                environment=dict(environment or {}),
            )["Id"]
            if interactive:
                sock = self.client.api.exec_start(exec_id, tty=True, socket=True)
                _pump_terminal(sock)
            else:
                for chunk in self.client.api.exec_start(exec_id, stream=True):
                    sys.stdout.buffer.write(chunk)
                    sys.stdout.buffer.flush()
            exit_code = self.client.api.exec_inspect(exec_id).get("ExitCode")

        if exit_code != 0:
            raise ContainerRuntimeError(
                f"{' '.join(command)} exited with code {exit_code}",
                code="exec_failed",
            )
        return exit_code

    def stop(self, name: str, timeout: int = 10) -> None:
        with _translate(f"stop container {name}"):
            self.client.containers.get(name).stop(timeout=timeout)

    def wait(self, name: str) -> int:
        with _translate(f"wait for container {name}"):
            result = self.client.containers.get(name).wait()
        return int(result.get("StatusCode", 0))

    def remove(self, name: str) -> None:
        """Force-remove a container, keeping its volumes."""
        with _translate(f"remove container {name}"):
            self.client.containers.get(name).remove(force=True, v=False)
        logger.info("Removed container %s", name)

    def build_image(self, context_dir: Path, tag: str) -> None:
        """Build an image with layer caching, pulling a newer base if present."""
        with _translate(f"build image {tag}"):
            output = self.client.api.build(
                path=str(context_dir),
                tag=tag,
                decode=True,
                rm=True,
                pull=True,
                nocache=False,
            )
            for entry in output:
                if "stream" in entry:
                    text = entry["stream"].rstrip()
                    if text:
                        logger.info("%s", text)
                if "error" in entry:
                    raise ContainerRuntimeError(
                        f"Image build failed: {entry['error']}", code="build_failed"
                    )
        logger.info("Built image %s", tag)


__all__ = [
    "ContainerEnvironment",
    "ContainerRuntime",
    "DockerRuntime",
]
