"""Container runtime daemon lifecycle.

The runtime API is served by ``podman system service`` on a unix socket.
If something is already listening on the socket it is reused and left
running on shutdown; otherwise the daemon is started here and terminated
when the orchestration run ends.
"""

from __future__ import annotations

import logging
import socket
import subprocess
import time
from pathlib import Path
from types import TracebackType

from localstack_build.errors import DaemonUnavailableError

logger = logging.getLogger(__name__)

PODMAN = "podman"
SHUTDOWN_TIMEOUT = 10
POLL_INTERVAL = 0.2


def socket_ready(path: Path) -> bool:
    """Return True if a server accepts connections on the unix socket."""
    if not path.exists():
        return False
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    try:
        sock.connect(str(path))
        return True
    except OSError:
        return False
    finally:
        sock.close()


class PodmanDaemon:
    """Starts and stops the podman API service.

    Args:
        socket_path: Unix socket the service listens on.
        timeout: Seconds to wait for the socket to accept connections.
    """

    def __init__(self, socket_path: Path, timeout: float = 10) -> None:
        self.socket_path = socket_path
        self.timeout = timeout
        self._process: subprocess.Popen[bytes] | None = None

    @property
    def owned(self) -> bool:
        """Whether this instance started the daemon process."""
        return self._process is not None

    def start(self) -> None:
        """Ensure the API socket is up, starting the service if needed.

        Raises:
            DaemonUnavailableError: If podman is missing, exits early, or the
                socket is not ready within the timeout.
        """
        if socket_ready(self.socket_path):
            logger.info("Reusing container runtime at %s", self.socket_path)
            return

        args = [
            PODMAN,
            "system",
            "service",
            "--time=0",
            f"unix://{self.socket_path}",
        ]
        logger.info("Starting container runtime: %s", " ".join(args))
        try:
            self._process = subprocess.Popen(args)
        except FileNotFoundError as e:
            raise DaemonUnavailableError(
                f"{PODMAN} not found; install podman to run builds",
                code="runtime_not_installed",
            ) from e

        deadline = time.monotonic() + self.timeout
        while not socket_ready(self.socket_path):
            if self._process.poll() is not None:
                code = self._process.returncode
                self._process = None
                raise DaemonUnavailableError(
                    f"{PODMAN} service exited with code {code}"
                )
            if time.monotonic() >= deadline:
                self.shutdown()
                raise DaemonUnavailableError(
                    f"Socket {self.socket_path} not ready after {self.timeout} seconds"
                )
            time.sleep(POLL_INTERVAL)
        logger.info("Container runtime listening on %s", self.socket_path)

    def shutdown(self) -> None:
        """Terminate the service if this instance started it."""
        if self._process is None:
            return
        process, self._process = self._process, None
        if process.poll() is not None:
            return
        logger.info("Stopping container runtime (pid %d)", process.pid)
        process.terminate()
        try:
            process.wait(timeout=SHUTDOWN_TIMEOUT)
        except subprocess.TimeoutExpired:
            logger.warning("Container runtime did not exit, killing it")
            process.kill()
            process.wait()

    def __enter__(self) -> PodmanDaemon:
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.shutdown()


__all__ = ["PodmanDaemon", "socket_ready"]
