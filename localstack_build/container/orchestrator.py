"""Container orchestrator.

Provisions the build image and runs commands in a fresh build container.
The container is disposable: any container left over from an earlier run is
removed before a new one is created. The four named volumes hold the source
tree, keys, scripts and release cache across builds and are only ever
created, never recreated.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from pathlib import Path

from localstack_build.config import BuildConfig
from localstack_build.container.context import materialize_context
from localstack_build.container.runtime import ContainerEnvironment, ContainerRuntime
from localstack_build.errors import ContainerRuntimeError
from localstack_build.logs import log_header

logger = logging.getLogger(__name__)

IMAGE_TAG = "localstack-build-image"
CONTAINER_NAME = "localstack-build"

BUILD_VOLUME = "localstack-build"
KEYS_VOLUME = "localstack-keys"
SCRIPTS_VOLUME = "localstack-scripts"
RELEASE_VOLUME = "localstack-release"

# Named volume -> mount path inside the container
VOLUMES: dict[str, str] = {
    BUILD_VOLUME: "/build",
    KEYS_VOLUME: "/keys",
    SCRIPTS_VOLUME: "/script",
    RELEASE_VOLUME: "/release-cache",
}
RELEASE_MOUNT = "/release"

BUILD_COMMAND = ("/bin/bash", "/opt/localstack/build.sh")
KEEPALIVE_COMMAND = ("sleep", "infinity")

START_TIMEOUT = 60


class ContainerOrchestrator:
    """Runs the build inside a fresh container.

    Args:
        runtime: Container runtime implementation.
        config: Build configuration.
    """

    def __init__(self, runtime: ContainerRuntime, config: BuildConfig) -> None:
        self.runtime = runtime
        self.config = config

    def environment(self) -> ContainerEnvironment:
        """Container definition: named volumes plus the host release bind."""
        return ContainerEnvironment(
            name=CONTAINER_NAME,
            image=IMAGE_TAG,
            volumes=VOLUMES,
            binds={str(self.config.release_dir): RELEASE_MOUNT},
            command=KEEPALIVE_COMMAND,
        )

    def apply(self, context_dir: Path | None = None) -> Path:
        """Materialize the build context and build the image.

        Safe to repeat: unchanged context files keep the layer cache valid.

        Returns:
            The build context directory.
        """
        log_header(logger, "image provisioning")
        context_dir = materialize_context(self.config, context_dir)
        self.runtime.build_image(context_dir, IMAGE_TAG)
        return context_dir

    def ensure_volumes(self) -> list[str]:
        """Create missing volumes.

        Returns:
            Names of volumes that were created.
        """
        return [name for name in VOLUMES if self.runtime.ensure_volume(name)]

    def run(
        self,
        command: Sequence[str] = BUILD_COMMAND,
        env: Mapping[str, str] | None = None,
    ) -> None:
        """Run a command in a fresh build container with the terminal attached.

        Args:
            command: Command to execute in the container.
            env: Extra environment for the command.

        Raises:
            ContainerRuntimeError: If any runtime operation fails or the
                command exits non-zero.
        """
        log_header(logger, "build container")
        self.config.release_dir.mkdir(parents=True, exist_ok=True)
        self.ensure_volumes()

        if self.runtime.container_exists(CONTAINER_NAME):
            logger.info("Removing stale container %s", CONTAINER_NAME)
            self.runtime.remove(CONTAINER_NAME)

        self.runtime.create_container(self.environment())
        self.runtime.start(CONTAINER_NAME)
        self.runtime.wait_for_state(CONTAINER_NAME, "running", START_TIMEOUT)
        try:
            self.runtime.exec_attached(CONTAINER_NAME, command, env)
        except Exception:
            # the command failure is the one to report
            try:
                self._stop()
            except ContainerRuntimeError as e:
                logger.warning("Failed to stop container %s: %s", CONTAINER_NAME, e)
            raise
        self._stop()

    def _stop(self) -> None:
        self.runtime.stop(CONTAINER_NAME)
        exit_code = self.runtime.wait(CONTAINER_NAME)
        logger.info("Container %s stopped (status %d)", CONTAINER_NAME, exit_code)


__all__ = [
    "BUILD_COMMAND",
    "CONTAINER_NAME",
    "IMAGE_TAG",
    "RELEASE_MOUNT",
    "VOLUMES",
    "ContainerOrchestrator",
]
