"""Container runtime management.

This module handles:
- Starting the runtime API daemon
- Materializing the image build context and building the image
- Running the build in a fresh container with persistent volumes
"""

from localstack_build.container.context import materialize_context
from localstack_build.container.daemon import PodmanDaemon
from localstack_build.container.orchestrator import (
    CONTAINER_NAME,
    IMAGE_TAG,
    ContainerOrchestrator,
)
from localstack_build.container.runtime import (
    ContainerEnvironment,
    ContainerRuntime,
    DockerRuntime,
)

__all__ = [
    "CONTAINER_NAME",
    "IMAGE_TAG",
    "ContainerEnvironment",
    "ContainerOrchestrator",
    "ContainerRuntime",
    "DockerRuntime",
    "PodmanDaemon",
    "materialize_context",
]
