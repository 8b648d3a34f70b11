"""Failure taxonomy for localstack_build.

Every failure raised by a component carries a ``code`` for structured
handling and a ``category`` that tells the orchestrator how it got there:

- ``prerequisite``: required upstream metadata missing, abort before mutation
- ``transient``: network clone/fetch/sync error, already retried to exhaustion
- ``corruption``: patch/script application failed, working tree not trusted
- ``timeout``: a bounded stage ran past its wall-clock limit
- ``environment``: container runtime or daemon failure
"""

from __future__ import annotations


class LocalStackError(Exception):
    """Base error for all localstack_build failures."""

    category = "error"

    def __init__(self, message: str, code: str = "error") -> None:
        super().__init__(message)
        self.code = code


class ConfigError(LocalStackError):
    """Raised when configuration is invalid."""

    category = "config"

    def __init__(self, message: str, code: str = "config_error") -> None:
        super().__init__(message, code)


class PrerequisiteError(LocalStackError):
    """Raised when required upstream metadata is missing or empty."""

    category = "prerequisite"

    def __init__(self, message: str, code: str = "prerequisite_missing") -> None:
        super().__init__(message, code)


class FetchError(LocalStackError):
    """Raised when an HTTP fetch fails."""

    category = "transient"

    def __init__(self, message: str, code: str = "fetch_error") -> None:
        super().__init__(message, code)


class CommandError(LocalStackError):
    """Raised when a subprocess exits non-zero or cannot be started."""

    category = "transient"

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        code: str = "command_failed",
    ) -> None:
        super().__init__(message, code)
        self.exit_code = exit_code


class RetryExhaustedError(LocalStackError):
    """Raised when a retried operation fails on every attempt."""

    category = "transient"

    def __init__(
        self, message: str, attempts: int, code: str = "retry_exhausted"
    ) -> None:
        super().__init__(message, code)
        self.attempts = attempts


class PatchApplicationError(LocalStackError):
    """Raised when a patch or script fails after a successful clone."""

    category = "corruption"

    def __init__(self, message: str, code: str = "patch_failed") -> None:
        super().__init__(message, code)


class StageTimeoutError(LocalStackError):
    """Raised when a bounded stage exceeds its wall-clock limit."""

    category = "timeout"

    def __init__(
        self, message: str, timeout: float | None = None, code: str = "timeout"
    ) -> None:
        super().__init__(message, code)
        self.timeout = timeout


class ContainerRuntimeError(LocalStackError):
    """Raised when the container runtime rejects an operation."""

    category = "environment"

    def __init__(self, message: str, code: str = "container_error") -> None:
        super().__init__(message, code)


class DaemonUnavailableError(ContainerRuntimeError):
    """Raised when the runtime daemon socket never becomes ready."""

    def __init__(self, message: str, code: str = "daemon_unavailable") -> None:
        super().__init__(message, code)


class KeyGenerationError(LocalStackError):
    """Raised when signing key generation fails."""

    category = "environment"

    def __init__(self, message: str, code: str = "key_generation_failed") -> None:
        super().__init__(message, code)


class BlobStoreError(LocalStackError):
    """Raised when a blob store operation fails."""

    category = "environment"

    def __init__(self, message: str, code: str = "blobstore_error") -> None:
        super().__init__(message, code)


class PublishError(LocalStackError):
    """Raised when artifacts cannot be published."""

    category = "transient"

    def __init__(self, message: str, code: str = "publish_failed") -> None:
        super().__init__(message, code)


class StageError(LocalStackError):
    """Raised by the executor when a stage fails; wraps the underlying cause."""

    def __init__(self, stage: str, cause: Exception) -> None:
        code = getattr(cause, "code", "stage_failed")
        super().__init__(f"Stage {stage} failed: {cause}", code)
        self.stage = stage
        self.cause = cause
        self.category = getattr(cause, "category", "error")


__all__ = [
    "BlobStoreError",
    "CommandError",
    "ConfigError",
    "ContainerRuntimeError",
    "DaemonUnavailableError",
    "FetchError",
    "KeyGenerationError",
    "LocalStackError",
    "PatchApplicationError",
    "PrerequisiteError",
    "PublishError",
    "RetryExhaustedError",
    "StageError",
    "StageTimeoutError",
]
