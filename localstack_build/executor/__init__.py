"""Build stage execution inside the build container."""

from localstack_build.executor.stages import (
    BuildExecutor,
    ExecutorPaths,
    chromium_version_code,
    plan_stages,
)

__all__ = ["BuildExecutor", "ExecutorPaths", "chromium_version_code", "plan_stages"]
