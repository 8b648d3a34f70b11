"""Build run history."""

from localstack_build.runs.models import BuildRun
from localstack_build.runs.service import (
    RunNotFoundError,
    finish_run,
    get_run,
    list_runs,
    start_run,
)

__all__ = [
    "BuildRun",
    "RunNotFoundError",
    "finish_run",
    "get_run",
    "list_runs",
    "start_run",
]
