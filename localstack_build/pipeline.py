"""Build cycle orchestration.

The cycle is split across two processes:

- ``run_build_cycle()`` runs on the host. It resolves versions, decides
  whether a build is needed, records the run in the history database and,
  when a build is required, runs the build container with the serialized
  run plan.
- ``execute_plan()`` runs inside the container. It executes every build
  stage, publishes the artifacts and checkpoints the versions.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx
from sqlalchemy.orm import Session, sessionmaker

from localstack_build.config import BuildConfig
from localstack_build.container import (
    ContainerOrchestrator,
    DockerRuntime,
    PodmanDaemon,
)
from localstack_build.db import get_session, open_history
from localstack_build.devices import get_profile
from localstack_build.errors import ConfigError, LocalStackError, StageError
from localstack_build.executor import BuildExecutor, ExecutorPaths
from localstack_build.logs import log_failure, log_header
from localstack_build.publish import ArtifactPublisher, BlobStore
from localstack_build.runs import finish_run, start_run
from localstack_build.shell import CommandRunner
from localstack_build.types import (
    BuildArtifactSet,
    BuildDecision,
    BuildRunState,
    BuildStatus,
    ComponentVersionSet,
    Stage,
)
from localstack_build.versions.decision import decide, load_recorded, log_decision
from localstack_build.versions.resolver import VersionResolver

logger = logging.getLogger(__name__)

RUN_PLAN_ENV = "LOCALSTACK_RUN_PLAN"
BUILD_CONFIG_ENV = "LOCALSTACK_BUILD_CONFIG"


@dataclass(frozen=True)
class BuildOutcome:
    """Result of one build cycle.

    A skipped cycle is a success: nothing was out of date.
    """

    device: str
    status: BuildStatus
    decision: BuildDecision
    latest: ComponentVersionSet
    run_id: int | None = None

    @property
    def built(self) -> bool:
        return self.status == BuildStatus.SUCCEEDED


@contextmanager
def container_session(
    config: BuildConfig, socket_path: Path, timeout: float = 10
) -> Iterator[ContainerOrchestrator]:
    """Start the runtime daemon and yield an orchestrator bound to it.

    A daemon started here is shut down on exit.
    """
    with PodmanDaemon(socket_path, timeout):
        runtime = DockerRuntime.from_socket(socket_path)
        yield ContainerOrchestrator(runtime, config)


def resolve_versions(
    config: BuildConfig, http: httpx.Client | None = None
) -> ComponentVersionSet:
    """Resolve the latest component versions for the configured device."""
    if http is not None:
        return VersionResolver(http, config).resolve(config.device)
    with httpx.Client(follow_redirects=True) as client:
        return VersionResolver(client, config).resolve(config.device)


def run_build_cycle(
    config: BuildConfig,
    force: bool = False,
    *,
    orchestrator: ContainerOrchestrator | None = None,
    http: httpx.Client | None = None,
    session_factory: sessionmaker[Session] | None = None,
    socket_path: Path = Path("/tmp/localstack.sock"),
    daemon_timeout: float = 10,
) -> BuildOutcome:
    """Run one host-side build cycle.

    Args:
        config: Build configuration.
        force: Build even if every component is up to date.
        orchestrator: Orchestrator to use; when omitted the runtime daemon is
            started only if a build is actually required.
        http: HTTP client for version resolution.
        session_factory: History database session factory.
        socket_path: Runtime API socket for the default orchestrator.
        daemon_timeout: Seconds to wait for the runtime socket.

    Returns:
        BuildOutcome; SKIPPED when no build was needed.

    Raises:
        LocalStackError: If resolution fails or the build fails.
    """
    log_header(logger, f"build cycle for {config.device}")
    get_profile(config.device)

    latest = resolve_versions(config, http)
    recorded = load_recorded(BlobStore(config.release_dir), config.device)
    decision = decide(latest, recorded, force, config.ignore_version_checks)
    log_decision(decision)

    factory = session_factory or open_history(config.history_db_url)
    with get_session(factory) as session:
        run_id = start_run(session, config.device, decision, latest, force).id

    if not decision.required:
        return BuildOutcome(
            config.device, BuildStatus.SKIPPED, decision, latest, run_id
        )

    state = BuildRunState(
        device=config.device, force_build=force, latest=latest, decision=decision
    )
    env = {RUN_PLAN_ENV: json.dumps(state.to_dict())}
    try:
        if orchestrator is not None:
            orchestrator.run(env=env)
        else:
            with container_session(config, socket_path, daemon_timeout) as orch:
                orch.run(env=env)
    except LocalStackError as e:
        with get_session(factory) as session:
            finish_run(session, run_id, e)
        raise

    with get_session(factory) as session:
        finish_run(session, run_id)
    logger.info("Build for %s finished", config.device)
    return BuildOutcome(
        config.device, BuildStatus.SUCCEEDED, decision, latest, run_id
    )


def load_plan(
    environ: Mapping[str, str] | None = None,
) -> tuple[BuildConfig, BuildRunState]:
    """Read the build configuration and run plan passed into the container.

    Raises:
        ConfigError: If either variable is missing or malformed.
    """
    environ = os.environ if environ is None else environ
    for name in (BUILD_CONFIG_ENV, RUN_PLAN_ENV):
        if not environ.get(name):
            raise ConfigError(f"{name} is not set", code="missing_plan")
    try:
        config = BuildConfig.model_validate_json(environ[BUILD_CONFIG_ENV])
        state = BuildRunState.from_dict(json.loads(environ[RUN_PLAN_ENV]))
    except (KeyError, ValueError, TypeError) as e:
        raise ConfigError(f"Invalid run plan: {e}", code="invalid_plan") from e
    if state.device != config.device:
        raise ConfigError(
            f"Run plan is for {state.device} but the image was deployed for "
            f"{config.device}; run deploy again",
            code="device_mismatch",
        )
    return config, state


def collect_diagnostics(build_dir: Path) -> dict[str, Any]:
    """Snapshot disk, memory and load for a failure report."""
    report: dict[str, Any] = {}
    try:
        usage = shutil.disk_usage(build_dir)
        report["disk"] = {
            "path": str(build_dir),
            "total_gb": round(usage.total / 1e9, 1),
            "free_gb": round(usage.free / 1e9, 1),
        }
    except OSError as e:
        logger.warning("Disk usage unavailable for %s: %s", build_dir, e)
    try:
        meminfo = Path("/proc/meminfo").read_text(encoding="utf-8")
        report["memory"] = {
            key.strip(): value.strip()
            for key, _, value in (line.partition(":") for line in meminfo.splitlines())
            if key in ("MemTotal", "MemAvailable", "SwapFree")
        }
    except OSError as e:
        logger.warning("Memory information unavailable: %s", e)
    try:
        report["load"] = os.getloadavg()
    except OSError as e:
        logger.warning("Load average unavailable: %s", e)

    for name, value in report.items():
        logger.error("diagnostics %s: %s", name, value)
    return report


def execute_plan(
    config: BuildConfig,
    state: BuildRunState,
    *,
    runner: CommandRunner | None = None,
    paths: ExecutorPaths | None = None,
    http: httpx.Client | None = None,
    stages: list[Stage] | None = None,
) -> BuildArtifactSet:
    """Execute a run plan inside the build container.

    Args:
        config: Build configuration.
        state: Run state from the host.
        runner: Command runner.
        paths: Container paths.
        http: HTTP client for downloads.
        stages: Stage list; defaults to the device's full plan.

    Returns:
        The published artifacts.

    Raises:
        StageError: From the first failing stage, including publishing.
    """
    paths = paths or ExecutorPaths()
    executor = BuildExecutor(
        config,
        get_profile(config.device),
        state,
        runner or CommandRunner(base_env={"NPROC": str(config.nproc)}),
        paths=paths,
        http=http,
    )
    try:
        artifacts = executor.run(stages)
        publisher = ArtifactPublisher(
            BlobStore(paths.release_dir),
            config.device,
            channel=config.build_channel,
            retry_policy=executor.retry_policy,
        )
        try:
            publisher.publish(artifacts, state.latest)
        except LocalStackError as e:
            raise StageError(Stage.PUBLISH.value, e) from e
        state.completed_stages.append(Stage.PUBLISH)
    except StageError as e:
        collect_diagnostics(paths.build_dir)
        log_failure(logger, f"{config.device} {e.stage}", e)
        raise
    logger.info("Build %s for %s published", artifacts.build_number, config.device)
    return artifacts


__all__ = [
    "BUILD_CONFIG_ENV",
    "RUN_PLAN_ENV",
    "BuildOutcome",
    "collect_diagnostics",
    "container_session",
    "execute_plan",
    "load_plan",
    "resolve_versions",
    "run_build_cycle",
]
