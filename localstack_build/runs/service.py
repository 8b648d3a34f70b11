"""Build run history service.

This module provides:
- start_run(): record a new cycle with its decision
- list_runs(): query past cycles for the history command
- finish_run(): record success or failure of a running cycle
- get_run(): fetch a single cycle
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from localstack_build.runs.models import BuildRun
from localstack_build.types import BuildDecision, BuildStatus, ComponentVersionSet

logger = logging.getLogger(__name__)


class RunNotFoundError(Exception):
    """Raised when a build run is not found."""

    def __init__(self, run_id: int, code: str = "run_not_found") -> None:
        super().__init__(f"Build run not found: {run_id}")
        self.run_id = run_id
        self.code = code


def start_run(
    session: Session,
    device: str,
    decision: BuildDecision,
    latest: ComponentVersionSet,
    force_build: bool = False,
) -> BuildRun:
    """Create a BuildRun for a cycle whose decision has been made.

    Args:
        session: Database session.
        device: Device codename.
        decision: Staleness decision.
        latest: Resolved component versions.
        force_build: Whether the build was forced.

    Returns:
        The new BuildRun, running or skipped according to the decision.
    """
    run = BuildRun(
        device=device,
        force_build=force_build,
        reasons=list(decision.reasons),
        versions=latest.to_dict(),
        status=BuildStatus.PENDING.value,
    )
    if decision.required:
        run.mark_running()
    else:
        run.mark_skipped()
    session.add(run)
    session.flush()
    logger.debug("Recorded %r", run)
    return run


def finish_run(
    session: Session, run_id: int, error: Exception | None = None
) -> BuildRun:
    """Record the result of a running cycle.

    Args:
        session: Database session.
        run_id: Run to update.
        error: The failure, or None on success.

    Returns:
        The updated BuildRun.
    """
    run = get_run(session, run_id)
    if error is None:
        run.mark_succeeded()
    else:
        run.mark_failed(
            category=getattr(error, "category", None),
            code=getattr(error, "code", None),
            message=str(error),
        )
    session.flush()
    return run


def get_run(session: Session, run_id: int) -> BuildRun:
    """Get a build run by ID.

    Raises:
        RunNotFoundError: If no such run exists.
    """
    run = session.get(BuildRun, run_id)
    if run is None:
        raise RunNotFoundError(run_id)
    return run


def list_runs(
    session: Session,
    device: str | None = None,
    status: BuildStatus | None = None,
    limit: int = 50,
) -> list[BuildRun]:
    """List build runs, newest first.

    Args:
        session: Database session.
        device: Filter by device codename.
        status: Filter by status.
        limit: Maximum results to return.

    Returns:
        List of BuildRun instances.
    """
    stmt = select(BuildRun)

    if device is not None:
        stmt = stmt.where(BuildRun.device == device)
    if status is not None:
        stmt = stmt.where(BuildRun.status == status.value)

    stmt = stmt.order_by(BuildRun.id.desc()).limit(limit)

    return list(session.execute(stmt).scalars().all())


__all__ = ["RunNotFoundError", "finish_run", "get_run", "list_runs", "start_run"]
