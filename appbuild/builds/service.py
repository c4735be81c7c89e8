"""Run history service.

This module provides the persisted run API:
- run_application(): run an Application inside a RunRecord
- list_runs(): query runs by status
- get_run(): fetch a single run
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from appbuild.builds.application import Application, ContributionResult
from appbuild.builds.ledger import DatabaseLedger
from appbuild.builds.models import RunRecord
from appbuild.errors import RUN_NOT_FOUND, AppBuildError
from appbuild.types import RunStatus

logger = logging.getLogger(__name__)


class RunNotFoundError(AppBuildError):
    """Raised when a run is not found."""

    def __init__(self, run_id: int, code: str = RUN_NOT_FOUND) -> None:
        super().__init__(f"Run not found: {run_id}", code)
        self.run_id = run_id


def run_application(
    session: Session,
    application: Application,
) -> tuple[RunRecord, ContributionResult]:
    """Run an application and persist the outcome.

    A database ledger attached to the application is bound to the new run
    so its provenance entries reference it.

    Args:
        session: Database session; the caller commits.
        application: Application created by ApplicationFactory.

    Returns:
        Tuple of (RunRecord, ContributionResult).

    Raises:
        AppBuildError: Any pipeline failure, after the run is marked failed.
    """
    run = RunRecord(
        workspace=str(application.application_path),
        cache_dir=str(application.layer.path),
        fingerprint=application.fingerprint(),
        status=RunStatus.PENDING.value,
        state=application.state.value,
    )
    session.add(run)
    session.flush()
    logger.info("Created run record %d", run.id)

    if isinstance(application.ledger, DatabaseLedger):
        application.ledger.run = run

    run.mark_running()
    session.flush()

    try:
        result = application.contribute()
    except AppBuildError as e:
        run.state = application.state.value
        run.mark_failed(error_type=e.code, message=str(e))
        session.flush()
        logger.error("Run %d failed in state %s: %s", run.id, run.state, e)
        raise

    run.state = application.state.value
    run.is_cache_hit = result.cache_hit
    run.artifacts = list(result.artifacts)
    run.mark_succeeded()
    session.flush()

    logger.info(
        "Run %d succeeded (%s)", run.id, "cache hit" if result.cache_hit else "built"
    )
    return run, result


def list_runs(
    session: Session,
    status: RunStatus | None = None,
    limit: int | None = None,
) -> list[RunRecord]:
    """List runs, newest first.

    Args:
        session: Database session.
        status: Optional status filter.
        limit: Optional maximum number of runs.

    Returns:
        List of RunRecord.
    """
    stmt = select(RunRecord).order_by(RunRecord.id.desc())
    if status is not None:
        stmt = stmt.where(RunRecord.status == status.value)
    if limit is not None:
        stmt = stmt.limit(limit)
    return list(session.execute(stmt).scalars().all())


def get_run(session: Session, run_id: int) -> RunRecord:
    """Get a run by id.

    Raises:
        RunNotFoundError: If no run has that id.
    """
    run = session.get(RunRecord, run_id)
    if run is None:
        raise RunNotFoundError(run_id)
    return run


__all__ = [
    "RunNotFoundError",
    "get_run",
    "list_runs",
    "run_application",
]
