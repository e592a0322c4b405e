"""Trigger Boundary.

Validates deployment requests, creates runs and launches the pipeline
as a background task without waiting for it.
"""

import asyncio
import time
from functools import lru_cache
from pathlib import Path
from typing import Protocol
from uuid import uuid4

from deployer.config import settings
from deployer.core.exceptions import (
    DeploymentNotFoundError,
    LaunchError,
    ValidationError,
)
from deployer.core.runs import RunRegistry, get_run_registry
from deployer.models.deployment import DeploymentRequest, DeploymentRun, DeploymentStatus
from deployer.utils.logging import get_logger

logger = get_logger(__name__)


class Orchestrator(Protocol):
    async def run(self, deployment_id: str) -> DeploymentRun: ...


def new_deployment_id(app_name: str) -> str:
    """Build a unique id from the app name, the time and a random suffix."""
    return f"{app_name}-{time.time_ns() // 1_000_000}-{uuid4().hex[:6]}"


class DeploymentTrigger:
    """Accepts deployment requests and tracks their background tasks."""

    def __init__(
        self,
        runs: RunRegistry,
        orchestrator: Orchestrator,
        deployments_dir: str | Path = "deployments",
    ):
        self.runs = runs
        self.orchestrator = orchestrator
        self.deployments_dir = Path(deployments_dir).resolve()
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def tasks(self) -> frozenset[asyncio.Task[None]]:
        """Snapshot of in-flight pipeline tasks."""
        return frozenset(self._tasks)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def submit(self, request: DeploymentRequest) -> DeploymentRun:
        """Validate the request and start its pipeline in the background.

        Returns the accepted run as soon as the task is scheduled.
        """
        missing = request.missing_fields()
        invalid = request.invalid_fields()
        if missing:
            raise ValidationError(
                f"Missing required parameters: {', '.join(missing)}",
                missing=missing,
                invalid=invalid,
            )
        if invalid:
            raise ValidationError(
                "Invalid parameters: "
                + "; ".join(f"{name} {problem}" for name, problem in invalid.items()),
                invalid=invalid,
            )

        request = DeploymentRequest(
            repo_url=request.repo_url.strip(),
            branch=request.branch.strip(),
            app_name=request.app_name.strip(),
        )
        deployment_id = new_deployment_id(request.app_name)
        run = DeploymentRun(
            id=deployment_id,
            request=request,
            work_directory=str(self.deployments_dir / deployment_id),
            image_tag=f"{request.app_name}:{deployment_id}",
        )
        await self.runs.add(run)

        try:
            task = self._start(deployment_id)
        except RuntimeError as e:
            run.mark_failed(f"Failed to launch pipeline: {e}")
            await self.runs.update(run)
            raise LaunchError(deployment_id, str(e)) from e

        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

        logger.info(
            "deployment.accepted",
            deployment_id=deployment_id,
            repo_url=request.repo_url,
            branch=request.branch,
            app_name=request.app_name,
        )
        return run

    async def status(self, deployment_id: str) -> DeploymentRun:
        """Return the live state of a run."""
        run = await self.runs.get(deployment_id)
        if not run:
            raise DeploymentNotFoundError(deployment_id)
        return run

    async def list_runs(
        self,
        status: DeploymentStatus | None = None,
        app_name: str | None = None,
        limit: int = 10,
        offset: int = 0,
    ) -> tuple[list[DeploymentRun], int]:
        """List known runs."""
        return await self.runs.list_runs(
            status=status, app_name=app_name, limit=limit, offset=offset
        )

    async def join(self) -> None:
        """Wait until every in-flight pipeline has finished."""
        while self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def _start(self, deployment_id: str) -> asyncio.Task[None]:
        return asyncio.create_task(
            self._execute(deployment_id), name=f"deployment:{deployment_id}"
        )

    async def _execute(self, deployment_id: str) -> None:
        await self.orchestrator.run(deployment_id)

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("deployment.task_cancelled", task=task.get_name())
            return

        error = task.exception()
        if error is None:
            logger.info("deployment.task_finished", task=task.get_name())
        else:
            # The orchestrator has already recorded the failure on the run
            logger.error(
                "deployment.task_failed",
                task=task.get_name(),
                error=str(error),
                error_type=type(error).__name__,
            )


@lru_cache
def get_trigger() -> DeploymentTrigger:
    """Get the trigger singleton."""
    from deployer.core.orchestrator import get_orchestrator

    return DeploymentTrigger(
        runs=get_run_registry(),
        orchestrator=get_orchestrator(),
        deployments_dir=settings.deployments_dir,
    )
