"""Pipeline Orchestrator.

Drives one deployment run through fetch, build, publish and rollout in
strict order, stopping at the first failing stage.
"""

import asyncio
import shutil
import weakref
from contextlib import nullcontext
from functools import lru_cache
from typing import Any, AsyncContextManager, Awaitable, Callable

from deployer.config import settings
from deployer.core.events import EventBus, get_event_bus
from deployer.core.exceptions import DeployerError, DeploymentNotFoundError
from deployer.core.runs import RunRegistry, get_run_registry
from deployer.gateways.fleet import FleetGateway
from deployer.gateways.registry import ArtifactRegistryGateway
from deployer.models.deployment import (
    DeploymentRun,
    DeploymentStatus,
    StageName,
    StageStatus,
)
from deployer.stages.builder import ArtifactBuilder
from deployer.stages.source import SourceFetcher
from deployer.stages.toolchain import DockerCLI
from deployer.utils.logging import get_logger

StageAction = Callable[[DeploymentRun], Awaitable[dict[str, Any] | None]]


class PipelineOrchestrator:
    """Orchestrates the release pipeline for deployment runs.

    Pipeline stages:
    1. fetch - Clone the repository and check out the branch
    2. build - Build the container image
    3. publish - Ensure the registry repository and push the image
    4. rollout - Register a task definition and update or create the service
    """

    def __init__(
        self,
        fetcher: SourceFetcher,
        builder: ArtifactBuilder,
        registry: ArtifactRegistryGateway,
        fleet: FleetGateway,
        runs: RunRegistry | None = None,
        events: EventBus | None = None,
        cluster_name: str | None = None,
        serialize_applications: bool = True,
        cleanup_work_directories: bool = False,
    ):
        self.fetcher = fetcher
        self.builder = builder
        self.registry = registry
        self.fleet = fleet
        self.runs = runs or get_run_registry()
        self.events = events or get_event_bus()
        self.cluster_name = cluster_name
        self.serialize_applications = serialize_applications
        self.cleanup_work_directories = cleanup_work_directories
        self.logger = get_logger("orchestrator")

        self._claimed: set[str] = set()
        # Locks vanish once no run holds or waits on them
        self._app_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    async def run(self, deployment_id: str) -> DeploymentRun:
        """Run the complete pipeline for an accepted deployment.

        Args:
            deployment_id: The deployment to process

        Returns:
            The run in its terminal state

        Raises:
            DeployerError: If the run cannot be started or a stage fails
        """
        run = await self.runs.get(deployment_id)
        if not run:
            raise DeploymentNotFoundError(deployment_id)
        if deployment_id in self._claimed or run.status != DeploymentStatus.ACCEPTED:
            raise DeployerError(
                f"Deployment {deployment_id} has already been started",
                {"deployment_id": deployment_id, "status": run.status.value},
            )
        self._claimed.add(deployment_id)

        try:
            async with self._application_lock(run.app_name):
                return await self._execute(run)
        finally:
            # Past this point the run has left accepted, which guards re-entry
            self._claimed.discard(deployment_id)

    async def _execute(self, run: DeploymentRun) -> DeploymentRun:
        log = self.logger.bind(deployment_id=run.id, app_name=run.app_name)

        run.mark_in_progress()
        await self.runs.update(run)
        log.info("pipeline.started", repo_url=run.request.repo_url, branch=run.request.branch)

        try:
            await self._run_stage(run, StageName.FETCH, self._fetch)
            await self._run_stage(run, StageName.BUILD, self._build)
            await self._run_stage(run, StageName.PUBLISH, self._publish)
            await self._run_stage(run, StageName.ROLLOUT, self._rollout)
        except Exception as e:
            reason = e.message if isinstance(e, DeployerError) else str(e) or type(e).__name__
            run.mark_failed(reason, run.current_stage)
            await self.runs.update(run)
            await self.events.publish_error(
                run.id, reason, run.failed_stage.value if run.failed_stage else None
            )
            log.error(
                "pipeline.failed",
                stage=run.failed_stage.value if run.failed_stage else None,
                error=reason,
                exc_info=not isinstance(e, DeployerError),
            )
            raise
        finally:
            if self.cleanup_work_directories:
                shutil.rmtree(run.work_directory, ignore_errors=True)

        run.mark_succeeded()
        await self.runs.update(run)
        await self.events.publish_deployment_complete(run.id, run.image_uri)
        log.info(
            "pipeline.completed",
            image_uri=run.image_uri,
            task_definition_arn=run.task_definition_arn,
            service_action=run.service_action,
        )
        return run

    async def _run_stage(
        self, run: DeploymentRun, stage: StageName, action: StageAction
    ) -> None:
        run.update_stage(stage, StageStatus.IN_PROGRESS)
        await self.runs.update(run)
        await self.events.publish_stage_started(run.id, stage.value)
        self.logger.info("pipeline.stage.started", deployment_id=run.id, stage=stage.value)

        try:
            metadata = await action(run)
        except Exception as e:
            run.update_stage(stage, StageStatus.FAILED, error=str(e))
            raise

        run.update_stage(stage, StageStatus.COMPLETED, metadata=metadata)
        await self.runs.update(run)
        duration_ms = run.stages[stage].duration_ms or 0
        await self.events.publish_stage_completed(run.id, stage.value, duration_ms)
        self.logger.info(
            "pipeline.stage.completed",
            deployment_id=run.id,
            stage=stage.value,
            duration_ms=duration_ms,
        )

    async def _fetch(self, run: DeploymentRun) -> dict[str, Any]:
        await self.fetcher.fetch(
            run.request.repo_url, run.request.branch, run.work_directory
        )
        return {"work_directory": run.work_directory}

    async def _build(self, run: DeploymentRun) -> dict[str, Any]:
        await self.builder.build(run.work_directory, run.image_tag)
        return {"image_tag": run.image_tag}

    async def _publish(self, run: DeploymentRun) -> dict[str, Any]:
        repository = await self.registry.ensure_repository(run.app_name)
        credentials = await self.registry.authenticate()
        run.image_uri = await self.builder.publish(
            run.image_tag, repository, credentials, remote_tag=run.id
        )
        return {"repository_uri": repository.uri, "image_uri": run.image_uri}

    async def _rollout(self, run: DeploymentRun) -> dict[str, Any]:
        result = await self.fleet.rollout(run.app_name, run.image_uri, self.cluster_name)
        run.task_definition_arn = result.task_definition_arn
        run.service_action = result.action
        return {
            "service": result.service_name,
            "cluster": result.cluster_name,
            "action": result.action,
            "task_definition_arn": result.task_definition_arn,
        }

    def _application_lock(self, app_name: str) -> AsyncContextManager[Any]:
        if not self.serialize_applications:
            return nullcontext()
        lock = self._app_locks.get(app_name)
        if lock is None:
            lock = asyncio.Lock()
            self._app_locks[app_name] = lock
        return lock


@lru_cache
def get_orchestrator() -> PipelineOrchestrator:
    """Get the orchestrator singleton wired from settings."""
    return PipelineOrchestrator(
        fetcher=SourceFetcher(git_binary=settings.git_binary),
        builder=ArtifactBuilder(DockerCLI(binary=settings.docker_binary)),
        registry=ArtifactRegistryGateway(settings.registry_config()),
        fleet=FleetGateway(settings.fleet_config()),
        runs=get_run_registry(),
        events=get_event_bus(),
        cluster_name=settings.ecs_cluster,
        serialize_applications=settings.serialize_application_deployments,
        cleanup_work_directories=settings.cleanup_work_directories,
    )
