"""Dependency injection for API endpoints."""

from typing import Annotated

from fastapi import Depends

from deployer.core.events import EventBus, get_event_bus
from deployer.core.trigger import DeploymentTrigger, get_trigger
from deployer.models.deployment import DeploymentRun


async def get_deployment_trigger() -> DeploymentTrigger:
    """Get the deployment trigger."""
    return get_trigger()


async def get_events() -> EventBus:
    """Get the event bus."""
    return get_event_bus()


async def get_run_by_id(
    deployment_id: str,
    trigger: Annotated[DeploymentTrigger, Depends(get_deployment_trigger)],
) -> DeploymentRun:
    """Get a run by id; unknown ids raise DeploymentNotFoundError (404)."""
    return await trigger.status(deployment_id)


# Type aliases for cleaner signatures
TriggerDep = Annotated[DeploymentTrigger, Depends(get_deployment_trigger)]
EventsDep = Annotated[EventBus, Depends(get_events)]
RunDep = Annotated[DeploymentRun, Depends(get_run_by_id)]
