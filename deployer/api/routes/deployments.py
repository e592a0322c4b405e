"""Deployment trigger and status endpoints."""

import asyncio
import json
from typing import Annotated

from fastapi import APIRouter, Query, status
from sse_starlette.sse import EventSourceResponse

from deployer.api.deps import EventsDep, RunDep, TriggerDep
from deployer.core.events import TERMINAL_EVENTS, Event
from deployer.models.deployment import (
    DeployAcceptedResponse,
    DeploymentListResponse,
    DeploymentRequest,
    DeploymentStatus,
    DeploymentStatusResponse,
)

router = APIRouter()


@router.post(
    "/deploy",
    response_model=DeployAcceptedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Start a deployment",
    description="Validate the request and start the release pipeline. Returns immediately while the pipeline runs in background.",
)
async def deploy(
    data: DeploymentRequest,
    trigger: TriggerDep,
) -> DeployAcceptedResponse:
    """Accept a deployment request."""
    run = await trigger.submit(data)
    return DeployAcceptedResponse(deployment_id=run.id)


@router.get(
    "/deployments",
    response_model=DeploymentListResponse,
    summary="List deployments",
)
async def list_deployments(
    trigger: TriggerDep,
    status_filter: Annotated[DeploymentStatus | None, Query(alias="status")] = None,
    app_name: Annotated[str | None, Query()] = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> DeploymentListResponse:
    """List deployments known to this process, newest first."""
    runs, total = await trigger.list_runs(
        status=status_filter,
        app_name=app_name,
        limit=limit,
        offset=offset,
    )

    return DeploymentListResponse(
        deployments=[DeploymentStatusResponse.from_run(r) for r in runs],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get(
    "/deployment/{deployment_id}",
    response_model=DeploymentStatusResponse,
    summary="Get deployment status",
)
async def get_deployment(run: RunDep) -> DeploymentStatusResponse:
    """Get the live status of a deployment."""
    return DeploymentStatusResponse.from_run(run)


@router.get(
    "/deployment/{deployment_id}/stream",
    summary="Stream deployment events (SSE)",
)
async def stream_deployment_events(
    run: RunDep,
    events: EventsDep,
) -> EventSourceResponse:
    """Stream stage events for a deployment using Server-Sent Events."""

    async def event_generator():
        queue = events.subscribe(run.id)

        try:
            # Send initial status
            yield {
                "event": "connected",
                "data": json.dumps(
                    {"deployment_id": run.id, "status": run.status.value}
                ),
            }

            # Nothing more will be published for finished runs
            if run.status.is_terminal:
                return

            while True:
                try:
                    event: Event = await asyncio.wait_for(queue.get(), timeout=30.0)
                    yield {
                        "event": event.event_type,
                        "data": event.to_json(),
                    }

                    if event.event_type in TERMINAL_EVENTS:
                        break

                except asyncio.TimeoutError:
                    # Send keepalive
                    yield {"event": "keepalive", "data": "{}"}

        finally:
            events.unsubscribe(run.id, queue)

    return EventSourceResponse(event_generator())
