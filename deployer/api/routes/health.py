"""Health check endpoints."""

from datetime import datetime

from fastapi import APIRouter
from pydantic import BaseModel

from deployer import __version__
from deployer.api.deps import TriggerDep
from deployer.config import settings

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "healthy"
    version: str
    environment: str
    region: str
    cluster: str
    in_flight_deployments: int
    timestamp: datetime


@router.get("/health", response_model=HealthResponse)
async def health_check(trigger: TriggerDep) -> HealthResponse:
    """Check API health status."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        environment=settings.app_env,
        region=settings.aws_region,
        cluster=settings.ecs_cluster,
        in_flight_deployments=trigger.in_flight,
        timestamp=datetime.utcnow(),
    )
