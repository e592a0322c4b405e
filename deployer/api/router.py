"""Main router for the API."""

from fastapi import APIRouter

from deployer.api.routes import deployments, health

router = APIRouter(prefix="/api")

# Include sub-routers
router.include_router(health.router, tags=["health"])
router.include_router(deployments.router, tags=["deployments"])
