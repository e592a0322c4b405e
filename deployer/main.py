"""FastAPI application entry point."""

import asyncio
from contextlib import asynccontextmanager, suppress
from pathlib import Path
from typing import Any, AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from deployer import __version__
from deployer.api.middleware import RequestLoggingMiddleware
from deployer.api.router import router as api_router
from deployer.config import settings
from deployer.core.exceptions import (
    DeployerError,
    DeploymentNotFoundError,
    LaunchError,
    ValidationError,
)
from deployer.core.runs import get_run_registry
from deployer.core.trigger import get_trigger
from deployer.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    configure_logging()
    logger.info(
        "application.starting",
        version=__version__,
        environment=settings.app_env,
        region=settings.aws_region,
        cluster=settings.ecs_cluster,
    )

    cleanup_task = asyncio.create_task(
        get_run_registry().cleanup_periodically(settings.run_cleanup_interval_seconds),
        name="run-cleanup",
    )

    yield

    # Shutdown
    cleanup_task.cancel()
    with suppress(asyncio.CancelledError):
        await cleanup_task
    logger.info("application.shutdown", in_flight_deployments=get_trigger().in_flight)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="One-Click Deploy",
        description="Builds a repository branch into a container image and rolls it out to ECS",
        version=__version__,
        docs_url="/docs" if settings.app_debug else None,
        redoc_url="/redoc" if settings.app_debug else None,
        lifespan=lifespan,
    )

    # Add middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    # Register exception handlers
    @app.exception_handler(ValidationError)
    async def validation_error_handler(
        request: Request, exc: ValidationError
    ) -> JSONResponse:
        """Reject deployment requests with missing or invalid fields."""
        content: dict[str, Any] = {"success": False, "message": exc.message}
        content.update(exc.details)
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=content)

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Report malformed bodies with the same shape as field validation."""
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "success": False,
                "message": "Invalid request",
                "errors": [
                    {"loc": list(err.get("loc", [])), "msg": err.get("msg", "")}
                    for err in exc.errors()
                ],
            },
        )

    @app.exception_handler(LaunchError)
    async def launch_error_handler(request: Request, exc: LaunchError) -> JSONResponse:
        """Report a pipeline that could not be started."""
        logger.error("deployment.launch_failed", error=exc.message, **exc.details)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "success": False,
                "message": "Failed to initiate deployment",
                "error": exc.message,
            },
        )

    @app.exception_handler(DeploymentNotFoundError)
    async def not_found_handler(
        request: Request, exc: DeploymentNotFoundError
    ) -> JSONResponse:
        """Unknown deployment ids keep the status response shape."""
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={
                "deploymentId": exc.deployment_id,
                "status": "unknown",
                "message": "Deployment not found",
            },
        )

    @app.exception_handler(DeployerError)
    async def deployer_error_handler(
        request: Request, exc: DeployerError
    ) -> JSONResponse:
        """Handle application-specific errors."""
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "success": False,
                "message": exc.message,
                "error": {
                    "code": type(exc).__name__.upper(),
                    "details": exc.details,
                },
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected errors."""
        logger.error(
            "unhandled_exception",
            error=str(exc),
            path=request.url.path,
            exc_info=True,
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "success": False,
                "message": "An unexpected error occurred",
                "error": str(exc) if settings.is_development else None,
            },
        )

    # Include routers
    app.include_router(api_router)

    # Serve the landing page and its assets when present
    static_dir = Path(settings.static_dir)
    if static_dir.is_dir():
        app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")
    else:

        @app.get("/", include_in_schema=False)
        async def root() -> dict[str, str]:
            return {
                "name": "One-Click Deploy",
                "version": __version__,
                "docs": "/docs",
            }

    return app


# Create app instance
app = create_app()
