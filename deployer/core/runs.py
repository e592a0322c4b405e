"""In-memory registry of deployment runs."""

import asyncio
from datetime import datetime, timedelta
from functools import lru_cache

from deployer.config import settings
from deployer.models.deployment import DeploymentRun, DeploymentStatus
from deployer.utils.logging import get_logger

logger = get_logger(__name__)


class RunRegistry:
    """Maps deployment ids to their runs.

    Note: Runs live only as long as the process; nothing is persisted.
    """

    def __init__(self, ttl_hours: int = 24):
        self._runs: dict[str, DeploymentRun] = {}
        self._lock = asyncio.Lock()
        self._ttl = timedelta(hours=ttl_hours)

    async def add(self, run: DeploymentRun) -> DeploymentRun:
        """Register a new run. Ids must be unique."""
        async with self._lock:
            if run.id in self._runs:
                raise KeyError(f"Deployment already registered: {run.id}")
            self._runs[run.id] = run
        return run

    async def get(self, deployment_id: str) -> DeploymentRun | None:
        """Get a run by id."""
        async with self._lock:
            return self._runs.get(deployment_id)

    async def update(self, run: DeploymentRun) -> DeploymentRun:
        """Store the latest state of a run."""
        run.updated_at = datetime.utcnow()
        async with self._lock:
            self._runs[run.id] = run
        return run

    async def list_runs(
        self,
        status: DeploymentStatus | None = None,
        app_name: str | None = None,
        limit: int = 10,
        offset: int = 0,
    ) -> tuple[list[DeploymentRun], int]:
        """List runs with optional filtering, newest first."""
        async with self._lock:
            runs = list(self._runs.values())

        if status:
            runs = [r for r in runs if r.status == status]
        if app_name:
            runs = [r for r in runs if r.app_name == app_name]

        runs.sort(key=lambda r: r.created_at, reverse=True)

        total = len(runs)
        return runs[offset : offset + limit], total

    async def cleanup_expired(self) -> int:
        """Remove finished runs older than the TTL. Returns count removed."""
        now = datetime.utcnow()
        async with self._lock:
            expired = [
                run_id
                for run_id, run in self._runs.items()
                if run.status.is_terminal and now - run.created_at > self._ttl
            ]
            for run_id in expired:
                del self._runs[run_id]
        return len(expired)

    async def cleanup_periodically(self, interval_seconds: float) -> None:
        """Drop expired runs every ``interval_seconds`` until cancelled."""
        while True:
            await asyncio.sleep(interval_seconds)
            removed = await self.cleanup_expired()
            if removed:
                logger.info("runs.expired_removed", count=removed)


@lru_cache
def get_run_registry() -> RunRegistry:
    """Get the run registry singleton."""
    return RunRegistry(ttl_hours=settings.run_ttl_hours)
