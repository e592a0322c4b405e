"""Data models for the deployer."""

from deployer.models.deployment import (
    DeployAcceptedResponse,
    DeploymentListResponse,
    DeploymentRequest,
    DeploymentRun,
    DeploymentStatus,
    DeploymentStatusResponse,
    FleetService,
    RegistryCredentials,
    RegistryRepository,
    RolloutResult,
    StageInfo,
    StageName,
    StageStatus,
    TaskSpecification,
)

__all__ = [
    # Run models
    "DeploymentRequest",
    "DeploymentRun",
    "DeploymentStatus",
    "StageInfo",
    "StageName",
    "StageStatus",
    # Gateway records
    "RegistryRepository",
    "RegistryCredentials",
    "FleetService",
    "TaskSpecification",
    "RolloutResult",
    # API responses
    "DeployAcceptedResponse",
    "DeploymentStatusResponse",
    "DeploymentListResponse",
]
