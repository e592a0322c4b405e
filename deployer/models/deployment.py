"""Deployment data models."""

import re
from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

APP_NAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9._-]*$")
APP_NAME_MAX_LENGTH = 100


class DeploymentStatus(str, Enum):
    """Deployment run status."""

    ACCEPTED = "accepted"
    IN_PROGRESS = "in_progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (DeploymentStatus.SUCCEEDED, DeploymentStatus.FAILED)


class StageName(str, Enum):
    """Pipeline stages, in execution order."""

    FETCH = "fetch"
    BUILD = "build"
    PUBLISH = "publish"
    ROLLOUT = "rollout"


class StageStatus(str, Enum):
    """Individual stage status."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class StageInfo(BaseModel):
    """Information about a pipeline stage."""

    status: StageStatus = StageStatus.PENDING
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None


class DeploymentRequest(BaseModel):
    """Request to deploy a branch of a repository as an application.

    Fields are optional at parse time so that missing values are reported
    by the trigger with the boundary's own error shape.
    """

    model_config = ConfigDict(populate_by_name=True)

    repo_url: str | None = Field(default=None, alias="repoUrl")
    branch: str | None = None
    app_name: str | None = Field(default=None, alias="appName")

    def missing_fields(self) -> list[str]:
        """Return the wire names of required fields that are absent or blank."""
        missing = []
        for attr, wire_name in (
            ("repo_url", "repoUrl"),
            ("branch", "branch"),
            ("app_name", "appName"),
        ):
            value = getattr(self, attr)
            if value is None or not value.strip():
                missing.append(wire_name)
        return missing

    def invalid_fields(self) -> dict[str, str]:
        """Return format problems for fields that are present."""
        invalid: dict[str, str] = {}
        app_name = (self.app_name or "").strip()
        if app_name:
            if len(app_name) > APP_NAME_MAX_LENGTH:
                invalid["appName"] = (
                    f"must be at most {APP_NAME_MAX_LENGTH} characters"
                )
            elif not APP_NAME_PATTERN.match(app_name):
                invalid["appName"] = (
                    "must start with a lowercase letter or digit and contain "
                    "only lowercase letters, digits, '.', '_' or '-'"
                )
        if self.branch and self.branch.strip().startswith("-"):
            invalid["branch"] = "must not start with '-'"
        return invalid


class DeploymentRun(BaseModel):
    """In-process record of one pipeline execution."""

    id: str
    request: DeploymentRequest
    work_directory: str
    image_tag: str
    status: DeploymentStatus = DeploymentStatus.ACCEPTED

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    started_at: datetime | None = None
    completed_at: datetime | None = None

    # Processing state
    current_stage: StageName | None = None
    stages: dict[StageName, StageInfo] = Field(default_factory=dict)

    # Results
    image_uri: str | None = None
    task_definition_arn: str | None = None
    service_action: Literal["updated", "created"] | None = None

    # Error tracking
    failure_reason: str | None = None
    failed_stage: StageName | None = None

    @property
    def app_name(self) -> str:
        return self.request.app_name or ""

    def update_stage(
        self,
        stage: StageName,
        status: StageStatus,
        metadata: dict[str, Any] | None = None,
        error: str | None = None,
    ) -> None:
        """Update a stage's status."""
        now = datetime.utcnow()

        if stage not in self.stages:
            self.stages[stage] = StageInfo()

        stage_info = self.stages[stage]
        stage_info.status = status

        if status == StageStatus.IN_PROGRESS:
            stage_info.started_at = now
            self.current_stage = stage
        elif status in (StageStatus.COMPLETED, StageStatus.FAILED):
            stage_info.completed_at = now
            if stage_info.started_at:
                stage_info.duration_ms = int(
                    (now - stage_info.started_at).total_seconds() * 1000
                )
            if status == StageStatus.FAILED:
                stage_info.error = error

        if metadata:
            stage_info.metadata.update(metadata)

        self.updated_at = now

    def mark_in_progress(self) -> None:
        self.status = DeploymentStatus.IN_PROGRESS
        self.started_at = datetime.utcnow()
        self.updated_at = self.started_at

    def mark_succeeded(self) -> None:
        self.status = DeploymentStatus.SUCCEEDED
        self.current_stage = None
        self.completed_at = datetime.utcnow()
        self.updated_at = self.completed_at

    def mark_failed(self, reason: str, stage: StageName | None = None) -> None:
        self.status = DeploymentStatus.FAILED
        self.failure_reason = reason
        self.failed_stage = stage
        self.completed_at = datetime.utcnow()
        self.updated_at = self.completed_at


class RegistryRepository(BaseModel):
    """A container image repository in the artifact registry."""

    name: str
    uri: str
    arn: str | None = None

    @property
    def registry_domain(self) -> str:
        """Registry host the repository lives on."""
        return self.uri.split("/")[0]


class RegistryCredentials(BaseModel):
    """Short-lived registry login credentials."""

    username: str
    password: str = Field(repr=False)
    endpoint: str | None = None


class FleetService(BaseModel):
    """A named long-running service in the fleet cluster."""

    name: str
    cluster_name: str
    current_task_definition_arn: str | None = None
    status: str | None = None


class TaskSpecification(BaseModel):
    """Immutable description of how to run one container in the fleet."""

    model_config = ConfigDict(frozen=True)

    family: str
    container_image: str
    cpu: str = "256"
    memory: str = "512"
    container_port: int = 3000

    subnets: tuple[str, ...] = ()
    security_groups: tuple[str, ...] = ()

    execution_role_arn: str | None = None
    task_role_arn: str | None = None

    log_group: str
    log_region: str
    log_stream_prefix: str = "ecs"

    def to_register_kwargs(self) -> dict[str, Any]:
        """Render the RegisterTaskDefinition request payload."""
        kwargs: dict[str, Any] = {
            "family": self.family,
            "networkMode": "awsvpc",
            "containerDefinitions": [
                {
                    "name": self.family,
                    "image": self.container_image,
                    "essential": True,
                    "portMappings": [
                        {
                            "containerPort": self.container_port,
                            "hostPort": self.container_port,
                            "protocol": "tcp",
                        }
                    ],
                    "logConfiguration": {
                        "logDriver": "awslogs",
                        "options": {
                            "awslogs-group": self.log_group,
                            "awslogs-region": self.log_region,
                            "awslogs-stream-prefix": self.log_stream_prefix,
                        },
                    },
                }
            ],
            "requiresCompatibilities": ["FARGATE"],
            "cpu": self.cpu,
            "memory": self.memory,
        }
        # boto3 rejects explicit None values
        if self.execution_role_arn:
            kwargs["executionRoleArn"] = self.execution_role_arn
        if self.task_role_arn:
            kwargs["taskRoleArn"] = self.task_role_arn
        return kwargs


class RolloutResult(BaseModel):
    """Outcome of applying a task definition to a fleet service."""

    action: Literal["updated", "created"]
    service_name: str
    cluster_name: str
    task_definition_arn: str


class DeployAcceptedResponse(BaseModel):
    """Response for an accepted deployment."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str = "Deployment started"
    deployment_id: str = Field(alias="deploymentId")


class DeploymentStatusResponse(BaseModel):
    """API response model for a deployment run."""

    model_config = ConfigDict(populate_by_name=True)

    deployment_id: str = Field(alias="deploymentId")
    status: DeploymentStatus
    message: str

    app_name: str | None = Field(default=None, alias="appName")
    repo_url: str | None = Field(default=None, alias="repoUrl")
    branch: str | None = None
    image_tag: str | None = Field(default=None, alias="imageTag")
    image_uri: str | None = Field(default=None, alias="imageUri")
    task_definition_arn: str | None = Field(
        default=None, alias="taskDefinitionArn"
    )
    current_stage: StageName | None = Field(default=None, alias="currentStage")
    stages: dict[StageName, StageInfo] = Field(default_factory=dict)
    failure_reason: str | None = Field(default=None, alias="failureReason")
    failed_stage: StageName | None = Field(default=None, alias="failedStage")
    created_at: datetime | None = Field(default=None, alias="createdAt")
    completed_at: datetime | None = Field(default=None, alias="completedAt")

    @classmethod
    def from_run(cls, run: DeploymentRun) -> "DeploymentStatusResponse":
        """Create response from a deployment run."""
        return cls(
            deployment_id=run.id,
            status=run.status,
            message=_status_message(run),
            app_name=run.request.app_name,
            repo_url=run.request.repo_url,
            branch=run.request.branch,
            image_tag=run.image_tag,
            image_uri=run.image_uri,
            task_definition_arn=run.task_definition_arn,
            current_stage=run.current_stage,
            stages=run.stages,
            failure_reason=run.failure_reason,
            failed_stage=run.failed_stage,
            created_at=run.created_at,
            completed_at=run.completed_at,
        )


class DeploymentListResponse(BaseModel):
    """Response for listing deployments."""

    deployments: list[DeploymentStatusResponse]
    total: int
    limit: int
    offset: int


def _status_message(run: DeploymentRun) -> str:
    if run.status == DeploymentStatus.ACCEPTED:
        return "Deployment queued"
    if run.status == DeploymentStatus.IN_PROGRESS:
        stage = run.current_stage.value if run.current_stage else "starting"
        return f"Deployment in progress ({stage})"
    if run.status == DeploymentStatus.SUCCEEDED:
        return "Deployment successful"
    return f"Deployment failed: {run.failure_reason}"
