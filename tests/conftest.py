"""Pytest configuration and fixtures."""

import asyncio
import base64
from pathlib import Path
from typing import Any

import pytest
from botocore.exceptions import ClientError
from httpx import ASGITransport, AsyncClient

from deployer.api.deps import get_deployment_trigger, get_events
from deployer.config import FleetConfig, RegistryConfig
from deployer.core.events import EventBus
from deployer.core.orchestrator import PipelineOrchestrator
from deployer.core.runs import RunRegistry
from deployer.core.trigger import DeploymentTrigger
from deployer.gateways.fleet import FleetGateway
from deployer.gateways.registry import ArtifactRegistryGateway
from deployer.main import app
from deployer.models.deployment import DeploymentRun, DeploymentStatus
from deployer.stages.builder import ArtifactBuilder

ACCOUNT = "123456789012"
REGION = "us-east-1"
REGISTRY_DOMAIN = f"{ACCOUNT}.dkr.ecr.{REGION}.amazonaws.com"


def make_client_error(code: str, operation: str, message: str = "") -> ClientError:
    """Build a botocore ClientError the way boto3 raises it."""
    return ClientError(
        {"Error": {"Code": code, "Message": message or code}},
        operation,
    )


class FakeECRClient:
    """Stand-in for a boto3 ECR client."""

    def __init__(
        self,
        repositories: list[str] | None = None,
        describe_error: Exception | None = None,
        create_error: Exception | None = None,
        lose_create_race: bool = False,
        token: str | None = None,
        token_error: Exception | None = None,
    ):
        self.repositories: set[str] = set(repositories or [])
        self.describe_error = describe_error
        self.create_error = create_error
        self.lose_create_race = lose_create_race
        self.token = token or base64.b64encode(b"AWS:s3cr3t").decode()
        self.token_error = token_error
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def calls_to(self, operation: str) -> list[dict[str, Any]]:
        return [kwargs for op, kwargs in self.calls if op == operation]

    def _record(self, name: str) -> dict[str, Any]:
        return {
            "repositoryName": name,
            "repositoryUri": f"{REGISTRY_DOMAIN}/{name}",
            "repositoryArn": f"arn:aws:ecr:{REGION}:{ACCOUNT}:repository/{name}",
        }

    def describe_repositories(self, **kwargs: Any) -> dict[str, Any]:
        self.calls.append(("describe_repositories", kwargs))
        if self.describe_error:
            raise self.describe_error
        name = kwargs["repositoryNames"][0]
        if name not in self.repositories:
            raise make_client_error(
                "RepositoryNotFoundException",
                "DescribeRepositories",
                f"The repository with name '{name}' does not exist",
            )
        return {"repositories": [self._record(name)]}

    def create_repository(self, **kwargs: Any) -> dict[str, Any]:
        self.calls.append(("create_repository", kwargs))
        if self.create_error:
            raise self.create_error
        name = kwargs["repositoryName"]
        if self.lose_create_race:
            # Another deployer created it between our lookup and create
            self.repositories.add(name)
        if name in self.repositories:
            raise make_client_error("RepositoryAlreadyExistsException", "CreateRepository")
        self.repositories.add(name)
        return {"repository": self._record(name)}

    def get_authorization_token(self, **kwargs: Any) -> dict[str, Any]:
        self.calls.append(("get_authorization_token", kwargs))
        if self.token_error:
            raise self.token_error
        return {
            "authorizationData": [
                {
                    "authorizationToken": self.token,
                    "proxyEndpoint": f"https://{REGISTRY_DOMAIN}",
                }
            ]
        }


class FakeECSClient:
    """Stand-in for a boto3 ECS client."""

    def __init__(
        self,
        services: dict[str, str] | None = None,
        register_error: Exception | None = None,
        describe_error: Exception | None = None,
        update_error: Exception | None = None,
    ):
        # service name -> status
        self.services: dict[str, str] = dict(services or {})
        self.register_error = register_error
        self.describe_error = describe_error
        self.update_error = update_error
        self.revisions: dict[str, int] = {}
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def calls_to(self, operation: str) -> list[dict[str, Any]]:
        return [kwargs for op, kwargs in self.calls if op == operation]

    def register_task_definition(self, **kwargs: Any) -> dict[str, Any]:
        self.calls.append(("register_task_definition", kwargs))
        if self.register_error:
            raise self.register_error
        family = kwargs["family"]
        revision = self.revisions.get(family, 0) + 1
        self.revisions[family] = revision
        return {
            "taskDefinition": {
                "taskDefinitionArn": (
                    f"arn:aws:ecs:{REGION}:{ACCOUNT}:task-definition/{family}:{revision}"
                ),
                "family": family,
                "revision": revision,
            }
        }

    def describe_services(self, **kwargs: Any) -> dict[str, Any]:
        self.calls.append(("describe_services", kwargs))
        if self.describe_error:
            raise self.describe_error
        name = kwargs["services"][0]
        cluster = kwargs["cluster"]
        if name in self.services:
            return {
                "services": [
                    {
                        "serviceName": name,
                        "status": self.services[name],
                        "taskDefinition": f"arn:aws:ecs:{REGION}:{ACCOUNT}:task-definition/{name}:0",
                    }
                ],
                "failures": [],
            }
        return {
            "services": [],
            "failures": [
                {
                    "arn": f"arn:aws:ecs:{REGION}:{ACCOUNT}:service/{cluster}/{name}",
                    "reason": "MISSING",
                }
            ],
        }

    def update_service(self, **kwargs: Any) -> dict[str, Any]:
        self.calls.append(("update_service", kwargs))
        if self.update_error:
            raise self.update_error
        return {"service": {"serviceName": kwargs["service"]}}

    def create_service(self, **kwargs: Any) -> dict[str, Any]:
        self.calls.append(("create_service", kwargs))
        self.services[kwargs["serviceName"]] = "ACTIVE"
        return {"service": {"serviceName": kwargs["serviceName"]}}


class FakeToolchain:
    """Container toolchain that records calls instead of running docker."""

    def __init__(self, fail_on: dict[str, Exception] | None = None):
        self.fail_on = fail_on or {}
        self.calls: list[tuple[str, ...]] = []

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_on:
            raise self.fail_on[operation]

    async def build(self, source_dir: str | Path, image_tag: str) -> None:
        self.calls.append(("build", str(source_dir), image_tag))
        self._maybe_fail("build")

    async def login(self, credentials: Any, endpoint: str) -> None:
        self.calls.append(("login", credentials.username, endpoint))
        self._maybe_fail("login")

    async def tag(self, local_tag: str, remote_uri: str) -> None:
        self.calls.append(("tag", local_tag, remote_uri))
        self._maybe_fail("tag")

    async def push(self, remote_uri: str) -> None:
        self.calls.append(("push", remote_uri))
        self._maybe_fail("push")


class FakeFetcher:
    """Source fetcher that writes a Dockerfile instead of cloning.

    With a ``delay`` it also records how many fetches overlapped.
    """

    def __init__(self, error: Exception | None = None, delay: float = 0.0):
        self.error = error
        self.delay = delay
        self.active = 0
        self.max_active = 0
        self.calls: list[tuple[str, str, str]] = []

    async def fetch(self, source_uri: str, branch: str, destination: str | Path) -> None:
        self.calls.append((source_uri, branch, str(destination)))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.active -= 1
        if self.error:
            raise self.error
        destination = Path(destination)
        destination.mkdir(parents=True, exist_ok=True)
        (destination / "Dockerfile").write_text("FROM scratch\n")


class RecordingRunRegistry(RunRegistry):
    """Run registry that remembers every status a run was stored with."""

    def __init__(self):
        super().__init__()
        self.history: dict[str, list[DeploymentStatus]] = {}

    async def add(self, run: DeploymentRun) -> DeploymentRun:
        self.history[run.id] = [run.status]
        return await super().add(run)

    async def update(self, run: DeploymentRun) -> DeploymentRun:
        statuses = self.history.setdefault(run.id, [])
        if not statuses or statuses[-1] != run.status:
            statuses.append(run.status)
        return await super().update(run)


class SleepingOrchestrator:
    """Orchestrator whose pipeline never finishes."""

    def __init__(self):
        self.started: list[str] = []

    async def run(self, deployment_id: str) -> DeploymentRun:
        self.started.append(deployment_id)
        await asyncio.Event().wait()
        raise AssertionError("unreachable")


@pytest.fixture
def registry_domain() -> str:
    """Registry host of the fake ECR account."""
    return REGISTRY_DOMAIN


@pytest.fixture
def client_error():
    """Factory for botocore client errors."""
    return make_client_error


@pytest.fixture
def registry_config() -> RegistryConfig:
    return RegistryConfig(region=REGION)


@pytest.fixture
def fleet_config() -> FleetConfig:
    return FleetConfig(
        region=REGION,
        cluster_name="test-cluster",
        execution_role_arn=f"arn:aws:iam::{ACCOUNT}:role/ecsTaskExecutionRole",
        subnets=("subnet-aaaa", "subnet-bbbb"),
        security_groups=("sg-cccc",),
    )


@pytest.fixture
def ecr_client() -> FakeECRClient:
    return FakeECRClient()


@pytest.fixture
def ecs_client() -> FakeECSClient:
    return FakeECSClient()


@pytest.fixture
def toolchain() -> FakeToolchain:
    return FakeToolchain()


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def registry_gateway(
    registry_config: RegistryConfig, ecr_client: FakeECRClient
) -> ArtifactRegistryGateway:
    return ArtifactRegistryGateway(registry_config, client=ecr_client)


@pytest.fixture
def fleet_gateway(fleet_config: FleetConfig, ecs_client: FakeECSClient) -> FleetGateway:
    return FleetGateway(fleet_config, client=ecs_client)


@pytest.fixture
def sleeping_orchestrator() -> SleepingOrchestrator:
    return SleepingOrchestrator()


@pytest.fixture
def runs() -> RecordingRunRegistry:
    """Create a fresh run registry for tests."""
    return RecordingRunRegistry()


@pytest.fixture
def events() -> EventBus:
    """Create a fresh event bus."""
    return EventBus()


@pytest.fixture
def orchestrator(
    fetcher: FakeFetcher,
    toolchain: FakeToolchain,
    registry_gateway: ArtifactRegistryGateway,
    fleet_gateway: FleetGateway,
    runs: RecordingRunRegistry,
    events: EventBus,
) -> PipelineOrchestrator:
    """Create an orchestrator wired to fakes."""
    return PipelineOrchestrator(
        fetcher=fetcher,
        builder=ArtifactBuilder(toolchain),
        registry=registry_gateway,
        fleet=fleet_gateway,
        runs=runs,
        events=events,
        cluster_name="test-cluster",
    )


@pytest.fixture
async def trigger(
    runs: RecordingRunRegistry,
    orchestrator: PipelineOrchestrator,
    tmp_path: Path,
) -> DeploymentTrigger:
    """Create a trigger running the faked pipeline."""
    trigger = DeploymentTrigger(
        runs=runs,
        orchestrator=orchestrator,
        deployments_dir=tmp_path / "deployments",
    )
    yield trigger

    for task in trigger.tasks:
        task.cancel()
    await asyncio.gather(*trigger.tasks, return_exceptions=True)


@pytest.fixture
async def client(trigger: DeploymentTrigger, events: EventBus) -> AsyncClient:
    """Create an async test client bound to the test trigger."""
    app.dependency_overrides[get_deployment_trigger] = lambda: trigger
    app.dependency_overrides[get_events] = lambda: events

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def deploy_payload() -> dict[str, str]:
    """A valid deployment request body."""
    return {
        "repoUrl": "https://example/repo.git",
        "branch": "main",
        "appName": "svc1",
    }
