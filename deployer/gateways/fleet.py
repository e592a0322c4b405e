"""Fleet Orchestration Gateway.

Registers task definitions and points an ECS service at them, creating
the service when it does not exist yet.
"""

from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from deployer.config import FleetConfig
from deployer.core.exceptions import RegistrationError, RolloutError
from deployer.gateways.base import AwsGateway, error_code
from deployer.gateways.results import Failed, Found, LookupResult, NotFound
from deployer.models.deployment import FleetService, RolloutResult, TaskSpecification


class FleetGateway(AwsGateway):
    """Gateway to the fleet orchestration platform (Amazon ECS)."""

    service_name = "fleet"

    def __init__(self, config: FleetConfig, client: Any | None = None):
        super().__init__(
            client
            or boto3.client(
                "ecs",
                region_name=config.region,
                endpoint_url=config.endpoint_url,
            )
        )
        self.config = config

    def build_task_specification(
        self, app_name: str, image_uri: str
    ) -> TaskSpecification:
        """Describe a single-container Fargate task for the application."""
        return TaskSpecification(
            family=app_name,
            container_image=image_uri,
            cpu=self.config.cpu,
            memory=self.config.memory,
            container_port=self.config.container_port,
            subnets=self.config.subnets,
            security_groups=self.config.security_groups,
            execution_role_arn=self.config.execution_role_arn,
            task_role_arn=self.config.task_role_arn,
            log_group=f"/ecs/{app_name}",
            log_region=self.config.region,
        )

    async def register_task_definition(self, spec: TaskSpecification) -> str:
        """Register a new task definition revision and return its ARN."""
        try:
            response = await self._call(
                "register_task_definition", **spec.to_register_kwargs()
            )
            arn = response["taskDefinition"]["taskDefinitionArn"]
        except (ClientError, BotoCoreError) as e:
            raise RegistrationError(
                f"Failed to register task definition {spec.family}: {e}",
                {"family": spec.family},
            ) from e
        except (KeyError, TypeError) as e:
            raise RegistrationError(
                f"Malformed task definition response for {spec.family}",
                {"family": spec.family},
            ) from e

        self.logger.info(
            "fleet.task_definition.registered",
            family=spec.family,
            task_definition_arn=arn,
        )
        return arn

    async def lookup_service(
        self, service_name: str, cluster_name: str
    ) -> LookupResult[FleetService]:
        """Look up a service by name within a cluster."""
        try:
            response = await self._call(
                "describe_services", cluster=cluster_name, services=[service_name]
            )
        except ClientError as e:
            return Failed(detail=str(e), error=e, code=error_code(e))
        except BotoCoreError as e:
            return Failed(detail=str(e), error=e)

        for data in response.get("services") or []:
            if data.get("status") == "INACTIVE":
                # Deleted services linger as INACTIVE and can be recreated
                return NotFound(reason="INACTIVE")
            return Found(
                FleetService(
                    name=data.get("serviceName", service_name),
                    cluster_name=cluster_name,
                    current_task_definition_arn=data.get("taskDefinition"),
                    status=data.get("status"),
                )
            )

        reasons = [f.get("reason", "") for f in response.get("failures") or []]
        if not reasons or "MISSING" in reasons:
            return NotFound(reason="MISSING")
        return Failed(detail=f"Service lookup failed: {', '.join(reasons)}")

    async def update_service(
        self, service: FleetService, task_definition_arn: str
    ) -> None:
        """Point an existing service at a task definition revision."""
        try:
            await self._call(
                "update_service",
                cluster=service.cluster_name,
                service=service.name,
                taskDefinition=task_definition_arn,
            )
        except (ClientError, BotoCoreError) as e:
            raise RolloutError(
                f"Failed to update service {service.name}: {e}",
                {"service": service.name, "cluster": service.cluster_name},
            ) from e

        self.logger.info(
            "fleet.service.updated",
            service=service.name,
            cluster=service.cluster_name,
            task_definition_arn=task_definition_arn,
        )

    async def create_service(
        self, service_name: str, cluster_name: str, task_definition_arn: str
    ) -> None:
        """Create a service running one copy of the task definition."""
        if not self.config.subnets or not self.config.security_groups:
            raise RolloutError(
                f"Cannot create service {service_name}: ECS_SUBNETS and "
                "ECS_SECURITY_GROUPS must be configured",
                {"service": service_name, "cluster": cluster_name},
            )

        try:
            await self._call(
                "create_service",
                cluster=cluster_name,
                serviceName=service_name,
                taskDefinition=task_definition_arn,
                desiredCount=self.config.desired_count,
                launchType=self.config.launch_type,
                networkConfiguration={
                    "awsvpcConfiguration": {
                        "subnets": list(self.config.subnets),
                        "securityGroups": list(self.config.security_groups),
                        "assignPublicIp": self.config.assign_public_ip,
                    }
                },
            )
        except (ClientError, BotoCoreError) as e:
            raise RolloutError(
                f"Failed to create service {service_name}: {e}",
                {"service": service_name, "cluster": cluster_name},
            ) from e

        self.logger.info(
            "fleet.service.created",
            service=service_name,
            cluster=cluster_name,
            task_definition_arn=task_definition_arn,
        )

    async def rollout(
        self, app_name: str, image_uri: str, cluster_name: str | None = None
    ) -> RolloutResult:
        """Register a new revision for the image and apply it to the service."""
        cluster_name = cluster_name or self.config.cluster_name

        spec = self.build_task_specification(app_name, image_uri)
        task_definition_arn = await self.register_task_definition(spec)

        result = await self.lookup_service(app_name, cluster_name)
        if isinstance(result, Found):
            await self.update_service(result.record, task_definition_arn)
            action = "updated"
        elif isinstance(result, NotFound):
            await self.create_service(app_name, cluster_name, task_definition_arn)
            action = "created"
        else:
            raise RolloutError(
                f"Failed to look up service {app_name}: {result.detail}",
                {"service": app_name, "cluster": cluster_name, "code": result.code},
            ) from result.error

        return RolloutResult(
            action=action,
            service_name=app_name,
            cluster_name=cluster_name,
            task_definition_arn=task_definition_arn,
        )
