"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from dotenv import load_dotenv
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file and override existing env vars
load_dotenv(override=True)


def split_csv(value: str | None) -> list[str]:
    """Split a comma-separated env value, dropping blanks."""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


class RegistryConfig(BaseModel):
    """Connection settings for the artifact registry (ECR)."""

    model_config = ConfigDict(frozen=True)

    region: str
    endpoint_url: str | None = None


class FleetConfig(BaseModel):
    """Connection and task settings for the fleet platform (ECS)."""

    model_config = ConfigDict(frozen=True)

    region: str
    cluster_name: str = "default"
    endpoint_url: str | None = None

    execution_role_arn: str | None = None
    task_role_arn: str | None = None

    subnets: tuple[str, ...] = ()
    security_groups: tuple[str, ...] = ()
    assign_public_ip: Literal["ENABLED", "DISABLED"] = "ENABLED"

    container_port: int = 3000
    cpu: str = "256"
    memory: str = "512"
    desired_count: int = 1
    launch_type: str = "FARGATE"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_env: Literal["development", "staging", "production"] = "development"
    app_debug: bool = True

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = Field(
        default=3000, validation_alias=AliasChoices("api_port", "port")
    )
    static_dir: str = "public"

    # AWS
    aws_region: str = "us-east-1"
    aws_endpoint_url: str | None = None

    # ECS
    ecs_cluster: str = "default"
    ecs_execution_role_arn: str | None = None
    ecs_task_role_arn: str | None = None
    ecs_subnets: str = ""
    ecs_security_groups: str = ""
    ecs_assign_public_ip: Literal["ENABLED", "DISABLED"] = "ENABLED"
    container_port: int = 3000
    task_cpu: str = "256"
    task_memory: str = "512"

    # Pipeline
    deployments_dir: str = "deployments"
    cleanup_work_directories: bool = False
    serialize_application_deployments: bool = True
    run_ttl_hours: int = 24
    run_cleanup_interval_seconds: float = 3600.0
    git_binary: str = "git"
    docker_binary: str = "docker"

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["console", "json"] = "console"
    log_directory: str | None = None
    log_file_name: str = "deployer.log"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == "development"

    @property
    def subnet_ids(self) -> list[str]:
        return split_csv(self.ecs_subnets)

    @property
    def security_group_ids(self) -> list[str]:
        return split_csv(self.ecs_security_groups)

    def registry_config(self) -> RegistryConfig:
        """Build the registry gateway configuration."""
        return RegistryConfig(
            region=self.aws_region,
            endpoint_url=self.aws_endpoint_url,
        )

    def fleet_config(self) -> FleetConfig:
        """Build the fleet gateway configuration."""
        return FleetConfig(
            region=self.aws_region,
            cluster_name=self.ecs_cluster,
            endpoint_url=self.aws_endpoint_url,
            execution_role_arn=self.ecs_execution_role_arn or None,
            task_role_arn=self.ecs_task_role_arn or None,
            subnets=tuple(self.subnet_ids),
            security_groups=tuple(self.security_group_ids),
            assign_public_ip=self.ecs_assign_public_ip,
            container_port=self.container_port,
            cpu=self.task_cpu,
            memory=self.task_memory,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
