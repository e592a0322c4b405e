"""Core functionality for the deployer."""

from deployer.core.events import EventBus, get_event_bus
from deployer.core.exceptions import (
    AuthError,
    BuildError,
    CommandError,
    DeployerError,
    DeploymentNotFoundError,
    FetchError,
    LaunchError,
    PushError,
    RegistrationError,
    RegistryError,
    RolloutError,
    StageError,
    ValidationError,
)
from deployer.core.runs import RunRegistry, get_run_registry

__all__ = [
    "DeployerError",
    "ValidationError",
    "LaunchError",
    "DeploymentNotFoundError",
    "CommandError",
    "StageError",
    "FetchError",
    "BuildError",
    "RegistryError",
    "AuthError",
    "PushError",
    "RegistrationError",
    "RolloutError",
    "EventBus",
    "get_event_bus",
    "RunRegistry",
    "get_run_registry",
]
