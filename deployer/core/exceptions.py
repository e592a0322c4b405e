"""Custom exceptions for the deployer."""

from typing import Any


class DeployerError(Exception):
    """Base exception for the deployer."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(DeployerError):
    """Deployment request is missing or has invalid fields."""

    def __init__(
        self,
        message: str,
        missing: list[str] | None = None,
        invalid: dict[str, str] | None = None,
    ):
        details: dict[str, Any] = {}
        if missing:
            details["missing"] = missing
        if invalid:
            details["invalid"] = invalid
        super().__init__(message, details)
        self.missing = missing or []
        self.invalid = invalid or {}


class LaunchError(DeployerError):
    """The background pipeline task could not be started."""

    def __init__(self, deployment_id: str, message: str):
        super().__init__(
            f"Failed to launch deployment {deployment_id}: {message}",
            {"deployment_id": deployment_id},
        )
        self.deployment_id = deployment_id


class DeploymentNotFoundError(DeployerError):
    """Deployment not found."""

    def __init__(self, deployment_id: str):
        super().__init__(
            f"Deployment not found: {deployment_id}",
            {"deployment_id": deployment_id},
        )
        self.deployment_id = deployment_id


class CommandError(DeployerError):
    """An external command exited with a non-zero status."""

    def __init__(self, command: list[str], returncode: int | None, stderr: str):
        summary = stderr.strip() or f"exit status {returncode}"
        super().__init__(
            f"Command '{' '.join(command[:2])}' failed: {summary}",
            {"returncode": returncode, "stderr": stderr[:1000]},
        )
        self.command = command
        self.returncode = returncode
        self.stderr = stderr


class StageError(DeployerError):
    """A pipeline stage failed."""

    stage: str = "unknown"


class FetchError(StageError):
    """Cloning or checking out the source failed."""

    stage = "fetch"


class BuildError(StageError):
    """Building the container image failed."""

    stage = "build"


class RegistryError(StageError):
    """Looking up or creating the registry repository failed."""

    stage = "publish"


class AuthError(StageError):
    """Obtaining or using registry credentials failed."""

    stage = "publish"


class PushError(StageError):
    """Tagging or pushing the image failed."""

    stage = "publish"


class RegistrationError(StageError):
    """Registering the task definition failed."""

    stage = "rollout"


class RolloutError(StageError):
    """Updating or creating the fleet service failed."""

    stage = "rollout"
