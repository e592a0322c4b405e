"""Artifact Builder.

Builds the container image from fetched source and publishes it to the
registry repository.
"""

from pathlib import Path

from deployer.core.exceptions import AuthError, BuildError, CommandError, PushError
from deployer.models.deployment import RegistryCredentials, RegistryRepository
from deployer.stages.toolchain import ContainerToolchain
from deployer.utils.logging import get_logger


class ArtifactBuilder:
    """Drives a container toolchain to build, tag and push images."""

    def __init__(self, toolchain: ContainerToolchain):
        self.toolchain = toolchain
        self.logger = get_logger("stage.build")

    async def build(self, source_dir: str | Path, image_tag: str) -> None:
        """Build ``source_dir`` into a local image tagged ``image_tag``."""
        self.logger.info("build.started", source_dir=str(source_dir), image_tag=image_tag)
        try:
            await self.toolchain.build(source_dir, image_tag)
        except CommandError as e:
            raise BuildError(
                f"Image build failed for {image_tag}: {e.stderr.strip()[-500:] or e.message}",
                {"image_tag": image_tag, "returncode": e.returncode},
            ) from e

    async def publish(
        self,
        image_tag: str,
        repository: RegistryRepository,
        credentials: RegistryCredentials,
        remote_tag: str,
    ) -> str:
        """Log in, retag the local image and push it. Returns the remote URI."""
        remote_uri = f"{repository.uri}:{remote_tag}"
        endpoint = repository.registry_domain

        try:
            await self.toolchain.login(credentials, endpoint)
        except CommandError as e:
            raise AuthError(
                f"Registry login to {endpoint} failed: {e.stderr.strip() or e.message}",
                {"endpoint": endpoint},
            ) from e

        self.logger.info("publish.pushing", image_tag=image_tag, remote_uri=remote_uri)
        try:
            await self.toolchain.tag(image_tag, remote_uri)
            await self.toolchain.push(remote_uri)
        except CommandError as e:
            raise PushError(
                f"Failed to push {remote_uri}: {e.stderr.strip() or e.message}",
                {"remote_uri": remote_uri},
            ) from e

        return remote_uri
