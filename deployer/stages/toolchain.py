"""Container toolchain capability.

The pipeline only needs four operations from a container toolchain; the
Docker CLI provides them for real, tests provide a recording fake.
"""

from pathlib import Path
from typing import Protocol

from deployer.models.deployment import RegistryCredentials
from deployer.utils.process import run_command


class ContainerToolchain(Protocol):
    """Operations needed to build and publish an image."""

    async def build(self, source_dir: str | Path, image_tag: str) -> None: ...

    async def login(self, credentials: RegistryCredentials, endpoint: str) -> None: ...

    async def tag(self, local_tag: str, remote_uri: str) -> None: ...

    async def push(self, remote_uri: str) -> None: ...


class DockerCLI:
    """Container toolchain backed by the docker command line."""

    def __init__(self, binary: str = "docker"):
        self.binary = binary

    async def build(self, source_dir: str | Path, image_tag: str) -> None:
        await run_command([self.binary, "build", "-t", image_tag, "."], cwd=source_dir)

    async def login(self, credentials: RegistryCredentials, endpoint: str) -> None:
        # Password goes over stdin so it never shows up in the process list
        await run_command(
            [
                self.binary,
                "login",
                "--username",
                credentials.username,
                "--password-stdin",
                endpoint,
            ],
            stdin=credentials.password,
        )

    async def tag(self, local_tag: str, remote_uri: str) -> None:
        await run_command([self.binary, "tag", local_tag, remote_uri])

    async def push(self, remote_uri: str) -> None:
        await run_command([self.binary, "push", remote_uri])
