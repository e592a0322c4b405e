"""Pipeline stages: fetching source and building images."""

from deployer.stages.builder import ArtifactBuilder
from deployer.stages.source import SourceFetcher
from deployer.stages.toolchain import ContainerToolchain, DockerCLI

__all__ = [
    "ArtifactBuilder",
    "ContainerToolchain",
    "DockerCLI",
    "SourceFetcher",
]
