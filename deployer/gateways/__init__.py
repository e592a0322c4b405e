"""Gateways to the artifact registry and fleet platform."""

from deployer.gateways.fleet import FleetGateway
from deployer.gateways.registry import ArtifactRegistryGateway
from deployer.gateways.results import Failed, Found, LookupResult, NotFound

__all__ = [
    "ArtifactRegistryGateway",
    "FleetGateway",
    "Found",
    "NotFound",
    "Failed",
    "LookupResult",
]
