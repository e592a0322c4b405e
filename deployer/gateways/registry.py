"""Artifact Registry Gateway.

Looks up and creates ECR repositories and obtains registry login
credentials.
"""

import asyncio
import base64
import weakref
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from deployer.config import RegistryConfig
from deployer.core.exceptions import AuthError, RegistryError
from deployer.gateways.base import AwsGateway, error_code
from deployer.gateways.results import Failed, Found, LookupResult, NotFound
from deployer.models.deployment import RegistryCredentials, RegistryRepository


class ArtifactRegistryGateway(AwsGateway):
    """Gateway to the artifact registry (Amazon ECR)."""

    service_name = "registry"

    def __init__(self, config: RegistryConfig, client: Any | None = None):
        super().__init__(
            client
            or boto3.client(
                "ecr",
                region_name=config.region,
                endpoint_url=config.endpoint_url,
            )
        )
        self.config = config
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    async def lookup_repository(self, name: str) -> LookupResult[RegistryRepository]:
        """Look up a repository by name."""
        try:
            response = await self._call(
                "describe_repositories", repositoryNames=[name]
            )
        except ClientError as e:
            code = error_code(e)
            if code == "RepositoryNotFoundException":
                return NotFound(reason=code)
            return Failed(detail=str(e), error=e, code=code)
        except BotoCoreError as e:
            return Failed(detail=str(e), error=e)

        repositories = response.get("repositories") or []
        if not repositories:
            return NotFound(reason="empty response")
        return Found(_to_repository(repositories[0]))

    async def ensure_repository(self, name: str) -> RegistryRepository:
        """Return the named repository, creating it on first use.

        Calls for the same name are serialized within this process. A
        duplicate create from another process is treated as success.
        """
        async with self._lock_for(name):
            result = await self.lookup_repository(name)
            if isinstance(result, Found):
                return result.record
            if isinstance(result, Failed):
                raise RegistryError(
                    f"Failed to look up repository {name}: {result.detail}",
                    {"repository": name, "code": result.code},
                ) from result.error

            self.logger.info("registry.repository.creating", repository=name)
            try:
                response = await self._call("create_repository", repositoryName=name)
            except ClientError as e:
                if error_code(e) != "RepositoryAlreadyExistsException":
                    raise RegistryError(
                        f"Failed to create repository {name}: {e}",
                        {"repository": name, "code": error_code(e)},
                    ) from e
                self.logger.info("registry.repository.create_race", repository=name)
                return await self._lookup_after_race(name)
            except BotoCoreError as e:
                raise RegistryError(
                    f"Failed to create repository {name}: {e}",
                    {"repository": name},
                ) from e

            repository = _to_repository(response["repository"])
            self.logger.info(
                "registry.repository.created",
                repository=name,
                uri=repository.uri,
            )
            return repository

    async def authenticate(self) -> RegistryCredentials:
        """Request a short-lived registry token and decode it."""
        try:
            response = await self._call("get_authorization_token")
        except (ClientError, BotoCoreError) as e:
            raise AuthError(f"Failed to obtain registry token: {e}") from e

        try:
            data = response["authorizationData"][0]
            decoded = base64.b64decode(data["authorizationToken"]).decode("utf-8")
            username, password = decoded.split(":", 1)
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise AuthError("Malformed registry authorization token") from e

        if not username or not password:
            raise AuthError("Malformed registry authorization token")

        return RegistryCredentials(
            username=username,
            password=password,
            endpoint=data.get("proxyEndpoint"),
        )

    async def _lookup_after_race(self, name: str) -> RegistryRepository:
        result = await self.lookup_repository(name)
        if isinstance(result, Found):
            return result.record
        detail = result.detail if isinstance(result, Failed) else "not found"
        raise RegistryError(
            f"Repository {name} reported as existing but lookup failed: {detail}",
            {"repository": name},
        )

    def _lock_for(self, name: str) -> asyncio.Lock:
        lock = self._locks.get(name)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[name] = lock
        return lock


def _to_repository(data: dict[str, Any]) -> RegistryRepository:
    return RegistryRepository(
        name=data["repositoryName"],
        uri=data["repositoryUri"],
        arn=data.get("repositoryArn"),
    )
