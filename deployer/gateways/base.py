"""Shared plumbing for boto3-backed gateways."""

import asyncio
import functools
from typing import Any

from botocore.exceptions import ClientError

from deployer.utils.logging import get_logger


def error_code(error: ClientError) -> str:
    """Return the AWS error code of a client error."""
    return error.response.get("Error", {}).get("Code", "")


class AwsGateway:
    """Base class wrapping a synchronous boto3 client.

    Every call runs in the default executor so the event loop is never
    blocked while waiting on AWS.
    """

    service_name: str = ""

    def __init__(self, client: Any):
        self._client = client
        self.logger = get_logger(f"gateway.{self.service_name}")

    async def _call(self, operation: str, **kwargs: Any) -> dict[str, Any]:
        method = getattr(self._client, operation)
        return await asyncio.get_running_loop().run_in_executor(
            None, functools.partial(method, **kwargs)
        )
