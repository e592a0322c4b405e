"""Unit tests for the artifact builder."""

import pytest

from deployer.core.exceptions import AuthError, BuildError, CommandError, PushError
from deployer.models.deployment import RegistryCredentials, RegistryRepository
from deployer.stages.builder import ArtifactBuilder

CREDENTIALS = RegistryCredentials(username="AWS", password="s3cr3t")


def command_error(operation: str, stderr: str) -> CommandError:
    return CommandError(["docker", operation], 1, stderr)


@pytest.fixture
def repository(registry_domain: str) -> RegistryRepository:
    return RegistryRepository(name="svc1", uri=f"{registry_domain}/svc1")


class TestBuild:
    """Tests for image builds."""

    @pytest.mark.asyncio
    async def test_build(self, toolchain, tmp_path):
        await ArtifactBuilder(toolchain).build(tmp_path, "svc1:svc1-1")

        assert toolchain.calls == [("build", str(tmp_path), "svc1:svc1-1")]

    @pytest.mark.asyncio
    async def test_build_failure(self, toolchain, tmp_path):
        toolchain.fail_on["build"] = command_error("build", "failed to read dockerfile")

        with pytest.raises(BuildError, match="failed to read dockerfile"):
            await ArtifactBuilder(toolchain).build(tmp_path, "svc1:svc1-1")


class TestPublish:
    """Tests for login, tag and push."""

    @pytest.mark.asyncio
    async def test_publish(
        self, toolchain, repository: RegistryRepository, registry_domain: str
    ):
        uri = await ArtifactBuilder(toolchain).publish(
            "svc1:svc1-1", repository, CREDENTIALS, remote_tag="svc1-1"
        )

        assert uri == f"{registry_domain}/svc1:svc1-1"
        assert toolchain.calls == [
            ("login", "AWS", registry_domain),
            ("tag", "svc1:svc1-1", uri),
            ("push", uri),
        ]

    @pytest.mark.asyncio
    async def test_login_failure_is_auth_error(
        self, toolchain, repository: RegistryRepository
    ):
        toolchain.fail_on["login"] = command_error("login", "unauthorized")

        with pytest.raises(AuthError, match="unauthorized"):
            await ArtifactBuilder(toolchain).publish(
                "svc1:svc1-1", repository, CREDENTIALS, remote_tag="svc1-1"
            )

        assert [call[0] for call in toolchain.calls] == ["login"]

    @pytest.mark.asyncio
    async def test_push_failure_is_push_error(
        self, toolchain, repository: RegistryRepository
    ):
        toolchain.fail_on["push"] = command_error("push", "denied: token expired")

        with pytest.raises(PushError, match="token expired"):
            await ArtifactBuilder(toolchain).publish(
                "svc1:svc1-1", repository, CREDENTIALS, remote_tag="svc1-1"
            )
