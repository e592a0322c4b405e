"""Source Fetcher."""

import shutil
from pathlib import Path

from deployer.core.exceptions import CommandError, FetchError
from deployer.utils.logging import get_logger
from deployer.utils.process import run_command


class SourceFetcher:
    """Clones a repository and checks out one branch into a work directory."""

    def __init__(self, git_binary: str = "git"):
        self.git_binary = git_binary
        self.logger = get_logger("stage.fetch")

    async def fetch(
        self, source_uri: str, branch: str, destination: str | Path
    ) -> None:
        """Materialize ``branch`` of ``source_uri`` in ``destination``.

        On failure the destination is removed so no half-fetched tree is
        left for later stages.
        """
        destination = Path(destination)

        try:
            destination.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FetchError(
                f"Cannot create work directory {destination}: {e}",
                {"destination": str(destination)},
            ) from e

        self.logger.info(
            "fetch.cloning",
            source_uri=source_uri,
            branch=branch,
            destination=str(destination),
        )

        try:
            await run_command(
                [self.git_binary, "clone", "--", source_uri, str(destination)]
            )
            # switch only accepts branch names, never paths
            await run_command(
                [self.git_binary, "switch", branch], cwd=destination
            )
        except CommandError as e:
            shutil.rmtree(destination, ignore_errors=True)
            raise FetchError(
                f"Failed to fetch {source_uri} ({branch}): {e.stderr.strip() or e.message}",
                {"source_uri": source_uri, "branch": branch},
            ) from e
