"""Async subprocess helper."""

import asyncio
from dataclasses import dataclass
from pathlib import Path

from deployer.core.exceptions import CommandError
from deployer.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class CommandResult:
    """Captured output of a finished command."""

    returncode: int
    stdout: str
    stderr: str


async def run_command(
    cmd: list[str],
    cwd: str | Path | None = None,
    stdin: str | None = None,
) -> CommandResult:
    """Run a command to completion and raise CommandError on failure.

    There is no timeout; the caller waits as long as the command runs.
    """
    logger.debug("process.started", cmd=" ".join(cmd[:3]), cwd=str(cwd) if cwd else None)

    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=str(cwd) if cwd else None,
            stdin=asyncio.subprocess.PIPE if stdin is not None else None,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise CommandError(cmd, None, str(e)) from e

    stdout, stderr = await process.communicate(
        stdin.encode() if stdin is not None else None
    )

    result = CommandResult(
        returncode=process.returncode or 0,
        stdout=stdout.decode(errors="replace") if stdout else "",
        stderr=stderr.decode(errors="replace") if stderr else "",
    )

    if process.returncode != 0:
        raise CommandError(cmd, process.returncode, result.stderr or result.stdout)

    return result
