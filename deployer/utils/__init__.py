"""Utility functions for the deployer."""

from deployer.utils.logging import configure_logging, get_logger
from deployer.utils.process import CommandResult, run_command

__all__ = [
    "configure_logging",
    "get_logger",
    "CommandResult",
    "run_command",
]
