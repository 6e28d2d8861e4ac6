"""Adapters — process runners the engine executes commands through.

Public re-exports for convenient access.
"""

from devdoctor.adapters.base import CommandRequest, CommandRunner
from devdoctor.adapters.mock import MockRunner
from devdoctor.adapters.shell.command import ShellCommandRunner

__all__ = [
    "CommandRequest",
    "CommandRunner",
    "MockRunner",
    "ShellCommandRunner",
]
