"""
Runner base — the protocol contract between the engine and processes.

The engine never calls ``subprocess`` directly. It hands a
CommandRequest to a CommandRunner and gets a CommandReport back.
Non-zero exit codes are data in the report; only a failure to start
the process at all raises (ProcessSpawnError).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path

from pydantic import BaseModel, Field

from devdoctor.core.models.outcome import CommandReport


class CommandRequest(BaseModel):
    """Everything a runner needs to execute one command."""

    command: str
    working_dir: Path
    search_path: str = ""
    env: dict[str, str] = Field(default_factory=dict)
    timeout: float | None = None
    label: str = ""  # "group/action", used to prefix logged output


class CommandRunner(ABC):
    """Abstract base class for process runners.

    To create a new runner:
        1. Subclass CommandRunner
        2. Implement name and run
        3. Pass it to the engine components instead of the shell runner
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The runner identifier (e.g., 'shell', 'mock')."""

    @abstractmethod
    def run(self, request: CommandRequest) -> CommandReport:
        """Execute the command and return its report.

        MUST NOT raise for non-zero exit codes. Raises ProcessSpawnError
        only when the process could not be started.
        """

    def run_for_output(self, request: CommandRequest) -> str:
        """Run a command and return its combined output, whatever the exit code."""
        return self.run(request).combined_output

    def run_streaming(self, request: CommandRequest, on_line: Callable[[str], None]) -> CommandReport:
        """Run a command, handing each output line to ``on_line``.

        The default implementation replays the captured output once the
        command has finished; runners that can stream override it.
        """
        report = self.run(request)
        for line in report.lines():
            on_line(line)
        return report

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
