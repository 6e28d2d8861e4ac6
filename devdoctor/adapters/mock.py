"""
Mock runner — scripted test double for the process runner.

Returns configured exit codes and output per command string without
touching the system. Responses can be a single report (always
returned) or a sequence consumed one call at a time, which is how a
check can fail before a fix and pass after it.
"""

from __future__ import annotations

import threading

from devdoctor.adapters.base import CommandRequest, CommandRunner
from devdoctor.core.models.outcome import CommandReport


class MockRunner(CommandRunner):
    """Scripted runner for tests.

    By default every command exits 0. Unknown commands use
    ``default_exit_code``.
    """

    def __init__(self, default_exit_code: int = 0, default_output: str = ""):
        self._default_exit_code = default_exit_code
        self._default_output = default_output
        self._responses: dict[str, list[CommandReport]] = {}
        self._call_log: list[CommandRequest] = []
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return "mock"

    @property
    def call_log(self) -> list[CommandRequest]:
        """All requests this mock has received, in order."""
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    @property
    def commands(self) -> list[str]:
        return [r.command for r in self._call_log]

    def calls_to(self, command: str) -> int:
        return sum(1 for c in self.commands if c == command)

    def set_exit_code(self, command: str, *codes: int, output: str = "") -> None:
        """Script exit codes for a command.

        With several codes, each call consumes the next one; the last
        code repeats once the sequence is exhausted.
        """
        self._responses[command] = [
            CommandReport(command=command, exit_code=code, output=output) for code in codes
        ]

    def set_response(self, command: str, *reports: CommandReport) -> None:
        """Script full reports for a command."""
        self._responses[command] = list(reports)

    def run(self, request: CommandRequest) -> CommandReport:
        with self._lock:
            self._call_log.append(request)
            scripted = self._responses.get(request.command)
            if scripted:
                report = scripted.pop(0) if len(scripted) > 1 else scripted[0]
                return report.model_copy()
        return CommandReport(
            command=request.command,
            exit_code=self._default_exit_code,
            output=self._default_output,
        )

    def reset(self) -> None:
        """Clear call log and scripted responses."""
        with self._lock:
            self._call_log.clear()
            self._responses.clear()
