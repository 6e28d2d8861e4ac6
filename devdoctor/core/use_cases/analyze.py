"""
Analyze use case — scan output for known errors and offer their fixes.

Input can be a list of lines, a file, stdin, or a command run on the
user's behalf whose combined output is streamed back and then scanned.
"""

from __future__ import annotations

import io
import logging
import shlex
import sys
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from pathlib import Path

from devdoctor.adapters.base import CommandRequest, CommandRunner
from devdoctor.adapters.shell import ShellCommandRunner
from devdoctor.core.context import RunContext
from devdoctor.core.engine.known_errors import KnownErrorEngine
from devdoctor.core.errors import EngineError
from devdoctor.core.interaction import DenyAll, UserInteraction
from devdoctor.core.models.known_error import KnownError
from devdoctor.core.models.result import AnalyzeStatus

logger = logging.getLogger(__name__)

# Exit code for an analyze invocation that never got to scan
CONFIG_ERROR_EXIT_CODE = 4


def exit_code_for(status: AnalyzeStatus) -> int:
    """Process exit code for an analyze result; a fixed error counts as success."""
    if status == AnalyzeStatus.KNOWN_ERROR_FOUND_FIX_SUCCEEDED:
        return 0
    return status.value


@dataclass
class AnalyzeInput:
    """Where the text to scan comes from. Exactly one source is set."""

    lines: list[str] | None = None
    path: Path | None = None
    use_stdin: bool = False

    @classmethod
    def from_lines(cls, lines: list[str]) -> AnalyzeInput:
        return cls(lines=list(lines))

    @classmethod
    def from_file(cls, path: Path) -> AnalyzeInput:
        return cls(path=path)

    @classmethod
    def stdin(cls) -> AnalyzeInput:
        return cls(use_stdin=True)

    def iter_lines(self) -> Iterator[str]:
        """Yield lines lazily; a file or stdin is never read in full up front.

        Raises:
            EngineError: If the file can't be opened.
        """
        if self.lines is not None:
            yield from self.lines
        elif self.path is not None:
            try:
                fh = self.path.open(encoding="utf-8", errors="replace")
            except OSError as e:
                raise EngineError(f"Cannot read {self.path}: {e}") from e
            with fh:
                yield from fh
        else:
            yield from _stdin_lines()


def _stdin_lines() -> Iterator[str]:
    """Lines of stdin decoded as UTF-8; undecodable bytes are replaced."""
    buffer = getattr(sys.stdin, "buffer", None)
    if buffer is None:
        # already a text stream
        yield from sys.stdin
        return
    stream = io.TextIOWrapper(buffer, encoding="utf-8", errors="replace")
    try:
        yield from stream
    finally:
        # leave sys.stdin's buffer open
        stream.detach()


def analyze_input(
    known_errors: list[KnownError],
    source: AnalyzeInput,
    interaction: UserInteraction | None = None,
    working_dir: Path | None = None,
    runner: CommandRunner | None = None,
    context: RunContext | None = None,
) -> AnalyzeStatus:
    """Scan ``source`` for the first known error and resolve it."""
    context = context or RunContext.from_environment(working_dir)
    engine = KnownErrorEngine(
        known_errors,
        context,
        runner or ShellCommandRunner(),
        interaction or DenyAll(),
    )
    status = engine.scan(source.iter_lines(), working_dir or context.working_dir)
    logger.info("Analyze finished: %s", status.label)
    return status


@dataclass
class CommandAnalysis:
    """Result of running a command and scanning its output."""

    command: str
    exit_code: int
    status: AnalyzeStatus
    output: list[str] = field(default_factory=list)

    @property
    def exit_code_for_cli(self) -> int:
        """The command's own exit code when nothing was recognized."""
        if self.status == AnalyzeStatus.NO_KNOWN_ERRORS_FOUND:
            return self.exit_code
        return exit_code_for(self.status)


def analyze_command(
    known_errors: list[KnownError],
    argv: list[str],
    interaction: UserInteraction | None = None,
    working_dir: Path | None = None,
    runner: CommandRunner | None = None,
    context: RunContext | None = None,
    on_line: Callable[[str], None] | None = None,
) -> CommandAnalysis:
    """Run ``argv``, stream its output through ``on_line``, then scan it.

    A command that exits 0 is not scanned.

    Raises:
        ProcessSpawnError: If the command can't be started.
    """
    context = context or RunContext.from_environment(working_dir)
    runner = runner or ShellCommandRunner()
    command = shlex.join(argv)
    request = CommandRequest(
        command=command,
        working_dir=context.working_dir,
        search_path=context.base_path,
        env=context.env,
        label="analyze",
    )
    report = runner.run_streaming(request, on_line or (lambda _line: None))
    lines = report.lines()

    if report.ok:
        logger.info("'%s' succeeded, nothing to analyze", command)
        return CommandAnalysis(command, report.exit_code, AnalyzeStatus.NO_KNOWN_ERRORS_FOUND, lines)

    engine = KnownErrorEngine(known_errors, context, runner, interaction or DenyAll())
    status = engine.scan(lines, context.working_dir)
    logger.info("'%s' exited %d, analyze: %s", command, report.exit_code, status.label)
    return CommandAnalysis(command, report.exit_code, status, lines)
