"""
Shell command runner — execute configured check/fix commands.

This is the SINGLE PLACE where ``subprocess`` is used for check,
fix and known-error commands. Commands go through ``sh -c`` so users
can write pipes and redirections in their configuration.
"""

from __future__ import annotations

import logging
import os
import subprocess
import time
from collections.abc import Callable
from datetime import UTC, datetime

from devdoctor.adapters.base import CommandRequest, CommandRunner
from devdoctor.core.errors import ProcessSpawnError
from devdoctor.core.models.outcome import CommandReport

logger = logging.getLogger(__name__)

# Exit code reported when a timeout kills the command; recoverable, not fatal
TIMEOUT_EXIT_CODE = 99


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class ShellCommandRunner(CommandRunner):
    """Run commands through the shell and capture their output.

    The request's ``search_path`` replaces PATH for the child; ``env``
    is layered on top of the current process environment.
    """

    @property
    def name(self) -> str:
        return "shell"

    def run(self, request: CommandRequest) -> CommandReport:
        env = os.environ.copy()
        env.update(request.env)
        if request.search_path:
            env["PATH"] = request.search_path

        logger.debug("Executing: %s (cwd=%s)", request.command, request.working_dir)
        started_at = _now_iso()
        start = time.monotonic()

        try:
            result = subprocess.run(
                request.command,
                shell=True,
                cwd=request.working_dir,
                env=env,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=request.timeout,
            )
        except subprocess.TimeoutExpired:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            logger.warning("Command timed out after %ss: %s", request.timeout, request.command)
            return CommandReport(
                command=request.command,
                exit_code=TIMEOUT_EXIT_CODE,
                error=f"Command timed out after {request.timeout}s",
                started_at=started_at,
                ended_at=_now_iso(),
                duration_ms=elapsed_ms,
            )
        except OSError as e:
            raise ProcessSpawnError(request.command, str(e)) from e

        elapsed_ms = int((time.monotonic() - start) * 1000)
        report = CommandReport(
            command=request.command,
            exit_code=result.returncode,
            output=result.stdout.rstrip("\n"),
            error=result.stderr.rstrip("\n"),
            started_at=started_at,
            ended_at=_now_iso(),
            duration_ms=elapsed_ms,
        )

        prefix = request.label or "cmd"
        for line in report.lines():
            logger.debug("%s: %s", prefix, line)
        logger.info("%s ran '%s' and exited %d", prefix, request.command, result.returncode)

        return report

    def run_streaming(self, request: CommandRequest, on_line: Callable[[str], None]) -> CommandReport:
        """Run a command, handing each stdout/stderr line to ``on_line`` as it arrives.

        stderr is merged into stdout, so the report's ``output`` holds
        everything in the order the user saw it.
        """
        env = os.environ.copy()
        env.update(request.env)
        if request.search_path:
            env["PATH"] = request.search_path

        logger.debug("Streaming: %s (cwd=%s)", request.command, request.working_dir)
        started_at = _now_iso()
        start = time.monotonic()

        try:
            proc = subprocess.Popen(
                request.command,
                shell=True,
                cwd=request.working_dir,
                env=env,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as e:
            raise ProcessSpawnError(request.command, str(e)) from e

        captured: list[str] = []
        # leaving the block waits for the child
        with proc:
            try:
                for line in proc.stdout or ():
                    line = line.rstrip("\n")
                    captured.append(line)
                    on_line(line)
            except BaseException:
                # a failing callback must not leave the child running
                proc.kill()
                raise

        return CommandReport(
            command=request.command,
            exit_code=proc.returncode,
            output="\n".join(captured),
            started_at=started_at,
            ended_at=_now_iso(),
            duration_ms=int((time.monotonic() - start) * 1000),
        )
