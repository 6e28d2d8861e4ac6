"""
Known-error engine — match output against error signatures and offer fixes.

Lines are consumed lazily, so the source can be an in-memory list, an
open file or a live stream. Every line is tested against every known
error in declaration order; the first match resolves the scan:

    no fix declared          → KNOWN_ERROR_FOUND_NO_FIX
    fix declared, denied     → KNOWN_ERROR_FOUND_USER_DENIED
    fix ran, some exit != 0  → KNOWN_ERROR_FOUND_FIX_FAILED
    fix ran, all exit 0      → KNOWN_ERROR_FOUND_FIX_SUCCEEDED

An exhausted stream yields NO_KNOWN_ERRORS_FOUND.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from devdoctor.adapters.base import CommandRequest, CommandRunner
from devdoctor.core.context import RunContext
from devdoctor.core.interaction import UserInteraction
from devdoctor.core.models.known_error import KnownError
from devdoctor.core.models.result import AnalyzeStatus

logger = logging.getLogger(__name__)

DEFAULT_FIX_PROMPT = "Would you like to run it?"


class KnownErrorEngine:
    """Scan text for known errors and run their fixes.

    Used directly by ``analyze`` and by the action engine to self-heal
    a failing fix.
    """

    def __init__(
        self,
        errors: list[KnownError],
        context: RunContext,
        runner: CommandRunner,
        interaction: UserInteraction,
    ):
        self._errors = list(errors)
        self._context = context
        self._runner = runner
        self._interaction = interaction

    @property
    def errors(self) -> list[KnownError]:
        return self._errors

    def find(self, lines: Iterable[str]) -> KnownError | None:
        """First known error matching any line, or None."""
        if not self._errors:
            return None
        for raw in lines:
            line = raw.rstrip("\r\n")
            for error in self._errors:
                if error.matches(line):
                    logger.debug("Line matched known error '%s': %s", error.name, line)
                    return error
        return None

    def scan(self, lines: Iterable[str], working_dir: Path | None = None) -> AnalyzeStatus:
        """Scan ``lines`` and resolve the first known error found."""
        error = self.find(lines)
        if error is None:
            return AnalyzeStatus.NO_KNOWN_ERRORS_FOUND
        return self.resolve(error, working_dir or self._context.working_dir)

    def resolve(self, error: KnownError, working_dir: Path) -> AnalyzeStatus:
        """Report a matched error and, if it has a fix, offer to run it."""
        logger.info("Found known error '%s'", error.name)
        self._interaction.notify(f"Found a known error: {error.name}")
        if error.help_text:
            self._interaction.notify(error.help_text.strip())

        fix = error.fix
        if fix is None or not fix.has_commands:
            return AnalyzeStatus.KNOWN_ERROR_FOUND_NO_FIX

        prompt_text = fix.prompt.text if fix.prompt else DEFAULT_FIX_PROMPT
        extra_context = fix.prompt.extra_context if fix.prompt else None
        if not self._interaction.confirm(prompt_text, help_text=extra_context):
            logger.info("Fix for '%s' denied", error.name)
            return AnalyzeStatus.KNOWN_ERROR_FOUND_USER_DENIED

        if self.run_fix(error, working_dir):
            self._interaction.notify(f"Fix for '{error.name}' succeeded")
            return AnalyzeStatus.KNOWN_ERROR_FOUND_FIX_SUCCEEDED

        if fix.help_text:
            self._interaction.notify(fix.help_text.strip())
        if fix.help_url:
            self._interaction.notify(f"For more help, see {fix.help_url}")
        return AnalyzeStatus.KNOWN_ERROR_FOUND_FIX_FAILED

    def run_fix(self, error: KnownError, working_dir: Path) -> bool:
        """Run the error's fix commands, stopping at the first non-zero exit."""
        assert error.fix is not None
        search_path = self._context.search_path(error.search_dirs())
        for command in error.fix.commands:
            resolved = self._context.resolve_command(command, error.directory)
            report = self._runner.run(
                CommandRequest(
                    command=resolved,
                    working_dir=working_dir,
                    search_path=search_path,
                    env=self._context.env,
                    label=f"known-error/{error.name}",
                )
            )
            if not report.ok:
                logger.warning(
                    "Fix command '%s' for known error '%s' exited %d",
                    resolved, error.name, report.exit_code,
                )
                return False
        return True


def scan(
    lines: Iterable[str],
    errors: list[KnownError],
    working_dir: Path,
    interaction: UserInteraction,
    runner: CommandRunner | None = None,
    context: RunContext | None = None,
) -> AnalyzeStatus:
    """Scan ``lines`` for the first known error and resolve it.

    Convenience wrapper around KnownErrorEngine for one-shot scans.
    """
    if runner is None:
        from devdoctor.adapters.shell import ShellCommandRunner

        runner = ShellCommandRunner()
    if context is None:
        context = RunContext.from_environment(working_dir)
    engine = KnownErrorEngine(errors, context, runner, interaction)
    return engine.scan(lines, working_dir)
