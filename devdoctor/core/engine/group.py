"""
Group executor — run one group's actions in order.

    skip condition true          → skipped (skip-condition)
    a needed group not succeeded → skipped (dependency-not-met)
    otherwise                    → actions run sequentially

A failed required action fails the group but the remaining actions
still run. A fatal action stops the group and asks the scheduler to
halt. An EngineError aborts the group with its message recorded;
outcomes already produced and a halt request are kept.
"""

from __future__ import annotations

import logging
import time

from devdoctor.adapters.base import CommandRequest, CommandRunner
from devdoctor.core.context import RunContext
from devdoctor.core.engine.action import ActionEngine
from devdoctor.core.errors import EngineError
from devdoctor.core.models.group import Group, SkipCommand
from devdoctor.core.models.result import (
    ExtraDetail,
    GroupResult,
    GroupStatus,
    SkipReason,
)
from devdoctor.core.observability.progress import ProgressReporter, SilentProgress

logger = logging.getLogger(__name__)


class GroupExecutor:
    """Execute a group against the results of the groups it needs."""

    def __init__(
        self,
        engine: ActionEngine,
        runner: CommandRunner,
        context: RunContext,
        progress: ProgressReporter | None = None,
    ):
        self._engine = engine
        self._runner = runner
        self._context = context
        self._progress = progress or SilentProgress()

    def run(self, group: Group, dependency_results: dict[str, GroupResult]) -> GroupResult:
        """Run ``group`` to a terminal GroupResult. Never raises EngineError."""
        start = time.monotonic()
        try:
            result = self._run(group, dependency_results)
        except EngineError as e:
            logger.error("Group '%s' aborted: %s", group.name, e)
            result = GroupResult(group=group.name, status=GroupStatus.FAILED, error=str(e))
        result.duration_ms = int((time.monotonic() - start) * 1000)
        self._progress.finish_group(result)
        return result

    def skip(self, group: Group, reason: SkipReason) -> GroupResult:
        """Record a group that will not run at all (e.g. the run halted)."""
        logger.info("Group '%s' skipped: %s", group.name, reason.value)
        result = GroupResult.skipped(group.name, reason)
        self._progress.finish_group(result)
        return result

    def _run(self, group: Group, dependency_results: dict[str, GroupResult]) -> GroupResult:
        if self._should_skip(group):
            logger.info("Group '%s' skipped by its skip condition", group.name)
            return GroupResult.skipped(group.name, SkipReason.SKIP_CONDITION)

        unmet = [
            dep for dep in group.needs
            if dep in dependency_results and not dependency_results[dep].ok
        ]
        if unmet:
            logger.info("Group '%s' skipped, dependencies not met: %s", group.name, ", ".join(unmet))
            return GroupResult.skipped(group.name, SkipReason.DEPENDENCY_NOT_MET)

        result = GroupResult(group=group.name)
        self._progress.start_group(group.name, len(group.actions))

        for action in group.actions:
            self._progress.advance_action(group.name, action.name, action.description)
            try:
                outcome = self._engine.evaluate(group, action)
            except EngineError as e:
                logger.error("Group '%s' aborted at action '%s': %s", group.name, action.name, e)
                result.status = GroupStatus.FAILED
                result.error = str(e)
                break
            result.actions.append(outcome)
            self._progress.action_finished(outcome)

            if outcome.fatal:
                logger.error("Group '%s' stopped: action '%s' was fatal", group.name, action.name)
                result.status = GroupStatus.FAILED
                result.halt_requested = True
                break
            if outcome.failed and outcome.required:
                result.status = GroupStatus.FAILED

        try:
            result.extra_details = self._extra_details(group)
        except EngineError as e:
            logger.error("Group '%s': extra details failed: %s", group.name, e)
            result.status = GroupStatus.FAILED
            result.error = result.error or str(e)
        return result

    def _should_skip(self, group: Group) -> bool:
        if isinstance(group.skip, SkipCommand):
            report = self._runner.run(self._request(group, group.skip.command, "skip"))
            return report.ok
        return group.skip

    def _extra_details(self, group: Group) -> list[ExtraDetail]:
        details = []
        for name, command in group.report_extra_details.items():
            request = self._request(group, command, f"details/{name}")
            details.append(
                ExtraDetail(name=name, command=command, output=self._runner.run_for_output(request))
            )
        return details

    def _request(self, group: Group, command: str, label: str) -> CommandRequest:
        return CommandRequest(
            command=self._context.resolve_command(command, group.directory),
            working_dir=self._context.working_dir,
            search_path=self._context.search_path(group.search_dirs()),
            env=self._context.env,
            label=f"{group.name}/{label}",
        )
