"""
Action engine — the check → fix → verify state machine for one action.

    paths declared, fingerprint matches cache    → passed-cached
    check commands all 0                         → passed
    any command ≥ 100                            → fatal
    failing, no fix                              → failed-no-fix
    failing, auto-fix off                        → fix-skipped
    failing, prompt denied                       → fix-denied
    fix ran, verification passes                 → fixed
    fix ran, verification fails                  → fix-failed / fix-ineffective

Every command goes through the CommandRunner; failures come back as
data. Only infrastructure problems (unspawnable process, unreadable
file) raise EngineError, which the group executor turns into a failed
group.
"""

from __future__ import annotations

import logging
import time

from devdoctor.adapters.base import CommandRequest, CommandRunner
from devdoctor.core.context import RunContext
from devdoctor.core.engine.known_errors import KnownErrorEngine
from devdoctor.core.interaction import UserInteraction
from devdoctor.core.models.group import Action, Group
from devdoctor.core.models.outcome import (
    ActionOutcome,
    ActionReport,
    ActionStatus,
    CommandReport,
    ExitClass,
    worst_exit_class,
)
from devdoctor.core.models.result import AnalyzeStatus
from devdoctor.core.persistence.file_cache import CheckCache
from devdoctor.core.persistence.fingerprint import Fingerprint, fingerprint_paths

logger = logging.getLogger(__name__)


class ActionEngine:
    """Evaluate actions against one run's context, runner and cache."""

    def __init__(
        self,
        context: RunContext,
        runner: CommandRunner,
        cache: CheckCache,
        interaction: UserInteraction,
        run_fix: bool = True,
        known_errors: KnownErrorEngine | None = None,
    ):
        self._context = context
        self._runner = runner
        self._cache = cache
        self._interaction = interaction
        self._run_fix = run_fix
        self._known_errors = known_errors

    # ── Public ─────────────────────────────────────────────────────

    def evaluate(self, group: Group, action: Action) -> ActionOutcome:
        """Run one action to a terminal outcome.

        Raises:
            EngineError: If a command can't be spawned or a checked
                file can't be read.
        """
        start = time.monotonic()
        report = ActionReport(action_name=action.name)
        patterns = [self._context.resolve_glob(p, group.directory) for p in action.check.paths]

        fingerprint: Fingerprint | None = None
        if patterns:
            fingerprint = fingerprint_paths(patterns)
            if self._cache_hit(group, action, fingerprint):
                logger.info("%s/%s: files unchanged, skipping check", group.name, action.name)
                return self._outcome(group, action, ActionStatus.PASSED_CACHED, report, start)

        check_class = self._check(group, action, report.check)
        if check_class == ExitClass.FATAL:
            return self._outcome(group, action, ActionStatus.FATAL, report, start)
        if check_class == ExitClass.SUCCESS:
            self._store(group, action, patterns, fingerprint, ActionStatus.PASSED)
            return self._outcome(group, action, ActionStatus.PASSED, report, start)

        status = self._remediate(group, action, report)
        if status == ActionStatus.FIXED:
            self._store(group, action, patterns, None, status)
        return self._outcome(group, action, status, report, start)

    # ── Check ──────────────────────────────────────────────────────

    def _cache_hit(self, group: Group, action: Action, fingerprint: Fingerprint) -> bool:
        if not self._cache.enabled:
            return False
        entry = self._cache.get(group.name, action.name)
        return entry is not None and entry.fingerprint == fingerprint.digest

    def _check(self, group: Group, action: Action, reports: list[CommandReport]) -> ExitClass:
        """Run the check commands; no commands means the check is failing.

        With paths declared and no cache hit, a changed file set alone
        is a failure. An action with nothing to check always fails, so
        its fix always runs.
        """
        if not action.check.commands:
            return ExitClass.FAILURE
        return self._run_all(group, action, action.check.commands, reports)

    def _run_all(
        self,
        group: Group,
        action: Action,
        commands: list[str],
        reports: list[CommandReport],
    ) -> ExitClass:
        """Run commands in order until one is fatal; return the worst class."""
        start = len(reports)
        for command in commands:
            report = self._run(group, action, command)
            reports.append(report)
            if report.fatal:
                logger.warning(
                    "%s/%s: '%s' exited %d (fatal)",
                    group.name, action.name, report.command, report.exit_code,
                )
                break
        return worst_exit_class(reports[start:])

    def _run(self, group: Group, action: Action, command: str) -> CommandReport:
        resolved = self._context.resolve_command(command, group.directory)
        return self._runner.run(
            CommandRequest(
                command=resolved,
                working_dir=self._context.working_dir,
                search_path=self._context.search_path(group.search_dirs()),
                env=self._context.env,
                label=f"{group.name}/{action.name}",
            )
        )

    # ── Fix ────────────────────────────────────────────────────────

    def _remediate(self, group: Group, action: Action, report: ActionReport) -> ActionStatus:
        fix = action.fix
        if fix is None or not fix.has_commands:
            return ActionStatus.FAILED_NO_FIX

        if not self._run_fix:
            logger.info("%s/%s: failing, auto-fix disabled", group.name, action.name)
            return ActionStatus.FIX_SKIPPED

        if fix.prompt is not None:
            approved = self._interaction.confirm(fix.prompt.text, help_text=fix.prompt.extra_context)
            if not approved:
                logger.info("%s/%s: fix denied", group.name, action.name)
                return ActionStatus.FIX_DENIED

        fix_class, verified = self._fix_and_verify(group, action, report)
        if fix_class == ExitClass.FATAL or verified is None:
            return ActionStatus.FATAL

        if not verified and self._known_errors is not None and self._known_errors.errors:
            healed = self._self_heal(group, action, report)
            if healed is not None:
                fix_class, verified = healed
                if fix_class == ExitClass.FATAL or verified is None:
                    return ActionStatus.FATAL

        if verified:
            logger.info("%s/%s: fixed", group.name, action.name)
            return ActionStatus.FIXED
        if fix_class == ExitClass.FAILURE:
            return ActionStatus.FIX_FAILED
        return ActionStatus.FIX_INEFFECTIVE

    def _fix_and_verify(
        self,
        group: Group,
        action: Action,
        report: ActionReport,
    ) -> tuple[ExitClass, bool | None]:
        """Run the fix, then re-check.

        Returns the fix's worst exit class and whether verification
        passed (None when verification itself was fatal).
        """
        assert action.fix is not None
        fix_class = self._run_all(group, action, action.fix.commands, report.fix)
        if fix_class == ExitClass.FATAL:
            return fix_class, False

        if not action.check.commands:
            # Nothing to re-run: the fix's own result is the verdict
            return fix_class, fix_class == ExitClass.SUCCESS

        verify_class = self._run_all(group, action, action.check.commands, report.verify)
        if verify_class == ExitClass.FATAL:
            return fix_class, None
        return fix_class, verify_class == ExitClass.SUCCESS

    def _self_heal(
        self,
        group: Group,
        action: Action,
        report: ActionReport,
    ) -> tuple[ExitClass, bool | None] | None:
        """Scan failed fix/verify output for a known error and retry once if it was fixed."""
        assert self._known_errors is not None
        lines = [line for r in report.fix + report.verify for line in r.lines()]
        status = self._known_errors.scan(lines, self._context.working_dir)
        if status != AnalyzeStatus.KNOWN_ERROR_FOUND_FIX_SUCCEEDED:
            return None

        logger.info("%s/%s: known error fixed, retrying fix", group.name, action.name)
        return self._fix_and_verify(group, action, report)

    # ── Results ────────────────────────────────────────────────────

    def _store(
        self,
        group: Group,
        action: Action,
        patterns: list[str],
        fingerprint: Fingerprint | None,
        status: ActionStatus,
    ) -> None:
        """Remember a successful evaluation; a fix may have changed the files."""
        if not patterns or not self._cache.enabled:
            return
        if fingerprint is None:
            fingerprint = fingerprint_paths(patterns)
        self._cache.put(group.name, action.name, fingerprint.digest, fingerprint.files, status.value)

    def _outcome(
        self,
        group: Group,
        action: Action,
        status: ActionStatus,
        report: ActionReport,
        start: float,
    ) -> ActionOutcome:
        outcome = ActionOutcome(
            group=group.name,
            action=action.name,
            description=action.description,
            status=status,
            required=action.required,
            report=report,
            help_text=action.help_text,
            help_url=action.help_url,
            duration_ms=int((time.monotonic() - start) * 1000),
        )
        if outcome.failed:
            logger.info("%s/%s: %s", group.name, action.name, status.value)
        return outcome
