"""
Command reports and action outcomes — the execution contract.

The process runner returns a CommandReport for every command it runs.
The action engine folds those reports into an ActionOutcome. Failures
are values here, never exceptions.

Exit-code contract for every check/fix command:

    0       success
    1–99    recoverable failure (fix may run, execution continues)
    ≥100    fatal (stop the group, halt scheduling of new groups)
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, Field

FATAL_EXIT_CODE = 100


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class ExitClass(StrEnum):
    SUCCESS = "success"
    FAILURE = "failure"
    FATAL = "fatal"


def classify_exit_code(code: int) -> ExitClass:
    """Map a process exit code onto the success/failure/fatal taxonomy.

    Negative codes (killed by a signal) count as recoverable failures.
    """
    if code == 0:
        return ExitClass.SUCCESS
    if code >= FATAL_EXIT_CODE:
        return ExitClass.FATAL
    return ExitClass.FAILURE


class CommandReport(BaseModel):
    """Result of running one external command."""

    command: str
    exit_code: int
    output: str = ""
    error: str = ""

    started_at: str = Field(default_factory=_now_iso)
    ended_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    @property
    def exit_class(self) -> ExitClass:
        return classify_exit_code(self.exit_code)

    @property
    def ok(self) -> bool:
        return self.exit_class == ExitClass.SUCCESS

    @property
    def fatal(self) -> bool:
        return self.exit_class == ExitClass.FATAL

    @property
    def combined_output(self) -> str:
        """stdout followed by stderr, as a user would have seen it."""
        return "\n".join(part for part in (self.output, self.error) if part)

    def lines(self) -> list[str]:
        return self.combined_output.splitlines()


def worst_exit_class(reports: list[CommandReport]) -> ExitClass:
    """The most severe exit class among a list of reports."""
    order = [ExitClass.SUCCESS, ExitClass.FAILURE, ExitClass.FATAL]
    worst = ExitClass.SUCCESS
    for report in reports:
        if order.index(report.exit_class) > order.index(worst):
            worst = report.exit_class
    return worst


class ActionStatus(StrEnum):
    """Terminal state of one action evaluation."""

    PASSED = "passed"
    PASSED_CACHED = "passed-cached"
    FIXED = "fixed"
    FIX_SKIPPED = "fix-skipped"          # auto-fix disabled for this run
    FIX_DENIED = "fix-denied"
    FIX_FAILED = "fix-failed"
    FIX_INEFFECTIVE = "fix-ineffective"  # fix ran cleanly, verification failed
    FAILED_NO_FIX = "failed-no-fix"
    FATAL = "fatal"

    @property
    def is_success(self) -> bool:
        return self in (ActionStatus.PASSED, ActionStatus.PASSED_CACHED, ActionStatus.FIXED)

    @property
    def is_failure(self) -> bool:
        return not self.is_success


class ActionReport(BaseModel):
    """Every command an action ran, by phase."""

    action_name: str
    check: list[CommandReport] = Field(default_factory=list)
    fix: list[CommandReport] = Field(default_factory=list)
    verify: list[CommandReport] = Field(default_factory=list)

    def display_reports(self) -> list[CommandReport]:
        """The phase most relevant for showing a failure to a user."""
        if self.verify:
            return self.verify
        if self.fix:
            return self.fix
        return self.check

    @property
    def commands_run(self) -> int:
        return len(self.check) + len(self.fix) + len(self.verify)


class ActionOutcome(BaseModel):
    """Outcome of evaluating one action."""

    group: str
    action: str
    description: str = ""
    status: ActionStatus
    required: bool = True
    report: ActionReport
    help_text: str | None = None
    help_url: str | None = None
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.status.is_success

    @property
    def failed(self) -> bool:
        return self.status.is_failure

    @property
    def fatal(self) -> bool:
        return self.status == ActionStatus.FATAL
