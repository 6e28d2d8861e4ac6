"""
Group, run and analyze results.

GroupResult is owned by the group executor that produced it; RunResult
is assembled by the scheduler. Both serialize to plain dicts for the
presentation and reporting layers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, StrEnum

from devdoctor.core.models.outcome import ActionOutcome


class GroupStatus(StrEnum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


class SkipReason(StrEnum):
    """Why a group was skipped. Folded into a single SKIPPED status."""

    SKIP_CONDITION = "skip-condition"
    DEPENDENCY_NOT_MET = "dependency-not-met"
    HALTED = "halted"


@dataclass
class ExtraDetail:
    """Output of a report-extra-details command."""

    name: str
    command: str
    output: str


@dataclass
class GroupResult:
    """Result of running one group."""

    group: str
    status: GroupStatus = GroupStatus.SUCCEEDED
    skip_reason: SkipReason | None = None
    actions: list[ActionOutcome] = field(default_factory=list)
    extra_details: list[ExtraDetail] = field(default_factory=list)
    error: str | None = None
    halt_requested: bool = False
    duration_ms: int = 0

    @classmethod
    def skipped(cls, group: str, reason: SkipReason) -> GroupResult:
        return cls(group=group, status=GroupStatus.SKIPPED, skip_reason=reason)

    @property
    def ok(self) -> bool:
        return self.status == GroupStatus.SUCCEEDED

    @property
    def failed_actions(self) -> list[ActionOutcome]:
        return [a for a in self.actions if a.failed]

    def to_dict(self) -> dict:
        return {
            "group": self.group,
            "status": self.status.value,
            "skip_reason": self.skip_reason.value if self.skip_reason else None,
            "error": self.error,
            "halt_requested": self.halt_requested,
            "duration_ms": self.duration_ms,
            "actions": [a.model_dump(mode="json") for a in self.actions],
            "extra_details": [
                {"name": d.name, "command": d.command, "output": d.output}
                for d in self.extra_details
            ],
        }


@dataclass
class RunResult:
    """Result of a full doctor run."""

    success: bool = True
    halted: bool = False
    succeeded: set[str] = field(default_factory=set)
    failed: set[str] = field(default_factory=set)
    skipped: set[str] = field(default_factory=set)
    group_results: list[GroupResult] = field(default_factory=list)

    def record(self, result: GroupResult) -> None:
        """Fold one group result into the run."""
        if result.status == GroupStatus.SUCCEEDED:
            self.succeeded.add(result.group)
        elif result.status == GroupStatus.FAILED:
            self.failed.add(result.group)
            self.success = False
        else:
            self.skipped.add(result.group)
        if result.halt_requested:
            self.halted = True
            self.success = False
        self.group_results.append(result)

    def get(self, group: str) -> GroupResult | None:
        for result in self.group_results:
            if result.group == group:
                return result
        return None

    def summary(self) -> str:
        parts = [f"{len(self.succeeded)} groups succeeded"]
        if self.failed:
            parts.append(f"{len(self.failed)} groups failed")
        if self.skipped:
            parts.append(f"{len(self.skipped)} groups skipped")
        return ", ".join(parts)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "halted": self.halted,
            "succeeded": sorted(self.succeeded),
            "failed": sorted(self.failed),
            "skipped": sorted(self.skipped),
            "groups": [r.to_dict() for r in self.group_results],
        }


class AnalyzeStatus(Enum):
    """Outcome of a known-error scan, ordered by remediation progress."""

    NO_KNOWN_ERRORS_FOUND = 0
    KNOWN_ERROR_FOUND_NO_FIX = 1
    KNOWN_ERROR_FOUND_USER_DENIED = 2
    KNOWN_ERROR_FOUND_FIX_FAILED = 3
    KNOWN_ERROR_FOUND_FIX_SUCCEEDED = 4

    @property
    def label(self) -> str:
        return self.name.lower().replace("_", "-")

    @property
    def error_found(self) -> bool:
        return self != AnalyzeStatus.NO_KNOWN_ERRORS_FOUND
