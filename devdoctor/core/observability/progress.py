"""
Progress reporting — what the user sees while groups run.

Groups run concurrently, so every call names the group it belongs to.
Implementations must be safe to call from several threads.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod

import click

from devdoctor.core.models.outcome import ActionOutcome
from devdoctor.core.models.result import GroupResult, GroupStatus

_STATUS_COLORS = {
    GroupStatus.SUCCEEDED: "green",
    GroupStatus.FAILED: "red",
    GroupStatus.SKIPPED: "yellow",
}


class ProgressReporter(ABC):
    """Capability interface for progress output."""

    @abstractmethod
    def start_group(self, group: str, total_actions: int) -> None:
        """A group is about to run its actions."""

    @abstractmethod
    def advance_action(self, group: str, action: str, description: str = "") -> None:
        """The next action of ``group`` is starting."""

    @abstractmethod
    def finish_group(self, result: GroupResult) -> None:
        """A group produced its terminal result."""

    def action_finished(self, outcome: ActionOutcome) -> None:
        """Optional hook: an action produced its outcome."""


class SilentProgress(ProgressReporter):
    """Report nothing. For library use and tests."""

    def start_group(self, group: str, total_actions: int) -> None:
        pass

    def advance_action(self, group: str, action: str, description: str = "") -> None:
        pass

    def finish_group(self, result: GroupResult) -> None:
        pass


class ConsoleProgress(ProgressReporter):
    """Line-oriented progress on stderr, one line per event."""

    def __init__(self, verbose: bool = False) -> None:
        self._verbose = verbose
        self._lock = threading.Lock()

    def start_group(self, group: str, total_actions: int) -> None:
        with self._lock:
            click.secho(f"▸ {group}", fg="cyan", bold=True, err=True, nl=False)
            click.echo(f" ({total_actions} actions)", err=True)

    def advance_action(self, group: str, action: str, description: str = "") -> None:
        if not self._verbose:
            return
        with self._lock:
            label = f"  {group}/{action}"
            if description:
                label += f" — {description.strip()}"
            click.echo(label, err=True)

    def action_finished(self, outcome: ActionOutcome) -> None:
        with self._lock:
            marker, color = ("✓", "green") if outcome.ok else ("✗", "red")
            if not outcome.required and outcome.failed:
                color = "yellow"
            click.secho(f"  {marker} ", fg=color, err=True, nl=False)
            click.echo(f"{outcome.group}/{outcome.action}: {outcome.status.value}", err=True)

    def finish_group(self, result: GroupResult) -> None:
        with self._lock:
            text = f"  {result.group}: {result.status.value}"
            if result.skip_reason:
                text += f" ({result.skip_reason.value})"
            click.secho(text, fg=_STATUS_COLORS[result.status], err=True)
