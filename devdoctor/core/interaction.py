"""
User interaction — how the engine asks before running a fix.

The engine only ever talks to a UserInteraction; which one is used is
decided by the caller:

    - AutoApprove         → every prompt is approved (``--yes``)
    - DenyAll             → every prompt is denied (CI / non-interactive)
    - InteractiveConfirm  → ask on the console (default for a terminal)
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod

import click

logger = logging.getLogger(__name__)


class UserInteraction(ABC):
    """Capability interface for confirmations and notifications."""

    @abstractmethod
    def confirm(self, prompt: str, help_text: str | None = None) -> bool:
        """Ask a yes/no question. Returns True when the user approves."""

    @abstractmethod
    def notify(self, message: str) -> None:
        """Show an informational message; never blocks."""


class _Unattended(UserInteraction):
    """Answers prompts without asking. Notifications go to the log,
    or to stderr when ``echo`` is set (CLI use)."""

    def __init__(self, echo: bool = False) -> None:
        self._echo = echo

    def notify(self, message: str) -> None:
        if self._echo:
            click.echo(message, err=True)
        else:
            logger.info(message)


class AutoApprove(_Unattended):
    """Approve every prompt."""

    def confirm(self, prompt: str, help_text: str | None = None) -> bool:
        logger.debug("Auto-approving prompt: %s", prompt)
        return True


class DenyAll(_Unattended):
    """Deny every prompt."""

    def confirm(self, prompt: str, help_text: str | None = None) -> bool:
        logger.debug("Denying prompt: %s", prompt)
        return False


class InteractiveConfirm(UserInteraction):
    """Ask on the console with ``click.confirm`` (default: no).

    Groups run concurrently, so questions are serialized with a lock to
    keep two prompts from interleaving on the terminal. An aborted
    prompt (Ctrl-C / EOF) counts as a denial.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()

    def confirm(self, prompt: str, help_text: str | None = None) -> bool:
        with self._lock:
            if help_text:
                click.secho(help_text.strip(), fg="cyan", err=True)
            try:
                return click.confirm(prompt.strip(), default=False, err=True)
            except click.Abort:
                return False

    def notify(self, message: str) -> None:
        with self._lock:
            click.echo(message, err=True)
