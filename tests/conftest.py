"""
Shared test fixtures and configuration.
"""

import os
import threading
from collections.abc import Callable
from pathlib import Path

import pytest

from devdoctor.adapters.mock import MockRunner
from devdoctor.core.context import RunContext
from devdoctor.core.interaction import UserInteraction
from devdoctor.core.models.group import Group
from devdoctor.core.models.outcome import ActionOutcome
from devdoctor.core.models.result import GroupResult
from devdoctor.core.observability.progress import ProgressReporter


class RecordingInteraction(UserInteraction):
    """Answers every prompt with ``answer`` and remembers what was asked."""

    def __init__(self, answer: bool):
        self.answer = answer
        self.prompts: list[str] = []
        self.messages: list[str] = []
        self._lock = threading.Lock()

    def confirm(self, prompt: str, help_text: str | None = None) -> bool:
        with self._lock:
            self.prompts.append(prompt)
        return self.answer

    def notify(self, message: str) -> None:
        with self._lock:
            self.messages.append(message)


class RecordingProgress(ProgressReporter):
    """Collects progress events as tuples."""

    def __init__(self):
        self.events: list[tuple] = []
        self._lock = threading.Lock()

    def start_group(self, group: str, total_actions: int) -> None:
        with self._lock:
            self.events.append(("start", group, total_actions))

    def advance_action(self, group: str, action: str, description: str = "") -> None:
        with self._lock:
            self.events.append(("action", group, action))

    def action_finished(self, outcome: ActionOutcome) -> None:
        with self._lock:
            self.events.append(("finished", outcome.group, outcome.action, outcome.status))

    def finish_group(self, result: GroupResult) -> None:
        with self._lock:
            self.events.append(("finish", result.group, result.status))


@pytest.fixture
def context(tmp_path: Path) -> RunContext:
    """Run context rooted at a temporary working directory."""
    return RunContext(working_dir=tmp_path, base_path=os.environ.get("PATH", ""))


@pytest.fixture
def mock_runner() -> MockRunner:
    return MockRunner()


@pytest.fixture
def tmp_cache_path(tmp_path: Path) -> Path:
    """Return a cache file path inside a not-yet-created directory."""
    return tmp_path / "cache" / "cache-file.json"


@pytest.fixture
def approve() -> RecordingInteraction:
    return RecordingInteraction(answer=True)


@pytest.fixture
def deny() -> RecordingInteraction:
    return RecordingInteraction(answer=False)


@pytest.fixture
def progress() -> RecordingProgress:
    return RecordingProgress()


@pytest.fixture
def make_group(tmp_path: Path) -> Callable[..., Group]:
    """Build a Group defined in ``tmp_path`` from plain dicts."""

    def _make(name: str, actions: list[dict] | None = None, **kwargs) -> Group:
        return Group.model_validate(
            {"name": name, "actions": actions or [], "directory": tmp_path, **kwargs}
        )

    return _make
