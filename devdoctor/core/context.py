"""
Run context — everything about "where and how are we running" for one run.

Built ONCE by whichever entry point launches the engine and passed
explicitly to every component:

    - CLI:    devdoctor/main.py  → RunContext.from_environment(working_dir)
    - Tests:  RunContext(working_dir=tmp_path, base_path="/usr/bin:/bin")

Nothing in the engine reads PATH, the working directory or the cache
location from the process environment; they all come from here. The
context is read-only after construction and safe to share across the
threads running groups.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path

# {{ working_dir }} — the only template variable commands and paths may use
_TEMPLATE_RE = re.compile(r"\{\{\s*working_dir\s*\}\}")


@dataclass(frozen=True)
class RunContext:
    """Per-invocation execution context."""

    working_dir: Path
    base_path: str = ""
    env: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_environment(cls, working_dir: Path | None = None) -> RunContext:
        """Capture PATH and the working directory of the current process."""
        return cls(
            working_dir=(working_dir or Path.cwd()).resolve(),
            base_path=os.environ.get("PATH", ""),
        )

    def search_path(self, extra_dirs: list[Path] | None = None) -> str:
        """PATH value with ``extra_dirs`` prepended, in order."""
        parts = [str(d) for d in (extra_dirs or [])]
        if self.base_path:
            parts.append(self.base_path)
        return os.pathsep.join(parts)

    def render(self, text: str) -> str:
        """Substitute ``{{ working_dir }}`` with the invocation working directory."""
        return _TEMPLATE_RE.sub(lambda _m: str(self.working_dir), text)

    def resolve_command(self, command: str, directory: Path) -> str:
        """Prepare a configured command for execution.

        - templates are rendered
        - a first word starting with ``.`` is resolved against ``directory``
          (the directory of the file that defined the command)
        - ``~`` is expanded word by word
        """
        words = self.render(command).split(" ")
        if words and words[0].startswith("."):
            words[0] = os.path.normpath(directory / words[0])
        return " ".join(os.path.expanduser(w) if w.startswith("~") else w for w in words)

    def resolve_glob(self, pattern: str, directory: Path) -> str:
        """Absolute glob pattern for a check path declared in ``directory``."""
        rendered = os.path.expanduser(self.render(pattern))
        if os.path.isabs(rendered):
            return rendered
        return str(directory / rendered)
