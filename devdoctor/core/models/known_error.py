"""
KnownError model — a named error signature matched against text output.
"""

from __future__ import annotations

import re
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from devdoctor.core.models.group import Fix


class KnownError(BaseModel):
    """A regular-expression error signature with help text and an optional fix.

    The pattern is compiled during validation, so a malformed expression
    is rejected when the configuration is loaded rather than mid-scan.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    pattern: re.Pattern[str]
    help_text: str = ""
    fix: Fix | None = None

    directory: Path = Field(default_factory=Path.cwd)
    bin_path: Path | None = None

    def matches(self, line: str) -> bool:
        return self.pattern.search(line) is not None

    def search_dirs(self) -> list[Path]:
        dirs = [self.directory]
        if self.bin_path is not None:
            dirs.append(self.bin_path)
        return dirs
