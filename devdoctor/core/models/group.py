"""
Group and Action models — the declarative check/fix vocabulary.

A Group is one coherent concern ("node toolchain ready"). It holds an
ordered list of Actions; each Action is a check that may be followed by
a fix. Groups depend on each other through ``needs``.

These models are built once from validated configuration and are
immutable for the duration of a run.
"""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, model_validator


class IncludePolicy(StrEnum):
    """When a group takes part in a run."""

    BY_DEFAULT = "by-default"
    WHEN_REQUIRED = "when-required"


class FixPrompt(BaseModel):
    """Confirmation the user must give before a fix runs."""

    model_config = ConfigDict(frozen=True)

    text: str
    extra_context: str | None = None


class Fix(BaseModel):
    """Remediation commands, shared by actions and known errors."""

    model_config = ConfigDict(frozen=True)

    commands: list[str] = Field(default_factory=list)
    help_text: str | None = None
    help_url: str | None = None
    prompt: FixPrompt | None = None

    @property
    def has_commands(self) -> bool:
        return bool(self.commands)


class Check(BaseModel):
    """Read-only test of whether an action is needed: file-change detection and/or command exit codes."""

    model_config = ConfigDict(frozen=True)

    paths: list[str] = Field(default_factory=list)
    commands: list[str] = Field(default_factory=list)


class Action(BaseModel):
    """One check-then-optionally-fix step within a group."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    check: Check = Field(default_factory=Check)
    fix: Fix | None = None
    required: bool = True

    @property
    def help_text(self) -> str | None:
        return self.fix.help_text if self.fix else None

    @property
    def help_url(self) -> str | None:
        return self.fix.help_url if self.fix else None


class SkipCommand(BaseModel):
    """Skip the group when this command exits 0."""

    model_config = ConfigDict(frozen=True)

    command: str


class Group(BaseModel):
    """A named, ordered collection of actions."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    actions: list[Action] = Field(default_factory=list)
    needs: list[str] = Field(default_factory=list)
    include: IncludePolicy = IncludePolicy.BY_DEFAULT
    skip: bool | SkipCommand = False
    report_extra_details: dict[str, str] = Field(default_factory=dict)

    # Where the group was defined — relative globs and ./commands resolve here
    directory: Path = Field(default_factory=Path.cwd)
    bin_path: Path | None = None

    @model_validator(mode="before")
    @classmethod
    def _name_unnamed_actions(cls, data: object) -> object:
        """Unnamed actions are named after their index within the group."""
        if not isinstance(data, dict):
            return data
        actions = data.get("actions")
        if not actions:
            return data
        named = []
        for index, action in enumerate(actions):
            if isinstance(action, dict) and not action.get("name"):
                action = {**action, "name": str(index)}
            named.append(action)
        return {**data, "actions": named}

    @property
    def run_by_default(self) -> bool:
        return self.include == IncludePolicy.BY_DEFAULT

    def search_dirs(self) -> list[Path]:
        """Directories prepended to PATH for this group's commands."""
        dirs = [self.directory]
        if self.bin_path is not None:
            dirs.append(self.bin_path)
        return dirs
