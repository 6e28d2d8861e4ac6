"""
Configuration loader — reads ``.devdoctor/*.yaml`` into domain models.

Configuration lives in ``.devdoctor`` directories found by walking up
from the working directory, plus ``~/.devdoctor``. Each YAML file may
hold several documents:

    apiVersion: devdoctor.dev/v1alpha
    kind: DoctorGroup            # or KnownError
    metadata:
      name: node
      description: Node toolchain is ready
    spec:
      needs: [brew]
      actions:
        - name: node-version
          check:
            paths: [.nvmrc]
            commands: [./bin/check-node]
          fix:
            commands: [nvm install]
            helpText: Install node with nvm

Documents are validated against the pydantic spec models below, then
turned into Group / KnownError domain objects.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from devdoctor.core.errors import ConfigError
from devdoctor.core.models.group import Group, IncludePolicy
from devdoctor.core.models.known_error import KnownError

logger = logging.getLogger(__name__)

API_VERSION = "devdoctor.dev/v1alpha"
CONFIG_DIR_NAME = ".devdoctor"
BIN_DIR_NAME = "bin"

KIND_DOCTOR_GROUP = "DoctorGroup"
KIND_KNOWN_ERROR = "KnownError"


# ── Document schemas ────────────────────────────────────────────────


class _SpecModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class FixPromptSpec(_SpecModel):
    text: str
    extra_context: str | None = None


class FixSpec(_SpecModel):
    commands: list[str] = Field(default_factory=list)
    help_text: str | None = None
    help_url: str | None = None
    prompt: FixPromptSpec | None = None


class CheckSpec(_SpecModel):
    paths: list[str] = Field(default_factory=list)
    commands: list[str] = Field(default_factory=list)


class ActionSpec(_SpecModel):
    name: str | None = None
    description: str = ""
    check: CheckSpec = Field(default_factory=CheckSpec)
    fix: FixSpec | None = None
    required: bool = True


class SkipSpec(_SpecModel):
    command: str


class DoctorGroupSpec(_SpecModel):
    include: IncludePolicy = IncludePolicy.BY_DEFAULT
    needs: list[str] = Field(default_factory=list)
    skip: bool | SkipSpec = False
    report_extra_details: dict[str, str] = Field(default_factory=dict)
    actions: list[ActionSpec] = Field(default_factory=list)


class KnownErrorSpec(_SpecModel):
    pattern: str
    help: str = ""
    fix: FixSpec | None = None


class Metadata(BaseModel):
    name: str
    description: str = ""


class ConfigDocument(BaseModel):
    """Envelope shared by every kind; ``spec`` is validated per kind."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    api_version: str
    kind: str
    metadata: Metadata
    spec: dict = Field(default_factory=dict)


# ── Result ──────────────────────────────────────────────────────────


@dataclass
class FoundConfig:
    """Everything loaded for one invocation."""

    working_dir: Path
    groups: list[Group] = field(default_factory=list)
    known_errors: list[KnownError] = field(default_factory=list)
    sources: list[Path] = field(default_factory=list)

    @property
    def group_names(self) -> list[str]:
        return [g.name for g in self.groups]

    def get_group(self, name: str) -> Group | None:
        for group in self.groups:
            if group.name == name:
                return group
        return None


# ── Discovery ───────────────────────────────────────────────────────


def find_config_dirs(start_dir: Path | None = None, home: Path | None = None) -> list[Path]:
    """Collect ``.devdoctor`` directories from ``start_dir`` upward, then ``~``.

    Nearest directory first.
    """
    current = (start_dir or Path.cwd()).resolve()
    found: list[Path] = []

    for _ in range(64):  # safety limit
        candidate = current / CONFIG_DIR_NAME
        if candidate.is_dir():
            found.append(candidate)
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    home_dir = (home or Path.home()) / CONFIG_DIR_NAME
    if home_dir.is_dir() and home_dir.resolve() not in found:
        found.append(home_dir.resolve())

    logger.debug("Config directories: %s", ", ".join(str(p) for p in found) or "(none)")
    return found


def _config_files(path: Path) -> list[Path]:
    if path.is_file():
        return [path]
    if not path.is_dir():
        raise ConfigError(f"Config path not found: {path}")
    return sorted(p for p in path.iterdir() if p.is_file() and p.suffix in (".yaml", ".yml"))


def _bin_path(config_file: Path) -> Path | None:
    candidate = config_file.parent / BIN_DIR_NAME
    return candidate if candidate.is_dir() else None


# ── Loading ─────────────────────────────────────────────────────────


def load_config(paths: list[Path], working_dir: Path | None = None) -> FoundConfig:
    """Load every config document under ``paths`` (files or directories).

    Raises:
        ConfigError: On unreadable files, invalid YAML or documents,
            malformed patterns, or duplicate names.
    """
    found = FoundConfig(working_dir=(working_dir or Path.cwd()).resolve())
    group_sources: dict[str, Path] = {}
    error_sources: dict[str, Path] = {}

    for path in paths:
        for config_file in _config_files(path):
            found.sources.append(config_file)
            for doc in _read_documents(config_file):
                if doc.kind == KIND_DOCTOR_GROUP:
                    group = _to_group(doc, config_file)
                    _check_unique("group", group.name, config_file, group_sources)
                    found.groups.append(group)
                elif doc.kind == KIND_KNOWN_ERROR:
                    known = _to_known_error(doc, config_file)
                    _check_unique("known error", known.name, config_file, error_sources)
                    found.known_errors.append(known)
                else:
                    logger.warning("Skipping unknown kind '%s' in %s", doc.kind, config_file)

    logger.info(
        "Loaded %d groups and %d known errors from %d files",
        len(found.groups), len(found.known_errors), len(found.sources),
    )
    return found


def _read_documents(path: Path) -> list[ConfigDocument]:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        documents = [d for d in yaml.safe_load_all(raw) if d is not None]
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    parsed: list[ConfigDocument] = []
    for data in documents:
        if not isinstance(data, dict):
            raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")
        try:
            doc = ConfigDocument.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid document in {path}: {e}") from e
        if doc.api_version != API_VERSION:
            raise ConfigError(
                f"Unsupported apiVersion '{doc.api_version}' in {path} (expected {API_VERSION})"
            )
        parsed.append(doc)
    return parsed


def _check_unique(kind: str, name: str, path: Path, seen: dict[str, Path]) -> None:
    if name in seen:
        raise ConfigError(f"Duplicate {kind} '{name}' in {path} (first defined in {seen[name]})")
    seen[name] = path


def _to_group(doc: ConfigDocument, path: Path) -> Group:
    try:
        spec = DoctorGroupSpec.model_validate(doc.spec)
        return Group.model_validate(
            {
                "name": doc.metadata.name,
                "description": doc.metadata.description,
                **spec.model_dump(),
                "directory": path.parent.resolve(),
                "bin_path": _bin_path(path),
            }
        )
    except ValidationError as e:
        raise ConfigError(f"Invalid {KIND_DOCTOR_GROUP} '{doc.metadata.name}' in {path}: {e}") from e


def _to_known_error(doc: ConfigDocument, path: Path) -> KnownError:
    try:
        spec = KnownErrorSpec.model_validate(doc.spec)
        return KnownError.model_validate(
            {
                "name": doc.metadata.name,
                "description": doc.metadata.description,
                "pattern": spec.pattern,
                "help_text": spec.help,
                "fix": spec.fix.model_dump() if spec.fix else None,
                "directory": path.parent.resolve(),
                "bin_path": _bin_path(path),
            }
        )
    except ValidationError as e:
        raise ConfigError(f"Invalid {KIND_KNOWN_ERROR} '{doc.metadata.name}' in {path}: {e}") from e


def discover_config(working_dir: Path | None = None, config_dirs: list[Path] | None = None) -> FoundConfig:
    """Find and load configuration for a working directory."""
    if config_dirs is None:
        config_dirs = find_config_dirs(working_dir)
    return load_config(config_dirs, working_dir)
