"""
Doctor use case — check and repair a development environment.

Wires the run together: context, runner, cache, interaction and
progress go into the action engine, group executor and dependency
scheduler; the cache is persisted once the run is over.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from devdoctor.adapters.base import CommandRunner
from devdoctor.adapters.shell import ShellCommandRunner
from devdoctor.core.config.loader import FoundConfig
from devdoctor.core.context import RunContext
from devdoctor.core.engine.action import ActionEngine
from devdoctor.core.engine.dag import DependencyGraph
from devdoctor.core.engine.group import GroupExecutor
from devdoctor.core.engine.known_errors import KnownErrorEngine
from devdoctor.core.engine.scheduler import DependencyScheduler
from devdoctor.core.interaction import DenyAll, UserInteraction
from devdoctor.core.models.group import Group
from devdoctor.core.models.result import RunResult
from devdoctor.core.observability.progress import ProgressReporter
from devdoctor.core.persistence.file_cache import CheckCache, open_cache

logger = logging.getLogger(__name__)


@dataclass
class DoctorRunOptions:
    """Options for one doctor run."""

    only_groups: list[str] = field(default_factory=list)
    run_fix: bool = True
    ci_mode: bool = False
    no_cache: bool = False
    cache_dir: Path | None = None
    max_workers: int | None = None

    @classmethod
    def for_groups(cls, names: list[str], run_fix: bool = True) -> DoctorRunOptions:
        return cls(only_groups=list(names), run_fix=run_fix)


def run_doctor(
    config: FoundConfig,
    options: DoctorRunOptions | None = None,
    interaction: UserInteraction | None = None,
    progress: ProgressReporter | None = None,
    runner: CommandRunner | None = None,
    cache: CheckCache | None = None,
    context: RunContext | None = None,
) -> RunResult:
    """Run the doctor over the loaded configuration.

    Args:
        config: Groups and known errors from ``load_config``.
        options: Run options (default: all by-default groups, fixes on).
        interaction: How to confirm prompted fixes. CI mode always
            denies; without one, prompts are denied.
        progress: Progress reporter (default: silent).
        runner: Process runner (default: shell).
        cache: Check cache (default: per ``options``).
        context: Run context (default: captured from the environment).

    Returns:
        RunResult with every group's outcome.

    Raises:
        ConfigError: On cycles, duplicates or unknown selected groups.
        CacheError: If the cache can't be read or saved.
    """
    options = options or DoctorRunOptions()
    context = context or RunContext.from_environment(config.working_dir)
    runner = runner or ShellCommandRunner()
    if interaction is None or (options.ci_mode and not isinstance(interaction, DenyAll)):
        interaction = DenyAll()
    if cache is None:
        cache = open_cache(no_cache=options.no_cache, cache_dir=options.cache_dir)

    known_errors = KnownErrorEngine(config.known_errors, context, runner, interaction)
    engine = ActionEngine(
        context,
        runner,
        cache,
        interaction,
        run_fix=options.run_fix,
        known_errors=known_errors,
    )
    executor = GroupExecutor(engine, runner, context, progress)
    scheduler = DependencyScheduler(executor, max_workers=options.max_workers)

    result = scheduler.run(config.groups, options.only_groups or None)
    cache.persist()
    return result


def list_groups(config: FoundConfig) -> list[Group]:
    """Every configured group, dependencies first.

    Raises:
        ConfigError: On cycles or duplicate names.
    """
    graph = DependencyGraph(config.groups)
    return [graph.group(name) for name in graph.topological_order()]
