"""
Dependency scheduler — run groups concurrently in dependency order.

A group is launched on the thread pool once every group it needs has
a recorded result. Finished groups are joined as they complete, which
may unlock their dependents.

When a group reports a fatal action the run halts: nothing new is
launched, in-flight groups finish normally, and every group still
waiting is recorded as skipped (halted).
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait

from devdoctor.core.engine.dag import DependencyGraph
from devdoctor.core.engine.group import GroupExecutor
from devdoctor.core.models.group import Group
from devdoctor.core.models.result import GroupResult, RunResult, SkipReason

logger = logging.getLogger(__name__)


class DependencyScheduler:
    """Select, order and execute groups."""

    def __init__(self, executor: GroupExecutor, max_workers: int | None = None):
        self._executor = executor
        # ThreadPoolExecutor's own default when unset
        self._workers = max_workers or min(32, (os.cpu_count() or 1) + 4)

    @staticmethod
    def plan(groups: list[Group], only_groups: list[str] | None = None) -> list[Group]:
        """Groups that will take part in a run, in topological order.

        With ``only_groups``, the selected groups plus everything they
        need. Otherwise every ``by-default`` group plus everything they
        need; ``when-required`` groups only enter as dependencies.

        Raises:
            ConfigError: On duplicate names, cycles or unknown selections.
        """
        graph = DependencyGraph(groups)
        return [graph.group(name) for name in DependencyScheduler._eligible(graph, groups, only_groups)]

    @staticmethod
    def _eligible(graph: DependencyGraph, groups: list[Group], only_groups: list[str] | None) -> list[str]:
        if only_groups:
            roots = list(only_groups)
        else:
            roots = [g.name for g in groups if g.run_by_default]
        return graph.topological_order(graph.closure(roots))

    def run(self, groups: list[Group], only_groups: list[str] | None = None) -> RunResult:
        """Execute the eligible groups and fold their results.

        Raises:
            ConfigError: Before anything runs, if the graph is invalid.
        """
        graph = DependencyGraph(groups)
        pending = self._eligible(graph, groups, only_groups)
        logger.info("Running %d groups: %s", len(pending), ", ".join(pending))

        run = RunResult()
        results: dict[str, GroupResult] = {}
        halted = False

        with ThreadPoolExecutor(max_workers=self._workers, thread_name_prefix="group") as pool:
            running: dict[Future[GroupResult], str] = {}

            while pending or running:
                if not halted:
                    # only hand the pool what it can start now, so a halt stops the rest
                    free = self._workers - len(running)
                    for name in graph.ready(pending, set(results))[:free]:
                        pending.remove(name)
                        deps = {dep: results[dep] for dep in graph.needs_of(name)}
                        logger.debug("Launching group '%s'", name)
                        running[pool.submit(self._executor.run, graph.group(name), deps)] = name

                if not running:
                    break

                done, _ = wait(running, return_when=FIRST_COMPLETED)
                for future in done:
                    name = running.pop(future)
                    result = future.result()
                    results[name] = result
                    run.record(result)
                    if result.halt_requested and not halted:
                        logger.error("Group '%s' requested a halt — no new groups will start", name)
                        halted = True

        for name in pending:
            run.record(self._executor.skip(graph.group(name), SkipReason.HALTED))

        logger.info("Run finished: %s", run.summary())
        return run
