"""
Group dependency graph (pure).

Groups are stored in an index-addressed arena; edges are index lists,
so the graph never holds references between Group objects. Validation
happens at construction:

    - duplicate group names  → ConfigError
    - dependency cycles      → ConfigError (Kahn's algorithm)
    - unknown ``needs``      → logged and ignored

No I/O, no subprocess.
"""

from __future__ import annotations

import logging

from devdoctor.core.errors import ConfigError
from devdoctor.core.models.group import Group

logger = logging.getLogger(__name__)


class DependencyGraph:
    """Validated dependency graph over a list of groups."""

    def __init__(self, groups: list[Group]):
        self._nodes: list[Group] = []
        self._index: dict[str, int] = {}

        for group in groups:
            if group.name in self._index:
                raise ConfigError(f"Duplicate group name: {group.name}")
            self._index[group.name] = len(self._nodes)
            self._nodes.append(group)

        # needs[i] → indices of the groups node i depends on
        self._needs: list[list[int]] = []
        # dependents[i] → indices of the groups that depend on node i
        self._dependents: list[list[int]] = [[] for _ in self._nodes]
        for idx, group in enumerate(self._nodes):
            edges: list[int] = []
            for dep in group.needs:
                dep_idx = self._index.get(dep)
                if dep_idx is None:
                    logger.warning("Group '%s' needs unknown group '%s' — ignoring", group.name, dep)
                    continue
                if dep_idx not in edges:
                    edges.append(dep_idx)
                    self._dependents[dep_idx].append(idx)
            self._needs.append(edges)

        self._order = self._kahn()

    def _kahn(self) -> list[int]:
        """Topological order of every node, ties broken by declaration order."""
        in_degree = [len(edges) for edges in self._needs]
        queue = [idx for idx, deg in enumerate(in_degree) if deg == 0]
        order: list[int] = []

        while queue:
            node = queue.pop(0)
            order.append(node)
            for successor in self._dependents[node]:
                in_degree[successor] -= 1
                if in_degree[successor] == 0:
                    queue.append(successor)

        if len(order) < len(self._nodes):
            stuck = sorted(self._nodes[i].name for i, deg in enumerate(in_degree) if deg > 0)
            raise ConfigError(f"Dependency cycle detected between groups: {', '.join(stuck)}")
        return order

    def group(self, name: str) -> Group:
        return self._nodes[self._index[name]]

    def needs_of(self, name: str) -> list[str]:
        """Known dependencies of a group (unknown ``needs`` dropped)."""
        return [self._nodes[i].name for i in self._needs[self._index[name]]]

    def closure(self, names: list[str]) -> set[str]:
        """``names`` plus everything they transitively need.

        Raises:
            ConfigError: If a name is not a known group.
        """
        unknown = [n for n in names if n not in self._index]
        if unknown:
            raise ConfigError(f"Unknown group(s): {', '.join(unknown)}")

        seen: set[int] = set()
        stack = [self._index[n] for n in names]
        while stack:
            idx = stack.pop()
            if idx in seen:
                continue
            seen.add(idx)
            stack.extend(self._needs[idx])
        return {self._nodes[i].name for i in seen}

    def topological_order(self, subset: set[str] | None = None) -> list[str]:
        """Group names with every dependency before its dependents."""
        return [
            self._nodes[i].name
            for i in self._order
            if subset is None or self._nodes[i].name in subset
        ]

    def ready(self, pending: list[str], completed: set[str]) -> list[str]:
        """Names in ``pending`` whose known dependencies all have a result."""
        return [name for name in pending if all(dep in completed for dep in self.needs_of(name))]
