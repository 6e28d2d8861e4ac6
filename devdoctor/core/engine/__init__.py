"""
Execution engine — action state machine, group executor, dependency
scheduler and known-error scanning.
"""

from devdoctor.core.engine.action import ActionEngine
from devdoctor.core.engine.dag import DependencyGraph
from devdoctor.core.engine.group import GroupExecutor
from devdoctor.core.engine.known_errors import KnownErrorEngine, scan
from devdoctor.core.engine.scheduler import DependencyScheduler

__all__ = [
    "ActionEngine",
    "DependencyGraph",
    "DependencyScheduler",
    "GroupExecutor",
    "KnownErrorEngine",
    "scan",
]
