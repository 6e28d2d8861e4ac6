"""
Domain models — Pydantic types for the doctor engine.

All models are re-exported here for convenient access:

    from devdoctor.core.models import Group, Action, Check, Fix, KnownError, RunResult
"""

from devdoctor.core.models.group import (
    Action,
    Check,
    Fix,
    FixPrompt,
    Group,
    IncludePolicy,
    SkipCommand,
)
from devdoctor.core.models.known_error import KnownError
from devdoctor.core.models.outcome import (
    FATAL_EXIT_CODE,
    ActionOutcome,
    ActionReport,
    ActionStatus,
    CommandReport,
    ExitClass,
    classify_exit_code,
)
from devdoctor.core.models.result import (
    AnalyzeStatus,
    ExtraDetail,
    GroupResult,
    GroupStatus,
    RunResult,
    SkipReason,
)

__all__ = [
    # group.py
    "Action",
    "ActionOutcome",
    "ActionReport",
    "ActionStatus",
    # result.py
    "AnalyzeStatus",
    "Check",
    # outcome.py
    "CommandReport",
    "ExitClass",
    "ExtraDetail",
    "FATAL_EXIT_CODE",
    "Fix",
    "FixPrompt",
    "Group",
    "GroupResult",
    "GroupStatus",
    "IncludePolicy",
    # known_error.py
    "KnownError",
    "RunResult",
    "SkipCommand",
    "SkipReason",
    "classify_exit_code",
]
