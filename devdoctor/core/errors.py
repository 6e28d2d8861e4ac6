"""
Error taxonomy for the engine.

Only two kinds of problems are raised as exceptions:

    - ConfigError  → the configuration can't be executed at all
                     (cycles, duplicate names, bad patterns). Raised
                     before any command runs.
    - EngineError  → infrastructure broke underneath an action
                     (process can't be spawned, files can't be read,
                     cache can't be written). Aborts the affected group.

Everything else — failing checks, failing fixes, fatal exit codes — is
data, carried in ActionOutcome / GroupResult / RunResult.
"""

from __future__ import annotations


class DevDoctorError(Exception):
    """Base class for all devdoctor exceptions."""


class ConfigError(DevDoctorError):
    """Raised when the configuration is invalid or cannot be executed."""


class EngineError(DevDoctorError):
    """Raised when an infrastructure failure aborts an action or group."""


class ProcessSpawnError(EngineError):
    """Raised when an external command could not be started."""

    def __init__(self, command: str, reason: str):
        super().__init__(f"Unable to run '{command}': {reason}")
        self.command = command
        self.reason = reason


class CacheError(EngineError):
    """Raised when the cache store cannot be read or written."""
