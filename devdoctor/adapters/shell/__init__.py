"""Shell adapters."""

from devdoctor.adapters.shell.command import ShellCommandRunner

__all__ = ["ShellCommandRunner"]
