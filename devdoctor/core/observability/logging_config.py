"""
Logging setup for the devdoctor CLI.

main.py calls ``configure_cli_logging`` once; library code only ever
does ``logger = logging.getLogger(__name__)``.

Console level, highest precedence first:
    --debug / --verbose / --quiet  >  DEVDOCTOR_LOG_LEVEL  >  WARNING

Groups run on worker threads named ``group_N``, so every format above
WARNING carries the thread name to tell interleaved groups apart. The
shell runner logs each line of command output at DEBUG; pointing
DEVDOCTOR_LOG_FILE at a file (with DEVDOCTOR_LOG_FILE_LEVEL=DEBUG)
keeps a full transcript of a run while the console stays quiet.
"""

from __future__ import annotations

import logging
import os
import sys

ENV_LOG_LEVEL = "DEVDOCTOR_LOG_LEVEL"
ENV_LOG_FILE = "DEVDOCTOR_LOG_FILE"
ENV_LOG_FILE_LEVEL = "DEVDOCTOR_LOG_FILE_LEVEL"

_CLOCK = "%H:%M:%S"

# (most verbose level the format applies to, format, datefmt), checked in order
_CONSOLE_FORMATS: tuple[tuple[int, str, str | None], ...] = (
    (logging.DEBUG, "%(asctime)s %(levelname)-5s [%(threadName)s] %(name)s:%(lineno)d %(message)s", _CLOCK),
    (logging.INFO, "%(asctime)s [%(threadName)s] %(message)s", _CLOCK),
)
_CONSOLE_DEFAULT = "%(message)s"

_FILE_FORMAT = "%(asctime)s %(levelname)-5s [%(threadName)s] %(name)s:%(lineno)d %(message)s"
_FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"


def resolve_level(debug: bool = False, verbose: bool = False, quiet: bool = False) -> str:
    """Pick the console level from CLI flags, falling back to the environment."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    return os.environ.get(ENV_LOG_LEVEL, "WARNING")


def configure_cli_logging(debug: bool = False, verbose: bool = False, quiet: bool = False) -> None:
    """Set up logging from CLI flags and the DEVDOCTOR_LOG_* variables."""
    setup_logging(
        level=resolve_level(debug=debug, verbose=verbose, quiet=quiet),
        log_file=os.environ.get(ENV_LOG_FILE),
        log_file_level=os.environ.get(ENV_LOG_FILE_LEVEL),
    )


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
) -> None:
    """Replace the root logger's handlers with a stderr handler and, optionally, a file handler.

    Args:
        level: Console level name. Unknown names fall back to WARNING.
        log_file: Path of a log file to append to.
        log_file_level: Level for the file; defaults to ``level``.
    """
    console_level = _to_level(level)
    handlers: list[logging.Handler] = [_console_handler(console_level)]

    if log_file:
        file_level = _to_level(log_file_level) if log_file_level else console_level
        handlers.append(_file_handler(log_file, file_level))

    root = logging.getLogger()
    root.handlers.clear()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(min(h.level for h in handlers))

    # a closed stream (e.g. a finished test runner) must not raise from logging
    logging.raiseExceptions = False


def _console_handler(level: int) -> logging.Handler:
    fmt, datefmt = _CONSOLE_DEFAULT, None
    for threshold, candidate, candidate_datefmt in _CONSOLE_FORMATS:
        if level <= threshold:
            fmt, datefmt = candidate, candidate_datefmt
            break
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    return handler


def _file_handler(path: str, level: int) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_FILE_DATEFMT))
    return handler


def _to_level(name: str | None) -> int:
    level = logging.getLevelName(name.upper()) if name else None
    return level if isinstance(level, int) else logging.WARNING
