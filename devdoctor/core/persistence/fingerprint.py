"""
File-set fingerprints for check caching.

A fingerprint is a sha256 over the sorted list of (path, content
digest) pairs for every file a check's globs match. Any edit, addition
or removal inside the declared file set changes it.
"""

from __future__ import annotations

import glob
import hashlib
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path

from devdoctor.core.errors import EngineError

logger = logging.getLogger(__name__)

_MAGIC_RE = re.compile(r"[*?\[]")
_CHUNK_SIZE = 64 * 1024

# Markers used in place of a content digest
_MISSING = "<not exist>"
_DIRECTORY = "<dir>"


@dataclass(frozen=True)
class Fingerprint:
    """Digest of a file set plus how many paths went into it."""

    digest: str
    files: int


def _file_digest(path: Path) -> str:
    h = hashlib.sha256()
    try:
        with path.open("rb") as fh:
            for chunk in iter(lambda: fh.read(_CHUNK_SIZE), b""):
                h.update(chunk)
    except OSError as e:
        raise EngineError(f"Unable to read {path} for fingerprinting: {e}") from e
    return h.hexdigest()


def expand_patterns(patterns: list[str]) -> list[str]:
    """Expand absolute glob patterns into a sorted, de-duplicated path list.

    A literal path (no glob characters) is kept even when it doesn't
    exist, so creating or deleting it changes the fingerprint.
    """
    matched: set[str] = set()
    for pattern in patterns:
        if _MAGIC_RE.search(pattern):
            matched.update(glob.glob(pattern, recursive=True, include_hidden=True))
        else:
            matched.add(os.path.normpath(pattern))
    return sorted(matched)


def fingerprint_paths(patterns: list[str]) -> Fingerprint:
    """Compute the fingerprint of every path matched by ``patterns``.

    Raises:
        EngineError: If a matched file exists but can't be read.
    """
    combined = hashlib.sha256()
    paths = expand_patterns(patterns)
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            digest = _DIRECTORY
        elif path.exists():
            digest = _file_digest(path)
        else:
            digest = _MISSING
        combined.update(f"{raw}\0{digest}\n".encode())

    logger.debug("Fingerprinted %d paths from %d patterns", len(paths), len(patterns))
    return Fingerprint(digest=combined.hexdigest(), files=len(paths))
