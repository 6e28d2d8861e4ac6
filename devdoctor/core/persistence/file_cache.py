"""
Check cache — remembers which (group, action) pairs passed for which files.

Entries are keyed by group name and action name and hold the
fingerprint of the action's declared file set at its last successful
evaluation. The store is shared by every group running in parallel:

    - per-key locks serialize reads/writes of one (group, action)
    - one file lock serializes writes of the JSON document

Writes to disk are atomic (write to temp file, then rename), so a
crash mid-write never leaves a corrupt cache behind.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from devdoctor.core.errors import CacheError

logger = logging.getLogger(__name__)

CACHE_FILE_NAME = "cache-file.json"
ENV_CACHE_DIR = "DEVDOCTOR_CACHE_DIR"


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


def default_cache_path(cache_dir: Path | None = None) -> Path:
    """Resolve the cache file location.

    Precedence: explicit ``cache_dir`` > DEVDOCTOR_CACHE_DIR >
    $XDG_CACHE_HOME/devdoctor > ~/.cache/devdoctor.
    """
    if cache_dir is None and os.environ.get(ENV_CACHE_DIR):
        cache_dir = Path(os.environ[ENV_CACHE_DIR])
    if cache_dir is None:
        xdg = os.environ.get("XDG_CACHE_HOME")
        base = Path(xdg) if xdg else Path.home() / ".cache"
        cache_dir = base / "devdoctor"
    return cache_dir / CACHE_FILE_NAME


class CacheEntry(BaseModel):
    """Fingerprint of an action's file set at its last success."""

    fingerprint: str
    files: int = 0
    outcome: str = ""
    updated_at: str = Field(default_factory=_now_iso)


class CacheData(BaseModel):
    """On-disk document: { group: { action: entry } }."""

    schema_version: int = 1
    entries: dict[str, dict[str, CacheEntry]] = Field(default_factory=dict)


class CheckCache(ABC):
    """Keyed store consulted by the action engine."""

    @property
    @abstractmethod
    def enabled(self) -> bool:
        """Whether cache hits may short-circuit checks."""

    @abstractmethod
    def get(self, group: str, action: str) -> CacheEntry | None:
        """Return the stored entry for (group, action), if any."""

    @abstractmethod
    def put(self, group: str, action: str, fingerprint: str, files: int = 0, outcome: str = "") -> None:
        """Record a successful evaluation."""

    @abstractmethod
    def persist(self) -> None:
        """Flush to durable storage."""


class NoOpCache(CheckCache):
    """Caching disabled: nothing is remembered, every check runs."""

    @property
    def enabled(self) -> bool:
        return False

    def get(self, group: str, action: str) -> CacheEntry | None:
        return None

    def put(self, group: str, action: str, fingerprint: str, files: int = 0, outcome: str = "") -> None:
        pass

    def persist(self) -> None:
        pass


class FileCache(CheckCache):
    """JSON-file backed cache."""

    def __init__(self, path: Path):
        self._path = path
        self._data = self._load(path)
        self._key_locks: dict[tuple[str, str], threading.Lock] = {}
        self._key_locks_guard = threading.Lock()
        self._file_lock = threading.Lock()
        self._dirty = False

    @property
    def path(self) -> Path:
        return self._path

    @property
    def enabled(self) -> bool:
        return True

    @staticmethod
    def _load(path: Path) -> CacheData:
        if not path.is_file():
            logger.info("No cache file at %s — starting fresh", path)
            return CacheData()

        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as e:
            raise CacheError(f"Cannot read cache file {path}: {e}") from e

        try:
            return CacheData.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning("Corrupt cache file %s: %s — starting fresh", path, e)
            return CacheData()

    def _key_lock(self, group: str, action: str) -> threading.Lock:
        """Get or create the lock for one (group, action) key."""
        with self._key_locks_guard:
            key = (group, action)
            if key not in self._key_locks:
                self._key_locks[key] = threading.Lock()
            return self._key_locks[key]

    def get(self, group: str, action: str) -> CacheEntry | None:
        with self._key_lock(group, action):
            return self._data.entries.get(group, {}).get(action)

    def put(self, group: str, action: str, fingerprint: str, files: int = 0, outcome: str = "") -> None:
        entry = CacheEntry(fingerprint=fingerprint, files=files, outcome=outcome)
        with self._key_lock(group, action):
            # setdefault on the outer dict must not race another group
            with self._file_lock:
                self._data.entries.setdefault(group, {})[action] = entry
                self._dirty = True
        logger.debug("Cache updated for %s/%s (%d files)", group, action, files)

    def persist(self) -> None:
        """Write the cache to disk (atomic write).

        Raises:
            CacheError: If the file can't be written.
        """
        with self._file_lock:
            if not self._dirty and self._path.is_file():
                return
            content = json.dumps(self._data.model_dump(mode="json"), indent=2) + "\n"
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                _fd, tmp_path = tempfile.mkstemp(
                    dir=self._path.parent,
                    prefix=".cache_",
                    suffix=".tmp",
                )
                os.close(_fd)
                tmp = Path(tmp_path)
                try:
                    tmp.write_text(content, encoding="utf-8")
                    tmp.replace(self._path)
                except OSError:
                    tmp.unlink(missing_ok=True)
                    raise
            except OSError as e:
                raise CacheError(f"Failed to write cache file {self._path}: {e}") from e
            self._dirty = False
            logger.debug("Cache saved to %s", self._path)


def open_cache(no_cache: bool = False, cache_dir: Path | None = None) -> CheckCache:
    """Build the cache store for a run."""
    if no_cache:
        return NoOpCache()
    return FileCache(default_cache_path(cache_dir))
