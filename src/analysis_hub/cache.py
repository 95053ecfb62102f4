"""On-disk artifact cache for adapters that build expensive databases.

Each key owns one directory. Writers hold an exclusive per-key lock while
they populate it; readers share the lock. A marker file records when the
entry was completed and how long it stays valid. Eviction is time based and
never touches a key that is currently referenced.
"""

import asyncio
import json
import logging
import re
import shutil
import time
from collections import defaultdict
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from pathlib import Path

logger = logging.getLogger(__name__)

MARKER_NAME = ".analysis-hub-entry.json"
DEFAULT_MAX_AGE_SECONDS = 7 * 24 * 3600

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class ReadWriteLock:
    """Asyncio lock allowing concurrent readers or one exclusive writer."""

    def __init__(self) -> None:
        self._condition = asyncio.Condition()
        self._readers = 0
        self._writer = False

    @property
    def busy(self) -> bool:
        return self._writer or self._readers > 0

    @asynccontextmanager
    async def reading(self) -> AsyncIterator[None]:
        async with self._condition:
            await self._condition.wait_for(lambda: not self._writer)
            self._readers += 1
        try:
            yield
        finally:
            async with self._condition:
                self._readers -= 1
                self._condition.notify_all()

    @asynccontextmanager
    async def writing(self) -> AsyncIterator[None]:
        async with self._condition:
            await self._condition.wait_for(lambda: not self._writer and self._readers == 0)
            self._writer = True
        try:
            yield
        finally:
            async with self._condition:
                self._writer = False
                self._condition.notify_all()


class ArtifactCache:
    """Keyed directory cache shared by adapters within one process."""

    def __init__(
        self,
        directory: str | Path,
        default_max_age_seconds: int = DEFAULT_MAX_AGE_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the cache.

        Args:
            directory: Root directory for cache entries
            default_max_age_seconds: Max age when a writer does not set one
            clock: Wall-clock source in epoch seconds
        """
        self.directory = Path(directory)
        self.default_max_age_seconds = default_max_age_seconds
        self._clock = clock
        self._locks: dict[str, ReadWriteLock] = defaultdict(ReadWriteLock)
        self._refs: dict[str, int] = defaultdict(int)

    def path_for(self, key: str) -> Path:
        """Directory holding the entry for ``key``."""
        if not key:
            raise ValueError("cache key must not be empty")
        return self.directory / _UNSAFE_KEY_CHARS.sub("_", key)

    def is_fresh(self, key: str) -> bool:
        """Whether a completed, unexpired entry exists for ``key``."""
        marker = self._read_marker(self.path_for(key))
        if marker is None:
            return False
        return not self._expired(marker)

    def references(self, key: str) -> int:
        return self._refs.get(key, 0)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """Reference ``key`` so eviction skips it."""
        self._refs[key] += 1
        try:
            yield
        finally:
            self._refs[key] -= 1
            if self._refs[key] <= 0:
                del self._refs[key]
                lock = self._locks.get(key)
                if lock is not None and not lock.busy:
                    del self._locks[key]

    @asynccontextmanager
    async def read(self, key: str) -> AsyncIterator[Path | None]:
        """Share the entry for ``key``.

        Yields:
            The entry directory, or None if there is no fresh entry
        """
        async with self.hold(key), self._locks[key].reading():
            yield self.path_for(key) if self.is_fresh(key) else None

    @asynccontextmanager
    async def write(self, key: str, max_age_seconds: int | None = None) -> AsyncIterator[Path]:
        """Exclusively (re)build the entry for ``key``.

        The directory is emptied first. The entry is marked complete only if
        the block exits normally; otherwise the directory is removed.
        """
        async with self.hold(key), self._locks[key].writing():
            path = self.path_for(key)
            await asyncio.to_thread(self._reset_dir, path)
            try:
                yield path
            except BaseException:
                await asyncio.to_thread(shutil.rmtree, path, True)
                raise
            self._write_marker(path, key, max_age_seconds or self.default_max_age_seconds)
            logger.info(f"Cached artifact {key}")

    async def evict_expired(self) -> list[str]:
        """Remove expired entries that nobody references.

        Returns:
            Directory names of evicted entries, sorted
        """
        if not self.directory.is_dir():
            return []

        in_use = {self.path_for(key).name for key in self._refs}
        in_use.update(self.path_for(key).name for key, lock in self._locks.items() if lock.busy)

        evicted = []
        for entry in sorted(self.directory.iterdir()):
            if not entry.is_dir():
                continue
            if entry.name in in_use:
                logger.debug(f"Skipping eviction of referenced entry {entry.name}")
                continue
            marker = self._read_marker(entry)
            # an entry without a marker is an abandoned partial write
            if marker is not None and not self._expired(marker):
                continue
            await asyncio.to_thread(shutil.rmtree, entry, True)
            evicted.append(entry.name)

        if evicted:
            logger.info(f"Evicted {len(evicted)} expired cache entries")
        return evicted

    def _expired(self, marker: dict) -> bool:
        created = float(marker.get("created_at", 0))
        max_age = float(marker.get("max_age_seconds", self.default_max_age_seconds))
        return self._clock() - created > max_age

    @staticmethod
    def _reset_dir(path: Path) -> None:
        if path.exists():
            shutil.rmtree(path)
        path.mkdir(parents=True)

    def _write_marker(self, path: Path, key: str, max_age_seconds: int) -> None:
        marker = {"key": key, "created_at": self._clock(), "max_age_seconds": max_age_seconds}
        (path / MARKER_NAME).write_text(json.dumps(marker))

    @staticmethod
    def _read_marker(path: Path) -> dict | None:
        marker_path = path / MARKER_NAME
        if not marker_path.is_file():
            return None
        try:
            return json.loads(marker_path.read_text())
        except (OSError, ValueError) as e:
            logger.warning(f"Unreadable cache marker {marker_path}: {e}")
            return None
