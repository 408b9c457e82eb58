"""Rotating pools of HAR record files, kept current by watching their directory."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .util import home_dir

logger = logging.getLogger(__name__)

_HAR_SUFFIX = ".har"


@dataclass(frozen=True)
class HarPath:
    """A HAR directory and, when the pool is not empty, the file chosen from it."""

    dir_path: Path
    file_path: Path | None = None


class _PoolRefresher(FileSystemEventHandler):
    """Rebuilds a provider's pool whenever its directory changes."""

    _EVENTS = frozenset({"created", "modified", "deleted", "moved"})

    def __init__(self, provider: HarProvider) -> None:
        super().__init__()
        self._provider = provider

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type not in self._EVENTS:
            return
        logger.info(
            "HAR directory: %s changes observed: %s",
            self._provider.dir_path,
            event.src_path,
        )
        self._provider.reset_pool()


class HarProvider:
    """Hands out the HAR files of one directory in round-robin order.

    The directory is created when missing. Watching starts with ``watch()`` or
    on entering the provider as a context manager, and stops with ``close()``.
    """

    def __init__(self, dir_path: str | Path | None, default_dir_name: str) -> None:
        if dir_path is None:
            home = home_dir()
            if home is None:
                raise RuntimeError("Failed to get home directory")
            dir_path = home / default_dir_name
        self.dir_path = Path(dir_path)
        if not self.dir_path.exists():
            logger.info("Create default HAR directory: %s", self.dir_path)
            self.dir_path.mkdir(parents=True, exist_ok=True)

        self._lock = threading.Lock()
        self._index = 0
        self._pool = self._scan()
        self._observer: Any = None

    def _scan(self) -> list[str]:
        return sorted(
            entry.stem + _HAR_SUFFIX
            for entry in self.dir_path.iterdir()
            if entry.suffix == _HAR_SUFFIX
        )

    def reset_pool(self) -> None:
        """Read the directory again and replace the pool with what it holds."""
        files = self._scan()
        with self._lock:
            self._pool = files

    def pool(self) -> HarPath:
        """Return the next HAR file of the pool, or no file when it is empty."""
        with self._lock:
            if not self._pool:
                return HarPath(self.dir_path)
            self._index = (self._index + 1) % len(self._pool)
            return HarPath(self.dir_path, self.dir_path / self._pool[self._index])

    def watch(self) -> HarProvider:
        """Start watching the directory; a change rebuilds the pool."""
        if self._observer is None:
            logger.info("Start watching HAR directory: %s", self.dir_path)
            observer = Observer()
            observer.schedule(_PoolRefresher(self), str(self.dir_path), recursive=False)
            observer.start()
            self._observer = observer
        return self

    def close(self) -> None:
        """Stop watching the directory."""
        observer, self._observer = self._observer, None
        if observer is None:
            return
        try:
            observer.stop()
            observer.join()
        except RuntimeError as exc:
            logger.warning("watcher stop error: %s", exc)

    def __enter__(self) -> HarProvider:
        return self.watch()

    def __exit__(self, *args: object) -> None:
        self.close()