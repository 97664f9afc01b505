"""Snapshot cache with filesystem-watch invalidation.

One cache instance is meant to be shared by everything serving a library.
The first ``get_snapshot()`` scans the root and starts a recursive watchdog
observer on it; any change event clears the cached snapshot and the next
request rescans. Concurrent requests during a scan share that scan.
"""

from __future__ import annotations

import asyncio
import logging
import os
import threading
from collections.abc import Callable
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .config import WATCH_STOP_TIMEOUT, get_library_root
from .models import LibrarySnapshot
from .scanner import scan_library

log = logging.getLogger(__name__)

# Event types produced by reads; they never change the tree.
_READ_EVENT_TYPES = frozenset({"opened", "closed_no_write"})


class InvalidatingHandler(FileSystemEventHandler):
    """Calls ``callback`` for every event that may change the tree."""

    def __init__(self, callback: Callable[[], None]):
        super().__init__()
        self._callback = callback

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type in _READ_EVENT_TYPES:
            return
        self._callback()


class SnapshotCache:
    """Caches the last LibrarySnapshot for the configured root.

    Lifecycle: the watch starts lazily on the first snapshot request and is
    stopped by ``close()``. If the observer cannot be started the cache falls
    back to rescanning on every request for the rest of its lifetime.
    """

    def __init__(
        self,
        root: str | os.PathLike | None = None,
        scanner: Callable[[Path], LibrarySnapshot] = scan_library,
        observer_factory: Callable[[], Observer] = Observer,
    ):
        """Initialize the cache.

        Args:
            root: Library root, resolved once. When None the environment and
                config files are consulted on every request.
            scanner: Function producing a snapshot for a root.
            observer_factory: Creates the watchdog observer.
        """
        self._root = get_library_root(root) if root is not None else None
        self._scan = scanner
        self._observer_factory = observer_factory

        # Guards the fields below; the watch callback runs on the observer thread
        self._lock = threading.Lock()
        self._snapshot: LibrarySnapshot | None = None
        self._snapshot_root: Path | None = None
        self._generation = 0

        self._inflight: asyncio.Task[LibrarySnapshot] | None = None
        self._inflight_root: Path | None = None

        self._observer: Observer | None = None
        self._watch_root: Path | None = None
        self._watch_supported = True

    @property
    def root(self) -> Path:
        """Library root; re-discovered on every call unless given explicitly."""
        if self._root is not None:
            return self._root
        return get_library_root()

    @property
    def watch_supported(self) -> bool:
        return self._watch_supported

    @property
    def is_watching(self) -> bool:
        return self._observer is not None

    def peek(self) -> LibrarySnapshot | None:
        """Return the cached snapshot without scanning."""
        with self._lock:
            return self._snapshot

    async def get_snapshot(self) -> LibrarySnapshot:
        """Return the cached snapshot, scanning only when necessary."""
        root = self.root

        with self._lock:
            if self._snapshot is not None and self._snapshot_root == root:
                return self._snapshot

        task = self._inflight
        if (
            task is not None
            and not task.done()
            and self._inflight_root == root
            and task.get_loop() is asyncio.get_running_loop()
        ):
            log.debug("Joining in-flight scan of %s", root)
            return await asyncio.shield(task)

        task = asyncio.ensure_future(self._refresh(root))
        self._inflight = task
        self._inflight_root = root
        return await asyncio.shield(task)

    async def _refresh(self, root: Path) -> LibrarySnapshot:
        try:
            if root.is_dir():
                await asyncio.to_thread(self._ensure_watch, root)

            with self._lock:
                generation = self._generation

            snapshot = await asyncio.to_thread(self._scan, root)

            if snapshot.root_missing:
                # A deleted root kills the watch; rewatch once it reappears
                await asyncio.to_thread(self._stop_observer)
                return snapshot

            with self._lock:
                if self._observer is not None and generation == self._generation:
                    self._snapshot = snapshot
                    self._snapshot_root = root
                else:
                    log.debug("Not caching snapshot of %s (invalidated during scan)", root)
            return snapshot
        finally:
            if self._inflight is asyncio.current_task():
                self._inflight = None
                self._inflight_root = None

    def invalidate(self) -> None:
        """Drop the cached snapshot; the next request rescans.

        Safe to call from any thread. Never blocks on a scan.
        """
        with self._lock:
            self._generation += 1
            if self._snapshot is not None:
                log.debug("Snapshot invalidated")
            self._snapshot = None
            self._snapshot_root = None

    def _ensure_watch(self, root: Path) -> None:
        if not self._watch_supported:
            return
        if self._observer is not None and self._watch_root == root and self._observer.is_alive():
            return

        self._stop_observer()

        observer = self._observer_factory()
        try:
            observer.schedule(InvalidatingHandler(self.invalidate), str(root), recursive=True)
            observer.start()
        except (OSError, RuntimeError) as e:
            log.warning(
                "Filesystem watch unavailable for %s (%s); rescanning on every request", root, e
            )
            self._watch_supported = False
            self.invalidate()
            return

        self._observer = observer
        self._watch_root = root
        log.info("Started watching: %s", root)

    def _stop_observer(self) -> None:
        observer = self._observer
        if observer is None:
            return
        self._observer = None
        self._watch_root = None
        observer.stop()
        observer.join(timeout=WATCH_STOP_TIMEOUT)
        log.info("Stopped watching library")

    def close(self) -> None:
        """Stop the watch and drop cached state."""
        self._stop_observer()
        self.invalidate()

    def __enter__(self) -> SnapshotCache:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
