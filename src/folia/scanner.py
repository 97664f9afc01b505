"""Directory scanning: builds a LibrarySnapshot from the library root.

The walk is iterative (explicit stack), skips symbolic links entirely and only
admits files carrying the document extension.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import os
from datetime import UTC, datetime
from pathlib import Path

from .config import DOCUMENT_EXTENSION, RECENT_PAGES_LIMIT
from .models import CollectionInfo, LibrarySnapshot, RecentPage, TreeNode, child_sort_key, empty_root
from .paths import join_relative

log = logging.getLogger(__name__)


def mtime_to_datetime(timestamp: float) -> datetime | None:
    """Convert an ``st_*time`` value to an aware UTC datetime (None if unset)."""
    if not timestamp or timestamp <= 0:
        return None
    return datetime.fromtimestamp(timestamp, tz=UTC)


class RecentPages:
    """Bounded set of the most recently modified documents.

    Holds at most ``limit`` entries in a min-heap keyed on mtime; a new page
    replaces the current minimum only if it is newer.
    """

    def __init__(self, limit: int = RECENT_PAGES_LIMIT):
        self._limit = limit
        self._heap: list[tuple[float, int, RecentPage]] = []
        self._counter = itertools.count()

    def offer(self, page: RecentPage, mtime: float) -> None:
        entry = (mtime, next(self._counter), page)
        if len(self._heap) < self._limit:
            heapq.heappush(self._heap, entry)
        elif mtime > self._heap[0][0]:
            heapq.heapreplace(self._heap, entry)

    def newest_first(self) -> list[RecentPage]:
        return [page for _, _, page in sorted(self._heap, key=lambda e: (e[0], e[1]), reverse=True)]

    def __len__(self) -> int:
        return len(self._heap)


def scan_library(root: str | os.PathLike, include_hidden: bool = False) -> LibrarySnapshot:
    """Walk the library once and build the tree, collections and recent pages.

    A missing root yields ``root_missing=True`` with an empty tree. Unreadable
    subdirectories and failed per-file stats are skipped, not raised.

    Args:
        root: Absolute library root.
        include_hidden: Include dot-prefixed files and folders.

    Raises:
        OSError: If the root exists but cannot be listed.
    """
    root_path = Path(root)
    root_node = empty_root()
    collections: dict[str, CollectionInfo] = {}
    recent = RecentPages()
    folders: list[TreeNode] = [root_node]
    file_count = 0

    stack: list[tuple[Path, str, TreeNode]] = [(root_path, "", root_node)]

    while stack:
        current_abs, current_rel, parent = stack.pop()

        try:
            with os.scandir(current_abs) as it:
                entries = list(it)
        except (FileNotFoundError, NotADirectoryError):
            if not current_rel:
                log.debug("Library root missing: %s", root_path)
                return LibrarySnapshot(root=str(root_path), root_missing=True)
            continue
        except OSError as e:
            if not current_rel:
                raise
            log.debug("Skipping unreadable directory %s: %s", current_abs, e)
            continue

        for entry in entries:
            if not include_hidden and entry.name.startswith("."):
                continue
            try:
                if entry.is_symlink():
                    continue
                is_dir = entry.is_dir(follow_symlinks=False)
                is_file = not is_dir and entry.is_file(follow_symlinks=False)
            except OSError:
                continue

            rel = join_relative(current_rel, entry.name)

            if is_dir:
                folder = TreeNode(name=entry.name, path=rel, type="folder", children=[])
                parent.children.append(folder)
                folders.append(folder)
                stack.append((Path(entry.path), rel, folder))
                if not current_rel:
                    collections[rel] = CollectionInfo(name=entry.name, path=rel)
                continue

            if not is_file or not entry.name.endswith(DOCUMENT_EXTENSION):
                continue

            parent.children.append(TreeNode(name=entry.name, path=rel, type="file"))
            file_count += 1

            try:
                mtime = entry.stat(follow_symlinks=False).st_mtime
            except OSError as e:
                log.debug("Could not stat %s: %s", entry.path, e)
                mtime = None

            top, _, remainder = rel.partition("/")
            collection = collections.get(top) if remainder else None
            if collection is not None:
                collection.page_count += 1

            updated_at = mtime_to_datetime(mtime) if mtime is not None else None
            if updated_at is None:
                continue

            recent.offer(RecentPage(name=entry.name, path=rel, updated_at=updated_at), mtime)
            if collection is not None and (
                collection.updated_at is None or updated_at > collection.updated_at
            ):
                collection.updated_at = updated_at

    for folder in folders:
        folder.children.sort(key=child_sort_key)

    log.debug(
        "Scanned %s: %d folders, %d documents", root_path, len(folders) - 1, file_count
    )

    return LibrarySnapshot(
        root=str(root_path),
        collections=sorted(collections.values(), key=lambda c: (c.name.casefold(), c.name)),
        recent_pages=recent.newest_first(),
        tree=root_node,
        root_missing=False,
    )
