"""Operation handlers: create, rename, move, copy, delete, load, save, search.

Design principles:
- All handlers are async and return typed results; expected failures are
  never raised.
- The caller's authorization is checked before anything else, so an
  unauthenticated caller learns nothing about path validity.
- Inputs are validated before the disk is touched; each handler then performs
  one filesystem mutation.
- Destinations are never overwritten: an existing destination yields
  ``exists`` and the caller picks another name.
"""

from __future__ import annotations

import inspect
import logging
import os
import posixpath
import shutil
from collections.abc import Awaitable, Callable
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from .config import get_library_root
from .errors import DestinationExistsError, ErrorKind, FoliaError, InvalidPathError
from .models import OperationResult, SearchResult
from .naming import (
    build_file_path,
    build_folder_path,
    is_document_name,
    normalize_file_name,
    normalize_folder_name,
)
from .paths import is_same_or_descendant, join_relative, normalize_relative_path, parent_of, resolve_within_root
from .scanner import mtime_to_datetime
from .search import search_library

if TYPE_CHECKING:
    from .cache import SnapshotCache

log = logging.getLogger(__name__)

Authorizer = Callable[[], bool | Awaitable[bool]]


def allow_all() -> bool:
    """Authorizer for callers that own the library (CLI, tests)."""
    return True


def file_meta(path: Path) -> tuple[datetime | None, datetime | None]:
    """Best-effort (created_at, updated_at) for a file."""
    try:
        stats = path.stat()
    except OSError:
        return None, None
    created = getattr(stats, "st_birthtime", None)
    return (
        mtime_to_datetime(created) if created else None,
        mtime_to_datetime(stats.st_mtime),
    )


def _failure(kind: ErrorKind) -> OperationResult:
    return OperationResult.failure(kind)


def _write_failed(action: str, relative: str, error: OSError) -> OperationResult:
    log.warning("%s failed for %s: %s", action, relative, error)
    return _failure(ErrorKind.WRITE_FAILED)


def _source_folder(path: str) -> str:
    """Normalize an existing-folder argument; the root is never a valid source."""
    relative = normalize_relative_path(path)
    if not relative:
        raise InvalidPathError("The library root cannot be the target")
    return relative


def _source_file(path: str) -> str:
    """Normalize an existing-document argument."""
    relative = normalize_relative_path(path)
    if not relative or not is_document_name(relative):
        raise InvalidPathError(f"Not a document path: {path}")
    return relative


class LibraryOperations:
    """Operation handlers bound to one library root.

    Args:
        root: Library root. Uses config discovery when None.
        cache: Snapshot cache to invalidate after each successful mutation.
        authorizer: Zero-argument callable returning (or resolving to) True
            when the current caller may use the library. Defaults to
            allowing everyone.
    """

    def __init__(
        self,
        root: str | os.PathLike | None = None,
        cache: SnapshotCache | None = None,
        authorizer: Authorizer | None = None,
    ):
        self._root_setting = root
        self._cache = cache
        self._authorizer = authorizer or allow_all

    @property
    def root(self) -> Path:
        if self._root_setting is None and self._cache is not None:
            return self._cache.root
        return get_library_root(self._root_setting)

    def with_authorizer(self, authorizer: Authorizer) -> LibraryOperations:
        """Return handlers sharing this root and cache under another authorizer."""
        return LibraryOperations(self._root_setting, self._cache, authorizer)

    async def is_authorized(self) -> bool:
        allowed = self._authorizer()
        if inspect.isawaitable(allowed):
            allowed = await allowed
        return bool(allowed)

    def _resolve(self, relative: str) -> Path:
        return resolve_within_root(self.root, relative)

    def _changed(self) -> None:
        if self._cache is not None:
            self._cache.invalidate()

    # ─────────────────────────────────────────────────────────────────────
    # Create
    # ─────────────────────────────────────────────────────────────────────

    async def create_folder(self, parent_path: str, name: str) -> OperationResult:
        """Create a folder (and any missing parents) under ``parent_path``."""
        if not await self.is_authorized():
            return _failure(ErrorKind.UNAUTHORIZED)
        try:
            relative = build_folder_path(parent_path, name)
            target = self._resolve(relative)
        except FoliaError as e:
            return _failure(e.kind)

        if os.path.lexists(target):
            return _failure(ErrorKind.EXISTS)

        try:
            target.mkdir(parents=True)
        except FileExistsError:
            return _failure(ErrorKind.EXISTS)
        except OSError as e:
            return _write_failed("create_folder", relative, e)

        self._changed()
        return OperationResult.success(relative, posixpath.basename(relative))

    async def create_file(self, parent_path: str, name: str) -> OperationResult:
        """Create an empty page; never replaces an existing file."""
        if not await self.is_authorized():
            return _failure(ErrorKind.UNAUTHORIZED)
        try:
            relative = build_file_path(parent_path, name)
            target = self._resolve(relative)
        except FoliaError as e:
            return _failure(e.kind)

        try:
            with target.open("x", encoding="utf-8"):
                pass
        except FileExistsError:
            return _failure(ErrorKind.EXISTS)
        except OSError as e:
            return _write_failed("create_file", relative, e)

        self._changed()
        created_at, updated_at = file_meta(target)
        return OperationResult.success(
            relative, posixpath.basename(relative), created_at=created_at, updated_at=updated_at
        )

    # ─────────────────────────────────────────────────────────────────────
    # Rename
    # ─────────────────────────────────────────────────────────────────────

    async def rename_folder(self, path: str, new_name: str) -> OperationResult:
        """Rename a folder in place; descendants move with it."""
        if not await self.is_authorized():
            return _failure(ErrorKind.UNAUTHORIZED)
        try:
            source = _source_folder(path)
            folder_name = normalize_folder_name(new_name)
            destination = join_relative(parent_of(source), folder_name)
            from_path = self._resolve(source)
            to_path = self._resolve(destination)
        except FoliaError as e:
            return _failure(e.kind)

        return self._rename(from_path, to_path, source, destination, expect_dir=True)

    async def rename_file(self, path: str, new_name: str) -> OperationResult:
        """Rename a page in place; the new name is slugged."""
        if not await self.is_authorized():
            return _failure(ErrorKind.UNAUTHORIZED)
        try:
            source = _source_file(path)
            file_name = normalize_file_name(new_name)
            destination = join_relative(parent_of(source), file_name)
            from_path = self._resolve(source)
            to_path = self._resolve(destination)
        except FoliaError as e:
            return _failure(e.kind)

        return self._rename(from_path, to_path, source, destination, expect_dir=False)

    def _rename(
        self, from_path: Path, to_path: Path, source: str, destination: str, expect_dir: bool
    ) -> OperationResult:
        """Single rename syscall shared by rename and move handlers."""
        if os.path.lexists(from_path) and from_path.is_dir() != expect_dir:
            return _failure(ErrorKind.INVALID_PATH)
        if os.path.lexists(to_path):
            return _failure(ErrorKind.EXISTS)

        try:
            from_path.rename(to_path)
        except OSError as e:
            return _write_failed("rename", f"{source} -> {destination}", e)

        self._changed()
        return OperationResult.success(destination, posixpath.basename(destination))

    # ─────────────────────────────────────────────────────────────────────
    # Delete
    # ─────────────────────────────────────────────────────────────────────

    async def delete_folder(self, path: str) -> OperationResult:
        """Recursively delete a folder and everything below it."""
        if not await self.is_authorized():
            return _failure(ErrorKind.UNAUTHORIZED)
        try:
            relative = _source_folder(path)
            target = self._resolve(relative)
        except FoliaError as e:
            return _failure(e.kind)

        if os.path.lexists(target) and (target.is_symlink() or not target.is_dir()):
            return _failure(ErrorKind.INVALID_PATH)

        try:
            shutil.rmtree(target)
        except OSError as e:
            return _write_failed("delete_folder", relative, e)

        self._changed()
        return OperationResult.success(relative, posixpath.basename(relative))

    async def delete_file(self, path: str) -> OperationResult:
        """Delete a single page."""
        if not await self.is_authorized():
            return _failure(ErrorKind.UNAUTHORIZED)
        try:
            relative = _source_file(path)
            target = self._resolve(relative)
        except FoliaError as e:
            return _failure(e.kind)

        if target.is_dir():
            return _failure(ErrorKind.INVALID_PATH)

        try:
            target.unlink()
        except OSError as e:
            return _write_failed("delete_file", relative, e)

        self._changed()
        return OperationResult.success(relative, posixpath.basename(relative))

    # ─────────────────────────────────────────────────────────────────────
    # Copy / move
    # ─────────────────────────────────────────────────────────────────────

    def _folder_transfer(self, source_path: str, dest_parent: str, name: str) -> tuple[str, str, Path, Path]:
        """Validate a folder copy/move and resolve both ends.

        Raises:
            FoliaError: ``exists`` when the destination is the source itself,
                ``invalid-path`` when it lies inside the source.
        """
        source = _source_folder(source_path)
        destination = build_folder_path(dest_parent, name)
        if destination == source:
            raise DestinationExistsError(destination)
        if is_same_or_descendant(destination, source):
            raise InvalidPathError("Cannot place a folder inside itself")
        return source, destination, self._resolve(source), self._resolve(destination)

    def _file_transfer(self, source_path: str, dest_parent: str, name: str) -> tuple[str, str, Path, Path]:
        source = _source_file(source_path)
        destination = build_file_path(dest_parent, name)
        if destination == source:
            raise DestinationExistsError(destination)
        return source, destination, self._resolve(source), self._resolve(destination)

    async def copy_folder(self, source_path: str, dest_parent: str, name: str) -> OperationResult:
        """Recursively copy a folder to ``dest_parent/name``.

        A copy interrupted midway leaves the partial destination in place.
        """
        if not await self.is_authorized():
            return _failure(ErrorKind.UNAUTHORIZED)
        try:
            source, destination, from_path, to_path = self._folder_transfer(source_path, dest_parent, name)
        except FoliaError as e:
            return _failure(e.kind)

        if from_path.is_symlink() or not from_path.is_dir():
            return _failure(ErrorKind.INVALID_PATH)
        if os.path.lexists(to_path):
            return _failure(ErrorKind.EXISTS)

        try:
            shutil.copytree(from_path, to_path, symlinks=True)
        except OSError as e:
            return _write_failed("copy_folder", f"{source} -> {destination}", e)

        self._changed()
        return OperationResult.success(destination, posixpath.basename(destination))

    async def move_folder(self, source_path: str, dest_parent: str, name: str) -> OperationResult:
        """Move a folder to ``dest_parent/name`` with a single rename."""
        if not await self.is_authorized():
            return _failure(ErrorKind.UNAUTHORIZED)
        try:
            source, destination, from_path, to_path = self._folder_transfer(source_path, dest_parent, name)
        except FoliaError as e:
            return _failure(e.kind)

        return self._rename(from_path, to_path, source, destination, expect_dir=True)

    async def copy_file(self, source_path: str, dest_parent: str, name: str) -> OperationResult:
        """Copy a page's content to ``dest_parent/<slug>.md``."""
        if not await self.is_authorized():
            return _failure(ErrorKind.UNAUTHORIZED)
        try:
            source, destination, from_path, to_path = self._file_transfer(source_path, dest_parent, name)
        except FoliaError as e:
            return _failure(e.kind)

        if from_path.is_symlink() or not from_path.is_file():
            return _failure(ErrorKind.INVALID_PATH)
        if os.path.lexists(to_path):
            return _failure(ErrorKind.EXISTS)

        try:
            shutil.copyfile(from_path, to_path)
        except OSError as e:
            return _write_failed("copy_file", f"{source} -> {destination}", e)

        self._changed()
        return OperationResult.success(destination, posixpath.basename(destination))

    async def move_file(self, source_path: str, dest_parent: str, name: str) -> OperationResult:
        """Move a page to ``dest_parent/<slug>.md`` with a single rename."""
        if not await self.is_authorized():
            return _failure(ErrorKind.UNAUTHORIZED)
        try:
            source, destination, from_path, to_path = self._file_transfer(source_path, dest_parent, name)
        except FoliaError as e:
            return _failure(e.kind)

        return self._rename(from_path, to_path, source, destination, expect_dir=False)

    # ─────────────────────────────────────────────────────────────────────
    # Content
    # ─────────────────────────────────────────────────────────────────────

    async def load_file_content(self, path: str) -> OperationResult:
        """Read a page; the result carries ``content``."""
        if not await self.is_authorized():
            return _failure(ErrorKind.UNAUTHORIZED)
        try:
            relative = _source_file(path)
            target = self._resolve(relative)
        except FoliaError as e:
            return _failure(e.kind)

        try:
            content = target.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            log.warning("load_file_content failed for %s: %s", relative, e)
            return _failure(ErrorKind.READ_FAILED)

        created_at, updated_at = file_meta(target)
        return OperationResult.success(
            relative,
            posixpath.basename(relative),
            created_at=created_at,
            updated_at=updated_at,
            content=content,
        )

    async def save_file_content(self, path: str, content: str) -> OperationResult:
        """Write a page's full content, creating the file if needed."""
        if not await self.is_authorized():
            return _failure(ErrorKind.UNAUTHORIZED)
        try:
            relative = _source_file(path)
            target = self._resolve(relative)
        except FoliaError as e:
            return _failure(e.kind)

        if target.is_dir():
            return _failure(ErrorKind.INVALID_PATH)

        try:
            target.write_text(content, encoding="utf-8")
        except OSError as e:
            return _write_failed("save_file_content", relative, e)

        self._changed()
        created_at, updated_at = file_meta(target)
        return OperationResult.success(
            relative, posixpath.basename(relative), created_at=created_at, updated_at=updated_at
        )

    # ─────────────────────────────────────────────────────────────────────
    # Search
    # ─────────────────────────────────────────────────────────────────────

    async def search(self, query: str) -> SearchResult:
        """Find pages with a line containing ``query`` (case-sensitive).

        An empty query matches nothing; multi-line queries are rejected.
        """
        if not await self.is_authorized():
            return SearchResult(ok=False, error=ErrorKind.UNAUTHORIZED)

        needle = query.strip()
        if not needle:
            return SearchResult(ok=True)
        if "\n" in needle or "\r" in needle:
            return SearchResult(ok=False, error=ErrorKind.INVALID_QUERY)

        root = self.root
        try:
            matches = await search_library(root, needle)
        except OSError as e:
            log.warning("search failed under %s: %s", root, e)
            return SearchResult(ok=False, error=ErrorKind.READ_FAILED)

        return SearchResult(ok=True, matches=matches)
