"""Pydantic models for the library."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from .errors import ErrorKind

NodeType = Literal["folder", "file"]


class TreeNode(BaseModel):
    """A folder or document in the library tree.

    ``path`` is the posix join of ancestor names, ``""`` for the root.
    Folders always carry a ``children`` list; files carry ``None``.
    Treat instances as immutable: tree functions return new nodes.
    """

    name: str
    path: str
    type: NodeType
    children: list[TreeNode] | None = None

    @classmethod
    def folder(cls, name: str, path: str, children: Iterable[TreeNode] = ()) -> TreeNode:
        return cls(name=name, path=path, type="folder", children=sort_children(children))

    @classmethod
    def file(cls, name: str, path: str) -> TreeNode:
        return cls(name=name, path=path, type="file")

    @property
    def is_folder(self) -> bool:
        return self.type == "folder"


def child_sort_key(node: TreeNode) -> tuple[int, str, str]:
    """Folders before files, then case-insensitive name, exact name as tiebreaker."""
    return (0 if node.type == "folder" else 1, node.name.casefold(), node.name)


def sort_children(children: Iterable[TreeNode]) -> list[TreeNode]:
    """Return children in canonical display order."""
    return sorted(children, key=child_sort_key)


def empty_root() -> TreeNode:
    return TreeNode(name="root", path="", type="folder", children=[])


class CollectionInfo(BaseModel):
    """Summary of one top-level folder."""

    name: str
    path: str
    page_count: int = Field(default=0, ge=0)
    updated_at: datetime | None = None


class RecentPage(BaseModel):
    """A recently modified document."""

    name: str
    path: str
    updated_at: datetime


class LibrarySnapshot(BaseModel):
    """Point-in-time view of the library produced by one scan."""

    root: str
    collections: list[CollectionInfo] = Field(default_factory=list)
    recent_pages: list[RecentPage] = Field(default_factory=list)  # Newest first
    tree: TreeNode = Field(default_factory=empty_root)
    root_missing: bool = False


class OperationResult(BaseModel):
    """Outcome of one operation handler.

    On success ``path``/``name`` describe the affected node so a tree replica
    can be patched without rescanning. On failure only ``error`` is set.
    """

    ok: bool
    path: str | None = None
    name: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    content: str | None = None  # Set by load_file_content only
    error: ErrorKind | None = None

    @classmethod
    def success(
        cls,
        path: str,
        name: str,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
        content: str | None = None,
    ) -> OperationResult:
        return cls(
            ok=True,
            path=path,
            name=name,
            created_at=created_at,
            updated_at=updated_at,
            content=content,
        )

    @classmethod
    def failure(cls, kind: ErrorKind) -> OperationResult:
        return cls(ok=False, error=kind)


class SearchResult(BaseModel):
    """Content search outcome: matching document paths, or an error kind."""

    ok: bool
    matches: list[str] = Field(default_factory=list)
    error: ErrorKind | None = None
