"""Caller-held tree replica patched from operation results.

A replica mirrors the library tree without rescanning after every operation:
each successful OperationResult is applied through the tree functions. It can
drift when other callers change the library, so callers should ``refresh()``
from a fresh snapshot periodically (for example when a view regains focus).
"""

from __future__ import annotations

import logging

from .models import LibrarySnapshot, OperationResult, TreeNode, empty_root
from .naming import is_document_name
from .paths import parent_of
from .tree import clone_node, filter_tree, find_node, insert_node, remove_node, rename_node

log = logging.getLogger(__name__)


class TreeReplica:
    """Local copy of the library tree.

    All ``apply_*`` methods ignore failed results and return the new tree.
    """

    def __init__(self, tree: TreeNode | None = None):
        self.tree = tree if tree is not None else empty_root()

    @classmethod
    def from_snapshot(cls, snapshot: LibrarySnapshot) -> TreeReplica:
        return cls(snapshot.tree)

    def refresh(self, snapshot: LibrarySnapshot) -> TreeNode:
        """Replace the replica with an authoritative snapshot."""
        self.tree = snapshot.tree
        return self.tree

    def find(self, path: str) -> TreeNode | None:
        return find_node(self.tree, path)

    def apply_create_folder(self, parent_path: str, result: OperationResult) -> TreeNode:
        if result.ok:
            node = TreeNode.folder(result.name, result.path)
            self.tree = insert_node(self.tree, parent_path, node)
        return self.tree

    def apply_create_file(self, parent_path: str, result: OperationResult) -> TreeNode:
        if result.ok:
            self.tree = insert_node(self.tree, parent_path, TreeNode.file(result.name, result.path))
        return self.tree

    def apply_rename(self, old_path: str, result: OperationResult) -> TreeNode:
        if result.ok:
            self.tree = rename_node(self.tree, old_path, result.path, result.name)
        return self.tree

    def apply_delete(self, path: str, result: OperationResult) -> TreeNode:
        if result.ok:
            self.tree = remove_node(self.tree, path)
        return self.tree

    def apply_copy(self, source_path: str, result: OperationResult) -> TreeNode:
        """Insert a copy of the source subtree at the result's path."""
        if result.ok:
            self.tree = insert_node(self.tree, parent_of(result.path), self._relocated(source_path, result))
        return self.tree

    def apply_move(self, source_path: str, result: OperationResult) -> TreeNode:
        """Insert the source subtree at its new path, then drop the original."""
        if result.ok:
            node = self._relocated(source_path, result)
            self.tree = remove_node(self.tree, source_path)
            self.tree = insert_node(self.tree, parent_of(result.path), node)
        return self.tree

    def _relocated(self, source_path: str, result: OperationResult) -> TreeNode:
        source = find_node(self.tree, source_path)
        if source is None:
            # Not in the replica (stale); synthesize a bare node
            log.debug("Replica has no node at %s; inserting an empty placeholder", source_path)
            if is_document_name(result.path):
                return TreeNode.file(result.name, result.path)
            return TreeNode.folder(result.name, result.path)
        return clone_node(source, source_path, result.path, result.name)

    def filtered(self, query: str, content_matches: set[str] | None = None) -> TreeNode:
        """Combined name and content search view of the replica."""
        return filter_tree(self.tree, query, content_matches or set())

