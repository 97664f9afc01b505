"""Pure edits on an in-memory library tree.

Every function returns a new tree and leaves its input untouched; subtrees an
edit does not reach are shared with the input. Outputs keep children sorted
(folders first, then by name) and keep each ``path`` equal to the join of its
ancestors' names. Recursion depth is bounded by directory depth.
"""

from __future__ import annotations

from collections.abc import Container

from .models import TreeNode, sort_children


def _with_children(node: TreeNode, children: list[TreeNode]) -> TreeNode:
    return node.model_copy(update={"children": children})


def _contains(folder_path: str, target_path: str) -> bool:
    """True if ``target_path`` can lie inside the folder at ``folder_path``."""
    return folder_path == "" or target_path.startswith(folder_path + "/")


def find_node(tree: TreeNode, target_path: str) -> TreeNode | None:
    """Locate the node with ``target_path``, or None."""
    node = tree
    while True:
        if node.path == target_path:
            return node
        if not node.children:
            return None
        for child in node.children:
            if child.path == target_path or (child.is_folder and _contains(child.path, target_path)):
                node = child
                break
        else:
            return None


def insert_node(tree: TreeNode, parent_path: str, child: TreeNode) -> TreeNode:
    """Add ``child`` under the folder at ``parent_path`` ("" is the root).

    A node already present at ``child.path`` is replaced. The tree is returned
    unchanged if no such folder exists.
    """
    if tree.children is None:
        return tree

    if tree.path == parent_path:
        siblings = [c for c in tree.children if c.path != child.path]
        siblings.append(child)
        return _with_children(tree, sort_children(siblings))

    if not _contains(tree.path, parent_path):
        return tree

    changed = False
    children = []
    for node in tree.children:
        if node.is_folder and (node.path == parent_path or _contains(node.path, parent_path)):
            updated = insert_node(node, parent_path, child)
            changed = changed or updated is not node
            children.append(updated)
        else:
            children.append(node)
    return _with_children(tree, children) if changed else tree


def rewrite_subtree(node: TreeNode, old_path: str, new_path: str, new_name: str) -> TreeNode:
    """Give ``node`` a new name and path, re-rooting every descendant path.

    Descendant names are untouched; only the ``old_path`` prefix of their
    paths becomes ``new_path``.
    """
    if node.children is None:
        return node.model_copy(update={"name": new_name, "path": new_path})

    def _rebase(child: TreeNode) -> TreeNode:
        suffix = child.path[len(old_path):] if child.path.startswith(old_path + "/") else "/" + child.name
        child_path = new_path + suffix
        if child.children is None:
            return child.model_copy(update={"path": child_path})
        return rewrite_subtree(child, child.path, child_path, child.name)

    return node.model_copy(
        update={
            "name": new_name,
            "path": new_path,
            "children": [_rebase(child) for child in node.children],
        }
    )


def rename_node(tree: TreeNode, old_path: str, new_path: str, new_name: str) -> TreeNode:
    """Rename the node at ``old_path`` within its parent.

    Folders carry their descendants along; files are renamed shallowly.
    The parent's children are re-sorted for the new name.
    """
    if tree.children is None:
        return tree

    if any(child.path == old_path for child in tree.children):
        children = [
            rewrite_subtree(child, old_path, new_path, new_name) if child.path == old_path else child
            for child in tree.children
        ]
        return _with_children(tree, sort_children(children))

    if not _contains(tree.path, old_path):
        return tree

    changed = False
    children = []
    for node in tree.children:
        if node.is_folder and _contains(node.path, old_path):
            updated = rename_node(node, old_path, new_path, new_name)
            changed = changed or updated is not node
            children.append(updated)
        else:
            children.append(node)
    return _with_children(tree, children) if changed else tree


def remove_node(tree: TreeNode, target_path: str) -> TreeNode:
    """Drop the node at ``target_path`` (and its subtree)."""
    if tree.children is None or not _contains(tree.path, target_path):
        return tree

    changed = False
    children = []
    for node in tree.children:
        if node.path == target_path:
            changed = True
            continue
        if node.is_folder and _contains(node.path, target_path):
            updated = remove_node(node, target_path)
            changed = changed or updated is not node
            children.append(updated)
        else:
            children.append(node)
    return _with_children(tree, children) if changed else tree


def clone_node(node: TreeNode, old_path: str, new_path: str, new_name: str) -> TreeNode:
    """Detached copy of ``node`` re-rooted at ``new_path``, for local copies."""
    return rewrite_subtree(node, old_path, new_path, new_name)


def _filter(node: TreeNode, needle: str, content_matches: Container[str]) -> TreeNode | None:
    name_match = node.path != "" and needle in node.name.lower()

    if node.children is None:
        return node if name_match or node.path in content_matches else None

    children = []
    for child in node.children:
        kept = _filter(child, needle, content_matches)
        if kept is not None:
            children.append(kept)

    if name_match or children:
        return _with_children(node, children)
    return None


def filter_tree(tree: TreeNode, query: str, content_matches: Container[str] = frozenset()) -> TreeNode:
    """Prune to nodes whose name contains ``query`` or files in ``content_matches``.

    Name matching is case-insensitive. A folder stays if its own name matches
    or any descendant stays. An empty query returns the tree unchanged, and
    the root is always kept.
    """
    if not query:
        return tree
    return _filter(tree, query.lower(), content_matches) or _with_children(tree, [])
