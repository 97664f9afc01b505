#!/usr/bin/env python3
"""
folia: CLI for a folia library

Usage:
    folia tree                       # Browse structure
    folia mkdir "" "Ideas"           # Create a folder at the root
    folia new ideas "My First Page"  # Create a page
    folia search "todo"              # Find pages by content
    folia serve                      # Run the HTTP API
"""

from __future__ import annotations

import asyncio
import json
import sys
from typing import Any, NoReturn

import click

from . import __version__ as FOLIA_VERSION
from .config import ConfigurationError, get_library_root
from .models import OperationResult, TreeNode
from .naming import is_document_name


def run_async(coro):
    """Run async function synchronously."""
    return asyncio.run(coro)


def output(data: Any, as_json: bool = False):
    """Output data as JSON or formatted text."""
    if as_json:
        click.echo(json.dumps(data, indent=2, default=str))
    else:
        click.echo(data)


def _fail(message: str) -> NoReturn:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _operations(ctx: click.Context):
    from .operations import LibraryOperations

    return LibraryOperations(root=_root(ctx))


def _root(ctx: click.Context):
    try:
        return get_library_root(ctx.obj.get("root"))
    except ConfigurationError as e:
        _fail(str(e))


def _snapshot(ctx: click.Context):
    from .scanner import scan_library

    snapshot = scan_library(_root(ctx))
    if snapshot.root_missing:
        _fail(f"Library root does not exist: {snapshot.root}")
    return snapshot


def _report(result: OperationResult, as_json: bool = False) -> None:
    """Print a handler result, exiting non-zero on failure."""
    if as_json:
        output(result.model_dump(mode="json", exclude_none=True), as_json=True)
        if not result.ok:
            sys.exit(1)
        return
    if not result.ok:
        _fail(result.error.value)
    click.echo(result.path)


def format_tree(node: TreeNode, prefix: str = "") -> str:
    """Format a tree node's children as an ASCII tree."""
    lines = []
    children = node.children or []
    for i, child in enumerate(children):
        is_last = i == len(children) - 1
        connector = "└── " if is_last else "├── "
        if child.is_folder:
            lines.append(f"{prefix}{connector}{child.name}/")
            extension = "    " if is_last else "│   "
            lines.append(format_tree(child, prefix + extension))
        else:
            lines.append(f"{prefix}{connector}{child.name}")
    return "\n".join(line for line in lines if line)


def _count(node: TreeNode) -> tuple[int, int]:
    folders, files = 0, 0
    stack = list(node.children or [])
    while stack:
        child = stack.pop()
        if child.is_folder:
            folders += 1
            stack.extend(child.children or [])
        else:
            files += 1
    return folders, files


# ─────────────────────────────────────────────────────────────────────────────
# Main CLI Group
# ─────────────────────────────────────────────────────────────────────────────


@click.group()
@click.version_option(version=FOLIA_VERSION, prog_name="folia")
@click.option(
    "--root",
    type=click.Path(file_okay=False),
    envvar="FOLIA_LIBRARY_ROOT",
    help="Library root directory (default: FOLIA_LIBRARY_ROOT or folia.config.json)",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Log level (default: FOLIA_LOG_LEVEL or INFO)",
)
@click.pass_context
def cli(ctx: click.Context, root: str | None, log_level: str | None):
    """folia: browse and edit a markdown library on disk.

    \b
    Browse:
      folia tree                         # Directory structure
      folia collections                  # Top-level folders with page counts
      folia recent                       # Recently modified pages

    \b
    Edit:
      folia mkdir PARENT NAME            # "" is the library root
      folia new PARENT NAME
      folia rename PATH NEW_NAME
      folia cp|mv SOURCE DEST_PARENT NAME
      folia rm PATH
    """
    from ._logging import configure_logging

    configure_logging(log_level)
    ctx.ensure_object(dict)
    ctx.obj["root"] = root


# ─────────────────────────────────────────────────────────────────────────────
# Browse Commands
# ─────────────────────────────────────────────────────────────────────────────


@cli.command()
@click.argument("path", default="")
@click.option("--filter", "query", default="", help="Keep only names containing this text")
@click.option("--content", is_flag=True, help="With --filter, also keep pages whose content matches")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def tree(ctx: click.Context, path: str, query: str, content: bool, as_json: bool):
    """Display the library structure.

    \b
    Examples:
      folia tree
      folia tree notes
      folia tree --filter todo --content
    """
    from .tree import filter_tree, find_node

    node = _snapshot(ctx).tree
    if path:
        node = find_node(node, path.strip("/"))
        if node is None or not node.is_folder:
            _fail(f"Folder not found: {path}")

    if query:
        matches: set[str] = set()
        if content:
            found = run_async(_operations(ctx).search(query))
            if not found.ok:
                _fail(found.error.value)
            matches = set(found.matches)
        node = filter_tree(node, query, matches)

    if as_json:
        output(node.model_dump(mode="json"), as_json=True)
        return

    formatted = format_tree(node)
    if formatted:
        click.echo(formatted)
    folders, files = _count(node)
    click.echo(f"\n{folders} folders, {files} pages")


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def collections(ctx: click.Context, as_json: bool):
    """List top-level folders with page counts."""
    snapshot = _snapshot(ctx)
    if as_json:
        output([c.model_dump(mode="json") for c in snapshot.collections], as_json=True)
        return
    for collection in snapshot.collections:
        updated = collection.updated_at.strftime("%Y-%m-%d %H:%M") if collection.updated_at else "-"
        click.echo(f"{collection.name:<30} {collection.page_count:>5} pages   {updated}")


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def recent(ctx: click.Context, as_json: bool):
    """Show the most recently modified pages."""
    snapshot = _snapshot(ctx)
    if as_json:
        output([p.model_dump(mode="json") for p in snapshot.recent_pages], as_json=True)
        return
    for page in snapshot.recent_pages:
        click.echo(f"{page.updated_at:%Y-%m-%d %H:%M}  {page.path}")


@cli.command()
@click.argument("path")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def cat(ctx: click.Context, path: str, as_json: bool):
    """Print a page's content."""
    result = run_async(_operations(ctx).load_file_content(path))
    if as_json or not result.ok:
        _report(result, as_json=as_json)
        return
    click.echo(result.content, nl=False)


@cli.command()
@click.argument("query")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def search(ctx: click.Context, query: str, as_json: bool):
    """Find pages containing QUERY on some line (case-sensitive)."""
    result = run_async(_operations(ctx).search(query))
    if as_json:
        output(result.model_dump(mode="json", exclude_none=True), as_json=True)
        if not result.ok:
            sys.exit(1)
        return
    if not result.ok:
        _fail(result.error.value)
    for match in result.matches:
        click.echo(match)


# ─────────────────────────────────────────────────────────────────────────────
# Edit Commands
# ─────────────────────────────────────────────────────────────────────────────


@cli.command()
@click.argument("parent")
@click.argument("name")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def mkdir(ctx: click.Context, parent: str, name: str, as_json: bool):
    """Create folder NAME under PARENT ("" for the root)."""
    _report(run_async(_operations(ctx).create_folder(parent, name)), as_json)


@cli.command()
@click.argument("parent")
@click.argument("name")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def new(ctx: click.Context, parent: str, name: str, as_json: bool):
    """Create an empty page NAME under PARENT."""
    _report(run_async(_operations(ctx).create_file(parent, name)), as_json)


@cli.command()
@click.argument("path")
@click.argument("new_name")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def rename(ctx: click.Context, path: str, new_name: str, as_json: bool):
    """Rename a folder or page in place."""
    ops = _operations(ctx)
    handler = ops.rename_file if is_document_name(path) else ops.rename_folder
    _report(run_async(handler(path, new_name)), as_json)


@cli.command()
@click.argument("path")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def rm(ctx: click.Context, path: str, as_json: bool):
    """Delete a page, or a folder and everything in it."""
    ops = _operations(ctx)
    handler = ops.delete_file if is_document_name(path) else ops.delete_folder
    _report(run_async(handler(path)), as_json)


@cli.command()
@click.argument("source")
@click.argument("dest_parent")
@click.argument("name")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def cp(ctx: click.Context, source: str, dest_parent: str, name: str, as_json: bool):
    """Copy SOURCE to DEST_PARENT/NAME."""
    ops = _operations(ctx)
    handler = ops.copy_file if is_document_name(source) else ops.copy_folder
    _report(run_async(handler(source, dest_parent, name)), as_json)


@cli.command()
@click.argument("source")
@click.argument("dest_parent")
@click.argument("name")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def mv(ctx: click.Context, source: str, dest_parent: str, name: str, as_json: bool):
    """Move SOURCE to DEST_PARENT/NAME."""
    ops = _operations(ctx)
    handler = ops.move_file if is_document_name(source) else ops.move_folder
    _report(run_async(handler(source, dest_parent, name)), as_json)


@cli.command()
@click.argument("path")
@click.option("--content", help="New content (reads stdin when omitted)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def write(ctx: click.Context, path: str, content: str | None, as_json: bool):
    """Replace a page's content.

    \b
    Examples:
      folia write notes/todo.md --content "- buy milk"
      cat draft.md | folia write notes/todo.md
    """
    if content is None:
        content = sys.stdin.read()
    _report(run_async(_operations(ctx).save_file_content(path, content)), as_json)


# ─────────────────────────────────────────────────────────────────────────────
# Server
# ─────────────────────────────────────────────────────────────────────────────


@cli.command()
@click.option("--host", default="127.0.0.1", envvar="FOLIA_HOST", help="Bind address")
@click.option("--port", default=8080, type=int, envvar="FOLIA_PORT", help="Bind port")
@click.pass_context
def serve(ctx: click.Context, host: str, port: int):
    """Serve the library over HTTP."""
    import uvicorn

    from .webapp.api import create_app

    uvicorn.run(create_app(root=_root(ctx)), host=host, port=port)


def main():
    cli()


if __name__ == "__main__":
    main()
