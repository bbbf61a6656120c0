"""Bounded folder hierarchy traversal and ASCII rendering."""

import logging
from typing import Optional

from docscope.errors import with_retry
from docscope.models import TreeNode
from docscope.scope.resolver import ScopeResolver

logger = logging.getLogger(__name__)

MAX_TREE_NODES = 2000


async def build_tree(
    resolver: ScopeResolver,
    folder_id: Optional[str] = None,
    max_depth: int = 5,
    include_files: bool = False,
    max_items: int = 50,
) -> TreeNode:
    """Walk the hierarchy under an authorized folder.

    Args:
        resolver: Scope resolver (also supplies the store and retry policy)
        folder_id: Folder to start from; defaults to the authorized root
        max_depth: Levels below the start folder to list
        include_files: Include non-folder nodes
        max_items: Maximum children listed per folder

    Returns:
        Root TreeNode with nested children
    """
    store = resolver.store
    start_id = folder_id or resolver.root_id
    await resolver.ensure_authorized(start_id)

    start = await with_retry(
        lambda: store.get_metadata(start_id),
        resolver.retry_attempts,
        resolver.retry_delay,
    )
    root = TreeNode(id=start.id, name=start.name, media_type=start.media_type)

    pending: list[tuple[TreeNode, int]] = [(root, 0)]
    visited = {root.id}

    while pending and len(visited) < MAX_TREE_NODES:
        parent, depth = pending.pop()
        if depth >= max_depth:
            continue

        children = await with_retry(
            lambda: store.list_children(parent.id, folders_only=not include_files, limit=max_items),
            resolver.retry_attempts,
            resolver.retry_delay,
        )
        # Folders first, then by name
        for child in sorted(children, key=lambda n: (not n.is_folder, n.name.lower()))[:max_items]:
            if child.id in visited:
                continue
            visited.add(child.id)
            node = TreeNode(id=child.id, name=child.name, media_type=child.media_type)
            parent.children.append(node)
            if child.is_folder:
                pending.append((node, depth + 1))

    if pending:
        logger.info("Folder tree truncated at %d nodes", len(visited))
    return root


def count_nodes(root: TreeNode) -> tuple[int, int]:
    """Return (folders, files) in the tree, including the root."""
    folders = files = 0
    stack = [root]
    while stack:
        node = stack.pop()
        if node.is_folder:
            folders += 1
        else:
            files += 1
        stack.extend(node.children)
    return folders, files


def render_tree(root: TreeNode) -> str:
    """Render as an ASCII tree, folders marked with a trailing slash."""

    def label(node: TreeNode) -> str:
        return f"{node.name}/" if node.is_folder else node.name

    lines = [label(root)]
    # (node, prefix for its children, is last sibling)
    stack = [(child, "", i == len(root.children) - 1) for i, child in enumerate(root.children)]
    stack.reverse()

    while stack:
        node, prefix, is_last = stack.pop()
        lines.append(f"{prefix}{'└── ' if is_last else '├── '}{label(node)}")
        child_prefix = prefix + ("    " if is_last else "│   ")
        last_index = len(node.children) - 1
        for i in range(last_index, -1, -1):
            stack.append((node.children[i], child_prefix, i == last_index))

    return "\n".join(lines)
