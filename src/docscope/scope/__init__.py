"""Authorization scope resolution and hierarchy traversal."""

from docscope.scope.resolver import ScopeResolver
from docscope.scope.tree import build_tree, count_nodes, render_tree

__all__ = ["ScopeResolver", "build_tree", "count_nodes", "render_tree"]
