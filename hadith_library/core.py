"""
Minimal shared primitives for walking and printing tree forests.
No CLI, no Typer. Used by the TOC builder, the taxonomy cache and the tool modules.
"""

from typing import Iterator, List, Sequence

from hadith_library.models import TreeNode


def iter_preorder(nodes: Sequence[TreeNode]) -> Iterator[TreeNode]:
    """Yield every materialized node in document (pre-order) order."""
    stack = list(reversed(nodes))
    while stack:
        node = stack.pop()
        yield node
        if node.children:
            stack.extend(reversed(node.children))


def count_nodes(nodes: Sequence[TreeNode]) -> int:
    return sum(1 for _ in iter_preorder(nodes))


def format_tree_lines(
    nodes: Sequence[TreeNode],
    max_depth: int = 2,
    active_id: str | int | None = None,
) -> List[str]:
    """Return indented outline lines; the active node is marked with '*', unloaded subtrees with '+'."""
    lines: List[str] = []

    def _recurse(level_nodes: Sequence[TreeNode], current_depth: int) -> None:
        if current_depth > max_depth:
            return
        for node in level_nodes:
            indent = "  " * (current_depth - 1)
            marker = "*" if active_id is not None and node.id == active_id else "-"
            suffix = " [+]" if node.children is None and node.has_children else ""
            lines.append(f"{indent}{marker} {node.label} ({node.id}){suffix}")
            if node.children:
                _recurse(node.children, current_depth + 1)

    _recurse(nodes, 1)
    return lines
