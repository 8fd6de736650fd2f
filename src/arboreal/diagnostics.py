"""Textual rendering of a dependency search tree."""

import logging
from typing import Any, Optional

from arboreal.nodes import Node, NodeKind
from arboreal.search_tree import DependencySearchTree

__all__ = ["describe_node", "render_tree", "log_tree"]

NO_INSTANCE = "<no instance>"


def _instance_summary(instance: Any) -> str:
    if instance is None:
        return NO_INSTANCE
    return f"{type(instance).__name__}@{id(instance):x}"


def describe_node(node: Node) -> str:
    """Return a one line description of ``node``.

    Example:
        >>> describe_node(tree.root)  # 'R:'
    """
    if node.kind is NodeKind.ROOT:
        return "R:"
    if node.kind is NodeKind.TYPE:
        return f"TN: {node.wrapped_type.__name__}"
    if node.kind is NodeKind.SINGLETON:
        return f"SI: [Type: {node.wrapped_type.__name__}] [Instance: {_instance_summary(node.instance)}]"
    if node.kind is NodeKind.VIRTUAL_SINGLETON:
        return (
            f"VSI: [Type: {node.wrapped_type.__name__}] "
            f"[Instance: {_instance_summary(node.instance)}] "
            f"[Virtualized from {node.parent.wrapped_type.__name__}.{node.factory.name}]"
        )
    raise ValueError(f"Unknown node kind {node.kind}")


def render_tree(tree: DependencySearchTree) -> str:
    """Render ``tree`` as an indented list, two spaces per level."""
    lines: list = []
    _render(tree.root, "", lines)
    return "\n".join(lines)


def _render(node: Node, indent: str, lines: list):
    lines.append(f"{indent}- {describe_node(node)}")
    for child in node.children:
        _render(child, indent + "  ", lines)


def log_tree(tree: DependencySearchTree, logger: Optional[logging.Logger] = None, level: int = logging.DEBUG):
    """Write the rendering of ``tree`` to ``logger`` (this module's logger by default)."""
    logger = logger or logging.getLogger(__name__)
    if logger.isEnabledFor(level):
        logger.log(level, "Dependency search tree:\n%s", render_tree(tree))
