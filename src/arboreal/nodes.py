"""Nodes of the dependency search tree.

The tree has four node kinds:

    - ROOT: the single entry point of a tree.
    - TYPE: a supertype shared by every singleton below it.
    - SINGLETON: a managed type and the slot holding its instance.
    - VIRTUAL_SINGLETON: a singleton whose instance is produced by a factory
      method of another singleton.

Traversals branch on :attr:`Node.kind` rather than on the node class.
"""

import logging
import threading
from enum import Enum
from typing import Any

from arboreal.domain import TypeDescriptor
from arboreal.injection_points import VirtualFactory

__all__ = [
    "NodeKind",
    "Node",
    "RootNode",
    "TypeNode",
    "SingletonNode",
    "VirtualSingletonNode",
]

logger = logging.getLogger(__name__)


class NodeKind(Enum):
    ROOT = "root"
    TYPE = "type"
    SINGLETON = "singleton"
    VIRTUAL_SINGLETON = "virtual_singleton"

    @property
    def is_singleton(self) -> bool:
        return self in (NodeKind.SINGLETON, NodeKind.VIRTUAL_SINGLETON)


class Node:
    """Base class of the search tree nodes.

    Children form an insertion ordered set: adding a node equal to an
    existing child is a no-op.
    """

    kind: NodeKind

    def __init__(self):
        self._children: dict = {}

    @property
    def children(self) -> tuple:
        return tuple(self._children)

    def add_child(self, node: "Node") -> "Node":
        """Add ``node`` as a child and return the child actually stored."""
        for child in self._children:
            if child == node:
                return child
        self._children[node] = None
        return node


class RootNode(Node):
    kind = NodeKind.ROOT

    def __repr__(self) -> str:
        return f"RootNode({len(self._children)} children)"


class TypeNode(Node):
    """A supertype shared by the singleton nodes below it.

    Attributes:
        wrapped_type: The supertype or interface.
    """

    kind = NodeKind.TYPE

    def __init__(self, wrapped_type: type):
        super().__init__()
        self.wrapped_type = wrapped_type

    def __repr__(self) -> str:
        return f"TypeNode({self.wrapped_type.__name__})"


class SingletonNode(Node):
    """A leaf holding the singleton instance of a managed type.

    Two singleton nodes wrapping the same type are equal: they stand for the
    same logical singleton wherever they sit in the tree.

    Attributes:
        descriptor: The :class:`TypeDescriptor` of the wrapped type.
    """

    kind = NodeKind.SINGLETON

    def __init__(self, descriptor: TypeDescriptor):
        super().__init__()
        self.descriptor = descriptor
        self._instance: Any = None
        self._lock = threading.Lock()

    @property
    def wrapped_type(self) -> type:
        return self.descriptor.wrapped_type

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def instance(self) -> Any:
        return self._instance

    @property
    def has_instance(self) -> bool:
        return self._instance is not None

    def assign(self, instance: Any):
        """Store ``instance`` in the slot.

        Raises:
            ValueError: If ``instance`` is None; a filled slot never empties.
        """
        if instance is None:
            raise ValueError("It is not allowed to propagate a None value through nodes.")
        with self._lock:
            if self._instance is instance:
                return
            if self._instance is not None:
                logger.warning(
                    "Replacing the instance of %s: %r -> %r",
                    self.wrapped_type.__name__,
                    self._instance,
                    instance,
                )
            self._instance = instance

    def add_child(self, node: Node) -> Node:
        raise ValueError("Singleton nodes cannot have children.")

    def __eq__(self, other: Any) -> bool:
        if other is self:
            return True
        if isinstance(other, SingletonNode):
            return other.wrapped_type is self.wrapped_type
        return NotImplemented

    def __hash__(self) -> int:
        return hash((SingletonNode, self.wrapped_type))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.wrapped_type.__name__}, name={self.name!r})"


class VirtualSingletonNode(SingletonNode):
    """A singleton produced by a factory method of another singleton.

    Attributes:
        parent: The singleton node whose instance declares the factory.
        factory: The factory method.
    """

    kind = NodeKind.VIRTUAL_SINGLETON

    def __init__(self, descriptor: TypeDescriptor, parent: SingletonNode, factory: VirtualFactory):
        super().__init__(descriptor)
        self.parent = parent
        self.factory = factory
