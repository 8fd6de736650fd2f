"""The dependency search tree.

The search tree indexes managed types by their supertypes. Internal
:class:`~arboreal.nodes.TypeNode` nodes stand for interfaces and
superclasses and are shared by every managed type below them; leaves are
:class:`~arboreal.nodes.SingletonNode` slots holding the singleton instances.

A managed type appears once below each of its interface paths and once below
its superclass path, so it can be found through either axis:

    root
    ├── TN: Repository
    │   └── TN: ProductRepository
    │       └── SI: SqlProductRepository
    └── TN: BaseRepository
        └── SI: SqlProductRepository
"""

import logging
from typing import Any, Optional

from arboreal.descriptors import describe
from arboreal.domain import QueryOptions, TypeDescriptor
from arboreal.hierarchy import interface_chain, interfaces_of, is_compatible, is_interface, superclass_chain
from arboreal.injection_points import virtual_factories
from arboreal.nodes import Node, NodeKind, RootNode, SingletonNode, TypeNode, VirtualSingletonNode

__all__ = ["DependencySearchTree"]

logger = logging.getLogger(__name__)


class DependencySearchTree:
    """Tree of supertypes used to match requested types to singletons."""

    def __init__(self):
        self.root = RootNode()

    def insert(self, descriptor: TypeDescriptor):
        """Insert the type described by ``descriptor`` with its full ancestry.

        Every path from the root to the type's interfaces and superclasses is
        created or reused, and a singleton node is attached at the end of each
        path. Factory methods marked with ``virtual`` produce derived
        singleton nodes inserted the same way.

        Callers should insert each type at most once.

        Args:
            descriptor: The descriptor of the type to insert.
        """
        if descriptor is None:
            raise ValueError("descriptor must be specified.")
        self._insert_type_families(SingletonNode(descriptor))

    def insert_and_propagate(self, dependency_type: type, instance: Any):
        """Insert ``dependency_type`` unless already present and store ``instance``
        in every node of that type.
        """
        if not self.find_singleton_nodes(dependency_type):
            self.insert(describe(dependency_type))
        self.propagate(dependency_type, instance)

    def _insert_type_families(self, singleton_node: SingletonNode):
        dependency_type = singleton_node.wrapped_type
        logger.debug("Inserting %r", singleton_node)

        interface_paths = [interface_chain(interface) for interface in interfaces_of(dependency_type)]
        attached = []
        if not interface_paths:
            attached.append(self.root.add_child(singleton_node))

        for path in interface_paths:
            attached.append(self._append_to_tree(path, singleton_node))

        if not is_interface(dependency_type):
            attached.append(self._append_to_tree(superclass_chain(dependency_type), singleton_node))

        self._insert_virtual_singletons(attached[0])

    def _append_to_tree(self, path: list, singleton_node: SingletonNode) -> SingletonNode:
        parent: Node = self.root
        for path_type in path:
            parent = self._find_or_create_type_node(path_type, parent)
        return parent.add_child(_copy_of(singleton_node))

    def _insert_virtual_singletons(self, parent: SingletonNode):
        lineage = _lineage_of(parent)
        for factory in virtual_factories(parent.wrapped_type):
            if factory.return_type in lineage:
                logger.warning(
                    "Skipping virtual factory %s.%s: %s is already one of its producers",
                    parent.wrapped_type.__name__,
                    factory.name,
                    factory.return_type.__name__,
                )
                continue
            descriptor = describe(factory.return_type, factory.declared_name or None)
            logger.debug(
                "Inserting virtual singleton %s from %s.%s",
                factory.return_type.__name__,
                parent.wrapped_type.__name__,
                factory.name,
            )
            self._insert_type_families(VirtualSingletonNode(descriptor, parent, factory))

    @staticmethod
    def _find_or_create_type_node(path_type: type, parent: Node) -> TypeNode:
        for child in parent.children:
            if child.kind is NodeKind.TYPE and child.wrapped_type is path_type:
                return child
        return parent.add_child(TypeNode(path_type))

    def query(self, requested_type: type, options: Optional[QueryOptions] = None) -> Any:
        """Return the instance of the singleton matching ``requested_type``.

        Returns:
            The instance, or None when no singleton matches or the matching
            singleton has not been instantiated yet.
        """
        node = self.query_singleton_node(requested_type, options)
        return node.instance if node is not None else None

    def query_singleton_node(
        self, requested_type: type, options: Optional[QueryOptions] = None
    ) -> Optional[SingletonNode]:
        """Select the singleton node matching ``requested_type``.

        Without a name filter the first match in insertion order wins. With a
        name filter the first match whose name equals the filter
        (case-insensitively) wins; when none does, the last match scanned is
        returned if ``options.fallback_to_any`` is set, otherwise None.

        Args:
            requested_type: The type to search for.
            options: Optional selection criteria.

        Returns:
            The selected node, or None.
        """
        options = options or QueryOptions.none()
        matches = self.query_singletons_by_type(requested_type)
        if not matches:
            return None

        if not options.has_name_filter:
            return matches[0]

        name_filter = options.name_filter.strip().casefold()
        for node in matches:
            if node.name.casefold() == name_filter:
                return node

        # falls back to the last match scanned, not the first
        return matches[-1] if options.fallback_to_any else None

    def query_singletons_by_type(self, requested_type: type) -> list:
        """Return every singleton node assignable to ``requested_type``, in insertion order.

        Only branches whose type is a supertype of ``requested_type`` are
        searched. When that finds nothing, the search is repeated keeping
        subtype branches too, which reaches implementations filed only below
        a sub-interface of ``requested_type``.
        """
        matches: list = []
        self._collect_singletons(requested_type, self.root, matches, widened=False)
        if not matches:
            self._collect_singletons(requested_type, self.root, matches, widened=True)
        return matches

    def _collect_singletons(self, requested_type: type, node: Node, matches: list, widened: bool):
        for child in node.children:
            if child.kind is NodeKind.TYPE:
                if widened:
                    descend = is_compatible(child.wrapped_type, requested_type)
                else:
                    descend = issubclass(requested_type, child.wrapped_type)
                if descend:
                    self._collect_singletons(requested_type, child, matches, widened)
            elif child.kind.is_singleton:
                if issubclass(child.wrapped_type, requested_type):
                    matches.append(child)
            else:
                raise ValueError(f"Unexpected {child.kind} node below {node!r}")

    def find_singleton_nodes(self, dependency_type: type) -> list:
        """Return the nodes standing for exactly ``dependency_type``."""
        return [
            node
            for node in self.query_singletons_by_type(dependency_type)
            if node.wrapped_type is dependency_type
        ]

    def propagate(self, dependency_type: type, instance: Any):
        """Store ``instance`` in every node of ``dependency_type``.

        Raises:
            ValueError: If ``instance`` is None.
        """
        if instance is None:
            raise ValueError("It is not allowed to propagate a None value through nodes.")
        nodes = self.find_singleton_nodes(dependency_type)
        logger.debug("Propagating %r to %d node(s) of %s", instance, len(nodes), dependency_type.__name__)
        for node in nodes:
            node.assign(instance)

    def all_singleton_nodes(self) -> list:
        """Return every singleton node of the tree, in insertion order."""
        nodes: list = []
        self._collect_singletons(object, self.root, nodes, widened=True)
        return nodes

    def all_instances(self) -> list:
        """Return every distinct instance held by the tree."""
        instances: list = []
        for node in self.all_singleton_nodes():
            if node.has_instance and not any(node.instance is seen for seen in instances):
                instances.append(node.instance)
        return instances


def _copy_of(singleton_node: SingletonNode) -> SingletonNode:
    if singleton_node.kind is NodeKind.VIRTUAL_SINGLETON:
        return VirtualSingletonNode(singleton_node.descriptor, singleton_node.parent, singleton_node.factory)
    return SingletonNode(singleton_node.descriptor)


def _lineage_of(node: SingletonNode) -> set:
    lineage = {node.wrapped_type}
    while node.kind is NodeKind.VIRTUAL_SINGLETON:
        node = node.parent
        lineage.add(node.wrapped_type)
    return lineage
