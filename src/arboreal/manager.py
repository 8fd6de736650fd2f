"""Resolution and injection of managed types.

The :class:`DependencyManager` owns a
:class:`~arboreal.search_tree.DependencySearchTree`. Installing types inserts
them into the tree and instantiates them, resolving their dependencies
recursively through three kinds of injection points:

    1. Constructor injection (``@pull`` on ``__init__`` or on the class)
    2. Setter injection (``@pull`` on ``set_*`` methods)
    3. Field injection (``Annotated[T, pull()]`` class annotations)

Each concrete type is instantiated at most once per manager; the instance is
stored in every search tree node standing for that type.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Iterable, Iterator, Optional, Union

from arboreal.descriptors import describe, is_managed
from arboreal.domain import InjectionPoint, InstallationType, QueryOptions, TypeDescriptor
from arboreal.errors import (
    ArborealError,
    CircularDependencyError,
    ConstructionError,
    InstallationError,
    MemberInjectionError,
    SelfLoopError,
)
from arboreal.hierarchy import is_concrete, is_interface
from arboreal.injection_points import (
    accepts_no_arguments,
    constructor_injection_points,
    field_injection_points,
    is_scalar,
    parameter_injection_points,
    scalar_default,
    setter_injection_points,
    virtual_factories,
)
from arboreal.markers import managed
from arboreal.nodes import NodeKind, SingletonNode, VirtualSingletonNode
from arboreal.registry import ManagedTypeRegistry
from arboreal.search_tree import DependencySearchTree

__all__ = ["DependencyManager"]

logger = logging.getLogger(__name__)

InstallSource = Union[ManagedTypeRegistry, Iterable[type]]


@managed(disposable=False, dynamic=True)
class DependencyManager:
    """Install, resolve and query managed singletons.

    Args:
        strategies: Strategy tags selecting which disposable types are
            installed in bulk. With no tags every non-dynamic type is.
        primitive_defaults: Inject zero values into scalar injection points
            (``int``, ``str``, ...) instead of leaving them unresolved.

    Example:
        >>> manager = DependencyManager(strategies=["Production"])
        >>> manager.install(registry)
        >>> controller = manager.query(HomeController)
    """

    def __init__(self, strategies: Iterable[str] = (), primitive_defaults: bool = False):
        self.search_tree = DependencySearchTree()
        self._strategies: set = set()
        self._primitive_defaults = primitive_defaults
        self._type_locks: dict = {}
        self._type_locks_guard = threading.Lock()
        self._insertion_lock = threading.RLock()
        self._resolution = threading.local()
        self.add_strategies(*strategies)

    @staticmethod
    def builder():
        """Return a :class:`~arboreal.builders.DependencyManagerBuilder` for a new manager."""
        from arboreal.builders import DependencyManagerBuilder

        return DependencyManagerBuilder()

    @property
    def strategies(self) -> frozenset:
        return frozenset(self._strategies)

    @property
    def primitive_defaults(self) -> bool:
        return self._primitive_defaults

    def add_strategies(self, *strategies: str):
        """Add strategy tags.

        Raises:
            ValueError: If a tag is None or blank.
        """
        for strategy in strategies:
            if strategy is None or not str(strategy).strip():
                raise ValueError("The strategy name must not be blank.")
        self._strategies.update(strategies)

    def enable_primitive_default_values(self):
        self._primitive_defaults = True

    def include_manager_as_dependency(self):
        """Register this manager so managed types can depend on it."""
        self.insert_and_propagate(DependencyManager, self)

    def install(self, source: InstallSource):
        """Install every eligible managed type of ``source``.

        A type is eligible when it is a concrete managed class, is not
        dynamic, and either no strategies are configured, one of its
        strategies is configured, or it is not disposable. Eligible types are
        all inserted into the search tree before any is instantiated; the
        products of their virtual factories are materialised last.

        Args:
            source: A :class:`ManagedTypeRegistry` or an iterable of classes.

        Raises:
            InstallationError: If any type fails to install.
        """
        try:
            types = source.registered_types() if isinstance(source, ManagedTypeRegistry) else source
            descriptors = self._eligible_descriptors(types)
            logger.debug(
                "Installing %d type(s) with strategies %s",
                len(descriptors),
                sorted(self._strategies),
            )
            with self._insertion_lock:
                for descriptor in descriptors:
                    self.search_tree.insert(descriptor)
            for descriptor in descriptors:
                self._instantiate_type(descriptor.wrapped_type)
            self._materialise_pending_virtuals()
        except Exception as exc:
            raise InstallationError(source) from exc

    def _materialise_pending_virtuals(self):
        progressed = True
        while progressed:
            progressed = False
            for node in self.search_tree.all_singleton_nodes():
                if node.kind is NodeKind.VIRTUAL_SINGLETON and not node.has_instance and node.parent.has_instance:
                    self._instantiate_node(node)
                    progressed = True

    def _eligible_descriptors(self, types: Iterable[type]) -> list:
        descriptors = []
        seen = set()
        for dependency_type in types:
            if dependency_type in seen or not is_managed(dependency_type) or not is_concrete(dependency_type):
                continue
            seen.add(dependency_type)
            descriptor = describe(dependency_type)
            if self.is_eligible(descriptor):
                descriptors.append(descriptor)
            else:
                logger.debug("Skipping %s: not eligible for bulk installation", descriptor.name)
        return descriptors

    def is_eligible(self, descriptor: TypeDescriptor) -> bool:
        """Whether ``descriptor`` is installed in bulk under the current strategies."""
        if descriptor.dynamic:
            return False
        if not self._strategies:
            return True
        return descriptor.matches_any_strategy(frozenset(self._strategies)) or not descriptor.disposable

    def install_type(self, dependency_type: type, installation: InstallationType = InstallationType.DEFAULT) -> Any:
        """Instantiate ``dependency_type`` on demand, dynamic types included.

        Args:
            dependency_type: The class to instantiate.
            installation: ``STANDALONE`` builds a new object without
                registering it in the search tree.

        Returns:
            The wired instance.
        """
        if dependency_type is None:
            raise ValueError("dependency_type must not be None.")
        if installation is InstallationType.STANDALONE:
            return self._create(dependency_type, self._construct, dependency_type)
        with self._insertion_lock:
            if not self.search_tree.find_singleton_nodes(dependency_type):
                self.search_tree.insert(describe(dependency_type))
        return self._instantiate_type(dependency_type)

    def resolve(self, dependency_type: type) -> Any:
        """Return the singleton for ``dependency_type``, creating it if needed.

        Interfaces resolve to the first matching installed singleton; concrete
        types are inserted into the tree when missing.

        Returns:
            The instance, or None when an interface has no installed match.
        """
        if is_interface(dependency_type) and not self.search_tree.find_singleton_nodes(dependency_type):
            node = self.search_tree.query_singleton_node(dependency_type)
            return self._instantiate_node(node) if node is not None else None
        return self.install_type(dependency_type)

    def install_instance(self, instance: Any, installation: InstallationType = InstallationType.DEFAULT) -> Any:
        """Inject the members of an existing object and register it.

        The object is not constructed again: only its setters and fields are
        injected. Unless ``installation`` is ``STANDALONE`` the object becomes
        the singleton of its type and its virtual factories are invoked.

        Returns:
            ``instance`` itself.
        """
        if instance is None:
            raise ValueError("instance must not be None.")
        self._inject_members(instance)
        if installation is not InstallationType.STANDALONE:
            self.insert_and_propagate(type(instance), instance)
            self._install_virtual_factories(instance)
        return instance

    def _install_virtual_factories(self, instance: Any):
        owner = type(instance)
        for factory in virtual_factories(owner):
            nodes = self.search_tree.find_singleton_nodes(factory.return_type)
            if nodes and all(node.has_instance for node in nodes):
                continue
            product = self._invoke_with_injection(instance, factory.name)
            if product is None:
                logger.warning("Virtual factory %s.%s returned None", owner.__name__, factory.name)
                continue
            self._inject_members(product)
            self.search_tree.propagate(factory.return_type, product)

    def query(self, requested_type: type, options: Optional[QueryOptions] = None) -> Any:
        """Return the installed instance matching ``requested_type``, or None."""
        return self.search_tree.query(requested_type, options)

    def query_singleton_node(
        self, requested_type: type, options: Optional[QueryOptions] = None
    ) -> Optional[SingletonNode]:
        return self.search_tree.query_singleton_node(requested_type, options)

    def insert(self, descriptor: TypeDescriptor):
        with self._insertion_lock:
            self.search_tree.insert(descriptor)

    def insert_and_propagate(self, dependency_type: type, instance: Any):
        with self._insertion_lock:
            self.search_tree.insert_and_propagate(dependency_type, instance)

    def render(self) -> str:
        """Return the indented dump of the search tree."""
        from arboreal.diagnostics import render_tree

        return render_tree(self.search_tree)

    def _instantiate_type(self, dependency_type: type) -> Any:
        nodes = self.search_tree.find_singleton_nodes(dependency_type)
        if not nodes:
            return None
        return self._instantiate_node(nodes[0])

    def _instantiate_node(self, node: SingletonNode) -> Any:
        if node.has_instance:
            return node.instance

        dependency_type = node.wrapped_type
        with self._resolving(dependency_type):
            if node.has_instance:
                return node.instance

            if node.kind is NodeKind.VIRTUAL_SINGLETON:
                instance = self._create(dependency_type, self._materialise_virtual, node)
            else:
                instance = self._create(dependency_type, self._construct, dependency_type)

            self.search_tree.propagate(dependency_type, instance)
            logger.debug("Installed %s", node.name)
            return instance

    def _create(self, dependency_type: type, factory, argument) -> Any:
        try:
            instance = factory(argument)
            if instance is None:
                raise ConstructionError(
                    dependency_type,
                    f'No instance of "{dependency_type.__name__}" could be produced: '
                    "it needs an injectable or a zero-argument constructor.",
                )
            self._inject_members(instance)
            return instance
        except ArborealError:
            raise
        except Exception as exc:
            raise ConstructionError(dependency_type) from exc

    def _construct(self, dependency_type: type) -> Any:
        points = constructor_injection_points(dependency_type)
        if points is not None:
            return dependency_type(**self._resolve_arguments(dependency_type, points))
        if accepts_no_arguments(dependency_type):
            return dependency_type()
        return None

    def _materialise_virtual(self, node: VirtualSingletonNode) -> Any:
        parent = node.parent
        parent_instance = parent.instance if parent.has_instance else self._instantiate_node(parent)
        return self._invoke_with_injection(parent_instance, node.factory.name)

    def _invoke_with_injection(self, instance: Any, method_name: str, points: Optional[list] = None) -> Any:
        owner = type(instance)
        method = getattr(instance, method_name)
        if points is None:
            points = parameter_injection_points(method, method_name, skip_first=False)
        arguments = self._resolve_arguments(owner, points)
        try:
            return method(**arguments)
        except ArborealError:
            raise
        except Exception as exc:
            raise MemberInjectionError(method_name, owner) from exc

    def _inject_members(self, instance: Any):
        owner = type(instance)
        for setter_name, points in setter_injection_points(owner):
            self._invoke_with_injection(instance, setter_name, points)

        for point in field_injection_points(owner):
            value = self._resolve_point(owner, point)
            if value is None and point.has_default:
                continue
            try:
                setattr(instance, point.member, value)
            except Exception as exc:
                raise MemberInjectionError(point.member, owner) from exc

    def _resolve_arguments(self, owner: type, points: list) -> dict:
        arguments = {}
        for point in points:
            value = self._resolve_point(owner, point)
            if value is None and point.has_default:
                continue
            arguments[point.parameter] = value
        return arguments

    def _resolve_point(self, owner: type, point: InjectionPoint) -> Any:
        required_type = point.required_type
        if required_type is None:
            return None

        if is_scalar(required_type):
            if self._primitive_defaults and not point.has_default:
                return scalar_default(required_type)
            return None

        node = self.search_tree.query_singleton_node(required_type, point.options)
        if node is None:
            logger.debug("No singleton for %s.%s, leaving it unset", owner.__name__, point.parameter)
            return None

        if node.wrapped_type is owner:
            raise SelfLoopError(owner, point.member)

        return node.instance if node.has_instance else self._instantiate_node(node)

    @contextmanager
    def _resolving(self, dependency_type: type) -> Iterator[None]:
        path = self._resolution_path()
        if dependency_type in path:
            raise CircularDependencyError(path + [dependency_type])
        path.append(dependency_type)
        try:
            with self._lock_for(dependency_type):
                yield
        finally:
            path.pop()

    def _resolution_path(self) -> list:
        path = getattr(self._resolution, "path", None)
        if path is None:
            path = self._resolution.path = []
        return path

    def _lock_for(self, dependency_type: type) -> threading.RLock:
        with self._type_locks_guard:
            lock = self._type_locks.get(dependency_type)
            if lock is None:
                lock = self._type_locks[dependency_type] = threading.RLock()
            return lock
