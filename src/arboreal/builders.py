"""High level entry points for constructing dependency managers."""

from typing import Any, Callable, Iterable, Optional

from arboreal.manager import DependencyManager, InstallSource
from arboreal.registry import ManagedTypeRegistry

__all__ = ["DependencyManagerBuilder", "make_manager"]


class DependencyManagerBuilder:
    """Fluent configuration of a :class:`DependencyManager`.

    Steps run in call order, so strategies must be added before
    :meth:`install` for them to take effect.

    Example:
        >>> manager = (
        ...     DependencyManager.builder()
        ...     .strategy("Staging", "Testing")
        ...     .install(registry)
        ...     .prepare(self)
        ...     .build()
        ... )
    """

    def __init__(self, manager: Optional[DependencyManager] = None):
        self._manager = manager if manager is not None else DependencyManager()

    def strategy(self, *strategies: str) -> "DependencyManagerBuilder":
        self._manager.add_strategies(*strategies)
        return self

    def enable_primitive_default_values(self) -> "DependencyManagerBuilder":
        self._manager.enable_primitive_default_values()
        return self

    def include_manager_as_dependency(self) -> "DependencyManagerBuilder":
        self._manager.include_manager_as_dependency()
        return self

    def install(self, source: InstallSource) -> "DependencyManagerBuilder":
        self._manager.install(source)
        return self

    def prepare(self, instance: Any) -> "DependencyManagerBuilder":
        """Inject and register an existing object, e.g. a test case."""
        if instance is None:
            raise ValueError("instance must not be None.")
        self._manager.install_instance(instance)
        return self

    def consume(self, consumer: Callable[[DependencyManager], Any]) -> "DependencyManagerBuilder":
        """Hand the manager to ``consumer``, ignoring its result."""
        if consumer is None:
            raise ValueError("consumer must not be None.")
        consumer(self._manager)
        return self

    def build(self) -> DependencyManager:
        return self._manager


def make_manager(
    registry: ManagedTypeRegistry,
    strategies: Optional[Iterable[str]] = None,
    primitive_defaults: bool = False,
    include_manager: bool = False,
) -> DependencyManager:
    """Create a :class:`DependencyManager` and install ``registry`` into it.

    Args:
        registry: The registry holding the managed classes.
        strategies: Optional strategy tags; without them every non-dynamic
            class is installed.
        primitive_defaults: Inject zero values into scalar injection points.
        include_manager: Register the manager itself as a dependency before
            installing, so managed classes can request it.

    Returns:
        The manager with every eligible class instantiated.

    Raises:
        InstallationError: If any class fails to install.

    Example:
        >>> manager = make_manager(registry, {"Production"})
        >>> controller = manager.query(HomeController)
    """
    manager = DependencyManager(strategies or (), primitive_defaults)
    if include_manager:
        manager.include_manager_as_dependency()
    manager.install(registry)
    return manager
