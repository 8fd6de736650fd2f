"""Registration of managed types."""

import inspect
from typing import Any, Callable, Iterable, Optional, Union

from arboreal.descriptors import describe, is_managed
from arboreal.errors import ScanError
from arboreal.markers import managed

__all__ = ["ManagedTypeRegistry"]


class ManagedTypeRegistry:
    """Registry of managed classes, the input of bulk installation.

    Example:
        >>> registry = ManagedTypeRegistry()
        >>>
        >>> @registry.managed(strategies=["Production"])
        ... class ProductionController(Controller):
        ...     pass
        >>>
        >>> manager = make_manager(registry, {"Production"})
    """

    def __init__(self):
        self._types: list = []

    def register(self, target: type) -> type:
        """Register a class that already carries a ``managed`` marker.

        Classes marked through a stereotype are registered this way.

        Raises:
            ScanError: If ``target`` is not a class or is not managed.
        """
        if not inspect.isclass(target):
            raise ScanError(f"{target!r} is not a class")
        if not is_managed(target):
            raise ScanError(f"{target.__name__} is not marked as managed")
        if target not in self._types:
            self._types.append(target)
        return target

    def include(self, *targets: type) -> "ManagedTypeRegistry":
        """Register several classes; returns the registry for chaining."""
        for target in targets:
            self.register(target)
        return self

    def managed(
        self,
        name: Any = None,
        *,
        strategies: Union[str, Iterable[str], None] = (),
        disposable: bool = True,
        dynamic: bool = False,
    ) -> Callable:
        """Decorator marking a class as managed and registering it.

        Accepts the same arguments as :func:`arboreal.markers.managed`.

        Raises:
            ScanError: If the decorated object is not a class.
        """

        def decorator(target: Any) -> Any:
            if not inspect.isclass(target):
                raise ScanError(f"{target!r} is not a class")
            marked = managed(name, strategies=strategies, disposable=disposable, dynamic=dynamic)(target)
            return self.register(marked)

        if inspect.isclass(name):
            target, name = name, None
            return decorator(target)
        return decorator

    def registered_types(self, strategies: Optional[set] = None) -> list:
        """Return the registered classes in registration order.

        Args:
            strategies: If given, only classes declaring one of these
                strategies, or not disposable, are returned.
        """
        if strategies is None:
            return list(self._types)
        descriptors = [describe(target) for target in self._types]
        return [
            descriptor.wrapped_type
            for descriptor in descriptors
            if descriptor.matches_any_strategy(frozenset(strategies)) or not descriptor.disposable
        ]

    def __contains__(self, target: Any) -> bool:
        return target in self._types

    def __len__(self) -> int:
        return len(self._types)
