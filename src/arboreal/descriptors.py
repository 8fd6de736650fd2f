"""Building :class:`~arboreal.domain.TypeDescriptor` records from markers."""

import inspect
from typing import Any, Optional

from arboreal.domain import TypeDescriptor
from arboreal.errors import ScanError
from arboreal.markers import MANAGED, Marker, decompose_property, find_sibling_marker

__all__ = ["describe", "is_managed", "inferred_name"]

MANAGED_NAME = "@managed.name"
MANAGED_STRATEGIES = "@managed.strategies"
MANAGED_DISPOSABLE = "@managed.disposable"
MANAGED_DYNAMIC = "@managed.dynamic"


def inferred_name(target: Any) -> str:
    """Derive a name from a class, honouring an explicit ``managed`` name.

    Example:
        >>> inferred_name(Database)   # Returns "Database"
    """
    marker = find_sibling_marker(target, MANAGED)
    if marker is not None:
        declared = decompose_property(MANAGED_NAME, marker)
        if declared and declared.strip():
            return declared
    return target.__name__


def is_managed(target: Any) -> bool:
    """Whether ``target`` is a class carrying a ``managed`` marker."""
    return inspect.isclass(target) and find_sibling_marker(target, MANAGED) is not None


def describe(target: type, name: Optional[str] = None) -> TypeDescriptor:
    """Describe a class for insertion into the search tree.

    Classes without a ``managed`` marker get the defaults: the class name, no
    strategies, disposable and not dynamic.

    Args:
        target: The class to describe.
        name: Optional name overriding the declared one.

    Returns:
        The :class:`TypeDescriptor` of ``target``.

    Raises:
        ScanError: If ``target`` is not a class.
    """
    if not inspect.isclass(target):
        raise ScanError(f"{target!r} is not a class")

    marker = find_sibling_marker(target, MANAGED)
    if marker is None:
        return TypeDescriptor(name or target.__name__, frozenset(), True, False, target)

    return TypeDescriptor(
        name or inferred_name(target),
        frozenset(_strategies(marker)),
        _flag(MANAGED_DISPOSABLE, marker, True),
        _flag(MANAGED_DYNAMIC, marker, False),
        target,
    )


def _strategies(marker: Marker) -> tuple:
    strategies = decompose_property(MANAGED_STRATEGIES, marker)
    if strategies is None:
        return ()
    if isinstance(strategies, str):
        return (strategies,)
    return tuple(strategies)


def _flag(path: str, marker: Marker, default: bool) -> bool:
    value = decompose_property(path, marker)
    return default if value is None else bool(value)
