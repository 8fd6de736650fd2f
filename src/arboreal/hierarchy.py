"""Type hierarchy introspection used to build search tree paths.

Python has no separate notion of interfaces, so arboreal treats abstract
classes, protocols and direct ``abc.ABC`` subclasses as interfaces. The
first other base of a class is its superclass; every remaining base is
handled like an implemented interface, which keeps mixins queryable.
"""

import inspect
from abc import ABC
from typing import Generic, Optional, Protocol

__all__ = [
    "UNIVERSAL_TYPES",
    "is_interface",
    "is_concrete",
    "superclass_of",
    "interfaces_of",
    "interface_chain",
    "superclass_chain",
    "is_compatible",
]

UNIVERSAL_TYPES = frozenset({object, ABC, Generic, Protocol})
"""Ancestors shared by too many types to be useful search tree nodes."""


def _bases(cls: type) -> list:
    return [base for base in cls.__bases__ if base not in UNIVERSAL_TYPES]


def is_interface(cls: type) -> bool:
    """Whether ``cls`` plays the role of an interface."""
    return (
        inspect.isabstract(cls)
        or ABC in cls.__bases__
        or bool(getattr(cls, "_is_protocol", False))
    )


def is_concrete(cls: type) -> bool:
    """Whether ``cls`` is a class that can be instantiated directly."""
    return inspect.isclass(cls) and not is_interface(cls)


def superclass_of(cls: type) -> Optional[type]:
    """Return the first direct base of ``cls`` that is not an interface."""
    return next((base for base in _bases(cls) if not is_interface(base)), None)


def interfaces_of(cls: type) -> list:
    """Return the direct bases of ``cls`` other than its superclass."""
    superclass = superclass_of(cls)
    return [base for base in _bases(cls) if base is not superclass]


def interface_chain(interface: type) -> list:
    """Return the path from the deepest super-interface down to ``interface``.

    Example:
        >>> class Repository(ABC): ...
        >>> class ProductRepository(Repository, ABC): ...
        >>> interface_chain(ProductRepository)  # [Repository, ProductRepository]
    """
    path: list = []
    _walk_super_interfaces(interface, path)
    _add_once(path, interface)
    return path


def _walk_super_interfaces(interface: type, path: list):
    for parent in _bases(interface):
        _walk_super_interfaces(parent, path)
        _add_once(path, parent)


def superclass_chain(cls: type) -> list:
    """Return the superclass path of ``cls``, topmost ancestor first.

    The path ends with the immediate superclass of ``cls``; it is empty when
    ``cls`` only inherits from universal types or interfaces.
    """
    path: list = []
    superclass = superclass_of(cls)
    while superclass is not None:
        path.insert(0, superclass)
        superclass = superclass_of(superclass)
    return path


def is_compatible(node_type: type, requested_type: type) -> bool:
    """Whether a search tree branch for ``node_type`` may hold ``requested_type`` matches."""
    return issubclass(requested_type, node_type) or issubclass(node_type, requested_type)


def _add_once(path: list, cls: type):
    if cls not in path:
        path.append(cls)
