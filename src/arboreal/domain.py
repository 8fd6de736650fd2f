"""Domain models used throughout the framework."""

import inspect
from dataclasses import dataclass
from enum import Enum
from typing import Any, FrozenSet, Optional

__all__ = ["TypeDescriptor", "QueryOptions", "InjectionPoint", "InstallationType", "MISSING"]

MISSING: Any = inspect.Parameter.empty
"""Sentinel for an injection point that declares no default value."""


@dataclass(frozen=True)
class TypeDescriptor:
    """Metadata describing a managed type.

    Attributes:
        name: The logical name of the type, used by name-filtered queries.
        strategies: Strategy tags under which the type is eagerly installed.
        disposable: Whether the type may be skipped when no strategy matches.
        dynamic: Whether the type is excluded from bulk installation.
        wrapped_type: The described class.
    """

    name: str
    strategies: FrozenSet[str]
    disposable: bool
    dynamic: bool
    wrapped_type: type

    def matches_any_strategy(self, strategies: FrozenSet[str]) -> bool:
        return not self.strategies.isdisjoint(strategies)


@dataclass(frozen=True)
class QueryOptions:
    """Criteria applied when several singletons match a queried type.

    Attributes:
        name_filter: Declared name to prefer, compared case-insensitively.
            An empty string disables name filtering.
        fallback_to_any: When the name filter matches nothing, return the
            last scanned candidate instead of nothing.

    Example:
        >>> tree.query(Repository, QueryOptions.by_name("postgres"))
        >>> tree.query(Repository, QueryOptions("postgres", fallback_to_any=False))
    """

    name_filter: str = ""
    fallback_to_any: bool = True

    @property
    def has_name_filter(self) -> bool:
        return bool(self.name_filter and self.name_filter.strip())

    @staticmethod
    def none() -> "QueryOptions":
        return _NO_OPTIONS

    @staticmethod
    def by_name(name_filter: str) -> "QueryOptions":
        if name_filter is None:
            raise ValueError("name_filter must not be None.")
        return QueryOptions(name_filter)


_NO_OPTIONS = QueryOptions()


@dataclass(frozen=True)
class InjectionPoint:
    """A constructor parameter, factory parameter, field or setter parameter
    that receives a resolved dependency.

    Attributes:
        member: Name of the member, e.g. ``"__init__"``, ``"repository"`` or
            ``"set_clock"``.
        parameter: Name of the parameter (the field name for fields).
        required_type: The type to resolve, or None when unannotated.
        options: Query options declared alongside the injection point.
        default: The declared default value, or :data:`MISSING`.
    """

    member: str
    parameter: str
    required_type: Optional[type]
    options: QueryOptions
    default: Any = MISSING

    @property
    def has_default(self) -> bool:
        return self.default is not MISSING


class InstallationType(Enum):
    """How an on-demand installation interacts with the search tree."""

    DEFAULT = "default"
    """Register the result in the search tree."""

    STANDALONE = "standalone"
    """Build and wire the object without registering it."""
