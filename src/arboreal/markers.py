"""Marker metadata attached to managed types and their members.

Markers play the role annotations play in other languages. A marker is a
named record of properties; markers can be composed into stereotypes, so a
project can declare ``ManagedInProduction`` once and reuse it on every
production-only component:

    >>> ManagedInProduction = stereotype("ManagedInProduction", managed(strategies=["Production"]))
    >>>
    >>> @ManagedInProduction
    ... class ProductionController(Controller):
    ...     pass

Properties of composed markers are addressed with dotted paths such as
``"@managed.strategies"``. A stereotype may map one of its own properties onto
such a path, letting users override the composed value per use site:

    >>> TestingPrototype = stereotype(
    ...     "TestingPrototype", managed(),
    ...     mapped={"environments": "@managed.strategies"},
    ...     environments=["QA"],
    ... )
    >>>
    >>> @TestingPrototype(environments=["QA2"])
    ... class PrototypeController(Controller):
    ...     pass
"""

import inspect
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Union

from arboreal.domain import QueryOptions
from arboreal.errors import MarkerError

__all__ = [
    "Marker",
    "Stereotype",
    "MANAGED",
    "PULL",
    "VIRTUAL",
    "managed",
    "pull",
    "virtual",
    "stereotype",
    "attach",
    "markers_of",
    "decompose",
    "decompose_property",
    "find_marker",
    "find_sibling_marker",
    "is_marked",
    "query_options_from",
]

MANAGED = "managed"
PULL = "pull"
VIRTUAL = "virtual"

MARKERS_ATTRIBUTE = "__arboreal_markers__"


@dataclass(frozen=True, eq=False)
class Marker:
    """A named set of properties that can be attached to a class or function.

    Attributes:
        kind: The marker name, e.g. ``"managed"`` or ``"pull"``.
        properties: The marker's own property values.
        composed: Markers this marker is built from.
        mapped: Maps a property of this marker to a dotted path inside one
            of the composed markers, overriding the composed value.
    """

    kind: str
    properties: Mapping[str, Any] = field(default_factory=dict)
    composed: tuple = ()
    mapped: Mapping[str, str] = field(default_factory=dict)

    def __call__(self, target: Any) -> Any:
        return attach(target, self)

    def __repr__(self) -> str:
        return f"@{self.kind}({', '.join(f'{k}={v!r}' for k, v in self.properties.items())})"


class Stereotype:
    """A reusable marker composed from other markers.

    Applied bare it attaches a marker carrying the default property values;
    called with keyword arguments it returns a marker with those values
    overridden.
    """

    def __init__(
        self,
        kind: str,
        composed: tuple,
        mapped: Mapping[str, str],
        defaults: Mapping[str, Any],
    ):
        unmapped = set(defaults) - set(mapped)
        if unmapped:
            raise MarkerError(f"Stereotype {kind} declares unmapped properties {sorted(unmapped)}")
        self.kind = kind
        self._composed = composed
        self._mapped = dict(mapped)
        self._defaults = dict(defaults)

    def marker(self, **properties: Any) -> Marker:
        unknown = set(properties) - set(self._mapped)
        if unknown:
            raise MarkerError(f"Stereotype {self.kind} has no properties {sorted(unknown)}")
        return Marker(self.kind, {**self._defaults, **properties}, self._composed, self._mapped)

    def __call__(self, target: Any = None, **properties: Any) -> Any:
        if target is None:
            return self.marker(**properties)
        return attach(target, self.marker())

    def __repr__(self) -> str:
        return f"Stereotype({self.kind!r})"


def stereotype(
    kind: str, *markers: Marker, mapped: Optional[Mapping[str, str]] = None, **defaults: Any
) -> Stereotype:
    """Compose markers into a new reusable stereotype.

    Args:
        kind: Name of the new marker.
        *markers: The markers the stereotype is made of.
        mapped: Optional mapping from stereotype property names to dotted
            paths in the composed markers, e.g. ``{"env": "@managed.strategies"}``.
        **defaults: Default values of the mapped properties.

    Returns:
        A :class:`Stereotype` usable as a class decorator.
    """
    composed = tuple(m.marker() if isinstance(m, Stereotype) else m for m in markers)
    return Stereotype(kind, composed, mapped or {}, defaults)


def attach(target: Any, marker: Marker) -> Any:
    """Attach ``marker`` to ``target`` and return the target unchanged."""
    setattr(target, MARKERS_ATTRIBUTE, markers_of(target) + (marker,))
    return target


def markers_of(target: Any) -> tuple:
    """Return the markers attached directly to ``target``.

    Markers of a class are not inherited by its subclasses.
    """
    if inspect.isclass(target):
        return vars(target).get(MARKERS_ATTRIBUTE, ())
    return getattr(target, MARKERS_ATTRIBUTE, ())


def _loops_on_itself(marker: Marker) -> bool:
    return any(child.kind == marker.kind for child in marker.composed)


def decompose(marker: Marker, kind: str) -> Optional[Marker]:
    """Find the marker of ``kind`` that ``marker`` is or is composed of.

    Composed markers are searched depth first.
    """
    if marker.kind == kind:
        return marker
    if _loops_on_itself(marker):
        return None
    for child in marker.composed:
        found = decompose(child, kind)
        if found is not None:
            return found
    return None


def decompose_property(path: str, marker: Marker) -> Any:
    """Resolve a property path against a marker and the markers it composes.

    Paths name a property directly (``"strategies"``) or walk into markers
    with ``@``-prefixed tokens (``"@managed.strategies"``). A property of
    ``marker`` mapped onto ``path`` takes precedence over the composed value.

    Args:
        path: The property path.
        marker: The marker the path is resolved against.

    Returns:
        The property value, or None when no composed marker matches.

    Raises:
        MarkerError: If a property is missing or a token is malformed.
    """
    for property_name, mapped_path in marker.mapped.items():
        if mapped_path == path and property_name in marker.properties:
            return marker.properties[property_name]

    token, dot, remainder = path.partition(".")
    if not dot:
        try:
            return marker.properties[path]
        except KeyError:
            raise MarkerError(f"No property named {path!r} was found on {marker!r}.") from None

    if not token.startswith("@"):
        raise MarkerError(
            f'"{token}" is not a valid token. '
            'HINT: a token naming a marker should start with "@".'
        )

    marker_kind = token[1:]
    if marker_kind == marker.kind:
        return decompose_property(remainder, marker)

    for child in marker.composed:
        if child.kind == marker_kind:
            value = decompose_property(remainder, child)
            if value is not None:
                return value

    # stereotypes built from stereotypes
    for child in marker.composed:
        if child.kind != marker.kind and decompose(child, marker_kind) is not None:
            value = decompose_property(path, child)
            if value is not None:
                return value
    return None


def find_marker(target: Any, kind: str) -> Optional[Marker]:
    """Return the marker of ``kind`` attached to ``target``, directly or composed."""
    for marker in markers_of(target):
        found = decompose(marker, kind)
        if found is not None:
            return found
    return None


def find_sibling_marker(target: Any, kind: str) -> Optional[Marker]:
    """Return the attached marker that is, or is composed of, a ``kind`` marker.

    Unlike :func:`find_marker` this returns the outermost marker, so that
    property mappings declared on a stereotype are honoured.
    """
    for marker in markers_of(target):
        if decompose(marker, kind) is not None:
            return marker
    return None


def _strategy_tuple(strategies: Union[str, Iterable[str], None]) -> tuple:
    if strategies is None:
        return ()
    if isinstance(strategies, str):
        return (strategies,)
    return tuple(strategies)


def managed(
    name: Any = None,
    *,
    strategies: Union[str, Iterable[str], None] = (),
    disposable: bool = True,
    dynamic: bool = False,
) -> Any:
    """Mark a class as managed by a :class:`~arboreal.manager.DependencyManager`.

    Args:
        name: Logical name used by name-filtered queries; defaults to the
            class name.
        strategies: Strategy tags under which the class is installed.
        disposable: If False the class is installed whatever the strategies.
        dynamic: If True the class is never installed in bulk, only on demand.

    Example:
        >>> @managed(strategies=["Production"])
        ... class ProductionController(Controller):
        ...     pass
    """
    if inspect.isclass(name):
        return managed()(name)
    return Marker(
        MANAGED,
        {
            "name": name or "",
            "strategies": _strategy_tuple(strategies),
            "disposable": disposable,
            "dynamic": dynamic,
        },
    )


def pull(name: Any = None, *, fallback_to_any: bool = True) -> Any:
    """Mark an injection point.

    ``pull`` decorates ``__init__`` (or a class, to use its generated
    initialiser) for constructor injection and ``set_*`` methods for setter
    injection. ``pull(...)`` also works as ``typing.Annotated`` metadata on
    fields and parameters:

        >>> class Service:
        ...     repository: Annotated[Repository, pull("postgres")]
        ...
        ...     @pull
        ...     def set_clock(self, clock: Clock):
        ...         self.clock = clock

    Args:
        name: Optional name filter for the queried singleton.
        fallback_to_any: Whether to accept any candidate when no name matches.
    """
    if callable(name):
        return pull()(name)
    return Marker(PULL, {"name": name or "", "fallback_to_any": fallback_to_any})


def virtual(name: Any = None) -> Any:
    """Mark a method as the factory of a derived singleton.

    The method's return annotation is the type the derived singleton is
    registered under. The method runs once, on the managed instance that
    declares it, and its parameters are injected like constructor parameters.

    Args:
        name: Logical name of the derived singleton; defaults to the name
            of the returned type.
    """
    if callable(name):
        return virtual()(name)
    return Marker(VIRTUAL, {"name": name or ""})


def query_options_from(metadata: Any) -> Optional[QueryOptions]:
    """Convert a ``pull`` marker, or a plain name string, into query options.

    Returns None when ``metadata`` carries no injection options.
    """
    if metadata is pull:
        return QueryOptions.none()
    if isinstance(metadata, str):
        return QueryOptions.by_name(metadata)
    if isinstance(metadata, Marker):
        found = decompose(metadata, PULL)
        if found is None:
            return None
        return QueryOptions(
            decompose_property("name", found) or "",
            decompose_property("fallback_to_any", found),
        )
    return None


def is_marked(target: Any, kind: str) -> bool:
    return find_marker(target, kind) is not None

