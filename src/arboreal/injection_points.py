"""Discovery of the injection points declared by a managed type."""

import inspect
import logging
import types
from dataclasses import dataclass
from typing import Annotated, Any, Callable, Optional, Union, get_args, get_origin, get_type_hints

from arboreal.domain import InjectionPoint, QueryOptions
from arboreal.errors import MarkerError
from arboreal.markers import (
    PULL,
    VIRTUAL,
    Marker,
    decompose,
    decompose_property,
    find_marker,
    markers_of,
    pull,
    query_options_from,
)

__all__ = [
    "SCALAR_TYPES",
    "VirtualFactory",
    "is_scalar",
    "scalar_default",
    "unwrap_annotation",
    "parameter_injection_points",
    "constructor_injection_points",
    "accepts_no_arguments",
    "field_injection_points",
    "setter_injection_points",
    "virtual_factories",
]

logger = logging.getLogger(__name__)

SCALAR_TYPES = (bool, int, float, complex, str, bytes)

SETTER_PREFIX = "set_"

_UNION_ORIGINS = frozenset({Union, getattr(types, "UnionType", Union)})


@dataclass(frozen=True)
class VirtualFactory:
    """A method producing a derived singleton.

    Attributes:
        name: The method name.
        function: The method as declared on the class.
        return_type: The type the derived singleton is registered under.
        declared_name: Name given by the ``virtual`` marker, possibly empty.
    """

    name: str
    function: Callable
    return_type: type
    declared_name: str


def is_scalar(required_type: Any) -> bool:
    return required_type in SCALAR_TYPES


def scalar_default(required_type: type) -> Any:
    """Return the zero value of a scalar type, e.g. ``0`` for ``int``."""
    return required_type()


def unwrap_annotation(hint: Any) -> tuple:
    """Split a type hint into the type to resolve and its query options.

    ``Optional[...]`` is stripped and ``Annotated[...]`` metadata is searched
    for a ``pull`` marker or a name string.

    Example:
        >>> unwrap_annotation(Annotated[Optional[Repository], "postgres"])
        (Repository, QueryOptions(name_filter='postgres', fallback_to_any=True))

    Returns:
        A ``(type, options)`` pair; either element may be None.
    """
    options = None
    while True:
        origin = get_origin(hint)
        if origin is Annotated:
            hint, *metadata = get_args(hint)
            options = options or _first_options(metadata)
        elif origin in _UNION_ORIGINS:
            members = [member for member in get_args(hint) if member is not type(None)]
            if len(members) != 1:
                return None, options
            hint = members[0]
        else:
            break

    if inspect.isclass(hint):
        return hint, options
    origin = get_origin(hint)
    return (origin if inspect.isclass(origin) else None), options


def _first_options(metadata) -> Optional[QueryOptions]:
    for item in metadata:
        options = query_options_from(item)
        if options is not None:
            return options
    return None


def _is_pull_metadata(hint: Any) -> bool:
    if get_origin(hint) is not Annotated:
        return False
    return any(
        item is pull or (isinstance(item, Marker) and decompose(item, PULL) is not None)
        for item in get_args(hint)[1:]
    )


def _type_hints(target: Any) -> dict:
    try:
        return get_type_hints(target, include_extras=True)
    except (NameError, TypeError) as exc:
        raise MarkerError(f"Cannot evaluate the type hints of {target!r}: {exc}") from exc


def _member_options(function: Any) -> QueryOptions:
    marker = find_marker(function, PULL)
    if marker is None:
        return QueryOptions.none()
    return QueryOptions(
        decompose_property("name", marker) or "",
        decompose_property("fallback_to_any", marker),
    )


def parameter_injection_points(
    function: Callable, member: str, skip_first: bool = True, hints: Optional[dict] = None
) -> list:
    """Describe the parameters of ``function`` as injection points.

    Args:
        function: The function or class whose signature is inspected.
        member: Name reported for the member in errors.
        skip_first: Skip the first parameter (``self``) of plain functions.
        hints: Type hints of the parameters, read from ``function`` when omitted.

    Returns:
        One :class:`InjectionPoint` per positional-or-keyword parameter.
    """
    parameters = list(inspect.signature(function).parameters.values())
    if skip_first and parameters:
        parameters = parameters[1:]
    if hints is None:
        hints = _type_hints(function)
    member_options = _member_options(function)

    points = []
    for parameter in parameters:
        if parameter.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue
        required_type, options = unwrap_annotation(hints.get(parameter.name))
        points.append(
            InjectionPoint(
                member,
                parameter.name,
                required_type,
                options or member_options,
                parameter.default,
            )
        )
    return points


def constructor_injection_points(cls: type) -> Optional[list]:
    """Describe the constructor parameters of ``cls`` when marked for injection.

    Constructor injection is declared with ``@pull`` on ``__init__`` or on
    the class itself (for generated initialisers such as dataclasses).

    Returns:
        The injection points, or None when the constructor is not marked.
    """
    initialiser = cls.__init__
    if find_marker(initialiser, PULL) is not None:
        return parameter_injection_points(initialiser, "__init__")
    if any(marker.kind == PULL for marker in markers_of(cls)):
        hints = _type_hints(cls)
        if inspect.isfunction(initialiser):
            hints.update(_type_hints(initialiser))
        return parameter_injection_points(cls, "__init__", skip_first=False, hints=hints)
    return None


def accepts_no_arguments(cls: type) -> bool:
    """Whether ``cls`` can be instantiated without arguments."""
    try:
        signature = inspect.signature(cls)
    except (TypeError, ValueError):
        return True
    return all(
        parameter.default is not inspect.Parameter.empty
        or parameter.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)
        for parameter in signature.parameters.values()
    )


def field_injection_points(cls: type) -> list:
    """Describe the class-level fields annotated with ``Annotated[T, pull(...)]``."""
    points = []
    for name, hint in _type_hints(cls).items():
        if not _is_pull_metadata(hint):
            continue
        required_type, options = unwrap_annotation(hint)
        points.append(
            InjectionPoint(
                name,
                name,
                required_type,
                options or QueryOptions.none(),
                getattr(cls, name, inspect.Parameter.empty),
            )
        )
    return points


def setter_injection_points(cls: type) -> list:
    """Return ``(name, injection points)`` for every ``set_*`` method marked with ``pull``."""
    setters = []
    for name, function in inspect.getmembers(cls, inspect.isfunction):
        if not name.startswith(SETTER_PREFIX) or find_marker(function, PULL) is None:
            continue
        setters.append((name, parameter_injection_points(function, name)))
    return setters


def virtual_factories(cls: type) -> list:
    """Return the :class:`VirtualFactory` methods declared by ``cls``.

    Methods whose return annotation is missing or scalar cannot back a
    singleton and are skipped.
    """
    factories = []
    for name, function in inspect.getmembers(cls, inspect.isfunction):
        marker = find_marker(function, VIRTUAL)
        if marker is None:
            continue
        return_type, _ = unwrap_annotation(_type_hints(function).get("return"))
        if return_type is None or is_scalar(return_type):
            logger.warning(
                "Skipping virtual factory %s.%s: it does not return a managed type",
                cls.__name__,
                name,
            )
            continue
        factories.append(
            VirtualFactory(name, function, return_type, decompose_property("name", marker) or "")
        )
    return factories
