"""Exceptions raised by the arboreal framework."""

from typing import Any, Sequence

__all__ = [
    "ArborealError",
    "ScanError",
    "MarkerError",
    "ConstructionError",
    "CircularDependencyError",
    "MemberInjectionError",
    "SelfLoopError",
    "InstallationError",
]


class ArborealError(Exception):
    """Base class of every error raised by arboreal."""

    pass


class ScanError(ArborealError):
    """Raised when a type cannot be registered as a managed type."""

    pass


class MarkerError(ArborealError):
    """Raised when marker metadata cannot be decomposed."""

    pass


class ConstructionError(ArborealError):
    """Raised when a managed type could not be instantiated.

    Attributes:
        target: The type whose construction failed.
    """

    def __init__(self, target: type, message: str = ""):
        self.target = target
        super().__init__(message or f'Failed to create "{_qualified_name(target)}".')


class CircularDependencyError(ConstructionError):
    """Raised when a type is requested again while it is still being built.

    Attributes:
        path: The types being resolved, outermost first, ending with the
            type that closed the cycle.
    """

    def __init__(self, path: Sequence[type]):
        self.path = tuple(path)
        cycle = " -> ".join(t.__name__ for t in self.path)
        super().__init__(self.path[-1], f"Circular dependency detected: {cycle}")


class SelfLoopError(ArborealError):
    """Raised when a type requires an instance of itself.

    Attributes:
        owner: The type being built.
        member: Name of the injection point that requested the owner type.
    """

    def __init__(self, owner: type, member: str):
        self.owner = owner
        self.member = member
        super().__init__(f'"{owner.__name__}" loops itself on member: "{member}".')


class MemberInjectionError(ArborealError):
    """Raised when a field or setter could not receive its dependency.

    Attributes:
        member: Name of the field or method.
        owner: The type declaring the member.
    """

    def __init__(self, member: str, owner: type):
        self.member = member
        self.owner = owner
        super().__init__(
            f'Failed to inject singleton in "{member}" of type "{_qualified_name(owner)}".'
        )


class InstallationError(ArborealError):
    """Raised when a bulk installation fails.

    Attributes:
        source: Whatever was being installed (a registry or a list of types).
    """

    def __init__(self, source: Any):
        self.source = source
        super().__init__(f"Installation failed for {source!r}.")


def _qualified_name(target: Any) -> str:
    return f"{getattr(target, '__module__', '?')}.{getattr(target, '__qualname__', target)}"
