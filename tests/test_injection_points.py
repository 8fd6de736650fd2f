from dataclasses import dataclass
from typing import Annotated, List, Optional

import pytest

from arboreal.domain import MISSING, InjectionPoint, QueryOptions
from arboreal.errors import MarkerError
from arboreal.injection_points import (
    accepts_no_arguments,
    constructor_injection_points,
    field_injection_points,
    scalar_default,
    setter_injection_points,
    unwrap_annotation,
    virtual_factories,
)
from arboreal.markers import pull, virtual


class Repository:
    pass


class Clock:
    pass


class Service:
    @pull("postgres")
    def __init__(self, repository: Repository, clock: Annotated[Clock, "utc"], retries: int = 3):
        pass


class Unmarked:
    def __init__(self, repository: Repository):
        pass


@pull
@dataclass
class Notifier:
    repository: Repository
    clock: Optional[Clock] = None


class Job:
    repository: Annotated[Repository, pull("memory")]
    clock: Annotated[Clock, pull] = None
    label: str = "job"

    @pull
    def set_clock(self, clock: Clock):
        pass

    def set_label(self, label: str):
        pass


class Factories:
    @virtual("reporting")
    def repository(self) -> Repository:
        return Repository()

    @virtual
    def retries(self) -> int:
        return 3

    @virtual
    def untyped(self):
        return None


class Broken:
    @pull
    def __init__(self, repository: "Missing"):  # noqa: F821
        pass


@pytest.mark.parametrize(
    "hint, expected",
    [
        (Repository, (Repository, None)),
        (Optional[Repository], (Repository, None)),
        (Annotated[Repository, "sql"], (Repository, QueryOptions("sql"))),
        (Annotated[Optional[Repository], pull("sql", fallback_to_any=False)], (Repository, QueryOptions("sql", False))),
        (List[Repository], (list, None)),
        (None, (None, None)),
    ],
)
def test_unwrap_annotation(hint, expected):
    assert unwrap_annotation(hint) == expected


def test_constructor_injection_points():
    points = constructor_injection_points(Service)

    assert points == [
        InjectionPoint("__init__", "repository", Repository, QueryOptions("postgres")),
        InjectionPoint("__init__", "clock", Clock, QueryOptions("utc")),
        InjectionPoint("__init__", "retries", int, QueryOptions("postgres"), 3),
    ]


def test_unmarked_constructor_has_no_injection_points():
    assert constructor_injection_points(Unmarked) is None
    assert not accepts_no_arguments(Unmarked)
    assert accepts_no_arguments(Clock)


def test_class_level_pull_uses_generated_initialiser():
    points = constructor_injection_points(Notifier)

    assert [(point.parameter, point.required_type, point.default) for point in points] == [
        ("repository", Repository, MISSING),
        ("clock", Clock, None),
    ]


def test_field_injection_points():
    points = field_injection_points(Job)

    assert points == [
        InjectionPoint("repository", "repository", Repository, QueryOptions("memory")),
        InjectionPoint("clock", "clock", Clock, QueryOptions.none(), None),
    ]


def test_setter_injection_points_require_a_marker():
    setters = setter_injection_points(Job)

    assert setters == [
        ("set_clock", [InjectionPoint("set_clock", "clock", Clock, QueryOptions.none())]),
    ]


def test_virtual_factories_skip_scalar_and_untyped_methods(caplog):
    factories = virtual_factories(Factories)

    assert [(factory.name, factory.return_type, factory.declared_name) for factory in factories] == [
        ("repository", Repository, "reporting"),
    ]
    assert "Factories.retries" in caplog.text
    assert "Factories.untyped" in caplog.text


def test_scalar_defaults():
    assert scalar_default(int) == 0
    assert scalar_default(str) == ""
    assert scalar_default(bool) is False


def test_unresolvable_hints_are_reported():
    with pytest.raises(MarkerError, match="Cannot evaluate the type hints"):
        constructor_injection_points(Broken)
