from abc import ABC, abstractmethod
from typing import Protocol

from arboreal.hierarchy import (
    interface_chain,
    interfaces_of,
    is_compatible,
    is_concrete,
    is_interface,
    superclass_chain,
    superclass_of,
)


class Repository(ABC):
    pass


class ProductRepository(Repository, ABC):
    pass


class Auditable(ABC):
    pass


class Shape(Repository):
    @abstractmethod
    def area(self):
        ...


class BaseRepository:
    pass


class SqlRepository(BaseRepository):
    pass


class SqlProductRepository(SqlRepository, ProductRepository, Auditable):
    pass


class Greeter(Protocol):
    def greet(self) -> str:
        ...


class EnglishGreeter(Greeter):
    def greet(self) -> str:
        return "Hello"


class JsonMixin:
    pass


class Widget(BaseRepository, JsonMixin):
    pass


class Readable(ABC):
    pass


class Writable(ABC):
    pass


class Stream(Readable, Writable, ABC):
    pass


def test_interfaces():
    assert is_interface(Repository)
    assert is_interface(ProductRepository)
    assert is_interface(Shape)
    assert is_interface(Greeter)

    assert not is_interface(BaseRepository)
    assert not is_interface(SqlProductRepository)
    assert not is_interface(EnglishGreeter)


def test_concrete_classes():
    assert is_concrete(SqlProductRepository)
    assert not is_concrete(Repository)
    assert not is_concrete(len)


def test_superclass_and_interfaces():
    assert superclass_of(SqlProductRepository) is SqlRepository
    assert interfaces_of(SqlProductRepository) == [ProductRepository, Auditable]


def test_only_interfaces_means_no_superclass():
    assert superclass_of(EnglishGreeter) is None
    assert interfaces_of(EnglishGreeter) == [Greeter]


def test_mixins_are_handled_as_interfaces():
    assert superclass_of(Widget) is BaseRepository
    assert interfaces_of(Widget) == [JsonMixin]


def test_interface_chain_starts_at_the_deepest_interface():
    assert interface_chain(Repository) == [Repository]
    assert interface_chain(ProductRepository) == [Repository, ProductRepository]
    assert interface_chain(Stream) == [Readable, Writable, Stream]


def test_superclass_chain_starts_at_the_topmost_superclass():
    assert superclass_chain(SqlProductRepository) == [BaseRepository, SqlRepository]
    assert superclass_chain(BaseRepository) == []
    assert superclass_chain(EnglishGreeter) == []


def test_compatibility_works_both_ways():
    assert is_compatible(Repository, SqlProductRepository)
    assert is_compatible(ProductRepository, Repository)
    assert not is_compatible(BaseRepository, ProductRepository)
