from abc import ABC

import pytest

from arboreal.builders import DependencyManagerBuilder, make_manager
from arboreal.errors import InstallationError, ScanError
from arboreal.manager import DependencyManager
from arboreal.markers import managed, pull, stereotype
from arboreal.registry import ManagedTypeRegistry

ManagedInProduction = stereotype("ManagedInProduction", managed(strategies=["Production"]))


class Controller(ABC):
    pass


class Mailer:
    pass


@pytest.fixture
def registry() -> ManagedTypeRegistry:
    return ManagedTypeRegistry()


@pytest.fixture
def controllers(registry):
    @registry.managed(strategies=["Production"])
    class ProductionController(Controller):
        pass

    @registry.managed(strategies=["Staging"])
    class StagingController(Controller):
        pass

    @registry.managed(strategies=["Production"], disposable=False)
    class HealthController(Controller):
        pass

    @registry.managed(disposable=False)
    class HomeController:
        @pull
        def __init__(self, controller: Controller):
            self.controller = controller

    return ProductionController, StagingController, HealthController, HomeController


def test_types_are_registered_in_order(registry, controllers):
    assert registry.registered_types() == list(controllers)
    assert len(registry) == 4
    assert controllers[0] in registry


def test_registered_types_by_strategy(registry, controllers):
    production, staging, health, home = controllers

    assert registry.registered_types({"Production"}) == [production, health, home]
    assert registry.registered_types({"Staging"}) == [staging, health, home]


def test_registering_twice_is_ignored(registry, controllers):
    registry.register(controllers[0])

    assert len(registry) == 4


def test_stereotyped_classes_can_be_registered(registry):
    @ManagedInProduction
    class ProductionMailer(Mailer):
        pass

    registry.include(ProductionMailer)

    assert registry.registered_types() == [ProductionMailer]


def test_registering_unmarked_classes_fails(registry):
    with pytest.raises(ScanError, match="Mailer is not marked as managed"):
        registry.register(Mailer)


def test_registering_functions_fails(registry):
    with pytest.raises(ScanError, match="is not a class"):

        @registry.managed()
        def make_mailer():
            return Mailer()


def test_make_manager_installs_the_registry(registry, controllers):
    production, staging, health, home = controllers

    manager = make_manager(registry, {"Production"})

    assert isinstance(manager.query(production), production)
    assert manager.query(staging) is None
    assert isinstance(manager.query(health), health)
    assert manager.query(home).controller is manager.query(production)


def test_make_manager_without_strategies_installs_everything(registry, controllers):
    manager = make_manager(registry)

    assert all(manager.query(controller) is not None for controller in controllers)


def test_make_manager_can_include_itself(registry):
    @registry.managed
    class Console:
        @pull
        def __init__(self, manager: DependencyManager):
            self.manager = manager

    manager = make_manager(registry, include_manager=True)

    assert manager.query(Console).manager is manager


def test_make_manager_reports_installation_failures(registry):
    @registry.managed
    class Broken:
        def __init__(self, value):
            self.value = value

    with pytest.raises(InstallationError) as error:
        make_manager(registry)

    assert error.value.source is registry


def test_builder_chain(registry, controllers):
    production, staging, health, home = controllers
    consumed = []

    manager = (
        DependencyManager.builder()
        .strategy("Staging")
        .enable_primitive_default_values()
        .include_manager_as_dependency()
        .install(registry)
        .consume(consumed.append)
        .build()
    )

    assert consumed == [manager]
    assert manager.strategies == frozenset({"Staging"})
    assert manager.primitive_defaults
    assert manager.query(DependencyManager) is manager
    assert manager.query(production) is None
    assert isinstance(manager.query(staging), staging)
    assert manager.query(home).controller is manager.query(staging)


def test_builder_prepares_existing_objects(registry, controllers):
    class ControllerTest:
        @pull
        def set_controller(self, controller: Controller):
            self.controller = controller

    test_case = ControllerTest()

    manager = DependencyManagerBuilder().strategy("Production").install(registry).prepare(test_case).build()

    assert isinstance(test_case.controller, controllers[0])
    assert manager.query(ControllerTest) is test_case


def test_builder_rejects_missing_arguments():
    builder = DependencyManager.builder()

    with pytest.raises(ValueError):
        builder.prepare(None)
    with pytest.raises(ValueError):
        builder.consume(None)
    with pytest.raises(ValueError):
        builder.strategy("")
