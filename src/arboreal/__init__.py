"""Arboreal dependency injection framework.

Arboreal resolves managed singletons through a search tree of supertypes.
Every managed class is inserted below each of its interfaces and
superclasses, so a dependency declared as an abstract type finds its
implementation with a single tree walk. Each concrete type is instantiated
at most once per manager and its dependencies are injected through the
constructor, ``set_*`` methods or annotated fields.

Key Features:
    - Declarative registration with strategy filtering
    - Lookup by interface, abstract base or superclass
    - Name filtered queries with fallback
    - Marker composition into reusable stereotypes
    - Derived singletons produced by factory methods
    - Self-loop and cycle detection

Basic Usage:
    >>> from arboreal.registry import ManagedTypeRegistry
    >>> from arboreal.builders import make_manager
    >>> from arboreal.markers import pull
    >>>
    >>> registry = ManagedTypeRegistry()
    >>>
    >>> @registry.managed()
    ... class SqlRepository(Repository):
    ...     pass
    >>>
    >>> @registry.managed()
    ... class Service:
    ...     @pull
    ...     def __init__(self, repository: Repository):
    ...         self.repository = repository
    >>>
    >>> manager = make_manager(registry)
    >>> service = manager.query(Service)

The framework consists of several core modules:
    - markers: ``managed``, ``pull``, ``virtual`` and stereotype composition
    - registry: Managed type registration
    - search_tree: The supertype search tree and its queries
    - manager: Resolution and injection of managed types
    - builders: High-level manager construction
    - diagnostics: Textual dumps of the search tree
    - errors: Framework-specific exceptions
"""
