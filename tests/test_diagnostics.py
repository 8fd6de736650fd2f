import logging
from abc import ABC

import pytest

from arboreal.descriptors import describe
from arboreal.diagnostics import describe_node, log_tree, render_tree
from arboreal.markers import managed, virtual
from arboreal.search_tree import DependencySearchTree


class Repository(ABC):
    pass


class Connection:
    pass


@managed
class Database(Repository):
    @virtual
    def connection(self) -> Connection:
        return Connection()


@pytest.fixture
def tree() -> DependencySearchTree:
    tree = DependencySearchTree()
    tree.insert(describe(Database))
    return tree


def test_describe_nodes(tree):
    repository, database, connection = tree.root.children

    assert describe_node(tree.root) == "R:"
    assert describe_node(repository) == "TN: Repository"
    assert describe_node(database) == "SI: [Type: Database] [Instance: <no instance>]"
    assert describe_node(connection) == (
        "VSI: [Type: Connection] [Instance: <no instance>] [Virtualized from Database.connection]"
    )


def test_render_tree_indents_each_level(tree):
    assert render_tree(tree).splitlines() == [
        "- R:",
        "  - TN: Repository",
        "    - SI: [Type: Database] [Instance: <no instance>]",
        "  - SI: [Type: Database] [Instance: <no instance>]",
        "  - VSI: [Type: Connection] [Instance: <no instance>] [Virtualized from Database.connection]",
    ]


def test_render_tree_summarises_instances(tree):
    database = Database()
    tree.propagate(Database, database)

    lines = render_tree(tree).splitlines()

    assert lines[2] == f"    - SI: [Type: Database] [Instance: Database@{id(database):x}]"


def test_log_tree(tree, caplog):
    caplog.set_level(logging.DEBUG, logger="arboreal.diagnostics")

    log_tree(tree)

    assert "Dependency search tree:\n- R:" in caplog.text


def test_log_tree_skips_disabled_levels(tree, caplog):
    caplog.set_level(logging.WARNING, logger="arboreal.diagnostics")

    log_tree(tree)

    assert "Dependency search tree" not in caplog.text
