# tests/unit/test_reconciler.py

"""Tests for merging freshly listed trees into the known one."""

from catch2adapter.reconciler import reconcile
from catch2adapter.tree import make_case, make_error_case, make_suite


def suite(key: str, *names: str):
    return make_suite(key, key, children=[make_case(name) for name in names])


def ids(nodes) -> list[str]:
    return [node.id for node in nodes]


def test_unchanged_tree_keeps_every_id() -> None:
    previous = [suite("/ws/a", "t1", "t2"), suite("/ws/b", "t3")]
    fresh = [suite("/ws/a", "t1", "t2"), suite("/ws/b", "t3")]

    result = reconcile(previous, fresh)

    assert not result.changed
    assert ids(result.children) == ids(previous)
    assert ids(result.children[0].children) == ids(previous[0].children)
    assert ids(result.children[1].children) == ids(previous[1].children)


def test_reconciling_twice_is_idempotent() -> None:
    first = reconcile([], [suite("/ws/a", "t1", "t2")])
    second = reconcile(first.children, [suite("/ws/a", "t1", "t2")])
    assert ids(second.children[0].children) == ids(first.children[0].children)
    assert not second.changed


def test_added_and_removed_cases_are_reported() -> None:
    previous = [suite("/ws/a", "t1", "t2")]
    fresh = [suite("/ws/a", "t2", "t3")]

    result = reconcile(previous, fresh)

    t2_before = previous[0].children[1]
    assert result.children[0].id == previous[0].id
    assert [case.key for case in result.children[0].children] == ["t2", "t3"]
    assert result.children[0].children[0].id == t2_before.id
    assert [node.key for node in result.added] == ["t3"]
    assert [node.key for node in result.removed] == ["t1"]
    assert result.changed


def test_output_follows_fresh_order() -> None:
    previous = [suite("/ws/a"), suite("/ws/b")]
    result = reconcile(previous, [suite("/ws/b"), suite("/ws/a")])
    assert [node.key for node in result.children] == ["/ws/b", "/ws/a"]
    assert ids(result.children) == [previous[1].id, previous[0].id]


def test_removed_suite_and_its_children_are_dropped() -> None:
    previous = [suite("/ws/a", "t1"), suite("/ws/b", "t2")]
    result = reconcile(previous, [suite("/ws/a", "t1")])
    assert [node.key for node in result.removed] == ["/ws/b"]
    assert [node.key for node in result.children] == ["/ws/a"]


def test_kind_is_part_of_the_identity() -> None:
    previous = [make_case("/ws/a")]
    result = reconcile(previous, [suite("/ws/a")])
    assert result.children[0].id != previous[0].id
    assert len(result.added) == 1 and len(result.removed) == 1


def test_previous_nodes_are_not_mutated() -> None:
    previous = [suite("/ws/a", "t1")]
    original_children = previous[0].children
    fresh = [make_suite("/ws/a", "renamed label", children=[make_error_case("error: broken")])]

    result = reconcile(previous, fresh)

    assert previous[0].label == "/ws/a"
    assert previous[0].children is original_children
    assert [case.key for case in original_children] == ["t1"]
    assert result.children[0].label == "renamed label"
    assert [node.label for node in result.added] == ["!! error: broken"]
