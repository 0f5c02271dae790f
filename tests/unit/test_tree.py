# tests/unit/test_tree.py

from catch2adapter.tree import ROOT_KEY, NodeKind, make_case, make_error_case, make_root, make_suite


def test_error_case_label_and_message() -> None:
    case = make_error_case("  error: duplicate  ", "full diagnostic")
    assert case.kind is NodeKind.CASE
    assert case.label == case.key == "!! error: duplicate"
    assert case.error_message == "full diagnostic"
    assert case.is_error


def test_walk_and_leaves_follow_child_order() -> None:
    root = make_root()
    first = make_suite("/a", "a", children=[make_case("x"), make_case("y")])
    second = make_suite("/b", "b", children=[make_case("z")])
    root.children = [first, second]

    assert root.key == ROOT_KEY
    assert [node.label for node in root.walk()] == ["Catch2", "a", "x", "y", "b", "z"]
    assert [node.label for node in root.leaves()] == ["x", "y", "z"]


def test_snapshot_is_plain_data() -> None:
    case = make_case("t", file="/src/a.cpp", line=4, tags=("[x]",), skipped=True)
    root = make_root()
    root.children = [make_suite("/a", "a", children=[case])]

    snapshot = root.snapshot()

    assert snapshot["type"] == "suite"
    assert snapshot["label"] == "Catch2"
    (suite_data,) = snapshot["children"]
    assert suite_data["children"] == [
        {
            "type": "case",
            "id": case.id,
            "label": "t",
            "file": "/src/a.cpp",
            "line": 4,
            "tags": ["[x]"],
            "skipped": True,
        }
    ]


def test_ids_are_unique() -> None:
    assert make_case("t").id != make_case("t").id
