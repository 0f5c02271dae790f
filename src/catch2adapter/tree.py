# src/catch2adapter/tree.py
#
"""
Test tree records: one attrs type for both suites and cases, told apart by
`kind`.
"""

import uuid
from collections.abc import Iterator
from enum import Enum
from typing import TYPE_CHECKING, Any

from attrs import field, mutable

if TYPE_CHECKING:
    from catch2adapter.resolver import ResolvedExecutable

ERROR_LABEL_PREFIX = "!! "
ROOT_KEY = "__root__"


class NodeKind(Enum):
    SUITE = "suite"
    CASE = "case"


def new_node_id() -> str:
    return uuid.uuid4().hex


@mutable(slots=True, eq=False)
class TestNode:
    """
    A suite or a case in the test tree.

    `key` identifies the node among its siblings (the Catch2 test name for
    cases, the absolute binary path for executable suites) and is what the
    reconciler matches on; `id` is the opaque identity consumers see and
    survives reloads as long as the key does.
    """

    __test__ = False

    kind: NodeKind = field()
    key: str = field()
    label: str = field()
    id: str = field(factory=new_node_id)
    file: str | None = field(default=None)
    line: int | None = field(default=None)
    skipped: bool = field(default=False)
    description: str = field(default="")
    tags: tuple[str, ...] = field(factory=tuple)
    error_message: str | None = field(default=None)
    children: list["TestNode"] = field(factory=list)
    executable: "ResolvedExecutable | None" = field(default=None, repr=False)

    @property
    def is_suite(self) -> bool:
        return self.kind is NodeKind.SUITE

    @property
    def is_error(self) -> bool:
        return self.error_message is not None

    def walk(self) -> Iterator["TestNode"]:
        """Yields this node and every descendant, depth first, in child order."""
        yield self
        for child in self.children:
            yield from child.walk()

    def leaves(self) -> Iterator["TestNode"]:
        for node in self.walk():
            if not node.is_suite:
                yield node

    def snapshot(self) -> dict[str, Any]:
        """Plain-data rendering handed to consumers with load events."""
        data: dict[str, Any] = {
            "type": self.kind.value,
            "id": self.id,
            "label": self.label,
        }
        if self.file is not None:
            data["file"] = self.file
        if self.line is not None:
            data["line"] = self.line
        if self.description:
            data["description"] = self.description
        if self.tags:
            data["tags"] = list(self.tags)
        if self.skipped:
            data["skipped"] = True
        if self.error_message is not None:
            data["error"] = self.error_message
        if self.is_suite:
            data["children"] = [child.snapshot() for child in self.children]
        return data


def make_suite(key: str, label: str, **kwargs: Any) -> TestNode:
    return TestNode(kind=NodeKind.SUITE, key=key, label=label, **kwargs)


def make_case(name: str, **kwargs: Any) -> TestNode:
    return TestNode(kind=NodeKind.CASE, key=name, label=name, **kwargs)


def make_error_case(first_line: str, message: str | None = None) -> TestNode:
    """A synthetic failing leaf that stands in for a binary or pattern that could not be listed."""
    label = ERROR_LABEL_PREFIX + first_line.strip()
    return TestNode(
        kind=NodeKind.CASE,
        key=label,
        label=label,
        error_message=message or first_line.strip(),
    )


def make_root() -> TestNode:
    return make_suite(ROOT_KEY, "Catch2")


# 🔼⚙️
