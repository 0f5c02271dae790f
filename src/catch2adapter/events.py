# src/catch2adapter/events.py
#
"""
Events produced for the consumer: load brackets and the run event stream.

Run events are consumed in emission order; that order is part of the
contract.
"""

from enum import Enum, auto
from typing import Any

from attrs import define, field

from catch2adapter.tree import TestNode


class LoadEventKind(Enum):
    STARTED = auto()
    FINISHED = auto()


class RunEventKind(Enum):
    STARTED = auto()
    SUITE_RUNNING = auto()
    SUITE_COMPLETED = auto()
    TEST_RUNNING = auto()
    TEST_RESULT = auto()
    FINISHED = auto()


class Outcome(Enum):
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"
    ERRORED = "errored"


@define(frozen=True, slots=True)
class Decoration:
    """A source-line annotation attached to a failed result (1-based line)."""

    line: int
    message: str


@define(frozen=True, slots=True)
class LoadEvent:
    kind: LoadEventKind
    suite: dict[str, Any] | None = None
    error: str | None = None

    @classmethod
    def started(cls) -> "LoadEvent":
        return cls(LoadEventKind.STARTED)

    @classmethod
    def finished(cls, suite: dict[str, Any] | None, error: str | None = None) -> "LoadEvent":
        return cls(LoadEventKind.FINISHED, suite=suite, error=error)


@define(frozen=True, slots=True)
class RunEvent:
    kind: RunEventKind
    target_ids: tuple[str, ...] = field(factory=tuple)
    suite: TestNode | None = None
    test: TestNode | None = None
    outcome: Outcome | None = None
    duration_seconds: float | None = None
    message: str = ""
    decorations: tuple[Decoration, ...] = field(factory=tuple)

    @classmethod
    def started(cls, target_ids: tuple[str, ...] | list[str]) -> "RunEvent":
        return cls(RunEventKind.STARTED, target_ids=tuple(target_ids))

    @classmethod
    def suite_running(cls, suite: TestNode) -> "RunEvent":
        return cls(RunEventKind.SUITE_RUNNING, suite=suite)

    @classmethod
    def suite_completed(cls, suite: TestNode) -> "RunEvent":
        return cls(RunEventKind.SUITE_COMPLETED, suite=suite)

    @classmethod
    def test_running(cls, test: TestNode) -> "RunEvent":
        return cls(RunEventKind.TEST_RUNNING, test=test)

    @classmethod
    def test_result(
        cls,
        test: TestNode,
        outcome: Outcome,
        duration_seconds: float | None = None,
        message: str = "",
        decorations: tuple[Decoration, ...] | list[Decoration] = (),
    ) -> "RunEvent":
        return cls(
            RunEventKind.TEST_RESULT,
            test=test,
            outcome=outcome,
            duration_seconds=duration_seconds,
            message=message,
            decorations=tuple(decorations),
        )

    @classmethod
    def finished(cls) -> "RunEvent":
        return cls(RunEventKind.FINISHED)


# 🔼⚙️
