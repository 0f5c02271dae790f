# src/catch2adapter/parsing/reporter.py
#
"""
Incremental parser for Catch2's XML reporter output.

Output is fed chunk by chunk as the binary produces it, and every
completed XML element advances a small state machine that emits
`test_running` / `test_result` events in the order the binary reports
its test cases.
"""

import re
import xml.etree.ElementTree as ET
from collections.abc import Callable, Iterable, Mapping
from enum import Enum, auto

import structlog
from attrs import define, field

from catch2adapter.events import Decoration, Outcome, RunEvent
from catch2adapter.exceptions import ProtocolError
from catch2adapter.telemetry import StructLogger
from catch2adapter.tree import TestNode

log: StructLogger = structlog.get_logger("parsing.reporter")

REPORTER_ARGS: tuple[str, ...] = ("--reporter", "xml", "--durations", "yes", "--use-colour", "no")

_FILTER_SPECIAL_CHARS = re.compile(r"([\\,\[\]])")


def escape_test_name(name: str) -> str:
    """Escapes characters that carry meaning in a Catch2 test spec."""
    return _FILTER_SPECIAL_CHARS.sub(r"\\\1", name)


def build_run_args(test_names: Iterable[str], rng_seed: str | int | None = None) -> list[str]:
    """Command line for running exactly `test_names` with the XML reporter."""
    args = [",".join(escape_test_name(name) for name in test_names), *REPORTER_ARGS]
    if rng_seed is not None:
        args += ["--rng-seed", str(rng_seed)]
    return args


class ParserState(Enum):
    IDLE = auto()
    AWAITING_START = auto()
    IN_TEST = auto()


def _text(element: ET.Element | None) -> str:
    if element is None or element.text is None:
        return ""
    return element.text.strip()


def _indented(text: str, prefix: str = "    ") -> str:
    return "\n".join(prefix + line.strip() for line in text.splitlines() if line.strip())


def _parse_line(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


@define(slots=True)
class _TestAccumulator:
    """Everything gathered between a test's start and end markers."""

    test: TestNode | None
    name: str
    line: int | None
    blocks: list[str] = field(factory=list)
    notes: list[str] = field(factory=list)
    decorations: list[Decoration] = field(factory=list)
    sections: list[tuple[str, int | None]] = field(factory=list)
    failed: bool = False
    skipped: bool = False
    success: bool | None = None
    duration: float | None = None
    message_open: bool = False

    def scope(self) -> str:
        name, line = self.sections[-1] if self.sections else (self.name, self.line)
        return f'"{name}" at line {line}' if line is not None else f'"{name}"'

    def add_failure(self, what: str, line: int | None, body: str, decoration_text: str) -> None:
        self.failed = True
        location = f"{what} at line {line}" if line is not None else what
        self.blocks.append(f">>> {self.scope()} -> {location}:\n{body}\n<<<\n\n")
        if line is not None:
            self.decorations.append(Decoration(line=line, message=f"-> {decoration_text}"))

    def render(self) -> str:
        parts = []
        if self.duration is not None:
            parts.append(f"Duration: {self.duration} second(s).\n")
        parts.extend(self.blocks)
        parts.extend(self.notes)
        return "".join(parts)


class RunOutputParser:
    """
    Turns streamed XML reporter output into run events.

    States: IDLE -> AWAITING_START -> IN_TEST -> (AWAITING_START | IDLE).
    Inside IN_TEST an expression block is either open (collecting its
    Original/Expanded parts) or closed.
    """

    def __init__(self, tests_by_name: Mapping[str, TestNode], emit: Callable[[RunEvent], None]):
        self._tests_by_name = tests_by_name
        self._emit = emit
        self._parser = ET.XMLPullParser(events=("start", "end"))
        self._current: _TestAccumulator | None = None
        self.state = ParserState.IDLE
        self.completed: list[TestNode] = []
        self.unknown_tests: list[str] = []
        self.protocol_error: ProtocolError | None = None
        self.document_closed = False

    @property
    def ended_abnormally(self) -> bool:
        return self.protocol_error is not None or not self.document_closed

    def start(self) -> None:
        self.state = ParserState.AWAITING_START

    def _dispatch(self) -> None:
        for event, element in self._parser.read_events():
            if event == "start":
                self._on_start(element)
            else:
                self._on_end(element)

    def feed(self, chunk: bytes | str) -> None:
        if self.protocol_error is not None or self.state is ParserState.IDLE:
            return
        try:
            self._parser.feed(chunk)
            # Expat may defer partial tokens until more data arrives; flush forces them through.
            flush = getattr(self._parser, "flush", None)
            if flush is not None:
                flush()
        except ET.ParseError as e:
            self.protocol_error = ProtocolError(f"Malformed reporter output: {e}", details=e)
            log.warning("Reporter output could not be parsed", error=str(e))
        finally:
            self._dispatch()

    def finish(self, exit_code: int | None, reason: str | None = None) -> None:
        """Closes the stream; a test still in progress is reported as errored."""
        if self.protocol_error is None and self.state is not ParserState.IDLE:
            try:
                self._parser.close()
            except ET.ParseError as e:
                # Output stopped mid-document; the open test is handled below.
                log.debug("Reporter output ended early", error=str(e))
            finally:
                self._dispatch()
        if self._current is not None:
            current = self._current
            cause = reason or (
                str(self.protocol_error) if self.protocol_error else f"the process exited with code {exit_code}"
            )
            current.notes.append(f"Abnormal termination: {cause} before the test finished.\n")
            log.warning("Test did not finish", test=current.name, exit_code=exit_code, reason=cause)
            if current.test is not None:
                self._emit(
                    RunEvent.test_result(
                        current.test,
                        Outcome.ERRORED,
                        duration_seconds=current.duration,
                        message=current.render(),
                        decorations=current.decorations,
                    )
                )
                self.completed.append(current.test)
            self._current = None
        self.state = ParserState.IDLE

    def _on_start(self, element: ET.Element) -> None:
        tag = element.tag
        if tag == "TestCase":
            self._begin_test(element)
        elif self._current is None:
            return
        elif tag == "Section":
            self._current.sections.append((element.get("name", ""), _parse_line(element.get("line"))))
        elif tag == "Expression":
            self._current.message_open = True

    def _on_end(self, element: ET.Element) -> None:
        tag = element.tag
        if tag in ("Catch", "Catch2TestRun"):
            self.document_closed = True
            return
        current = self._current
        if current is None:
            return

        if tag == "TestCase":
            self._end_test(current)
            element.clear()
        elif tag == "Section":
            if current.sections:
                current.sections.pop()
        elif tag == "Expression":
            current.message_open = False
            if element.get("success") == "false":
                original = _text(element.find("Original"))
                expanded = _text(element.find("Expanded"))
                body = f"  Original:\n{_indented(original)}\n  Expanded:\n{_indented(expanded)}"
                current.add_failure(element.get("type", "Expression"), _parse_line(element.get("line")), body, expanded)
        elif tag in ("Exception", "FatalErrorCondition", "Failure"):
            what = {"Exception": "Exception", "FatalErrorCondition": "Fatal error", "Failure": "FAIL"}[tag]
            text = _text(element)
            current.add_failure(what, _parse_line(element.get("line")), _indented(text, "  "), text)
        elif tag == "Skip":
            current.skipped = True
            if _text(element):
                current.notes.append(f"Skipped: {_text(element)}\n")
        elif tag in ("Warning", "Info") and not current.message_open:
            if _text(element):
                current.notes.append(f"{tag}: {_text(element)}\n")
        elif tag == "OverallResult":
            current.success = element.get("success") != "false"
            duration = element.get("durationInSeconds")
            if duration is not None:
                try:
                    current.duration = float(duration)
                except ValueError:
                    log.debug("Ignoring unparsable duration", value=duration)
            for stream in ("StdOut", "StdErr"):
                captured = _text(element.find(stream))
                if captured:
                    current.notes.append(f"{stream.lower()}:\n{_indented(captured, '  ')}\n")

    def _begin_test(self, element: ET.Element) -> None:
        name = element.get("name", "")
        test = self._tests_by_name.get(name)
        if test is None:
            log.debug("Binary reported a test that was not requested", test=name)
            self.unknown_tests.append(name)
        self._current = _TestAccumulator(test=test, name=name, line=_parse_line(element.get("line")))
        self.state = ParserState.IN_TEST
        if test is not None:
            self._emit(RunEvent.test_running(test))

    def _end_test(self, current: _TestAccumulator) -> None:
        if current.test is not None:
            if current.failed or current.success is False:
                outcome = Outcome.FAILED
            elif current.skipped:
                outcome = Outcome.SKIPPED
            else:
                outcome = Outcome.PASSED
            self.completed.append(current.test)
            self._emit(
                RunEvent.test_result(
                    current.test,
                    outcome,
                    duration_seconds=current.duration,
                    message=current.render(),
                    decorations=current.decorations,
                )
            )
        self._current = None
        self.state = ParserState.AWAITING_START


# 🔼⚙️
