# src/catch2adapter/parsing/listing.py
#
"""
Parses the output of `--list-tests --verbosity high` into case nodes.

The listing looks like:

    Matching test cases:
      first test name
        path/to/file.cpp:12
        (NO DESCRIPTION)
          [tag1][tag2]
      second test name
        path/to/file.cpp(30)
        the description
    2 matching test cases

Names are indented by two spaces (long names wrap onto four-space lines),
metadata lines by four, tag lines by six.
"""

import re

import structlog
from attrs import define, field

from catch2adapter.telemetry import StructLogger
from catch2adapter.tree import TestNode, make_case, make_error_case

log: StructLogger = structlog.get_logger("parsing.listing")

LIST_TESTS_ARGS: tuple[str, ...] = ("[.],*", "--verbosity", "high", "--list-tests", "--use-colour", "no")

ERROR_MARKERS: tuple[str, ...] = ("error:",)
NO_DESCRIPTION = "(NO DESCRIPTION)"

_LOCATION_PATTERN = re.compile(r"^(?P<file>.+?)(?::(?P<line>\d+)|\((?P<msvc_line>\d+)\))$")
_TAG_PATTERN = re.compile(r"\[[^\]]*\]")
_SUMMARY_PATTERN = re.compile(r"^\d+ matching test cases?$")

# Catch2's text wrapper may break right after these without consuming a
# space. A break before an opening bracket usually did consume one, so that
# case keeps the space.
_BREAK_AFTER = frozenset("])}>.,:;*+-=&/\\")


@define(slots=True)
class ListedTest:
    name: str
    file: str | None = None
    line: int | None = None
    description: str = ""
    tags: list[str] = field(factory=list)

    @property
    def hidden(self) -> bool:
        return any(tag.startswith("[.") or tag == "[!hide]" for tag in self.tags)


@define(slots=True)
class TestListing:
    """Parsed listing: either tests, or the error line that replaced them."""

    __test__ = False

    tests: list[ListedTest] = field(factory=list)
    error_line: str | None = None
    error_text: str | None = None


def find_error(text: str, allow_indent: bool = True) -> str | None:
    """
    Returns the first line that starts with a recognised error marker.

    With `allow_indent=False` only unindented lines count, so a listed test
    named "error: ..." is not mistaken for a diagnostic.
    """
    for raw_line in text.splitlines():
        line = raw_line.strip() if allow_indent else raw_line.rstrip()
        if line.lower().startswith(ERROR_MARKERS):
            return line
    return None


def _indent(line: str) -> int:
    return len(line) - len(line.lstrip(" "))


def _join_wrapped(head: str, tail: str) -> str:
    if head[-1:] in _BREAK_AFTER and head[-2:-1] not in ("", " "):
        return head + tail
    return f"{head} {tail}"


def parse_test_list(stdout: str, stderr: str = "") -> TestListing:
    """
    Parses a test listing.

    An error marker on stderr (checked first) or stdout wins over any tests
    found, so a binary that fails to register its tests surfaces as a
    single error instead of a partial list.
    """
    for stream, allow_indent in ((stderr, True), (stdout, False)):
        error_line = find_error(stream, allow_indent)
        if error_line:
            return TestListing(error_line=error_line, error_text=(stderr or stdout).strip())

    listing = TestListing()
    current: ListedTest | None = None
    seen_location = False
    seen_description = False

    for raw_line in stdout.splitlines():
        line = raw_line.rstrip()
        if not line.strip():
            continue
        indent = _indent(line)
        text = line.strip()

        if indent == 0:
            # "Matching test cases:" header and "N matching test cases" summary.
            if not text.startswith("Matching test cases") and not _SUMMARY_PATTERN.match(text):
                log.debug("Ignoring unexpected listing line", line=text)
            current = None
            continue

        if indent == 2:
            current = ListedTest(name=text)
            listing.tests.append(current)
            seen_location = seen_description = False
            continue

        if current is None:
            log.debug("Ignoring metadata line outside of a test", line=text)
            continue

        if indent >= 6 and text.startswith("["):
            current.tags.extend(_TAG_PATTERN.findall(text))
            continue

        if not seen_location:
            match = _LOCATION_PATTERN.match(text)
            if match:
                current.file = match.group("file")
                current.line = int(match.group("line") or match.group("msvc_line"))
                seen_location = True
            else:
                current.name = _join_wrapped(current.name, text)
            continue

        if not seen_description:
            current.description = "" if text.startswith(NO_DESCRIPTION) else text
            seen_description = True
            continue

        current.description = f"{current.description} {text}".strip()

    return listing


def build_cases(listing: TestListing) -> list[TestNode]:
    """Turns a listing into the children of an executable's suite."""
    if listing.error_line is not None:
        return [make_error_case(listing.error_line, listing.error_text)]

    return [
        make_case(
            test.name,
            file=test.file,
            line=test.line,
            description=test.description,
            tags=tuple(test.tags),
            skipped=test.hidden,
        )
        for test in listing.tests
    ]


# 🔼⚙️
