# tests/unit/test_listing_parser.py

"""Tests for parsing `--list-tests --verbosity high` output."""

from catch2adapter.parsing.listing import build_cases, find_error, parse_test_list
from catch2adapter.tree import NodeKind

from catch2_fakes import DUPLICATE_STDERR, SUITE1_LISTING, SUITE2_LISTING


def test_parses_names_locations_descriptions_and_tags() -> None:
    listing = parse_test_list(SUITE1_LISTING)

    assert listing.error_line is None
    first, second = listing.tests
    assert (first.name, first.file, first.line, first.description, first.tags) == (
        "s1t1",
        "/src/suite1.cpp",
        7,
        "",
        [],
    )
    assert (second.name, second.file, second.line, second.description, second.tags) == (
        "s1t2",
        "/src/suite1.cpp",
        13,
        "the second test",
        ["[tag1]", "[tag2]"],
    )


def test_msvc_style_locations() -> None:
    output = "Matching test cases:\n  t\n    C:\\src\\a.cpp(42)\n    (NO DESCRIPTION)\n1 matching test case\n"
    (test,) = parse_test_list(output).tests
    assert test.file == "C:\\src\\a.cpp"
    assert test.line == 42


def test_wrapped_long_names_are_joined() -> None:
    output = (
        "Matching test cases:\n"
        "  a very long test name that Catch2 wrapped\n"
        "    onto a second line\n"
        "    /src/long.cpp:3\n"
        "    (NO DESCRIPTION)\n"
        "1 matching test case\n"
    )
    (test,) = parse_test_list(output).tests
    assert test.name == "a very long test name that Catch2 wrapped onto a second line"
    assert test.line == 3


def test_names_wrapped_at_punctuation_are_joined_without_a_space() -> None:
    output = (
        "Matching test cases:\n"
        "  checks the behaviour of the non-\n"
        "    empty container case\n"
        "    /src/a.cpp:3\n"
        "    (NO DESCRIPTION)\n"
        "  reads config/\n"
        "    defaults.toml and\n"
        "    [bracketed] parts\n"
        "    /src/a.cpp:9\n"
        "    (NO DESCRIPTION)\n"
        "2 matching test cases\n"
    )
    first, second = parse_test_list(output).tests
    assert first.name == "checks the behaviour of the non-empty container case"
    assert second.name == "reads config/defaults.toml and [bracketed] parts"


def test_standalone_punctuation_keeps_its_space() -> None:
    output = "Matching test cases:\n  range a -\n    b\n    /src/a.cpp:3\n    (NO DESCRIPTION)\n1 matching test case\n"
    (test,) = parse_test_list(output).tests
    assert test.name == "range a - b"


def test_listed_test_named_like_an_error_is_still_a_test() -> None:
    output = "Matching test cases:\n  error: is reported\n    /src/a.cpp:3\n    (NO DESCRIPTION)\n1 matching test case\n"

    listing = parse_test_list(output)

    assert listing.error_line is None
    assert [test.name for test in listing.tests] == ["error: is reported"]


def test_hidden_tests_become_skipped_cases() -> None:
    cases = build_cases(parse_test_list(SUITE2_LISTING))
    assert [(case.label, case.skipped) for case in cases] == [("s2t1", False), ("s2t2 hidden", True)]


def test_hide_tag_marks_test_hidden() -> None:
    output = "Matching test cases:\n  t\n    /a.cpp:1\n    (NO DESCRIPTION)\n      [!hide]\n"
    (case,) = build_cases(parse_test_list(output))
    assert case.skipped is True


def test_cases_are_flat_children_with_metadata() -> None:
    cases = build_cases(parse_test_list(SUITE1_LISTING))
    assert [case.kind for case in cases] == [NodeKind.CASE, NodeKind.CASE]
    assert [case.key for case in cases] == ["s1t1", "s1t2"]
    assert cases[1].tags == ("[tag1]", "[tag2]")
    assert all(not case.children for case in cases)


def test_duplicate_test_case_yields_exactly_one_error_child() -> None:
    cases = build_cases(parse_test_list("", DUPLICATE_STDERR))

    (case,) = cases
    assert case.label == '!! error: TEST_CASE( "s1t1" ) already defined.'
    assert case.is_error
    assert "Redefined at /src/suite1.cpp:21" in case.error_message


def test_error_on_stdout_wins_over_listed_tests() -> None:
    listing = parse_test_list(SUITE1_LISTING + "error: something went wrong\n")
    assert listing.tests == []
    assert listing.error_line == "error: something went wrong"


def test_stderr_error_is_preferred_over_stdout_error() -> None:
    listing = parse_test_list("error: from stdout\n", "error: from stderr\n")
    assert listing.error_line == "error: from stderr"


def test_find_error_ignores_lines_that_only_mention_errors() -> None:
    assert find_error("  some test about error: handling\n") is None
    assert find_error("no problems here\nstill fine") is None


def test_empty_listing() -> None:
    listing = parse_test_list("Matching test cases:\n0 matching test cases\n")
    assert listing.tests == []
    assert listing.error_line is None
    assert build_cases(listing) == []
