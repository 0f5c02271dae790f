# src/catch2adapter/parsing/__init__.py
#
"""
Parsers for Catch2 binary output: test listings and XML run reports.
"""

from .listing import LIST_TESTS_ARGS, ListedTest, TestListing, build_cases, parse_test_list
from .reporter import ParserState, RunOutputParser, build_run_args, escape_test_name

__all__ = [
    "LIST_TESTS_ARGS",
    "ListedTest",
    "ParserState",
    "RunOutputParser",
    "TestListing",
    "build_cases",
    "build_run_args",
    "escape_test_name",
    "parse_test_list",
]

# 🔼⚙️
