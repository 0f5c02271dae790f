import io

from rich.console import Console

from catch2adapter.cli.render import ResultPrinter, print_tree
from catch2adapter.cli.watch_cmds import _print_on_reload
from catch2adapter.events import LoadEvent, Outcome, RunEvent
from catch2adapter.tree import make_case, make_error_case, make_root, make_suite


def make_console() -> tuple[Console, io.StringIO]:
    buffer = io.StringIO()
    return Console(file=buffer, force_terminal=False, width=120), buffer


class FakeOrchestrator:
    def __init__(self, root):
        self.root = root


def test_reload_prints_the_fresh_tree():
    console, buffer = make_console()
    root = make_root()
    root.children = [make_suite("/ws/a", "a", children=[make_case("first", file="/src/a.cpp", line=3, tags=("[x]",))])]

    _print_on_reload(console, FakeOrchestrator(root), LoadEvent.started())
    assert buffer.getvalue() == ""

    _print_on_reload(console, FakeOrchestrator(root), LoadEvent.finished(root.snapshot()))
    output = buffer.getvalue()
    assert "Tests reloaded" in output
    assert "a (1 tests)" in output
    assert "first [x] /src/a.cpp:3" in output


def test_failed_reload_prints_the_error():
    console, buffer = make_console()
    _print_on_reload(console, FakeOrchestrator(make_root()), LoadEvent.finished(None, error="boom"))
    assert "Reload failed: boom" in buffer.getvalue()


def test_empty_tree_message():
    console, buffer = make_console()
    print_tree(console, make_root())
    assert "No Catch2 executables found." in buffer.getvalue()


def test_result_printer_shows_failure_details_only_by_default():
    console, buffer = make_console()
    printer = ResultPrinter(console)
    suite = make_suite("/ws/a", "a")
    passed, failed, broken = make_case("ok"), make_case("bad"), make_error_case("error: dup", "dup detail")

    printer(RunEvent.suite_running(suite))
    printer(RunEvent.test_result(passed, Outcome.PASSED, duration_seconds=0.5, message="quiet output"))
    printer(RunEvent.test_result(failed, Outcome.FAILED, message="REQUIRE failed"))
    printer(RunEvent.test_result(broken, Outcome.ERRORED, message="dup detail"))

    output = buffer.getvalue()
    assert "PASSED ok (0.5s)" in output
    assert "quiet output" not in output
    assert "REQUIRE failed" in output
    assert "ERRORED !! error: dup" in output
    assert printer.failed
    assert printer.summary() == "1 passed, 1 failed, 0 skipped, 1 errored"


def test_verbose_printer_shows_passing_output():
    console, buffer = make_console()
    printer = ResultPrinter(console, verbose=True)
    printer(RunEvent.test_result(make_case("ok"), Outcome.PASSED, message="captured stdout"))
    assert "captured stdout" in buffer.getvalue()
    assert not printer.failed
