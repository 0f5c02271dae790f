# tests/unit/test_executor.py

"""Tests for listing and running tests through a process spawner."""

import os

import pytest

from catch2adapter.events import Outcome, RunEvent, RunEventKind
from catch2adapter.exceptions import ProcessSpawnError
from catch2adapter.parsing.listing import LIST_TESTS_ARGS
from catch2adapter.resolver import ResolvedExecutable
from catch2adapter.runtime.executor import ExecutableRunner
from catch2adapter.tree import make_case

from catch2_fakes import (
    DUPLICATE_STDERR,
    S1T2_MESSAGE,
    SUITE1_LISTING,
    SUITE1_RUN_XML,
    FakeSpawner,
    passing_case,
    xml_run,
)

BINARY = "/ws/build/suite1"


@pytest.fixture
def executable() -> ResolvedExecutable:
    return ResolvedExecutable(
        absolute_path=BINARY,
        display_name="build/suite1",
        resolved_cwd="/ws/build",
        resolved_env={"SUITE": "one"},
    )


@pytest.fixture
def runner(spawner: FakeSpawner) -> ExecutableRunner:
    return ExecutableRunner(spawner)


def outcomes(events: list[RunEvent]) -> dict[str, Outcome]:
    return {event.test.key: event.outcome for event in events if event.kind is RunEventKind.TEST_RESULT}


@pytest.mark.asyncio
class TestListTests:
    async def test_lists_cases_with_configured_cwd_and_env(self, runner, spawner, executable) -> None:
        spawner.on_list(BINARY, stdout=SUITE1_LISTING, returncode=2)

        cases = await runner.list_tests(executable)

        assert [case.key for case in cases] == ["s1t1", "s1t2"]
        (call,) = spawner.calls
        assert call.args == list(LIST_TESTS_ARGS)
        assert call.cwd == "/ws/build"
        assert call.env["SUITE"] == "one"
        assert set(os.environ) <= set(call.env)

    async def test_duplicate_test_case_becomes_one_error_case(self, runner, spawner, executable) -> None:
        spawner.on_list(BINARY, stderr=DUPLICATE_STDERR, returncode=1)

        (case,) = await runner.list_tests(executable)

        assert case.is_error
        assert case.label.startswith('!! error: TEST_CASE( "s1t1" )')

    async def test_killed_listing_becomes_error_case(self, runner, spawner, executable) -> None:
        spawner.on_list(BINARY, returncode=-11)

        (case,) = await runner.list_tests(executable)

        assert case.is_error
        assert "terminated by signal 11" in case.label

    async def test_spawn_failure_propagates(self, runner, executable) -> None:
        with pytest.raises(ProcessSpawnError):
            await runner.list_tests(executable)


@pytest.mark.asyncio
class TestRunTests:
    async def test_two_test_scenario(self, runner, spawner, executable) -> None:
        spawner.on_run(BINARY, stdout=SUITE1_RUN_XML, returncode=1)
        tests = [make_case("s1t1"), make_case("s1t2")]
        events: list[RunEvent] = []

        report = await runner.run_tests(executable, tests, events.append)

        assert [event.kind for event in events] == [
            RunEventKind.TEST_RUNNING,
            RunEventKind.TEST_RESULT,
            RunEventKind.TEST_RUNNING,
            RunEventKind.TEST_RESULT,
        ]
        assert outcomes(events) == {"s1t1": Outcome.PASSED, "s1t2": Outcome.FAILED}
        assert events[3].message == S1T2_MESSAGE
        assert report.completed == tests
        assert report.abnormal is False
        assert report.exit_code == 1
        (call,) = spawner.runs()
        assert call.args[0] == "s1t1,s1t2"
        assert "--reporter" in call.args

    async def test_rng_seed_is_forwarded(self, spawner, executable) -> None:
        spawner.on_run(BINARY, stdout=xml_run(passing_case("t")))
        runner = ExecutableRunner(spawner, rng_seed=99)

        await runner.run_tests(executable, [make_case("t")], lambda event: None)

        assert spawner.runs()[0].args[-2:] == ["--rng-seed", "99"]

    async def test_crash_mid_test_errors_the_rest(self, runner, spawner, executable) -> None:
        spawner.on_run(BINARY, stdout='<Catch name="x">' + passing_case("a") + '<TestCase name="b">', returncode=-11)
        events: list[RunEvent] = []

        report = await runner.run_tests(executable, [make_case("a"), make_case("b"), make_case("c")], events.append)

        assert outcomes(events) == {"a": Outcome.PASSED, "b": Outcome.ERRORED, "c": Outcome.ERRORED}
        assert report.abnormal
        assert [test.key for test in report.completed] == ["a", "b", "c"]

    async def test_unreported_tests_are_skipped_after_a_clean_exit(self, runner, spawner, executable) -> None:
        spawner.on_run(BINARY, stdout=xml_run(passing_case("a")))
        events: list[RunEvent] = []

        await runner.run_tests(executable, [make_case("a"), make_case("b")], events.append)

        assert outcomes(events) == {"a": Outcome.PASSED, "b": Outcome.SKIPPED}
        kinds = [(event.kind, event.test.key) for event in events]
        assert kinds[-2:] == [(RunEventKind.TEST_RUNNING, "b"), (RunEventKind.TEST_RESULT, "b")]

    async def test_timeout_kills_the_binary(self, runner, spawner, executable) -> None:
        executable = ResolvedExecutable(
            absolute_path=BINARY,
            display_name="suite1",
            resolved_cwd="/ws",
            run_timeout_sec=0.1,
        )
        spawner.on_run(BINARY, stdout='<Catch name="x"><TestCase name="a">', hang=True)
        events: list[RunEvent] = []

        report = await runner.run_tests(executable, [make_case("a"), make_case("b")], events.append, timeout=0.1)

        assert spawner.processes[0].killed
        assert outcomes(events) == {"a": Outcome.ERRORED, "b": Outcome.ERRORED}
        assert "timed out" in report.reason
        assert "timed out" in events[1].message

    async def test_spawn_failure_errors_every_target(self, runner, executable) -> None:
        events: list[RunEvent] = []

        report = await runner.run_tests(executable, [make_case("a"), make_case("b")], events.append)

        assert outcomes(events) == {"a": Outcome.ERRORED, "b": Outcome.ERRORED}
        assert report.abnormal
        assert "Cannot start executable" in report.reason

    async def test_unknown_tests_are_reported(self, runner, spawner, executable) -> None:
        spawner.on_run(BINARY, stdout=xml_run(passing_case("a"), passing_case("new one")))

        report = await runner.run_tests(executable, [make_case("a")], lambda event: None)

        assert report.unknown_tests == ["new one"]
