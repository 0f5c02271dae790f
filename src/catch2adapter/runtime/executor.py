# src/catch2adapter/runtime/executor.py
#
"""
Spawns Catch2 binaries to list and run their tests using asyncio.subprocess.
"""

import asyncio
import os
from collections.abc import Callable, Mapping, Sequence

import structlog
from attrs import define, field

from catch2adapter.events import Outcome, RunEvent
from catch2adapter.exceptions import EnumerationError, ProcessSpawnError
from catch2adapter.parsing.listing import LIST_TESTS_ARGS, build_cases, parse_test_list
from catch2adapter.parsing.reporter import RunOutputParser, build_run_args
from catch2adapter.protocols import Process, ProcessSpawner
from catch2adapter.resolver import ResolvedExecutable
from catch2adapter.telemetry import StructLogger
from catch2adapter.tree import TestNode

log: StructLogger = structlog.get_logger("runtime.executor")

CHUNK_SIZE = 4096
DEFAULT_LIST_TIMEOUT_SEC = 30.0


class AsyncioProcessSpawner(ProcessSpawner):
    """
    Implements the ProcessSpawner protocol with asyncio.create_subprocess_exec.
    """

    async def spawn(
        self,
        path: str,
        args: Sequence[str],
        cwd: str,
        env: Mapping[str, str],
    ) -> Process:
        try:
            return await asyncio.create_subprocess_exec(
                path,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                env=dict(env),
            )
        except OSError as e:
            raise ProcessSpawnError(f"Cannot start executable: {e.strerror or e}", path=path, details=e) from e


@define(slots=True)
class RunReport:
    """What happened to one binary's share of a run request."""

    completed: list[TestNode] = field(factory=list)
    unknown_tests: list[str] = field(factory=list)
    abnormal: bool = False
    reason: str | None = None
    exit_code: int | None = None


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


async def _kill(process: Process) -> None:
    try:
        process.kill()
    except ProcessLookupError:
        pass
    await process.wait()


class ExecutableRunner:
    """Lists and runs the tests of resolved executables."""

    def __init__(self, spawner: ProcessSpawner, rng_seed: str | int | None = None):
        self._spawner = spawner
        self.rng_seed = rng_seed

    @staticmethod
    def spawn_env(executable: ResolvedExecutable) -> dict[str, str]:
        return {**os.environ, **executable.resolved_env}

    async def _spawn(self, executable: ResolvedExecutable, args: Sequence[str]) -> Process:
        return await self._spawner.spawn(
            executable.absolute_path,
            args,
            executable.resolved_cwd,
            self.spawn_env(executable),
        )

    async def list_tests(self, executable: ResolvedExecutable, timeout: float | None = None) -> list[TestNode]:
        """
        Enumerates the binary's tests.

        Returns the case nodes for its suite, or a single error case when the
        listing reports an error or the process dies without listing anything.

        Raises:
            ProcessSpawnError: the binary could not be started.
        """
        list_log = log.bind(executable=executable.absolute_path)
        list_log.debug("Listing tests", emoji_key="list")
        process = await self._spawn(executable, LIST_TESTS_ARGS)
        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                process.communicate(), timeout or DEFAULT_LIST_TIMEOUT_SEC
            )
        except TimeoutError:
            await _kill(process)
            error = EnumerationError("Listing tests timed out", path=executable.absolute_path)
            list_log.warning("Listing tests timed out", timeout=timeout or DEFAULT_LIST_TIMEOUT_SEC)
            return build_cases(parse_test_list("", f"error: {error}"))

        stdout, stderr = _decode(stdout_bytes), _decode(stderr_bytes)
        listing = parse_test_list(stdout, stderr)

        exit_code = process.returncode
        if not listing.tests and listing.error_line is None and exit_code is not None and exit_code < 0:
            error = EnumerationError(f"Listing terminated by signal {-exit_code}", path=executable.absolute_path)
            list_log.warning("Listing process was killed", exit_code=exit_code)
            listing = parse_test_list("", f"error: {error}\n{stderr}")

        if listing.error_line is not None:
            list_log.warning("Listing reported an error", error=listing.error_line)
        else:
            list_log.info("Tests listed", count=len(listing.tests), emoji_key="list")
        return build_cases(listing)

    async def _pump(self, process: Process, parser: RunOutputParser) -> str:
        """Feeds stdout to the parser as it arrives; returns the collected stderr."""
        stderr_task = asyncio.create_task(process.stderr.read()) if process.stderr else None
        try:
            if process.stdout is not None:
                while chunk := await process.stdout.read(CHUNK_SIZE):
                    parser.feed(chunk)
            stderr = _decode(await stderr_task) if stderr_task else ""
            await process.wait()
            return stderr
        finally:
            if stderr_task and not stderr_task.done():
                stderr_task.cancel()

    async def run_tests(
        self,
        executable: ResolvedExecutable,
        tests: Sequence[TestNode],
        emit: Callable[[RunEvent], None],
        timeout: float | None = None,
    ) -> RunReport:
        """
        Runs `tests` in one invocation of the binary, emitting events as the
        output streams in.

        Every requested test ends with exactly one result: tests the binary
        never finished are reported errored when the run ended abnormally
        and skipped otherwise.
        """
        run_log = log.bind(executable=executable.absolute_path, tests=len(tests))
        report = RunReport()
        parser = RunOutputParser({test.key: test for test in tests}, emit)
        parser.start()

        process: Process | None = None
        try:
            process = await self._spawn(executable, build_run_args([test.key for test in tests], self.rng_seed))
        except ProcessSpawnError as e:
            run_log.error("Failed to start executable", error=str(e))
            report.reason = str(e)

        if process is not None:
            run_log.info("Running tests", emoji_key="run")
            try:
                stderr = await asyncio.wait_for(self._pump(process, parser), timeout)
                if stderr.strip():
                    run_log.debug("Executable wrote to stderr", stderr=stderr.strip()[:2000])
            except TimeoutError:
                run_log.warning("Test run timed out, killing executable", timeout=timeout, emoji_key="time")
                await _kill(process)
                report.reason = f"the run timed out after {timeout} second(s)"
            report.exit_code = process.returncode

        parser.finish(report.exit_code, report.reason)
        report.completed = list(parser.completed)
        report.unknown_tests = list(parser.unknown_tests)
        report.abnormal = (
            report.reason is not None
            or parser.ended_abnormally
            or (report.exit_code is not None and report.exit_code < 0)
        )

        finished = {id(test) for test in report.completed}
        for test in tests:
            if id(test) in finished:
                continue
            outcome = Outcome.ERRORED if report.abnormal else Outcome.SKIPPED
            message = (
                f"Not run: {report.reason or 'the executable terminated abnormally'}."
                if report.abnormal
                else "Not reported by the executable."
            )
            emit(RunEvent.test_running(test))
            emit(RunEvent.test_result(test, outcome, message=message))
            report.completed.append(test)

        run_log.info(
            "Test run finished",
            exit_code=report.exit_code,
            abnormal=report.abnormal,
            unknown=len(report.unknown_tests),
        )
        return report


# 🔼⚙️
