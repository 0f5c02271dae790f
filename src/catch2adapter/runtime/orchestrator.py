# src/catch2adapter/runtime/orchestrator.py

"""
High-level coordinator for the test lifecycle: loads the tree, keeps it
current as binaries change, and runs selected tests.
"""

import asyncio
import fnmatch
import os
from collections.abc import Callable, Iterable, Sequence

import structlog
from attrs import define, field

from catch2adapter.config.models import AdapterConfig
from catch2adapter.events import LoadEvent, Outcome, RunEvent
from catch2adapter.exceptions import ConfigurationError, InvariantViolationError, ProcessSpawnError
from catch2adapter.filesystem import LocalFileSystem
from catch2adapter.protocols import FileSystem, ProcessSpawner
from catch2adapter.reconciler import reconcile
from catch2adapter.resolver import ExecutableResolver, Resolution, ResolvedExecutable
from catch2adapter.runtime.emitter import EventEmitter
from catch2adapter.runtime.executor import AsyncioProcessSpawner, ExecutableRunner, RunReport
from catch2adapter.runtime.watch_scheduler import ReloadRequest, WatchScheduler
from catch2adapter.telemetry import StructLogger
from catch2adapter.tree import TestNode, make_error_case, make_root, make_suite

log: StructLogger = structlog.get_logger("runtime.orchestrator")

MAX_CONCURRENT_LISTINGS = 8

ConfigLoader = Callable[[], AdapterConfig]


@define(frozen=True, slots=True)
class LoadScope:
    """What a load pass has to refresh: everything, or only some entries and binaries."""

    full: bool = True
    config_indexes: frozenset[int] = field(factory=frozenset, converter=frozenset)
    paths: frozenset[str] = field(factory=frozenset, converter=frozenset)

    def merge(self, other: "LoadScope") -> "LoadScope":
        if self.full or other.full:
            return FULL_LOAD
        return LoadScope(
            full=False,
            config_indexes=self.config_indexes | other.config_indexes,
            paths=self.paths | other.paths,
        )


FULL_LOAD = LoadScope()


def _error_suite(resolution: Resolution, message: str) -> TestNode:
    pattern = resolution.config.glob_pattern
    return make_suite(
        f"error:{resolution.config.index}:{pattern}",
        pattern,
        children=[make_error_case(message.splitlines()[0], message)],
    )


def _executable_suite(executable: ResolvedExecutable, children: Iterable[TestNode]) -> TestNode:
    return make_suite(
        executable.absolute_path,
        executable.display_name,
        file=executable.absolute_path,
        children=list(children),
        executable=executable,
    )


class TestOrchestrator:
    """
    Owns the root suite and serialises everything that touches it.

    Loads run one at a time with at most one trailing pass queued behind
    the active one; runs are serialised by a lock. Filesystem watching is
    optional so that one-shot callers (the `list` and `run` commands) do
    not start an observer.
    """

    __test__ = False

    def __init__(
        self,
        config: AdapterConfig,
        filesystem: FileSystem | None = None,
        spawner: ProcessSpawner | None = None,
        emitter: EventEmitter | None = None,
        config_loader: ConfigLoader | None = None,
        watch: bool = True,
    ):
        self.config = config
        self._owns_filesystem = filesystem is None
        self.filesystem: FileSystem = filesystem or LocalFileSystem()
        self.emitter = emitter or EventEmitter()
        self.executor = ExecutableRunner(spawner or AsyncioProcessSpawner(), rng_seed=config.default_rng_seed)
        self.resolver = ExecutableResolver(config, self.filesystem)
        self.scheduler: WatchScheduler | None = (
            WatchScheduler(self.filesystem, self._on_reload_requests, self.resolver.workspace_root) if watch else None
        )
        self.root: TestNode = make_root()
        self._config_loader = config_loader
        self._resolutions: dict[int, Resolution] = {}
        self._index: dict[str, TestNode] = {}
        self._owner: dict[str, TestNode] = {}
        self._loading = False
        self._pending_scope: LoadScope | None = None
        self._pending_waiters: list[asyncio.Future[None]] = []
        self._load_task: asyncio.Task | None = None
        self._run_lock = asyncio.Lock()
        self._background: set[asyncio.Future] = set()
        log.debug("Orchestrator initialized", executables=len(config.executables))

    # --- Tree access ---

    def find(self, node_id: str) -> TestNode | None:
        return self._index.get(node_id)

    def suite_of(self, node_id: str) -> TestNode | None:
        """The executable suite a case belongs to."""
        return self._owner.get(node_id)

    def _rebuild_index(self) -> None:
        self._index = {self.root.id: self.root}
        self._owner = {}
        for suite in self.root.children:
            for node in suite.walk():
                self._index[node.id] = node
                if not node.is_suite:
                    self._owner[node.id] = suite

    # --- Loading ---

    async def load(self) -> TestNode:
        """Loads (or fully reloads) the tree and returns the root suite."""
        await self.request_load(FULL_LOAD)
        return self.root

    def request_load(self, scope: LoadScope = FULL_LOAD) -> asyncio.Future[None]:
        """
        Queues a load pass. Requests made while a pass is running are merged
        into a single trailing pass; the returned future resolves when the
        pass covering this request has finished.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[None] = loop.create_future()
        self._pending_scope = scope if self._pending_scope is None else self._pending_scope.merge(scope)
        self._pending_waiters.append(future)
        if self._load_task is None or self._load_task.done():
            self._load_task = loop.create_task(self._drain_loads())
        return future

    def reload_paths(self, paths: Iterable[str]) -> asyncio.Future[None]:
        """Re-resolves the entries `paths` belong to and re-lists only those binaries."""
        paths = {os.path.normpath(path) for path in paths}
        indexes = {index for path in paths for index in self._indexes_for_path(path)}
        if not indexes:
            return self.request_load(FULL_LOAD)
        return self.request_load(LoadScope(full=False, config_indexes=indexes, paths=paths))

    def _indexes_for_path(self, path: str) -> set[int]:
        indexes = set()
        for index, resolution in self._resolutions.items():
            if any(exe.absolute_path == path for exe in resolution.executables):
                indexes.add(index)
            elif fnmatch.fnmatchcase(os.path.normcase(path), os.path.normcase(resolution.pattern_path)):
                indexes.add(index)
        return indexes

    async def _drain_loads(self) -> None:
        while self._pending_scope is not None:
            scope, waiters = self._pending_scope, self._pending_waiters
            self._pending_scope, self._pending_waiters = None, []
            try:
                await self._load_pass(scope)
            except asyncio.CancelledError:
                for waiter in waiters + self._pending_waiters:
                    waiter.cancel()
                self._pending_waiters = []
                self._pending_scope = None
                raise
            except Exception as e:
                for waiter in waiters:
                    if not waiter.done():
                        waiter.set_exception(e)
            else:
                for waiter in waiters:
                    if not waiter.done():
                        waiter.set_result(None)

    async def _on_reload_requests(self, requests: list[ReloadRequest]) -> None:
        scope = LoadScope(
            full=False,
            config_indexes={request.config_index for request in requests},
            paths={request.path for request in requests if request.path},
        )
        await self.request_load(scope)

    async def _load_pass(self, scope: LoadScope) -> None:
        if self._loading:
            raise InvariantViolationError("A load pass started while another one was still running")
        self._loading = True
        # One configuration snapshot per pass; reload_config() takes effect at the next one.
        resolver = self.resolver
        load_log = log.bind(full=scope.full, entries=sorted(scope.config_indexes))
        load_log.info("Loading tests", emoji_key="load")
        self.emitter.post_load_event(LoadEvent.started())
        try:
            await self._resolve(scope, resolver)
            previous = {suite.key: suite for suite in self.root.children}
            listed = await self._enumerate(self._stale_executables(scope, previous))
            fresh = self._build_children(previous, listed)

            result = reconcile(self.root.children, fresh)
            self.root.children = result.children
            self._rebuild_index()
            if self.scheduler is not None:
                self.scheduler.workspace_root = resolver.workspace_root
                self.scheduler.sync([self._resolutions[index] for index in sorted(self._resolutions)])
        except Exception as e:
            load_log.error("Load failed", error=str(e), exc_info=True)
            self.emitter.post_load_event(LoadEvent.finished(self.root.snapshot(), error=str(e)))
            raise
        else:
            load_log.info(
                "Load finished",
                suites=len(self.root.children),
                added=len(result.added),
                removed=len(result.removed),
                emoji_key="load",
            )
            self.emitter.post_load_event(LoadEvent.finished(self.root.snapshot()))
        finally:
            self._loading = False

    async def _resolve(self, scope: LoadScope, resolver: ExecutableResolver) -> None:
        configured = {executable.index: executable for executable in resolver.config.executables}
        if scope.full:
            self._resolutions = {}
        for index, executable in configured.items():
            if scope.full or index in scope.config_indexes or index not in self._resolutions:
                self._resolutions[index] = await resolver.resolve(executable)
        for index in list(self._resolutions):
            if index not in configured:
                del self._resolutions[index]

    def _stale_executables(self, scope: LoadScope, previous: dict[str, TestNode]) -> list[ResolvedExecutable]:
        """Binaries whose listing must be refreshed in this pass."""
        stale: dict[str, ResolvedExecutable] = {}
        for index in sorted(self._resolutions):
            for executable in self._resolutions[index].executables:
                path = executable.absolute_path
                if path in stale:
                    continue
                prior = previous.get(path)
                if scope.full or prior is None or path in scope.paths or prior.executable != executable:
                    stale[path] = executable
        return list(stale.values())

    async def _enumerate(self, executables: Sequence[ResolvedExecutable]) -> dict[str, list[TestNode] | None]:
        semaphore = asyncio.Semaphore(MAX_CONCURRENT_LISTINGS)

        async def list_one(executable: ResolvedExecutable) -> list[TestNode] | None:
            async with semaphore:
                try:
                    return await self.executor.list_tests(executable)
                except ProcessSpawnError as e:
                    log.warning("Skipping executable that cannot be started", executable=executable.absolute_path, error=str(e))
                    return None

        results = await asyncio.gather(*(list_one(executable) for executable in executables))
        return {executable.absolute_path: cases for executable, cases in zip(executables, results, strict=True)}

    def _build_children(
        self,
        previous: dict[str, TestNode],
        listed: dict[str, list[TestNode] | None],
    ) -> list[TestNode]:
        pending_deletes = self.scheduler.pending_delete_paths() if self.scheduler is not None else set()
        fresh: list[TestNode] = []
        placed: set[str] = set()

        for index in sorted(self._resolutions):
            resolution = self._resolutions[index]
            for error in resolution.errors:
                fresh.append(_error_suite(resolution, str(error)))

            for executable in resolution.executables:
                path = executable.absolute_path
                if path in placed:
                    continue
                placed.add(path)
                if path in listed:
                    cases = listed[path]
                    if cases is None:
                        continue
                    fresh.append(_executable_suite(executable, cases))
                elif path in previous:
                    fresh.append(_executable_suite(executable, previous[path].children))

            # Binaries deleted moments ago stay until their delete timer settles.
            for path in sorted(pending_deletes - placed):
                prior = previous.get(path)
                if prior is None or prior.executable is None or prior.executable.config is None:
                    continue
                if prior.executable.config.index != index:
                    continue
                placed.add(path)
                fresh.append(_executable_suite(prior.executable, prior.children))

        return fresh

    # --- Running ---

    def _collect_targets(self, target_ids: Iterable[str]) -> list[tuple[TestNode, list[TestNode]]]:
        wanted: set[str] = set()
        for target_id in target_ids:
            node = self._index.get(target_id)
            if node is None:
                log.debug("Ignoring unknown test id", id=target_id)
                continue
            if node.is_suite:
                wanted.update(leaf.id for leaf in node.leaves() if not leaf.skipped)
            else:
                wanted.add(node.id)

        groups = []
        for suite in self.root.children:
            leaves = [leaf for leaf in suite.leaves() if leaf.id in wanted]
            if leaves:
                groups.append((suite, leaves))
        return groups

    async def run(self, target_ids: Sequence[str]) -> list[RunReport]:
        """
        Runs the tests behind `target_ids` (root, suite or case ids).

        Emits `started`, one `suite_running`..`suite_completed` bracket per
        binary and a final `finished`, even when a binary fails. Tests a
        binary reported but the tree did not know are listed again and then
        run in a follow-up run of their own.
        """
        return await self._run(target_ids, follow_unknown=True)

    async def _run(self, target_ids: Sequence[str], follow_unknown: bool) -> list[RunReport]:
        emit = self.emitter.post_run_event
        reports: list[tuple[TestNode, RunReport]] = []
        async with self._run_lock:
            groups = self._collect_targets(target_ids)
            log.info("Run started", targets=len(target_ids), executables=len(groups), emoji_key="run")
            emit(RunEvent.started(tuple(target_ids)))
            try:
                limit = self.config.max_parallel_executables
                if limit <= 1 or len(groups) <= 1:
                    for suite, leaves in groups:
                        reports.append((suite, await self._run_group(suite, leaves)))
                else:
                    semaphore = asyncio.Semaphore(limit)

                    async def bounded(suite: TestNode, leaves: list[TestNode]) -> tuple[TestNode, RunReport]:
                        async with semaphore:
                            return suite, await self._run_group(suite, leaves)

                    reports.extend(await asyncio.gather(*(bounded(suite, leaves) for suite, leaves in groups)))
            finally:
                emit(RunEvent.finished())
                log.info("Run finished", emoji_key="run")

        if follow_unknown:
            self._follow_unknown_tests(reports)
        return [report for _, report in reports]

    async def _run_group(self, suite: TestNode, leaves: list[TestNode]) -> RunReport:
        emit = self.emitter.post_run_event
        emit(RunEvent.suite_running(suite))
        try:
            report = RunReport()
            runnable = []
            for leaf in leaves:
                if leaf.is_error:
                    emit(RunEvent.test_running(leaf))
                    emit(RunEvent.test_result(leaf, Outcome.ERRORED, message=leaf.error_message or leaf.label))
                    report.completed.append(leaf)
                else:
                    runnable.append(leaf)
            if runnable and suite.executable is not None:
                executable = suite.executable
                sub_report = await self.executor.run_tests(executable, runnable, emit, timeout=executable.run_timeout_sec)
                report.completed.extend(sub_report.completed)
                report.unknown_tests = sub_report.unknown_tests
                report.abnormal = sub_report.abnormal
                report.reason = sub_report.reason
                report.exit_code = sub_report.exit_code
            return report
        finally:
            emit(RunEvent.suite_completed(suite))

    def _follow_unknown_tests(self, reports: list[tuple[TestNode, RunReport]]) -> None:
        unknown = {
            suite.key: list(report.unknown_tests)
            for suite, report in reports
            if report.unknown_tests and suite.executable is not None
        }
        if not unknown:
            return
        log.info(
            "Executables reported tests missing from the tree, reloading",
            executables=list(unknown),
            emoji_key="load",
        )
        task = asyncio.get_running_loop().create_task(self._reload_and_run_unknown(unknown))
        self._background.add(task)
        task.add_done_callback(self._on_background_done)

    async def _reload_and_run_unknown(self, unknown: dict[str, list[str]]) -> None:
        await self.reload_paths(unknown)
        target_ids = []
        for suite in self.root.children:
            names = set(unknown.get(suite.key, ()))
            target_ids.extend(leaf.id for leaf in suite.leaves() if leaf.key in names and not leaf.is_error)
        if not target_ids:
            log.debug("Reported tests are still missing after the reload", executables=list(unknown))
            return
        # Not followed again: a binary that keeps reporting unlisted tests must not loop.
        await self._run(target_ids, follow_unknown=False)

    def _on_background_done(self, task: asyncio.Future) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            log.warning("Background reload failed", error=str(task.exception()))

    # --- Configuration ---

    async def reload_config(self) -> bool:
        """Re-fetches the configuration snapshot and reloads the whole tree with it."""
        if self._config_loader is None:
            log.warning("No configuration loader attached, cannot reload configuration")
            return False
        log.info("Reloading configuration...")
        try:
            new_config = await asyncio.to_thread(self._config_loader)
        except ConfigurationError as e:
            log.error("Failed to reload configuration", error=str(e))
            return False

        self.config = new_config
        self.resolver = ExecutableResolver(new_config, self.filesystem)
        self.executor.rng_seed = new_config.default_rng_seed
        await self.request_load(FULL_LOAD)
        log.info("Configuration reloaded.")
        return True

    async def close(self) -> None:
        """Stops watching and waits for queued loads to settle."""
        if self.scheduler is not None:
            await self.scheduler.stop()
        pending = [task for task in (self._load_task, *self._background) if task is not None]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        if self._owns_filesystem and isinstance(self.filesystem, LocalFileSystem):
            await self.filesystem.close()
        log.debug("Orchestrator closed.")


# 🔼⚙️
