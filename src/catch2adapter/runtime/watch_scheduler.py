# src/catch2adapter/runtime/watch_scheduler.py

"""
Keeps filesystem watches in step with the resolved executables and turns
their notifications into debounced reload requests.
"""

import asyncio
import glob
import os
from collections.abc import Awaitable, Callable, Sequence
from functools import partial

import structlog
from attrs import define

from catch2adapter.protocols import FileSystem, MonitoredEvent
from catch2adapter.resolver import Resolution
from catch2adapter.state import SubscriptionStatus, WatchSubscription
from catch2adapter.telemetry import StructLogger

log: StructLogger = structlog.get_logger("runtime.watch_scheduler")


@define(frozen=True, slots=True)
class ReloadRequest:
    """Asks for the entry at `config_index` to be re-resolved; `path` is the binary that changed, if known."""

    config_index: int
    path: str | None = None


ReloadCallback = Callable[[list[ReloadRequest]], Awaitable[None]]


def file_key(path: str) -> str:
    return f"file:{os.path.normpath(path)}"


def pattern_key(config_index: int, pattern_path: str) -> str:
    return f"pattern:{config_index}:{pattern_path}"


class WatchScheduler:
    """
    Owns one subscription per resolved binary and one per pattern that may
    still produce new binaries.

    Deletes are debounced by the entry's watch timeout so that a binary
    being relinked does not vanish from the tree; creates and changes
    reload immediately. All reload requests go through one queue whose
    consumer folds everything queued in the same loop tick into a single
    reload call.
    """

    def __init__(self, filesystem: FileSystem, reload_callback: ReloadCallback, workspace_root: str):
        self.filesystem = filesystem
        self.workspace_root = workspace_root
        self._reload_callback = reload_callback
        self.subscriptions: dict[str, WatchSubscription] = {}
        self._queue: asyncio.Queue[ReloadRequest] = asyncio.Queue()
        self._consumer_task: asyncio.Task | None = None

    def pending_delete_paths(self) -> set[str]:
        """Binaries reported deleted whose debounce timer has not expired yet."""
        return {
            sub.pattern
            for sub in self.subscriptions.values()
            if sub.status is SubscriptionStatus.PENDING_DELETE
        }

    def sync(self, resolutions: Sequence[Resolution]) -> None:
        """
        Brings subscriptions in line with `resolutions`. Subscriptions
        still waiting on a delete timer are kept until the timer settles.
        """
        wanted: dict[str, tuple[str, int, float, SubscriptionStatus]] = {}
        for resolution in resolutions:
            index = resolution.config.index
            for executable in resolution.executables:
                wanted.setdefault(
                    file_key(executable.absolute_path),
                    (executable.absolute_path, index, resolution.watch_timeout_sec, SubscriptionStatus.WATCHING_FILE),
                )
            if resolution.is_glob or not resolution.executables:
                wanted[pattern_key(index, resolution.pattern_path)] = (
                    resolution.pattern_path,
                    index,
                    resolution.watch_timeout_sec,
                    SubscriptionStatus.WATCHING_PATTERN,
                )

        for key, subscription in list(self.subscriptions.items()):
            target = wanted.get(key)
            if subscription.status is SubscriptionStatus.PENDING_DELETE:
                continue
            if target is None or (subscription.config_index, subscription.watch_timeout_sec) != target[1:3]:
                subscription.dispose()
                del self.subscriptions[key]

        for key, (pattern, index, timeout, status) in wanted.items():
            if key in self.subscriptions:
                continue
            subscription = WatchSubscription(
                key=key,
                pattern=pattern,
                config_index=index,
                watch_timeout_sec=timeout,
                status=status,
            )
            # Binary paths are literal; only pattern entries may carry glob characters.
            watched = glob.escape(pattern) if status is SubscriptionStatus.WATCHING_FILE else pattern
            try:
                subscription.handle = self.filesystem.watch(watched, self.workspace_root, partial(self._on_event, subscription))
            except OSError as e:
                log.warning("Cannot watch path", pattern=pattern, error=str(e), emoji_key="watch")
                continue
            self.subscriptions[key] = subscription
            log.debug("Watching", key=key, emoji_key="watch")

        self._ensure_consumer()

    def _ensure_consumer(self) -> None:
        if self._consumer_task is None or self._consumer_task.done():
            self._consumer_task = asyncio.create_task(self._consume())

    def _enqueue(self, request: ReloadRequest) -> None:
        self._queue.put_nowait(request)

    def _on_event(self, subscription: WatchSubscription, event: MonitoredEvent) -> None:
        if subscription.is_disposed:
            return
        path = os.path.normpath(event.src_path)
        event_log = log.bind(key=subscription.key, event_type=event.event_type, path=path)

        if subscription.status is SubscriptionStatus.WATCHING_PATTERN:
            # A binary that already has its own file watch is handled there.
            if file_key(path) in self.subscriptions:
                return
            if event.event_type in ("created", "modified"):
                event_log.info("New binary matched a watched pattern", emoji_key="watch")
                self._enqueue(ReloadRequest(subscription.config_index, path))
            return

        if event.event_type == "deleted":
            loop = asyncio.get_running_loop()
            handle = loop.call_later(subscription.watch_timeout_sec, self._on_delete_timeout, subscription)
            subscription.set_debounce_timer(handle, path)
            event_log.debug("Binary deleted, waiting before reload", delay=subscription.watch_timeout_sec)
            return

        if subscription.cancel_debounce_timer():
            event_log.debug("Binary reappeared before the delete timer expired")
        event_log.info("Binary changed", emoji_key="watch")
        self._enqueue(ReloadRequest(subscription.config_index, path))

    def _on_delete_timeout(self, subscription: WatchSubscription) -> None:
        if subscription.is_disposed:
            return
        path = subscription.pending_path or subscription.pattern
        subscription.debounce_timer_handle = None
        subscription.pending_path = None
        subscription.update_status(SubscriptionStatus.WATCHING_FILE)
        log.info("Delete timer expired", key=subscription.key, emoji_key="time")
        self._enqueue(ReloadRequest(subscription.config_index, path))

    async def _consume(self) -> None:
        while True:
            request = await self._queue.get()
            # Let callbacks queued in the same tick land before draining.
            await asyncio.sleep(0)
            batch = [request]
            while not self._queue.empty():
                batch.append(self._queue.get_nowait())
            requests = list(dict.fromkeys(batch))
            log.debug("Dispatching reload", requests=len(requests), coalesced=len(batch))
            try:
                await self._reload_callback(requests)
            except asyncio.CancelledError:
                raise
            except Exception:
                log.exception("Reload triggered by a filesystem change failed")

    async def stop(self) -> None:
        for subscription in self.subscriptions.values():
            subscription.dispose()
        self.subscriptions.clear()
        if self._consumer_task is not None:
            self._consumer_task.cancel()
            await asyncio.gather(self._consumer_task, return_exceptions=True)
            self._consumer_task = None
        log.debug("Watch scheduler stopped.")


# 🔼⚙️
