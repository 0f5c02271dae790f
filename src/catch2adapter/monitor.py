# src/catch2adapter/monitor.py

"""
Watchdog-backed filesystem monitoring.

Watchdog delivers notifications on its observer thread; every callback is
handed to the owning event loop with `call_soon_threadsafe`.
"""

import asyncio
import fnmatch
import os
import re
from pathlib import Path

import structlog
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import ObservedWatch

from catch2adapter.protocols import MonitoredEvent, WatchCallback
from catch2adapter.telemetry import StructLogger

log: StructLogger = structlog.get_logger("monitor")

_GLOB_MAGIC = re.compile(r"[*?\[]")


def has_glob_magic(text: str) -> bool:
    return _GLOB_MAGIC.search(text) is not None


def watch_root_for(pattern: str) -> tuple[Path, bool]:
    """
    Returns the directory to observe for an absolute pattern and whether it
    must be observed recursively.

    The directory is the longest existing prefix without glob characters.
    """
    parts = Path(pattern).parts
    prefix: list[str] = []
    for part in parts[:-1]:
        if has_glob_magic(part):
            break
        prefix.append(part)

    base = Path(*prefix) if prefix else Path(Path(pattern).anchor or os.curdir)
    recursive = len(prefix) < len(parts) - 1
    while not base.exists() and base != base.parent:
        base = base.parent
        recursive = True
    return base, recursive


class _PatternEventHandler(FileSystemEventHandler):
    """Filters observer events down to one pattern and forwards them to the loop."""

    def __init__(self, pattern: str, callback: WatchCallback, loop: asyncio.AbstractEventLoop):
        self._pattern = os.path.normcase(os.path.normpath(pattern))
        self._callback = callback
        self._loop = loop
        self.active = True

    def _dispatch_path(self, event_type: str, raw_path: str | bytes) -> None:
        if not self.active:
            return
        path = os.path.normpath(os.fsdecode(raw_path))
        if not fnmatch.fnmatchcase(os.path.normcase(path), self._pattern):
            return
        event = MonitoredEvent(event_type=event_type, src_path=path)
        try:
            self._loop.call_soon_threadsafe(self._callback, event)
        except RuntimeError:
            # Loop already closed during shutdown.
            log.debug("Dropping filesystem event after loop shutdown", path=path)

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._dispatch_path("created", event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._dispatch_path("modified", event.src_path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._dispatch_path("deleted", event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._dispatch_path("deleted", event.src_path)
            self._dispatch_path("created", event.dest_path)


class _ObserverWatchHandle:
    def __init__(self, service: "MonitoringService", watch: ObservedWatch, handler: _PatternEventHandler):
        self._service = service
        self._watch = watch
        self._handler = handler

    def dispose(self) -> None:
        if not self._handler.active:
            return
        self._handler.active = False
        self._service.remove_watch(self._watch, self._handler)


class MonitoringService:
    """Owns one watchdog observer shared by every pattern subscription."""

    def __init__(self) -> None:
        self._observer: Observer | None = None

    @property
    def is_running(self) -> bool:
        return self._observer is not None and self._observer.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._observer = Observer()
        self._observer.start()
        log.info("Filesystem monitoring service started.", emoji_key="watch")

    def add_watch(self, pattern: str, callback: WatchCallback, loop: asyncio.AbstractEventLoop) -> _ObserverWatchHandle:
        self.start()
        assert self._observer is not None
        watch_dir, recursive = watch_root_for(pattern)
        handler = _PatternEventHandler(pattern, callback, loop)
        watch = self._observer.schedule(handler, str(watch_dir), recursive=recursive)
        log.debug("Watch scheduled", pattern=pattern, directory=str(watch_dir), recursive=recursive)
        return _ObserverWatchHandle(self, watch, handler)

    def remove_watch(self, watch: ObservedWatch, handler: _PatternEventHandler) -> None:
        if self._observer is None:
            return
        try:
            self._observer.remove_handler_for_watch(handler, watch)
        except KeyError:
            log.debug("Watch already removed", path=watch.path)

    async def stop(self) -> None:
        if self._observer is None:
            return
        observer, self._observer = self._observer, None
        observer.stop()
        await asyncio.to_thread(observer.join)
        log.info("Filesystem monitoring service stopped.")


# 🔼⚙️
