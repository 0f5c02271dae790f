# src/catch2adapter/protocols.py

"""
Protocols for the collaborators the engine does not own: process spawning
and filesystem access/watching.
"""

import asyncio
from collections.abc import Callable, Mapping, Sequence
from typing import Protocol, runtime_checkable

from attrs import define


@define(frozen=True, slots=True)
class MonitoredEvent:
    """A raw filesystem notification for one watched path."""

    event_type: str  # "created" | "modified" | "deleted"
    src_path: str


WatchCallback = Callable[[MonitoredEvent], None]


@runtime_checkable
class WatchHandle(Protocol):
    def dispose(self) -> None:
        """Stops delivering notifications; safe to call more than once."""
        ...


@runtime_checkable
class FileSystem(Protocol):
    def stat(self, path: str) -> bool:
        """
        Returns True when `path` is an existing regular file and False when
        it does not exist.

        Raises:
            OSError: for any other failure (permissions, I/O errors).
        """
        ...

    def find_files(self, pattern: str, root: str) -> list[str]:
        """Returns the absolute paths of files matching a glob pattern, relative to `root`."""
        ...

    def watch(self, pattern: str, root: str, callback: WatchCallback) -> WatchHandle:
        """
        Subscribes to create/change/delete notifications for paths matching
        `pattern`. The callback is invoked on the event loop thread.
        """
        ...


@runtime_checkable
class Process(Protocol):
    stdout: asyncio.StreamReader | None
    stderr: asyncio.StreamReader | None
    returncode: int | None

    async def wait(self) -> int: ...

    async def communicate(self) -> tuple[bytes, bytes]: ...

    def kill(self) -> None: ...


@runtime_checkable
class ProcessSpawner(Protocol):
    async def spawn(
        self,
        path: str,
        args: Sequence[str],
        cwd: str,
        env: Mapping[str, str],
    ) -> Process:
        """
        Starts `path` with `args`, stdout and stderr piped.

        Raises:
            ProcessSpawnError: the binary is missing or cannot be executed.
        """
        ...


# 🔼⚙️
