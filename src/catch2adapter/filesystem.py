# src/catch2adapter/filesystem.py

"""
Local filesystem implementation of the FileSystem protocol.
"""

import asyncio
import glob
import os
import stat

from catch2adapter.monitor import MonitoringService
from catch2adapter.protocols import WatchCallback, WatchHandle


def absolute_pattern(pattern: str, root: str) -> str:
    path = pattern if os.path.isabs(pattern) else os.path.join(root, pattern)
    return os.path.normpath(path)


class LocalFileSystem:
    """stat/glob on the real filesystem, watches through a shared watchdog observer."""

    def __init__(self, monitor: MonitoringService | None = None):
        self.monitor = monitor or MonitoringService()

    def stat(self, path: str) -> bool:
        try:
            result = os.stat(path)
        except (FileNotFoundError, NotADirectoryError):
            return False
        return stat.S_ISREG(result.st_mode)

    def find_files(self, pattern: str, root: str) -> list[str]:
        matches = glob.glob(absolute_pattern(pattern, root), recursive=True)
        return sorted(os.path.normpath(match) for match in matches if os.path.isfile(match))

    def watch(self, pattern: str, root: str, callback: WatchCallback) -> WatchHandle:
        loop = asyncio.get_running_loop()
        return self.monitor.add_watch(absolute_pattern(pattern, root), callback, loop)

    async def close(self) -> None:
        if self.monitor.is_running:
            await self.monitor.stop()


# 🔼⚙️
