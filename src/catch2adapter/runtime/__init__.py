# src/catch2adapter/runtime/__init__.py

from .emitter import EventEmitter
from .executor import AsyncioProcessSpawner, ExecutableRunner, RunReport
from .orchestrator import FULL_LOAD, LoadScope, TestOrchestrator
from .watch_scheduler import ReloadRequest, WatchScheduler

__all__ = [
    "FULL_LOAD",
    "AsyncioProcessSpawner",
    "EventEmitter",
    "ExecutableRunner",
    "LoadScope",
    "ReloadRequest",
    "RunReport",
    "TestOrchestrator",
    "WatchScheduler",
]

# 🔼⚙️
