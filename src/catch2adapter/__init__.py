# src/catch2adapter/__init__.py

"""
catch2adapter: discovers Catch2 test executables, keeps their test tree
current as binaries change, and streams run results as ordered events.
"""

from catch2adapter.events import LoadEvent, Outcome, RunEvent
from catch2adapter.runtime.orchestrator import TestOrchestrator

__all__ = ["LoadEvent", "Outcome", "RunEvent", "TestOrchestrator"]

# 🔼⚙️
