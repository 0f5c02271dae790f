# src/catch2adapter/telemetry/__init__.py

"""
Logging and diagnostics for catch2adapter.
"""

from .logger import StructLogger, setup_logging

__all__ = ["StructLogger", "setup_logging"]

# 🔼⚙️
