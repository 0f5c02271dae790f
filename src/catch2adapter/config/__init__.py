#
# config/__init__.py
#
"""
Configuration handling sub-package for catch2adapter.

Exports the loading function and core configuration model.
"""

# Export the main loading function from the loader module
from .loader import build_adapter_config, load_config, parse_executables

# Export the core configuration models from the models module
from .models import (
    AdapterConfig,
    Catch2AdapterConfig,
    ExecutableConfig,
    GlobalConfig,
)

__all__ = [
    "AdapterConfig",
    "Catch2AdapterConfig",
    "ExecutableConfig",
    "GlobalConfig",
    "build_adapter_config",
    "load_config",
    "parse_executables",
]

# 🔼⚙️
