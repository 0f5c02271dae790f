#
# config/loader.py
#
"""
Loads and validates the TOML configuration file into attrs models.
"""

import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import structlog

from catch2adapter.config.models import (
    DEFAULT_CWD,
    DEFAULT_NAME_PATTERN,
    DEFAULT_WATCH_TIMEOUT_SEC,
    AdapterConfig,
    Catch2AdapterConfig,
    ExecutableConfig,
    GlobalConfig,
)
from catch2adapter.exceptions import ConfigurationError
from catch2adapter.telemetry import StructLogger

log: StructLogger = structlog.get_logger("config.loader")

ENV_LOG_LEVEL = "CATCH2ADAPTER_LOG_LEVEL"


def _optional_number(entry: Mapping[str, Any], key: str) -> float | None:
    value = entry.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int | float) or value < 0:
        raise ConfigurationError(f"'{key}' must be a non-negative number, got {value!r}")
    return float(value)


def _string_mapping(value: Any, key: str) -> dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigurationError(f"'{key}' must be a table of strings, got {type(value).__name__}")
    return {str(k): str(v) for k, v in value.items()}


def _parse_executable_entry(entry: Any, index: int) -> ExecutableConfig:
    if isinstance(entry, str):
        if not entry.strip():
            raise ConfigurationError("Executable pattern must not be empty")
        return ExecutableConfig(glob_pattern=entry, index=index)

    if not isinstance(entry, Mapping):
        raise ConfigurationError(f"Executable entry must be a string or a table, got {type(entry).__name__}")

    pattern = entry.get("pattern")
    if not isinstance(pattern, str) or not pattern.strip():
        raise ConfigurationError("Executable table requires a non-empty 'pattern'")

    name = entry.get("name")
    cwd = entry.get("cwd")
    return ExecutableConfig(
        glob_pattern=pattern,
        name_pattern=str(name) if name else DEFAULT_NAME_PATTERN,
        cwd=str(cwd) if cwd is not None else None,
        env=_string_mapping(entry.get("env"), "env"),
        watch_timeout_sec=_optional_number(entry, "watch_timeout_sec"),
        run_timeout_sec=_optional_number(entry, "run_timeout_sec"),
        index=index,
    )


def parse_executables(raw: Any) -> list[ExecutableConfig]:
    """
    Parses the `executables` setting: a string, a table with `pattern`, or
    an array of either.

    A malformed entry is logged and skipped; the remaining entries are
    still returned.
    """
    if raw is None:
        return []
    entries = raw if isinstance(raw, list) else [raw]

    executables: list[ExecutableConfig] = []
    for position, entry in enumerate(entries):
        try:
            executables.append(_parse_executable_entry(entry, index=len(executables)))
        except ConfigurationError as e:
            log.error("Skipping malformed executables entry", position=position, entry=repr(entry), error=str(e))
    return executables


def build_adapter_config(table: Mapping[str, Any], workspace_root: Path) -> AdapterConfig:
    """Builds the adapter section from an already-parsed mapping."""
    workspace = table.get("workspace")
    if workspace:
        workspace_path = Path(str(workspace))
        if not workspace_path.is_absolute():
            workspace_path = workspace_root / workspace_path
        workspace_root = workspace_path

    watch_timeout = _optional_number(table, "default_watch_timeout_sec")
    try:
        return AdapterConfig(
            workspace_root=workspace_root.resolve(),
            executables=parse_executables(table.get("executables")),
            default_cwd=str(table.get("default_cwd", DEFAULT_CWD)),
            default_env=_string_mapping(table.get("default_env"), "default_env"),
            default_watch_timeout_sec=watch_timeout if watch_timeout is not None else DEFAULT_WATCH_TIMEOUT_SEC,
            default_run_timeout_sec=_optional_number(table, "default_run_timeout_sec"),
            default_rng_seed=table.get("default_rng_seed"),
            max_parallel_executables=table.get("max_parallel_executables", 1),
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid [adapter] settings: {e}") from e


def load_config(config_path: Path) -> Catch2AdapterConfig:
    """
    Reads, parses and validates the configuration file.

    Raises:
        ConfigurationError: the file cannot be read, is not valid TOML, or
            holds invalid adapter-wide settings.
    """
    config_path = Path(config_path)
    load_log = log.bind(config_path=str(config_path))
    load_log.debug("Loading configuration", emoji_key="load")

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except OSError as e:
        raise ConfigurationError("Cannot read configuration file", path=str(config_path), details=e) from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML: {e}", path=str(config_path), details=e) from e

    global_table = data.get("global", {})
    log_level = os.environ.get(ENV_LOG_LEVEL) or global_table.get("log_level", "INFO")
    try:
        global_config = GlobalConfig(log_level=str(log_level))
    except ValueError as e:
        raise ConfigurationError(str(e), path=str(config_path)) from e

    adapter_table = data.get("adapter", {})
    if not isinstance(adapter_table, Mapping):
        raise ConfigurationError("[adapter] must be a table", path=str(config_path))

    adapter = build_adapter_config(adapter_table, config_path.parent)
    load_log.info(
        "Configuration loaded",
        executables=len(adapter.executables),
        workspace=str(adapter.workspace_root),
        emoji_key="load",
    )
    return Catch2AdapterConfig(adapter=adapter, global_config=global_config, config_file_path=config_path)


# 🔼⚙️
