#
# config/models.py
#
"""
Attrs-based data models for catch2adapter configuration structure.
"""

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from attrs import define, field

DEFAULT_NAME_PATTERN = "${relPath}"
DEFAULT_CWD = "${absDirpath}"
DEFAULT_WATCH_TIMEOUT_SEC = 10.0


# --- Validators ---
def _validate_log_level(inst: Any, attr: Any, value: str) -> None:
    """Validator for standard logging level names."""
    valid = logging._nameToLevel.keys()
    if value.upper() not in valid:
        raise ValueError(f"Invalid log_level '{value}'. Must be one of {list(valid)}.")


def _validate_non_negative(inst: Any, attr: Any, value: float) -> None:
    if isinstance(value, bool) or not isinstance(value, int | float) or value < 0:
        raise ValueError(f"Field '{attr.name}' must be a non-negative number, got {value!r}")


def _validate_positive_int(inst: Any, attr: Any, value: int) -> None:
    """Validator ensures integer is positive."""
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"Field '{attr.name}' must be positive integer, got {value}")


def _validate_rng_seed(inst: Any, attr: Any, value: str | int | None) -> None:
    if value is None or value == "time":
        return
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Field '{attr.name}' must be 'time' or an integer, got {value!r}")


# --- Executable entries ---
@define(frozen=True, slots=True)
class ExecutableConfig:
    """
    One configured executables entry, before substitution.

    `name_pattern`, `cwd` and the `env` values may reference `${...}`
    placeholders; they are expanded per matched binary by the resolver.
    Fields left as None fall back to the adapter-wide defaults.
    """

    glob_pattern: str = field()
    name_pattern: str = field(default=DEFAULT_NAME_PATTERN)
    cwd: str | None = field(default=None)
    env: Mapping[str, str] = field(factory=dict)
    watch_timeout_sec: float | None = field(default=None)
    run_timeout_sec: float | None = field(default=None)
    index: int = field(default=0)


# --- Adapter and Global Config Models ---
@define(frozen=True, slots=True)
class AdapterConfig:
    """Engine-wide settings and the parsed executables entries."""

    workspace_root: Path = field(converter=Path)
    executables: tuple[ExecutableConfig, ...] = field(factory=tuple, converter=tuple)
    default_cwd: str = field(default=DEFAULT_CWD)
    default_env: Mapping[str, str] = field(factory=dict)
    default_watch_timeout_sec: float = field(default=DEFAULT_WATCH_TIMEOUT_SEC, validator=_validate_non_negative)
    default_run_timeout_sec: float | None = field(default=None)
    default_rng_seed: str | int | None = field(default=None, validator=_validate_rng_seed)
    max_parallel_executables: int = field(default=1, validator=_validate_positive_int)

    def cwd_for(self, executable: ExecutableConfig) -> str:
        return executable.cwd if executable.cwd is not None else self.default_cwd

    def env_for(self, executable: ExecutableConfig) -> dict[str, str]:
        """Entry env layered over the adapter-wide default env."""
        return {**self.default_env, **executable.env}

    def watch_timeout_for(self, executable: ExecutableConfig) -> float:
        if executable.watch_timeout_sec is not None:
            return executable.watch_timeout_sec
        return self.default_watch_timeout_sec

    def run_timeout_for(self, executable: ExecutableConfig) -> float | None:
        timeout = executable.run_timeout_sec
        if timeout is None:
            timeout = self.default_run_timeout_sec
        return timeout or None


@define(frozen=True, slots=True)
class GlobalConfig:
    """Global default settings for catch2adapter."""

    log_level: str = field(default="INFO", validator=_validate_log_level)

    @property
    def numeric_log_level(self) -> int:
        return logging.getLevelName(self.log_level.upper())


@define(frozen=True, slots=True)
class Catch2AdapterConfig:
    """Root configuration object, one immutable snapshot per load of the file."""

    adapter: AdapterConfig = field()
    global_config: GlobalConfig = field(factory=GlobalConfig, metadata={"toml_name": "global"})
    config_file_path: Path | None = field(default=None)


# 🔼⚙️
