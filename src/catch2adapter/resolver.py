# src/catch2adapter/resolver.py

"""
Turns configured executables entries into concrete binaries.
"""

import asyncio
import os
import re
from collections.abc import Mapping

import structlog
from attrs import define, field

from catch2adapter.config.models import AdapterConfig, ExecutableConfig
from catch2adapter.exceptions import ResolutionError
from catch2adapter.filesystem import absolute_pattern
from catch2adapter.monitor import has_glob_magic
from catch2adapter.protocols import FileSystem
from catch2adapter.substitution import SubstitutionContext, substitute, substitute_env
from catch2adapter.telemetry import StructLogger

log: StructLogger = structlog.get_logger("resolver")

_DRIVE_LETTER = re.compile(r"^[A-Za-z]:")


@define(frozen=True, slots=True)
class ResolvedExecutable:
    """One concrete binary with its run parameters already substituted."""

    absolute_path: str
    display_name: str
    resolved_cwd: str
    resolved_env: Mapping[str, str] = field(factory=dict)
    config: ExecutableConfig | None = field(default=None, repr=False)
    watch_timeout_sec: float = 0.0
    run_timeout_sec: float | None = None


@define(frozen=True, slots=True)
class Resolution:
    """Everything one executables entry resolved to at a point in time."""

    config: ExecutableConfig
    pattern_path: str
    is_glob: bool
    watch_timeout_sec: float
    executables: tuple[ResolvedExecutable, ...] = field(factory=tuple, converter=tuple)
    errors: tuple[ResolutionError, ...] = field(factory=tuple, converter=tuple)


def normalize_cwd(cwd: str, workspace_root: str) -> str:
    """Makes `cwd` absolute against the workspace root; lower-cases Windows drive letters."""
    if os.path.isabs(cwd) or _DRIVE_LETTER.match(cwd):
        path = cwd
    else:
        path = os.path.join(workspace_root, cwd)
    path = os.path.normpath(path)
    if _DRIVE_LETTER.match(path):
        path = path[0].lower() + path[1:]
    return path


class ExecutableResolver:
    """Resolves entries against one configuration snapshot."""

    def __init__(self, config: AdapterConfig, filesystem: FileSystem):
        self.config = config
        self.filesystem = filesystem
        self.workspace_root = os.path.normpath(str(config.workspace_root))

    def describe(self, executable: ExecutableConfig, absolute_path: str) -> ResolvedExecutable:
        """Builds the resolved form of one matched path; pure."""
        context = SubstitutionContext(absolute_path=absolute_path, workspace_root=self.workspace_root)
        display_name = substitute(executable.name_pattern, context).strip()
        if not display_name:
            display_name = substitute("${relPath}", context)
        return ResolvedExecutable(
            absolute_path=absolute_path,
            display_name=display_name,
            resolved_cwd=normalize_cwd(substitute(self.config.cwd_for(executable), context), self.workspace_root),
            resolved_env=substitute_env(self.config.env_for(executable), context),
            config=executable,
            watch_timeout_sec=self.config.watch_timeout_for(executable),
            run_timeout_sec=self.config.run_timeout_for(executable),
        )

    async def _candidates(self, executable: ExecutableConfig, pattern_path: str, is_glob: bool) -> list[str]:
        if is_glob:
            return await asyncio.to_thread(self.filesystem.find_files, executable.glob_pattern, self.workspace_root)
        exists = await asyncio.to_thread(self.filesystem.stat, pattern_path)
        return [pattern_path] if exists else []

    async def resolve(self, executable: ExecutableConfig) -> Resolution:
        pattern_path = absolute_pattern(executable.glob_pattern, self.workspace_root)
        is_glob = has_glob_magic(executable.glob_pattern)
        resolve_log = log.bind(pattern=executable.glob_pattern, index=executable.index)

        errors: list[ResolutionError] = []
        candidates: list[str] = []
        try:
            candidates = await self._candidates(executable, pattern_path, is_glob)
        except OSError as e:
            resolve_log.warning("Failed to resolve executable pattern", error=str(e), emoji_key="path")
            errors.append(ResolutionError(f"Cannot resolve '{executable.glob_pattern}': {e}", path=pattern_path, details=e))

        seen: set[str] = set()
        resolved: list[ResolvedExecutable] = []
        for candidate in candidates:
            absolute_path = os.path.normpath(candidate)
            if absolute_path in seen:
                continue
            seen.add(absolute_path)
            resolved.append(self.describe(executable, absolute_path))

        resolve_log.debug("Pattern resolved", matches=len(resolved), errors=len(errors))
        return Resolution(
            config=executable,
            pattern_path=pattern_path,
            is_glob=is_glob,
            watch_timeout_sec=self.config.watch_timeout_for(executable),
            executables=resolved,
            errors=errors,
        )

    async def resolve_all(self) -> list[Resolution]:
        """Resolves every entry; one entry's failure never affects the others."""
        return [await self.resolve(executable) for executable in self.config.executables]


# 🔼⚙️
