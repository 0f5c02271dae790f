# src/catch2adapter/substitution.py

"""
Expands path-derived `${...}` placeholders in configured strings.

All values are computed from the executable's absolute path and the
workspace root; nothing here touches the filesystem.
"""

import os
import re
from collections.abc import Mapping

from attrs import define

PLACEHOLDER_PATTERN = re.compile(r"\$\{(\w+)\}")


@define(frozen=True, slots=True)
class SubstitutionContext:
    """The inputs every placeholder is derived from."""

    absolute_path: str = ""
    workspace_root: str = ""


def _relative(path: str, root: str) -> str:
    if not path:
        return ""
    if not root:
        return path
    try:
        return os.path.relpath(path, root)
    except ValueError:
        # Different drives on Windows have no relative form.
        return path


def path_variables(context: SubstitutionContext) -> dict[str, str]:
    """Returns the value of every recognised placeholder for `context`."""
    abs_path = os.path.normpath(context.absolute_path) if context.absolute_path else ""
    root = os.path.normpath(context.workspace_root) if context.workspace_root else ""

    abs_dirpath = os.path.dirname(abs_path) if abs_path else ""
    filename = os.path.basename(abs_path)
    base_filename, ext_filename = os.path.splitext(filename)
    base2_filename, ext2_filename = os.path.splitext(base_filename)
    base3_filename, ext3_filename = os.path.splitext(base2_filename)

    return {
        "absPath": abs_path,
        "relPath": _relative(abs_path, root),
        "absDirpath": abs_dirpath,
        "relDirpath": _relative(abs_dirpath, root),
        "filename": filename,
        "baseFilename": base_filename,
        "extFilename": ext_filename,
        "base2Filename": base2_filename,
        "ext2Filename": ext2_filename,
        "base3Filename": base3_filename,
        "ext3Filename": ext3_filename,
        "workspaceFolder": root,
        "workspaceDirectory": root,
    }


def substitute(source: str, context: SubstitutionContext) -> str:
    """Replaces recognised placeholders in `source`; unknown ones are left as-is."""
    if "${" not in source:
        return source
    variables = path_variables(context)

    def _replace(match: re.Match[str]) -> str:
        return variables.get(match.group(1), match.group(0))

    return PLACEHOLDER_PATTERN.sub(_replace, source)


def substitute_env(env: Mapping[str, str], context: SubstitutionContext) -> dict[str, str]:
    """Substitutes every value of an environment mapping, keeping the keys."""
    return {key: substitute(str(value), context) for key, value in env.items()}


# 🔼⚙️
