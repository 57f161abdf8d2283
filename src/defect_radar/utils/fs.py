"""
defect-radar - filesystem utilities

File: src/defect_radar/utils/fs.py

Purpose
- Deterministic project walking with ignore-pattern pruning.
- Shared ignore matching for the finding engine and the monitor.

Functional requirements
- A path is ignored when any component of its root-relative path matches a pattern
  (``fnmatch`` semantics) or when the relative POSIX path starts with the pattern.
- Walk order is sorted and symlinked directories are not followed.
"""

from __future__ import annotations

import fnmatch
import os
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from defect_radar.constants import ENV_FILE_EXTENSION

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

PathLike = str | os.PathLike[str]

__all__ = [
    "file_extension",
    "is_within",
    "iter_project_files",
    "matches_ignore",
    "relative_posix",
]


def file_extension(path: PathLike) -> str:
    """Return the lowercase extension used for analyzer routing (``.env`` for dotenv files)."""

    name = Path(path).name.lower()
    if name == ENV_FILE_EXTENSION or name.startswith(f"{ENV_FILE_EXTENSION}."):
        return ENV_FILE_EXTENSION
    return Path(name).suffix


def relative_posix(path: PathLike, root: PathLike) -> str | None:
    """Return ``path`` relative to ``root`` as POSIX text, or ``None`` when outside ``root``."""

    try:
        return Path(path).relative_to(Path(root)).as_posix()
    except ValueError:
        return None


def matches_ignore(relative_path: str, patterns: Sequence[str]) -> bool:
    """Return ``True`` when ``relative_path`` is excluded by any of ``patterns``."""

    if not patterns:
        return False
    posix = PurePosixPath(relative_path.replace("\\", "/"))
    text = posix.as_posix()
    parts = posix.parts
    for raw in patterns:
        pattern = raw.strip().rstrip("/")
        if not pattern:
            continue
        if text == pattern or text.startswith(f"{pattern}/"):
            return True
        if any(fnmatch.fnmatchcase(part, pattern) for part in parts):
            return True
    return False


def iter_project_files(root: PathLike, ignore_patterns: Sequence[str]) -> Iterator[Path]:
    """Yield regular files under ``root`` in sorted order, pruning ignored directories."""

    base = Path(root)
    for current_dir, dir_names, file_names in os.walk(base, topdown=True, followlinks=False):
        current = Path(current_dir)
        kept_dirs: list[str] = []
        for name in sorted(dir_names):
            rel = relative_posix(current / name, base)
            if rel is not None and matches_ignore(rel, ignore_patterns):
                continue
            kept_dirs.append(name)
        dir_names[:] = kept_dirs

        for name in sorted(file_names):
            candidate = current / name
            rel = relative_posix(candidate, base)
            if rel is None or matches_ignore(rel, ignore_patterns):
                continue
            if candidate.is_symlink() or not candidate.is_file():
                continue
            yield candidate


def is_within(child: PathLike, parent: PathLike) -> bool:
    """Return ``True`` if ``child`` is ``parent`` or lies beneath it (lexically, no resolution)."""

    child_path = Path(os.path.abspath(child))
    parent_path = Path(os.path.abspath(parent))
    return child_path == parent_path or parent_path in child_path.parents
