"""Source tree walking shared by the ingester, change detection and watch mode."""

import os
from pathlib import Path
from typing import Iterable, Iterator

# Dependency, build and VCS directories that are never indexed
SKIP_DIRS = frozenset(
    {
        "node_modules",
        ".git",
        ".svn",
        ".hg",
        "vendor",
        "dist",
        "build",
        ".github",
        "__pycache__",
        "venv",
        ".venv",
        ".tox",
        ".pytest_cache",
        ".mypy_cache",
        ".ruff_cache",
        ".next",
    }
)


def has_matching_extension(path: str, extensions: Iterable[str]) -> bool:
    """Check ``path`` against a caller-supplied extension allow-list."""
    lowered = path.lower()
    return any(lowered.endswith(ext.lower()) for ext in extensions)


def walk_files(root: Path) -> Iterator[tuple[str, Path]]:
    """Yield ``(relative_posix_path, absolute_path)`` for files under ``root``.

    Skipped directories are pruned in place so their contents are never
    visited.
    """
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in SKIP_DIRS)
        for filename in sorted(filenames):
            full_path = Path(dirpath) / filename
            yield full_path.relative_to(root).as_posix(), full_path
