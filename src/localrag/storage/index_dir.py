"""Naming conventions for the index directory.

One authoritative file per source name, optionally date-suffixed
(``name_YYYYMMDD.lrindex``). Checkpoint and temp files live alongside but are
never listed.
"""

import re
from datetime import date
from pathlib import Path
from typing import Optional

from localrag.storage.atomic import CHECKPOINT_MARKER, TEMP_MARKER
from localrag.storage.vector_store import INDEX_SUFFIX

LEGACY_SUFFIX = ".json"
_DATE_SUFFIX = re.compile(r"_\d{8}$")


def index_file_name(name: str, on: Optional[date] = None) -> str:
    """``name_YYYYMMDD.lrindex`` for ``on`` (today by default)."""
    stamp = (on or date.today()).strftime("%Y%m%d")
    return f"{name}_{stamp}{INDEX_SUFFIX}"


def is_auxiliary(path: Path | str) -> bool:
    """True for checkpoint and temp files, which are never canonical."""
    name = Path(path).name
    return any(
        f"{marker}." in name or name.endswith(marker)
        for marker in (CHECKPOINT_MARKER, TEMP_MARKER)
    )


def source_name_of(path: Path | str) -> str:
    """Source name encoded in an index filename (suffix and date stripped)."""
    name = Path(path).name
    for suffix in (INDEX_SUFFIX, LEGACY_SUFFIX):
        if name.endswith(suffix):
            name = name[: -len(suffix)]
            break
    return _DATE_SUFFIX.sub("", name)


def list_index_files(index_dir: Path | str) -> list[Path]:
    """Every canonical index file in ``index_dir``, sorted by filename."""
    index_dir = Path(index_dir)
    if not index_dir.is_dir():
        return []
    files = [
        path
        for path in index_dir.iterdir()
        if path.is_file()
        and path.name.endswith((INDEX_SUFFIX, LEGACY_SUFFIX))
        and not is_auxiliary(path)
    ]
    return sorted(files, key=lambda p: p.name)


def latest_by_source(index_dir: Path | str) -> dict[str, Path]:
    """Map each source name to its lexicographically-last (newest) file."""
    latest: dict[str, Path] = {}
    for path in list_index_files(index_dir):
        name = source_name_of(path)
        if name not in latest or path.name > latest[name].name:
            latest[name] = path
    return latest


def find_existing_index(index_dir: Path | str, name: str) -> Optional[Path]:
    """Newest index file for ``name``, or None when there is none."""
    return latest_by_source(index_dir).get(name)


def source_exists(index_dir: Path | str, name: str) -> bool:
    return find_existing_index(index_dir, name) is not None
