"""Modification-time based change detection."""

from datetime import datetime
from pathlib import Path
from typing import Iterable, Sequence

from localrag.detection.changeset import ChangeSet
from localrag.errors import DetectionError
from localrag.utils.walk import has_matching_extension, walk_files


def parse_indexed_at(value: str) -> datetime:
    """Parse an RFC 3339 / ISO 8601 timestamp as stored in index metadata."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(value)
    except ValueError as exc:
        raise DetectionError(f"cannot parse indexed_at timestamp {value!r}") from exc


def detect_changes_mtime(
    root: Path | str,
    indexed_at: datetime,
    indexed_files: Iterable[str],
    extensions: Sequence[str],
    skipped_files: Iterable[str] = (),
) -> ChangeSet:
    """Compare file mtimes under ``root`` with the time the index was built.

    A file in the tree but not in ``indexed_files`` is added; one in both and
    modified after ``indexed_at`` is modified; one recorded but no longer in
    the tree is deleted. Files in ``skipped_files`` count as added only once
    they change again.
    """
    root = Path(root)
    if not root.is_dir():
        raise DetectionError("source directory not found", {"path": str(root)})

    threshold = indexed_at.timestamp()
    indexed = set(indexed_files)
    skipped = set(skipped_files)
    still_exists: set[str] = set()
    changes = ChangeSet()

    for rel_path, full_path in walk_files(root):
        if not has_matching_extension(rel_path, extensions):
            continue
        try:
            mtime = full_path.stat().st_mtime
        except OSError:
            # Vanished mid-walk: treated like any other absent file
            continue

        if rel_path in indexed:
            still_exists.add(rel_path)
            if mtime > threshold:
                changes.modified.append(rel_path)
        elif rel_path not in skipped or mtime > threshold:
            changes.added.append(rel_path)

    changes.deleted = sorted(indexed - still_exists)
    return changes
