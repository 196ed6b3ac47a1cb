"""Crash-safe commit of an index file.

An index is never written in place: it goes to a temp file, is read back and
checked, and only then replaces the previous file with an atomic rename.
"""

import logging
import os
from pathlib import Path

from localrag.errors import PersistenceError, ValidationError
from localrag.storage.vector_store import INDEX_SUFFIX, VectorStore

logger = logging.getLogger(__name__)

CHECKPOINT_MARKER = ".checkpoint"
TEMP_MARKER = ".tmp"


def _with_marker(path: Path, marker: str) -> Path:
    # Keep the .lrindex suffix so the sibling is compressed like the final file
    for suffix in (INDEX_SUFFIX, ".json"):
        if path.name.endswith(suffix):
            return path.with_name(path.name[: -len(suffix)] + marker + suffix)
    return path.with_name(path.name + marker)


def checkpoint_path(final_path: Path | str) -> Path:
    """``name.lrindex`` -> ``name.checkpoint.lrindex``."""
    return _with_marker(Path(final_path), CHECKPOINT_MARKER)


def temp_path(final_path: Path | str) -> Path:
    """``name.lrindex`` -> ``name.tmp.lrindex``."""
    return _with_marker(Path(final_path), TEMP_MARKER)


def atomic_save(store: VectorStore, final_path: Path | str) -> None:
    """Save ``store`` to ``final_path`` without ever exposing a partial file.

    Raises:
        ValidationError: the reloaded temp file does not match the store; the
            previous file at ``final_path`` is untouched
        PersistenceError: writing, reading back or renaming failed
    """
    final_path = Path(final_path)
    tmp = temp_path(final_path)

    try:
        store.save(tmp)

        try:
            reloaded = VectorStore.load(tmp)
        except PersistenceError as exc:
            raise ValidationError(
                "validation failed - temp file corrupt", {"path": str(tmp)}
            ) from exc

        if len(reloaded.chunks) != len(store.chunks):
            raise ValidationError(
                "validation failed - chunk count mismatch",
                {"path": str(tmp), "got": len(reloaded.chunks), "expected": len(store.chunks)},
            )

        _replace(tmp, final_path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise

    logger.debug(f"committed {len(store.chunks)} chunks to {final_path}")


def save_checkpoint(store: VectorStore, ckpt_path: Path | str) -> None:
    """Replace the checkpoint at ``ckpt_path`` with ``store`` in one rename.

    A failed write leaves the previous checkpoint readable.
    """
    ckpt_path = Path(ckpt_path)
    tmp = temp_path(ckpt_path)

    try:
        store.save(tmp)
        _replace(tmp, ckpt_path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


def _replace(src: Path, dst: Path) -> None:
    try:
        os.replace(src, dst)
    except OSError as exc:
        raise PersistenceError(
            f"failed to rename temp file: {exc}",
            {"path": str(src), "target": str(dst)},
        ) from exc
    _fsync_directory(dst.parent)


def _fsync_directory(directory: Path) -> None:
    # The rename is only durable once the directory entry is flushed
    if os.name != "posix":
        return
    try:
        fd = os.open(directory, os.O_RDONLY)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)
    except OSError as exc:
        raise PersistenceError(
            f"failed to sync directory: {exc}", {"path": str(directory)}
        ) from exc
