"""Watch a source tree and feed debounced batches into an index.

Edits arrive in bursts (save-all, branch switch, formatter runs), so touched
paths are collected until the tree has been quiet for the debounce window and
then applied as one incremental update.
"""

import logging
import threading
from pathlib import Path
from typing import Callable, Optional, Sequence

from localrag.errors import LocalRagError
from localrag.indexing.indexer import Indexer
from localrag.utils.walk import has_matching_extension, walk_files

logger = logging.getLogger(__name__)


class DebouncedBatcher:
    """Collect paths and hand them to ``flush`` after ``window`` idle seconds.

    Every ``add`` restarts the timer. Flush callbacks never overlap; a batch
    that arrives while one is being applied waits for it.
    """

    def __init__(self, window: float, flush: Callable[[list[str]], None]):
        self.window = window
        self._on_flush = flush
        self._pending: set[str] = set()
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        self._flush_lock = threading.Lock()

    @property
    def pending(self) -> list[str]:
        with self._lock:
            return sorted(self._pending)

    def add(self, path: str) -> None:
        with self._lock:
            self._pending.add(path)
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.window, self.flush)
            self._timer.daemon = True
            self._timer.start()

    def flush(self) -> list[str]:
        """Hand every pending path to the callback now.

        Returns:
            The flushed batch (empty when nothing was pending).
        """
        with self._flush_lock:
            with self._lock:
                batch = sorted(self._pending)
                self._pending.clear()
                if self._timer is not None:
                    self._timer.cancel()
                    self._timer = None
            if batch:
                self._on_flush(batch)
            return batch

    def close(self) -> None:
        """Cancel the timer and flush whatever is still pending."""
        self.flush()


class PollingWatcher:
    """Detect file changes by comparing mtime snapshots of the tree."""

    def __init__(
        self,
        root: Path | str,
        extensions: Sequence[str],
        batcher: DebouncedBatcher,
        poll_interval: float = 1.0,
    ):
        self.root = Path(root)
        self.extensions = list(extensions)
        self.batcher = batcher
        self.poll_interval = poll_interval
        self._snapshot: dict[str, float] = {}

    def snapshot(self) -> dict[str, float]:
        mtimes: dict[str, float] = {}
        for rel_path, full_path in walk_files(self.root):
            if not has_matching_extension(rel_path, self.extensions):
                continue
            try:
                mtimes[rel_path] = full_path.stat().st_mtime
            except FileNotFoundError:
                # Deleted between listing and stat
                continue
        return mtimes

    def prime(self) -> None:
        self._snapshot = self.snapshot()

    def poll_once(self) -> list[str]:
        """Compare against the previous snapshot and queue what changed."""
        current = self.snapshot()
        changed = [path for path, mtime in current.items() if self._snapshot.get(path) != mtime]
        changed.extend(path for path in self._snapshot if path not in current)
        self._snapshot = current

        for path in changed:
            logger.debug(f"change: {path}")
            self.batcher.add(path)
        return changed

    def run(self, stop: threading.Event) -> None:
        """Poll until ``stop`` is set, then flush the last batch."""
        self.prime()
        try:
            while not stop.wait(self.poll_interval):
                self.poll_once()
        finally:
            self.batcher.close()


def watch(
    indexer: Indexer,
    source_dir: Path | str,
    index_path: Path | str,
    *,
    debounce: float = 0.5,
    poll_interval: float = 1.0,
    stop: Optional[threading.Event] = None,
) -> None:
    """Keep ``index_path`` in sync with ``source_dir`` until ``stop`` is set.

    A failed batch is logged and the watch carries on; its paths are retried
    the next time they change.
    """
    source_dir = Path(source_dir)
    index_path = Path(index_path)
    stop = stop or threading.Event()

    def apply(batch: list[str]) -> None:
        logger.info(f"applying {len(batch)} changed files...")
        try:
            result = indexer.apply_batch(source_dir, index_path, batch)
        except LocalRagError as exc:
            logger.error(f"update failed: {exc}")
            return
        if result.committed:
            logger.info(
                f"index updated: {result.changes.summary()}, {result.total_chunks} chunks total"
            )

    batcher = DebouncedBatcher(debounce, apply)
    watcher = PollingWatcher(source_dir, indexer.extensions, batcher, poll_interval)
    logger.info(f"watching {source_dir} for changes (Ctrl+C to stop)")
    watcher.run(stop)
