"""Swappable reference to the live store of a long-running query server."""

import logging
import threading
from pathlib import Path
from typing import Callable, Optional

from localrag.storage.multi_source import MultiSourceStore

logger = logging.getLogger(__name__)


class StoreHandle:
    """Guards a MultiSourceStore reference with a lock around the swap only.

    ``reload`` builds a complete replacement off to the side before taking
    the lock, so readers always get a fully-old or fully-new store. Readers
    must not mutate what ``get`` returns.
    """

    def __init__(self, factory: Callable[[], MultiSourceStore]):
        self._factory = factory
        self._lock = threading.Lock()
        self._store: Optional[MultiSourceStore] = None

    def get(self) -> MultiSourceStore:
        """Return the current store, building the first one on demand."""
        with self._lock:
            store = self._store
        if store is None:
            return self.reload()
        return store

    def swap(self, store: MultiSourceStore) -> Optional[MultiSourceStore]:
        """Install ``store`` and return the one it replaced."""
        with self._lock:
            previous, self._store = self._store, store
        return previous

    def reload(self) -> MultiSourceStore:
        store = self._factory()
        self.swap(store)
        logger.info(f"reloaded {len(store.sources)} vector store sources: {store.list_sources()}")
        return store


def directory_factory(base_dir: Path | str) -> Callable[[], MultiSourceStore]:
    """Factory that loads every index in ``base_dir``."""

    def build() -> MultiSourceStore:
        store = MultiSourceStore(base_dir)
        store.load_all()
        return store

    return build
