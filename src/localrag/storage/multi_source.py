"""Fan-out search across many independently indexed sources."""

import logging
from pathlib import Path
from typing import Iterable, Optional, Sequence

from localrag.errors import PersistenceError
from localrag.models import SearchResult
from localrag.storage.atomic import atomic_save
from localrag.storage.index_dir import find_existing_index, latest_by_source
from localrag.storage.vector_store import INDEX_SUFFIX, VectorStore

logger = logging.getLogger(__name__)


class MultiSourceStore:
    """Named VectorStores loaded lazily from an index directory.

    Only a query-time aggregator; each source keeps its own file.
    """

    def __init__(self, base_dir: Path | str):
        self.base_dir = Path(base_dir)
        self.sources: dict[str, VectorStore] = {}

    def load_source(self, name: str) -> VectorStore:
        """Load the newest index file for ``name``."""
        path = find_existing_index(self.base_dir, name)
        if path is None:
            raise PersistenceError(
                f"no vector store found for source {name}", {"dir": str(self.base_dir)}
            )
        store = VectorStore.load(path)
        self.sources[name] = store
        logger.debug(f"loaded source {name} ({len(store)} chunks) from {path.name}")
        return store

    def load_all(self) -> list[str]:
        """Load every source in the directory.

        Unreadable index files are logged and left out so one corrupt file
        cannot take every other source offline.

        Returns:
            Names of the sources that were loaded.
        """
        loaded = []
        for name, path in sorted(latest_by_source(self.base_dir).items()):
            try:
                self.sources[name] = VectorStore.load(path)
            except PersistenceError as exc:
                logger.warning(f"skipping source {name}: {exc}")
                continue
            loaded.append(name)
        return loaded

    def add_source(self, name: str, store: VectorStore) -> None:
        self.sources[name] = store

    def save_source(self, name: str, store: VectorStore) -> Path:
        """Atomically write ``store`` as ``<base_dir>/<name>.lrindex`` and register it."""
        self.base_dir.mkdir(parents=True, exist_ok=True)
        path = self.base_dir / f"{name}{INDEX_SUFFIX}"
        atomic_save(store, path)
        self.sources[name] = store
        return path

    def search(
        self,
        query_embedding: Sequence[float],
        top_k: int,
        names: Optional[Iterable[str]] = None,
    ) -> list[SearchResult]:
        """Search the named sources (all when ``names`` is empty).

        Unknown names are skipped. ``top_k`` applies to the merged ranking,
        not to each source.
        """
        wanted = list(names or []) or list(self.sources)

        merged: list[SearchResult] = []
        for name in wanted:
            store = self.sources.get(name)
            if store is None:
                continue
            merged.extend(
                SearchResult(chunk=r.chunk, similarity=r.similarity, source_name=name)
                for r in store.search(query_embedding, top_k)
            )

        merged.sort(key=lambda r: r.similarity, reverse=True)
        return merged[: max(top_k, 0)]

    def list_sources(self) -> list[str]:
        return sorted(self.sources)

    def source_stats(self) -> dict[str, int]:
        """Chunk count per loaded source."""
        return {name: len(store) for name, store in sorted(self.sources.items())}
