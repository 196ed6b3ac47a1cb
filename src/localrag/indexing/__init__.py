"""Index build, incremental update and watch mode."""

from localrag.indexing.indexer import Indexer, IndexResult
from localrag.indexing.watch import DebouncedBatcher, PollingWatcher, watch

__all__ = ["Indexer", "IndexResult", "DebouncedBatcher", "PollingWatcher", "watch"]
