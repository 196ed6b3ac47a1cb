"""Vector storage and index persistence for LocalRag."""

from localrag.storage.atomic import atomic_save, checkpoint_path, save_checkpoint, temp_path
from localrag.storage.handle import StoreHandle, directory_factory
from localrag.storage.index_dir import (
    find_existing_index,
    index_file_name,
    is_auxiliary,
    latest_by_source,
    list_index_files,
    source_exists,
    source_name_of,
)
from localrag.storage.multi_source import MultiSourceStore
from localrag.storage.vector_store import INDEX_SUFFIX, VectorStore

__all__ = [
    "INDEX_SUFFIX",
    "MultiSourceStore",
    "StoreHandle",
    "VectorStore",
    "atomic_save",
    "checkpoint_path",
    "directory_factory",
    "find_existing_index",
    "index_file_name",
    "is_auxiliary",
    "latest_by_source",
    "list_index_files",
    "save_checkpoint",
    "source_exists",
    "source_name_of",
    "temp_path",
]
