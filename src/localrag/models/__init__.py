"""Data models for LocalRag."""

from localrag.models.document import (
    Chunk,
    Document,
    FileMetadata,
    IndexMetadata,
    SearchResult,
    SkippedFile,
    base_path,
)

__all__ = [
    "Document",
    "Chunk",
    "FileMetadata",
    "IndexMetadata",
    "SearchResult",
    "SkippedFile",
    "base_path",
]
