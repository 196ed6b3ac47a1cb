"""Core data models for documents, chunks and index metadata."""

import re
from dataclasses import asdict, dataclass, field
from typing import Any, Optional

_PART_SUFFIX = re.compile(r" \(part \d+\)$")


def base_path(source: str) -> str:
    """Strip the ``" (part N)"`` suffix that split large files carry."""
    return _PART_SUFFIX.sub("", source)


@dataclass(frozen=True)
class FileMetadata:
    """Metadata for a loaded source file (or one part of a split file)."""

    path: str
    doc_type: str
    size_bytes: int = 0
    part: Optional[int] = None


@dataclass
class Document:
    """A text document read from a source tree.

    ``source`` is the path relative to the source root, or
    ``"path (part N)"`` when a large file was split into several documents.
    """

    content: str
    source: str
    metadata: FileMetadata


@dataclass(frozen=True)
class Chunk:
    """A bounded unit of text; the atom of embedding and retrieval."""

    text: str
    source: str
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def doc_type(self) -> str:
        return self.metadata.get("type", "")

    def to_dict(self) -> dict[str, Any]:
        return {"text": self.text, "source": self.source, "metadata": dict(self.metadata)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Chunk":
        # Older index files were written with capitalised keys.
        metadata = data.get("metadata", data.get("Metadata")) or {}
        return cls(
            text=data.get("text", data.get("Text", "")),
            source=data.get("source", data.get("Source", "")),
            metadata={str(k): str(v) for k, v in metadata.items()},
        )


@dataclass(frozen=True)
class SkippedFile:
    """A file left out of an index, with the reason why."""

    path: str
    reason: str
    size: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SkippedFile":
        return cls(
            path=data.get("path", ""),
            reason=data.get("reason", ""),
            size=int(data.get("size", 0)),
        )


@dataclass
class IndexMetadata:
    """Bookkeeping persisted with every index."""

    indexed_at: str = ""
    source_path: str = ""
    file_count: int = 0
    chunk_count: int = 0
    indexed_files: list[str] = field(default_factory=list)
    skipped_files: list[SkippedFile] = field(default_factory=list)
    last_commit: Optional[str] = None
    is_review: bool = False
    embedding_model: Optional[str] = None
    extensions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        # Optional fields are omitted rather than written as null.
        for key in ("last_commit", "embedding_model"):
            if data[key] is None:
                del data[key]
        if not data["is_review"]:
            del data["is_review"]
        if not data["extensions"]:
            del data["extensions"]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "IndexMetadata":
        return cls(
            indexed_at=data.get("indexed_at", ""),
            source_path=data.get("source_path", ""),
            file_count=int(data.get("file_count", 0)),
            chunk_count=int(data.get("chunk_count", 0)),
            indexed_files=list(data.get("indexed_files") or []),
            skipped_files=[SkippedFile.from_dict(s) for s in data.get("skipped_files") or []],
            last_commit=data.get("last_commit") or None,
            is_review=bool(data.get("is_review", False)),
            embedding_model=data.get("embedding_model") or None,
            extensions=list(data.get("extensions") or []),
        )


@dataclass(frozen=True)
class SearchResult:
    """A chunk ranked against a query.

    ``source_name`` is set when the result came from a multi-source search.
    """

    chunk: Chunk
    similarity: float
    source_name: Optional[str] = None
