"""In-memory vector store persisted as a single JSON document."""

import gzip
import json
import logging
import os
import zlib
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

import numpy as np

from localrag.errors import PersistenceError
from localrag.models import Chunk, IndexMetadata, SearchResult

logger = logging.getLogger(__name__)

INDEX_SUFFIX = ".lrindex"
GZIP_MAGIC = b"\x1f\x8b"


class VectorStore:
    """Chunks, their embeddings and index metadata.

    ``chunks[i]`` and ``embeddings[i]`` always describe the same chunk. Search
    is a brute-force cosine scan over every stored vector.
    """

    def __init__(self, metadata: Optional[IndexMetadata] = None):
        self.chunks: list[Chunk] = []
        self.embeddings: list[np.ndarray] = []
        self.metadata = metadata or IndexMetadata()

    def __len__(self) -> int:
        return len(self.chunks)

    def add(self, chunk: Chunk, embedding: Sequence[float]) -> None:
        """Append a chunk and its embedding.

        Dimensions are not validated; a vector whose length differs from the
        query simply scores 0.
        """
        self.chunks.append(chunk)
        self.embeddings.append(np.asarray(embedding, dtype=np.float64))

    def search(self, query_embedding: Sequence[float], top_k: int) -> list[SearchResult]:
        """Return the ``top_k`` chunks most similar to the query, best first."""
        query = np.asarray(query_embedding, dtype=np.float64)
        results = [
            SearchResult(chunk=chunk, similarity=self._cosine_similarity(query, embedding))
            for chunk, embedding in zip(self.chunks, self.embeddings)
        ]
        results.sort(key=lambda r: r.similarity, reverse=True)
        return results[: max(top_k, 0)]

    def remove_by_source(self, sources: Iterable[str]) -> int:
        """Drop every chunk whose source is in ``sources``.

        Returns:
            Number of chunks removed. Survivors keep their relative order and
            their pairing with embeddings.
        """
        doomed = set(sources)
        if not doomed:
            return 0

        kept_chunks: list[Chunk] = []
        kept_embeddings: list[np.ndarray] = []
        for chunk, embedding in zip(self.chunks, self.embeddings):
            if chunk.source not in doomed:
                kept_chunks.append(chunk)
                kept_embeddings.append(embedding)

        removed = len(self.chunks) - len(kept_chunks)
        if removed:
            self.chunks = kept_chunks
            self.embeddings = kept_embeddings
        return removed

    def chunks_for_path(self, fragment: str) -> list[Chunk]:
        """Chunks whose source contains ``fragment`` (case-insensitive)."""
        needle = fragment.lower()
        return [chunk for chunk in self.chunks if needle in chunk.source.lower()]

    def indexed_sources(self) -> list[str]:
        """Distinct chunk sources, in first-seen order."""
        return list(dict.fromkeys(chunk.source for chunk in self.chunks))

    # Persistence

    def to_dict(self) -> dict[str, Any]:
        return {
            "chunks": [chunk.to_dict() for chunk in self.chunks],
            "embeddings": [embedding.tolist() for embedding in self.embeddings],
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VectorStore":
        # Older index files were written with capitalised top-level keys.
        store = cls(IndexMetadata.from_dict(data.get("metadata", data.get("Metadata")) or {}))
        chunks = data.get("chunks", data.get("Chunks")) or []
        embeddings = data.get("embeddings", data.get("Embeddings")) or []
        if len(chunks) != len(embeddings):
            raise PersistenceError(
                "index has mismatched chunk and embedding counts",
                {"chunks": len(chunks), "embeddings": len(embeddings)},
            )
        for chunk_data, embedding in zip(chunks, embeddings):
            store.add(Chunk.from_dict(chunk_data), embedding)
        return store

    def save(self, path: Path | str) -> None:
        """Write the store to ``path`` and fsync it.

        ``.lrindex`` paths are gzip-compressed; anything else is written as
        plain JSON for backward compatibility. When this returns, the file is
        on durable storage.
        """
        path = Path(path)
        payload = json.dumps(self.to_dict()).encode("utf-8")

        try:
            with open(path, "wb") as f:
                if path.name.endswith(INDEX_SUFFIX):
                    # gzip must be closed before the file to flush its trailer
                    with gzip.GzipFile(fileobj=f, mode="wb") as gz:
                        gz.write(payload)
                else:
                    f.write(payload)
                f.flush()
                os.fsync(f.fileno())
        except OSError as exc:
            raise PersistenceError(
                f"failed to write index: {exc}", {"path": str(path)}
            ) from exc

        logger.debug(f"saved {len(self.chunks)} chunks to {path}")

    @classmethod
    def load(cls, path: Path | str) -> "VectorStore":
        """Read a store written by :meth:`save`.

        Compression is detected from the suffix, falling back to sniffing the
        gzip magic bytes so renamed or legacy files still load.
        """
        path = Path(path)
        try:
            raw = path.read_bytes()
            if path.name.endswith(INDEX_SUFFIX) or raw[:2] == GZIP_MAGIC:
                raw = gzip.decompress(raw)
            data = json.loads(raw)
        except (OSError, EOFError, ValueError, zlib.error) as exc:
            raise PersistenceError(
                f"failed to read index: {exc}", {"path": str(path)}
            ) from exc

        if not isinstance(data, dict):
            raise PersistenceError("index file is not a JSON object", {"path": str(path)})
        return cls.from_dict(data)

    @staticmethod
    def _cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
        """Compute cosine similarity; 0 for zero vectors or mismatched dimensions."""
        if a.shape != b.shape:
            return 0.0
        norm_a = np.linalg.norm(a)
        norm_b = np.linalg.norm(b)
        if norm_a == 0 or norm_b == 0:
            return 0.0
        return float(np.dot(a, b) / (norm_a * norm_b))
