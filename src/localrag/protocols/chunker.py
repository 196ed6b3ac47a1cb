"""Protocol for text chunking strategies."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class ChunkingStrategy(Protocol):
    """Splits a document body into candidate sections.

    Strategies are keyed by language tag. Bounding and filtering of the
    sections they return is applied afterwards by ``chunk_document``.
    """

    def split(self, content: str, max_chunk_size: int) -> list[str]:
        """Return the candidate sections of ``content`` in document order."""
        ...
