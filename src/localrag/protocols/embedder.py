"""Protocol for embedding model providers."""

from typing import Protocol, Sequence, runtime_checkable


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Turns one text into a fixed-length vector.

    Allows swapping between local models (sentence-transformers) and
    API-based providers. All chunks of one index must come from providers
    sharing one dimensionality.
    """

    @property
    def model_name(self) -> str:
        """Return identifier for the model used."""
        ...

    def get_embedding(self, text: str) -> Sequence[float]:
        """Embed a single text. Raises on provider failure."""
        ...
