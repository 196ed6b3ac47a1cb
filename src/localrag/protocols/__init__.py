"""Protocol definitions for extensible components."""

from localrag.protocols.chat import ChatProvider, Message
from localrag.protocols.chunker import ChunkingStrategy
from localrag.protocols.embedder import EmbeddingProvider
from localrag.protocols.ingester import Ingester

__all__ = ["Ingester", "EmbeddingProvider", "ChatProvider", "ChunkingStrategy", "Message"]
