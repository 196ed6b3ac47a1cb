"""Retrieval-augmented question answering over the loaded indexes."""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from localrag.errors import ProviderError
from localrag.models import SearchResult
from localrag.protocols import ChatProvider, EmbeddingProvider, Message
from localrag.storage import StoreHandle

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """you are a helpful assistant that answers questions based on indexed documentation and source code.
answer based solely on the provided context from the indexed repositories.
if the context doesn't contain enough information to answer the question, say so.
always cite the source documents when answering.
when showing code examples, preserve the formatting and explain what the code does."""


@dataclass
class QueryAnswer:
    """Synthesized answer plus the chunks it was based on.

    ``answer`` is None when no synthesis was requested or possible.
    """

    answer: Optional[str]
    results: list[SearchResult] = field(default_factory=list)


def build_context(results: list[SearchResult]) -> str:
    """Render retrieved chunks as the context block of a prompt."""
    parts = ["here is the relevant context from the indexed documentation and source code:\n"]
    for i, result in enumerate(results, 1):
        parts.append(
            f"--- document {i} (source: {result.chunk.source}, type: {result.chunk.doc_type}, "
            f"similarity: {result.similarity:.3f}) ---"
        )
        parts.append(result.chunk.text)
        parts.append("")
    return "\n".join(parts)


class RAGEngine:
    """Embed a question, search every loaded source, optionally synthesize."""

    def __init__(
        self,
        handle: StoreHandle,
        embedder: EmbeddingProvider,
        chat: Optional[ChatProvider] = None,
    ):
        self.handle = handle
        self.embedder = embedder
        self.chat = chat

    def retrieve(
        self, question: str, top_k: int = 3, sources: Optional[Iterable[str]] = None
    ) -> list[SearchResult]:
        try:
            query_embedding = self.embedder.get_embedding(question)
        except Exception as exc:
            raise ProviderError(
                f"failed to get query embedding: {exc}", {"chars": len(question)}
            ) from exc
        return self.handle.get().search(query_embedding, top_k, sources)

    def query(
        self,
        question: str,
        top_k: int = 3,
        sources: Optional[Iterable[str]] = None,
        synthesize: bool = True,
    ) -> QueryAnswer:
        """Answer ``question`` from the ``top_k`` most similar chunks.

        Without a chat provider (or with ``synthesize=False``) only the
        retrieved chunks are returned.
        """
        results = self.retrieve(question, top_k, sources)
        if not synthesize or self.chat is None:
            return QueryAnswer(answer=None, results=results)

        messages = [
            Message(role="system", content=SYSTEM_PROMPT),
            Message(role="user", content=f"{build_context(results)}\n\nquestion: {question}"),
        ]
        logger.debug(f"asking chat provider with {len(results)} context chunks")
        try:
            answer = self.chat.chat(messages)
        except Exception as exc:
            raise ProviderError(f"failed to get chat response: {exc}") from exc
        return QueryAnswer(answer=answer, results=results)
