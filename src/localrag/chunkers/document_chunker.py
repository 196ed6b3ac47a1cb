"""Type-aware chunking of whole documents."""

from typing import Iterator

from localrag.chunkers.code_chunker import (
    C_PREFIXES,
    GO_PREFIXES,
    JAVA_PREFIXES,
    JS_PREFIXES,
    TEMPL_PREFIXES,
    BraceCodeChunker,
    IndentCodeChunker,
)
from localrag.chunkers.markdown_chunker import MarkdownChunker
from localrag.chunkers.paragraph_chunker import (
    ParagraphChunker,
    byte_len,
    split_by_lines,
    split_by_paragraphs,
)
from localrag.models import Chunk, Document
from localrag.protocols import ChunkingStrategy

# Sections with less trimmed text than this are noise (stray braces, imports)
MIN_SECTION_CHARS = 50

# Estimated-token ceiling above which a section is force-split by lines;
# embedding APIs cap input around 8k tokens
MAX_SECTION_TOKENS = 5000
LINE_SPLIT_BYTES = 16000  # ~4000 tokens

_DEFAULT_STRATEGY: ChunkingStrategy = ParagraphChunker()

_STRATEGIES: dict[str, ChunkingStrategy] = {
    "markdown": MarkdownChunker(),
    "go": BraceCodeChunker(GO_PREFIXES),
    "javascript": BraceCodeChunker(JS_PREFIXES),
    "typescript": BraceCodeChunker(JS_PREFIXES),
    "java": BraceCodeChunker(JAVA_PREFIXES),
    "c": BraceCodeChunker(C_PREFIXES),
    "templ": BraceCodeChunker(TEMPL_PREFIXES),
    "python": IndentCodeChunker(),
}


def register_strategy(doc_type: str, strategy: ChunkingStrategy) -> None:
    """Register (or replace) the splitting strategy for a language tag."""
    _STRATEGIES[doc_type] = strategy


def strategy_for(doc_type: str) -> ChunkingStrategy:
    """Return the strategy for ``doc_type``, paragraph splitting when unknown."""
    return _STRATEGIES.get(doc_type, _DEFAULT_STRATEGY)


def estimate_tokens(text: str) -> int:
    """Rough token estimate: one token per four bytes."""
    return byte_len(text) // 4


def chunk_document(doc: Document, max_chunk_size: int) -> Iterator[Chunk]:
    """Split one document into bounded chunks.

    Yields chunks in document order. ``chunk_index`` is ``"i"`` for a section
    emitted whole and ``"i.j"`` for piece ``j`` of section ``i``; section
    numbers count dropped sections too, so indices stay stable.
    """
    doc_type = doc.metadata.doc_type
    sections = strategy_for(doc_type).split(doc.content, max_chunk_size)

    for i, section in enumerate(sections):
        if len(section.strip()) < MIN_SECTION_CHARS:
            continue

        if estimate_tokens(section) > MAX_SECTION_TOKENS:
            pieces = split_by_lines(section, LINE_SPLIT_BYTES)
        elif byte_len(section) <= max_chunk_size:
            yield _make_chunk(doc, section, str(i))
            continue
        else:
            pieces = split_by_paragraphs(section, max_chunk_size)

        for j, piece in enumerate(pieces):
            if piece.strip():
                yield _make_chunk(doc, piece, f"{i}.{j}")


def _make_chunk(doc: Document, text: str, chunk_index: str) -> Chunk:
    return Chunk(
        text=text,
        source=doc.source,
        metadata={
            "source": doc.source,
            "type": doc.metadata.doc_type,
            "chunk_index": chunk_index,
        },
    )
