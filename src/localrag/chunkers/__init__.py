"""Chunking strategies for LocalRag."""

from localrag.chunkers.code_chunker import BraceCodeChunker, IndentCodeChunker
from localrag.chunkers.document_chunker import (
    chunk_document,
    estimate_tokens,
    register_strategy,
    strategy_for,
)
from localrag.chunkers.markdown_chunker import MarkdownChunker
from localrag.chunkers.paragraph_chunker import (
    ParagraphChunker,
    split_by_lines,
    split_by_paragraphs,
)

__all__ = [
    "chunk_document",
    "estimate_tokens",
    "register_strategy",
    "strategy_for",
    "BraceCodeChunker",
    "IndentCodeChunker",
    "MarkdownChunker",
    "ParagraphChunker",
    "split_by_lines",
    "split_by_paragraphs",
]
