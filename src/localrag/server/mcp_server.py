"""FastMCP server exposing the indexed repositories as tools."""

import logging
from typing import Optional

from mcp.server.fastmcp import FastMCP

from localrag.errors import LocalRagError
from localrag.protocols import ChatProvider, EmbeddingProvider
from localrag.rag import RAGEngine
from localrag.server.formatting import (
    coerce_top_k,
    find_source,
    format_answer,
    format_file_matches,
    format_index_list,
    format_index_stats,
    format_raw_results,
    parse_sources,
)
from localrag.storage import StoreHandle

logger = logging.getLogger(__name__)

NO_INDEXES = "no vector stores found. run 'lr index' to index repositories first"


def create_mcp_server(
    handle: StoreHandle,
    embedder: EmbeddingProvider,
    chat: Optional[ChatProvider] = None,
    default_top_k: int = 3,
) -> FastMCP:
    """Create an MCP server over every index behind ``handle``.

    The handle may be reloaded at any time (e.g. after ``lr index``); each
    tool call works on whichever complete store is current when it starts.

    Args:
        handle: Swappable reference to the loaded indexes
        embedder: Provider used to embed queries
        chat: Optional chat provider for synthesized answers
        default_top_k: Results per query when the caller gives none

    Returns:
        Configured FastMCP server instance
    """
    mcp = FastMCP(name="localrag")
    engine = RAGEngine(handle, embedder, chat)

    @mcp.tool()
    def query_repositories(
        query: str, top_k: int = default_top_k, synthesize: bool = True, sources: str = ""
    ) -> str:
        """Search indexed repositories and documentation by meaning.

        Args:
            query: Natural language question or description of what you're looking for
            top_k: Number of chunks to retrieve (default: 3)
            synthesize: Ask the chat model for an answer instead of raw chunks
            sources: Optional comma-separated index names to restrict the search

        Returns:
            A synthesized answer with its sources, or the raw ranked chunks
        """
        store = handle.get()
        if not store.sources:
            return f"Error: {NO_INDEXES}"

        names = parse_sources(sources)
        k = coerce_top_k(top_k, default_top_k)
        try:
            if synthesize and chat is not None:
                answer = engine.query(query, k, names)
                return format_answer(store, query, names, answer)
            results = engine.retrieve(query, k, names)
        except LocalRagError as exc:
            logger.error(f"query failed: {exc}")
            return f"Error: query failed: {exc}"
        return format_raw_results(store, query, names, results)

    @mcp.tool()
    def list_indexes() -> str:
        """List every indexed repository with chunk and file counts."""
        return format_index_list(handle.get())

    @mcp.tool()
    def get_index_stats(name: str) -> str:
        """Show details of one index: files, skipped files, commit.

        Args:
            name: Index name; a partial name matches the first index containing it
        """
        store = handle.get()
        found = find_source(store, name)
        if found is None:
            return f"Error: index '{name}' not found. available: {store.list_sources()}"
        return format_index_stats(*found)

    @mcp.tool()
    def search_by_file(path: str) -> str:
        """Return every indexed chunk whose source path contains ``path``.

        Args:
            path: File path or fragment (case-insensitive), e.g. "storage/handle"
        """
        if not path:
            return "Error: path parameter is required"
        return format_file_matches(handle.get(), path)

    @mcp.tool()
    def reload_indexes() -> str:
        """Reload all indexes from disk, picking up newly committed files."""
        store = handle.reload()
        return f"reloaded {len(store.sources)} indexes: {store.list_sources()}"

    return mcp
