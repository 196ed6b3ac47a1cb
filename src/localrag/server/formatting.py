"""Plain-text renderings of query and index information for tool responses."""

from localrag.models import Chunk, SearchResult
from localrag.rag import QueryAnswer
from localrag.storage import MultiSourceStore, VectorStore

RULE = "=" * 80


def parse_sources(raw: str | None) -> list[str]:
    """``"a, b,,c"`` -> ``["a", "b", "c"]``."""
    if not raw:
        return []
    return [name.strip() for name in raw.split(",") if name.strip()]


def coerce_top_k(raw: object, default: int = 3) -> int:
    """Accept ints, floats and numeric strings; anything else means default."""
    if isinstance(raw, bool):
        return default
    try:
        value = int(float(raw))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


def _searching_line(store: MultiSourceStore, sources: list[str]) -> str:
    if sources:
        return f"searching {len(sources)} of {len(store.sources)} sources: {sources}"
    return f"searching all {len(store.sources)} sources: {store.list_sources()}"


def format_raw_results(
    store: MultiSourceStore, query: str, sources: list[str], results: list[SearchResult]
) -> str:
    lines = [_searching_line(store, sources), "", RULE, f"query: {query}", RULE, ""]
    lines.append(f"found {len(results)} relevant chunks:")
    lines.append("")
    for i, result in enumerate(results, 1):
        lines.append(
            f"--- chunk {i} (source: {result.chunk.source}, similarity: {result.similarity:.3f}) ---"
        )
        lines.append(result.chunk.text)
        lines.append("")
    return "\n".join(lines)


def format_answer(
    store: MultiSourceStore, query: str, sources: list[str], answer: QueryAnswer
) -> str:
    lines = [_searching_line(store, sources), "", RULE, f"question: {query}", RULE, ""]
    lines.append("answer:")
    lines.append(answer.answer or "")
    lines.append("")
    lines.append("sources:")
    for i, result in enumerate(answer.results, 1):
        lines.append(f"  [{i}] {result.chunk.source} (similarity: {result.similarity:.3f})")
    return "\n".join(lines)


def format_index_list(store: MultiSourceStore) -> str:
    if not store.sources:
        return "no indexes found. run 'lr index' to index repositories first."

    lines = [f"found {len(store.sources)} indexed repositories:", ""]
    for name in store.list_sources():
        vs = store.sources[name]
        meta = vs.metadata
        lines.append(f"- {name}")
        lines.append(f"  chunks: {len(vs)}")
        if meta.file_count:
            lines.append(f"  files: {meta.file_count}")
        if meta.source_path:
            lines.append(f"  source: {meta.source_path}")
        if meta.indexed_at:
            lines.append(f"  indexed: {meta.indexed_at}")
        lines.append("")
    return "\n".join(lines)


def find_source(store: MultiSourceStore, name: str) -> tuple[str, VectorStore] | None:
    """Exact source name first, then the first case-insensitive partial match."""
    if name in store.sources:
        return name, store.sources[name]
    needle = name.lower()
    for candidate in store.list_sources():
        if needle in candidate.lower():
            return candidate, store.sources[candidate]
    return None


def format_index_stats(name: str, vs: VectorStore) -> str:
    meta = vs.metadata
    lines = [f"index: {name}", "", f"chunks: {len(vs)}", f"files: {meta.file_count}"]
    if meta.source_path:
        lines.append(f"source path: {meta.source_path}")
    if meta.indexed_at:
        lines.append(f"indexed at: {meta.indexed_at}")
    if meta.last_commit:
        lines.append(f"git commit: {meta.last_commit}")
    if meta.embedding_model:
        lines.append(f"embedding model: {meta.embedding_model}")

    if meta.indexed_files:
        lines.append("")
        lines.append(f"indexed files ({len(meta.indexed_files)}):")
        lines.extend(f"  - {path}" for path in meta.indexed_files)

    if meta.skipped_files:
        lines.append("")
        lines.append(f"skipped files ({len(meta.skipped_files)}):")
        lines.extend(f"  - {s.path} ({s.reason})" for s in meta.skipped_files)
    return "\n".join(lines)


def format_file_matches(store: MultiSourceStore, path: str) -> str:
    by_file: dict[str, list[Chunk]] = {}
    for name in store.list_sources():
        for chunk in store.sources[name].chunks_for_path(path):
            by_file.setdefault(chunk.source, []).append(chunk)

    if not by_file:
        return f"no chunks found matching path '{path}'"

    total = sum(len(chunks) for chunks in by_file.values())
    lines = [f"found {total} chunks from {len(by_file)} files matching '{path}':", ""]
    for source in sorted(by_file):
        chunks = by_file[source]
        lines.append(f"=== {source} ({len(chunks)} chunks) ===")
        lines.append("")
        for i, chunk in enumerate(chunks, 1):
            lines.append(f"--- chunk {i} ---")
            lines.append(chunk.text)
            lines.append("")
    return "\n".join(lines)
