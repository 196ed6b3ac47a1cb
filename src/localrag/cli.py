"""CLI entry point for LocalRag (``lr``)."""

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import Literal, Optional, cast

from localrag.config import Settings, config_dir, env_file_path
from localrag.errors import LocalRagError
from localrag.indexing import Indexer, watch
from localrag.models import IndexMetadata
from localrag.storage import (
    StoreHandle,
    VectorStore,
    directory_factory,
    find_existing_index,
    index_file_name,
    latest_by_source,
)

logger = logging.getLogger(__name__)


def _embedder(settings: Settings):
    # Import here to avoid loading torch for commands that never embed
    from localrag.embedders import SentenceTransformerEmbedder

    logger.info(f"loading embedding model {settings.embedding_model}...")
    return SentenceTransformerEmbedder(settings.embedding_model)


def _resolve_output(args: argparse.Namespace, settings: Settings, source: Path) -> tuple[str, Path]:
    """Index name and output path from --out / --out-name (source dir name by default)."""
    if args.out:
        out = Path(args.out)
        return out.stem, out
    name = args.out_name or source.resolve().name
    return name, settings.index_dir / index_file_name(name)


def _recorded_extensions(metadata: IndexMetadata, settings: Settings) -> list[str]:
    """The allow-list an index was built with (older indexes: the defaults)."""
    return metadata.extensions or settings.extensions()


def index(args: argparse.Namespace, settings: Settings) -> None:
    """Build or incrementally update one index."""
    source = Path(args.src)
    if not source.is_dir():
        logger.error(f"source directory not found: {source}")
        sys.exit(1)

    extensions = settings.extensions(code=args.code, docs=args.docs)
    if not extensions:
        logger.error("nothing to index: both --no-code and --no-docs given")
        sys.exit(1)

    name, output = _resolve_output(args, settings, source)
    existing = Path(args.out) if args.out else find_existing_index(settings.index_dir, name)
    if args.update and (existing is None or not existing.exists()):
        logger.error(f"cannot update: no existing index for {name} in {settings.index_dir}")
        sys.exit(1)

    use_git: Optional[bool] = True if args.git else None

    if args.dry_run:
        _dry_run(args, settings, source, extensions, existing if args.update else None, use_git)
        return

    indexer = Indexer.from_settings(_embedder(settings), settings, extensions)
    if args.update:
        logger.info(f"found existing index: {existing.name}")
        result = indexer.refresh(source, existing, output, use_git)
    else:
        result = indexer.build(source, output, review=args.review)

    if result.committed:
        logger.info(
            f"done: {result.new_chunks} new chunks, {result.removed_chunks} removed, "
            f"{result.total_chunks} total -> {result.index_path}"
        )


def _dry_run(
    args: argparse.Namespace,
    settings: Settings,
    source: Path,
    extensions: list[str],
    existing: Optional[Path],
    use_git: Optional[bool],
) -> None:
    # Planning never embeds, so no provider is loaded
    indexer = Indexer.from_settings(_NoEmbedder(), settings, extensions, show_progress=False)
    if existing is not None:
        changes = indexer.plan(source, existing, use_git)
        print(f"changes since last index: {changes.summary()}")
        for label, paths in (("+", changes.added), ("~", changes.modified), ("-", changes.deleted)):
            for path in paths:
                print(f"  {label} {path}")
        return

    loaded = indexer.ingester.scan(source)
    print(f"would index {len(loaded.documents)} documents from {loaded.total_files} files")
    for path in loaded.indexed_paths:
        print(f"  {path}")
    if loaded.skipped_files:
        print()
        print(f"skipped {len(loaded.skipped_files)} files:")
        for skipped in loaded.skipped_files:
            print(f"  {skipped.path} ({skipped.reason})")


class _NoEmbedder:
    """Stand-in provider for commands that only plan."""

    model_name = "none"

    def get_embedding(self, text: str) -> list[float]:
        raise LocalRagError("dry run does not embed")


def update_all(args: argparse.Namespace, settings: Settings) -> None:
    """Incrementally update every index that records its source path."""
    indexes = latest_by_source(settings.index_dir)
    if not indexes:
        print("no indexes found. run 'lr index' to index repositories first.")
        return

    embedder = _embedder(settings)
    updated = failed = 0
    for name, path in sorted(indexes.items()):
        try:
            metadata = VectorStore.load(path).metadata
        except LocalRagError as exc:
            logger.error(f"skipping {name}: {exc}")
            failed += 1
            continue
        source_path = metadata.source_path
        if not source_path:
            logger.warning(f"skipping {name}: no recorded source path")
            continue

        logger.info(f"=== updating {name} ===")
        output = settings.index_dir / index_file_name(name)
        indexer = Indexer.from_settings(embedder, settings, _recorded_extensions(metadata, settings))
        try:
            indexer.refresh(source_path, path, output, True if args.git else None)
        except LocalRagError as exc:
            logger.error(f"failed to update {name}: {exc}")
            failed += 1
            continue
        updated += 1

    print(f"updated: {updated}")
    print(f"failed: {failed}")


def query(args: argparse.Namespace, settings: Settings) -> None:
    """Print the chunks most similar to a question."""
    from localrag.rag import RAGEngine
    from localrag.server.formatting import parse_sources

    handle = StoreHandle(directory_factory(settings.index_dir))
    store = handle.get()
    if not store.sources:
        logger.error("no vector stores found. run 'lr index' to index repositories first")
        sys.exit(1)

    sources = parse_sources(args.sources)
    engine = RAGEngine(handle, _embedder(settings))
    answer = engine.query(" ".join(args.question), args.top_k or settings.top_k, sources)

    print(f"searching {len(sources) or len(store.sources)} sources")
    for i, result in enumerate(answer.results, 1):
        print()
        print(f"--- [{i}] {result.chunk.source} ({result.source_name}, similarity: {result.similarity:.3f}) ---")
        print(result.chunk.text)


def list_indexes(args: argparse.Namespace, settings: Settings) -> None:
    from localrag.server.formatting import format_index_list

    handle = StoreHandle(directory_factory(settings.index_dir))
    print(format_index_list(handle.get()))


def info(args: argparse.Namespace, settings: Settings) -> None:
    """Show information about one index file or index name."""
    from localrag.server.formatting import format_index_stats

    path = Path(args.index)
    if not path.exists():
        path = find_existing_index(settings.index_dir, args.index)
        if path is None:
            logger.error(f"index not found: {args.index}")
            sys.exit(1)

    store = VectorStore.load(path)
    print(f"file: {path} ({path.stat().st_size / 1024:.1f} KB)")
    print(format_index_stats(path.name, store))


def watch_source(args: argparse.Namespace, settings: Settings) -> None:
    """Keep an index in sync with a source tree until interrupted."""
    source = Path(args.src)
    if not source.is_dir():
        logger.error(f"source directory not found: {source}")
        sys.exit(1)

    name, output = _resolve_output(args, settings, source)
    existing = Path(args.out) if args.out else find_existing_index(settings.index_dir, name)
    if existing is not None and existing.exists():
        extensions = _recorded_extensions(VectorStore.load(existing).metadata, settings)
    else:
        extensions = settings.extensions()
    indexer = Indexer.from_settings(_embedder(settings), settings, extensions)

    if existing is None or not existing.exists():
        indexer.build(source, output)
        existing = output
    else:
        indexer.refresh(source, existing)

    stop = threading.Event()
    try:
        watch(
            indexer,
            source,
            existing,
            debounce=settings.watch_debounce,
            poll_interval=settings.poll_interval,
            stop=stop,
        )
    except KeyboardInterrupt:
        stop.set()
        logger.info("stopped watching")


def serve(args: argparse.Namespace, settings: Settings) -> None:
    """Start the MCP server over every index in the index directory."""
    # Import here to avoid loading MCP unless needed
    from localrag.server import create_mcp_server

    handle = StoreHandle(directory_factory(settings.index_dir))
    if not args.no_preload:
        store = handle.reload()
        logger.info(f"preloaded {len(store.sources)} sources")

    if hasattr(signal, "SIGUSR1"):
        signal.signal(signal.SIGUSR1, lambda signum, frame: handle.reload())

    mcp = create_mcp_server(handle, _embedder(settings), default_top_k=settings.top_k)
    logger.info(f"serving {settings.index_dir} via {args.transport}")
    mcp.run(transport=cast(Literal["stdio", "sse", "streamable-http"], args.transport))


def paths(args: argparse.Namespace, settings: Settings) -> None:
    print(f"indexes:  {settings.index_dir}")
    print(f"config:   {config_dir()}")
    print(f"env file: {env_file_path()}")


def _add_source_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--src", required=True, help="Source directory to index")
    out = parser.add_mutually_exclusive_group()
    out.add_argument("--out", help="Exact output path (e.g. indexes/myindex.lrindex)")
    out.add_argument("--out-name", help="Output name, saved as {name}_YYYYMMDD.lrindex")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lr",
        description="LocalRag - incremental semantic search over your repositories",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--embedding-model", help="sentence-transformers model name")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # index command
    index_parser = subparsers.add_parser("index", help="Index a source directory")
    _add_source_args(index_parser)
    index_parser.add_argument(
        "--update", action="store_true", help="Incrementally update the existing index"
    )
    index_parser.add_argument(
        "--git", action="store_true", help="Use git to detect changes (default: file mtime)"
    )
    index_parser.add_argument(
        "--dry-run", action="store_true", help="Show what would be indexed without embedding"
    )
    index_parser.add_argument(
        "--no-code", dest="code", action="store_false", help="Skip code files"
    )
    index_parser.add_argument(
        "--no-docs", dest="docs", action="store_false", help="Skip documentation files"
    )
    index_parser.add_argument(
        "--max-file-size", type=int, help="Maximum file size in bytes (default: 102400)"
    )
    index_parser.add_argument(
        "--split-large", action="store_true", help="Split large files instead of skipping them"
    )
    index_parser.add_argument(
        "--no-tests", dest="include_tests", action="store_false", help="Skip test files"
    )
    index_parser.add_argument(
        "--review", action="store_true", help="Mark the index as a temporary review index"
    )

    # update-all command
    update_all_parser = subparsers.add_parser(
        "update-all", help="Incrementally update every index with a recorded source"
    )
    update_all_parser.add_argument(
        "--git", action="store_true", help="Use git to detect changes (default: file mtime)"
    )

    # query command
    query_parser = subparsers.add_parser("query", help="Search the indexed repositories")
    query_parser.add_argument("question", nargs="+", help="Question to search for")
    query_parser.add_argument("--top-k", type=int, help="Number of chunks to retrieve")
    query_parser.add_argument("--sources", help="Comma-separated index names to search")

    subparsers.add_parser("list", help="List indexed repositories")

    info_parser = subparsers.add_parser("info", help="Show information about an index")
    info_parser.add_argument("index", help="Index file path or index name")

    # watch command
    watch_parser = subparsers.add_parser("watch", help="Update an index as files change")
    _add_source_args(watch_parser)

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Start the MCP server")
    serve_parser.add_argument(
        "--transport",
        choices=["stdio", "sse"],
        default="stdio",
        help="Transport protocol (default: stdio)",
    )
    serve_parser.add_argument(
        "--no-preload", action="store_true", help="Load indexes on first request instead of at start"
    )

    subparsers.add_parser("paths", help="Show data and config directories")
    return parser


COMMANDS = {
    "index": index,
    "update-all": update_all,
    "query": query,
    "list": list_indexes,
    "info": info,
    "watch": watch_source,
    "serve": serve,
    "paths": paths,
}


def main(argv: Optional[list[str]] = None) -> None:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(message)s",
        # stdout belongs to the MCP transport when serving
        stream=sys.stderr,
    )

    settings = Settings.from_env().with_overrides(
        embedding_model=args.embedding_model,
        max_file_size=getattr(args, "max_file_size", None),
        split_large=getattr(args, "split_large", None) or None,
        include_tests=getattr(args, "include_tests", None),
    )

    try:
        COMMANDS[args.command](args, settings)
    except LocalRagError as exc:
        logger.error(f"error: {exc}")
        sys.exit(1)


if __name__ == "__main__":
    main()
