"""Full and incremental index builds.

An update runs DETECT -> REMOVE-STALE -> LOAD-CHANGED -> CHUNK -> EMBED ->
COMMIT. Embedding is checkpointed every ``checkpoint_interval`` chunks so a
crash loses at most that many embeddings, and the commit goes through
``atomic_save`` so the previous index survives any failure.
"""

import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional, Sequence

from tqdm.auto import tqdm

from localrag.chunkers import chunk_document, estimate_tokens
from localrag.config import Settings
from localrag.detection import (
    ChangeSet,
    detect_changes_git,
    detect_changes_mtime,
    git_head_commit,
    is_git_repo,
    parse_indexed_at,
)
from localrag.errors import (
    DetectionError,
    PersistenceError,
    ProviderError,
    SourceNotFoundError,
)
from localrag.ingesters import FolderIngester, LoadResult
from localrag.models import Chunk, Document, base_path
from localrag.protocols import EmbeddingProvider, Ingester
from localrag.storage import VectorStore, atomic_save, checkpoint_path, save_checkpoint
from localrag.utils.walk import has_matching_extension

logger = logging.getLogger(__name__)

_FILENAME_DATE = re.compile(r"_(\d{8})\.[^.]+$")


@dataclass
class IndexResult:
    """Outcome of one build or update run."""

    index_path: Path
    changes: ChangeSet = field(default_factory=ChangeSet)
    removed_chunks: int = 0
    new_chunks: int = 0
    resumed_from: int = 0
    total_chunks: int = 0
    committed: bool = False
    skipped_files: int = 0


class Indexer:
    """Builds and incrementally maintains one index file.

    Args:
        embedder: Provider used for every new chunk, one request at a time
        extensions: Extension allow-list used for scanning and change detection
        chunk_size: Maximum chunk size in bytes
        checkpoint_interval: Save the in-progress store every N new chunks
        request_delay: Pause between embedding requests, in seconds
        ingester: Loader for source files; a FolderIngester by default
        show_progress: Display a progress bar while embedding
    """

    def __init__(
        self,
        embedder: EmbeddingProvider,
        extensions: Sequence[str],
        *,
        chunk_size: int = 1500,
        checkpoint_interval: int = 100,
        request_delay: float = 0.05,
        ingester: Optional[Ingester] = None,
        show_progress: bool = False,
    ):
        if checkpoint_interval < 1:
            raise ValueError("checkpoint_interval must be at least 1")
        self.embedder = embedder
        self.extensions = list(extensions)
        self.chunk_size = chunk_size
        self.checkpoint_interval = checkpoint_interval
        self.request_delay = request_delay
        self.ingester = ingester or FolderIngester(self.extensions)
        self.show_progress = show_progress

    @classmethod
    def from_settings(
        cls,
        embedder: EmbeddingProvider,
        settings: Settings,
        extensions: Sequence[str],
        show_progress: bool = True,
    ) -> "Indexer":
        ingester = FolderIngester(
            extensions,
            max_file_size=settings.max_file_size,
            split_large=settings.split_large,
            include_tests=settings.include_tests,
        )
        return cls(
            embedder,
            extensions,
            chunk_size=settings.chunk_size,
            checkpoint_interval=settings.checkpoint_interval,
            request_delay=settings.request_delay,
            ingester=ingester,
            show_progress=show_progress,
        )

    # Public operations

    def build(self, source_dir: Path | str, output_path: Path | str, review: bool = False) -> IndexResult:
        """Index every eligible file under ``source_dir`` from scratch.

        An interrupted build resumes from its checkpoint when rerun with the
        same output path.
        """
        started = _now()
        source_dir = self._require_source(source_dir)
        output_path = Path(output_path)
        head = self._head_commit(source_dir)

        logger.info(f"scanning files from {source_dir}...")
        loaded = self.ingester.scan(source_dir)
        logger.info(
            f"found {loaded.total_files} files: {len(loaded.documents)} to index, "
            f"{len(loaded.skipped_files)} skipped"
        )

        chunks = self._chunk(loaded.documents)
        store = VectorStore()
        store.metadata.is_review = review
        ckpt = checkpoint_path(output_path)
        resumed = self._embed(store, chunks, ckpt)

        store.metadata.indexed_files = loaded.indexed_paths
        store.metadata.skipped_files = list(loaded.skipped_files)
        self._commit(store, source_dir, output_path, ckpt, started, head)

        return IndexResult(
            index_path=output_path,
            changes=ChangeSet(added=loaded.indexed_paths),
            new_chunks=len(chunks),
            resumed_from=resumed,
            total_chunks=len(store),
            committed=True,
            skipped_files=len(loaded.skipped_files),
        )

    def plan(
        self, source_dir: Path | str, index_path: Path | str, use_git: Optional[bool] = None
    ) -> ChangeSet:
        """Detect what an update would do, without touching anything."""
        source_dir = self._require_source(source_dir)
        index_path = Path(index_path)
        store = self._load_existing(index_path)
        return self._detect(store, source_dir, index_path, use_git)

    def update(
        self,
        source_dir: Path | str,
        index_path: Path | str,
        output_path: Path | str | None = None,
        use_git: Optional[bool] = None,
    ) -> IndexResult:
        """Bring an existing index up to date with its source tree.

        Args:
            source_dir: Source tree the index was built from
            index_path: Existing index file
            output_path: Where to commit the result (``index_path`` by default)
            use_git: Force (True) or forbid (False) git-based detection;
                by default git is used when the index recorded a commit and
                the source is a git checkout

        Raises:
            DetectionError: changes could not be detected; nothing was modified
            ProviderError: embedding failed; rerun to resume from the checkpoint
            ValidationError: the new index failed validation; the old one is intact
        """
        started = _now()
        source_dir = self._require_source(source_dir)
        index_path = Path(index_path)
        output_path = Path(output_path) if output_path else index_path
        head = self._head_commit(source_dir)

        store = self._load_existing(index_path)
        self._check_model(store, index_path)
        changes = self._detect(store, source_dir, index_path, use_git)
        logger.info(f"changes detected: {changes.summary()}")

        if not changes.has_changes:
            logger.info("no changes detected - index is up to date")
            return IndexResult(index_path=index_path, changes=changes, total_chunks=len(store))

        return self._apply(store, source_dir, changes, output_path, started, head)

    def refresh(
        self,
        source_dir: Path | str,
        index_path: Path | str,
        output_path: Path | str | None = None,
        use_git: Optional[bool] = None,
    ) -> IndexResult:
        """``update``, falling back to a full rebuild when detection fails."""
        try:
            return self.update(source_dir, index_path, output_path, use_git)
        except DetectionError as exc:
            logger.warning(f"change detection failed ({exc}); rebuilding from scratch")
            return self.build(source_dir, output_path or index_path)

    def apply_batch(
        self,
        source_dir: Path | str,
        index_path: Path | str,
        paths: Iterable[str],
    ) -> IndexResult:
        """Apply an explicit batch of touched paths (watch mode).

        Each path is classified against the index: present on disk and
        indexed is modified, present and new is added, gone but indexed is
        deleted. The batch then goes through the normal update path.
        """
        started = _now()
        source_dir = self._require_source(source_dir)
        index_path = Path(index_path)
        head = self._head_commit(source_dir)

        store = self._load_existing(index_path) if index_path.exists() else VectorStore()
        self._check_model(store, index_path)
        indexed = set(store.metadata.indexed_files)

        changes = ChangeSet()
        for rel_path in sorted(set(paths)):
            if not has_matching_extension(rel_path, self.extensions):
                continue
            if (source_dir / rel_path).is_file():
                (changes.modified if rel_path in indexed else changes.added).append(rel_path)
            elif rel_path in indexed:
                changes.deleted.append(rel_path)

        if not changes.has_changes:
            return IndexResult(index_path=index_path, changes=changes, total_chunks=len(store))
        return self._apply(store, source_dir, changes, index_path, started, head)

    # Steps

    def _apply(
        self,
        store: VectorStore,
        source_dir: Path,
        changes: ChangeSet,
        output_path: Path,
        started: datetime,
        head: Optional[str],
    ) -> IndexResult:
        metadata = store.metadata

        # REMOVE-STALE: a modified file's old and new chunks must never coexist
        stale = self._stale_sources(store, changes.removed_files)
        removed = store.remove_by_source(stale)
        if changes.removed_files:
            logger.info(
                f"removed {removed} chunks from {len(changes.removed_files)} changed/deleted files"
            )

        # LOAD-CHANGED + CHUNK
        loaded: LoadResult = self.ingester.load_files(source_dir, changes.changed_files)
        new_chunks = self._chunk(loaded.documents)

        # EMBED
        ckpt = checkpoint_path(output_path)
        resumed = self._embed(store, new_chunks, ckpt)

        # COMMIT
        touched = set(changes.removed_files) | set(changes.changed_files)
        indexed = (set(metadata.indexed_files) - set(changes.removed_files)) | set(
            loaded.indexed_paths
        )
        metadata.indexed_files = sorted(indexed)
        metadata.skipped_files = [
            s
            for s in metadata.skipped_files
            if s.path not in touched and (source_dir / s.path).exists()
        ] + list(loaded.skipped_files)
        self._commit(store, source_dir, output_path, ckpt, started, head)

        return IndexResult(
            index_path=output_path,
            changes=changes,
            removed_chunks=removed,
            new_chunks=len(new_chunks),
            resumed_from=resumed,
            total_chunks=len(store),
            committed=True,
            skipped_files=len(loaded.skipped_files),
        )

    def _detect(
        self,
        store: VectorStore,
        source_dir: Path,
        index_path: Path,
        use_git: Optional[bool],
    ) -> ChangeSet:
        metadata = store.metadata
        git_checkout = is_git_repo(source_dir)
        if use_git is None:
            use_git = bool(metadata.last_commit) and git_checkout

        if use_git:
            if not git_checkout:
                raise DetectionError("not a git repository", {"path": str(source_dir)})
            if not metadata.last_commit:
                raise DetectionError(
                    "existing index has no recorded commit - full re-index required",
                    {"index": str(index_path)},
                )
            logger.info(f"detecting changes since commit {metadata.last_commit[:8]}...")
            return detect_changes_git(source_dir, metadata.last_commit, self.extensions)

        indexed_at = self._indexed_at(store, index_path)
        logger.info(f"detecting changes since {indexed_at:%Y-%m-%d %H:%M:%S}...")
        return detect_changes_mtime(
            source_dir,
            indexed_at,
            metadata.indexed_files,
            self.extensions,
            skipped_files=[s.path for s in metadata.skipped_files],
        )

    def _chunk(self, documents: list[Document]) -> list[Chunk]:
        chunks: list[Chunk] = []
        for doc in documents:
            chunks.extend(chunk_document(doc, self.chunk_size))
        logger.info(f"created {len(chunks)} chunks from {len(documents)} documents")
        return chunks

    def _embed(self, store: VectorStore, new_chunks: list[Chunk], ckpt: Path) -> int:
        """Embed ``new_chunks`` into ``store``, checkpointing as it goes.

        Returns:
            How many new chunks were recovered from an existing checkpoint.
        """
        start = self._resume_point(store, new_chunks, ckpt)
        if start == len(new_chunks):
            return start

        with tqdm(
            total=len(new_chunks),
            initial=start,
            desc="resuming embeddings" if start else "generating embeddings",
            unit="chunk",
            disable=not self.show_progress,
        ) as bar:
            for i in range(start, len(new_chunks)):
                chunk = new_chunks[i]
                try:
                    embedding = self.embedder.get_embedding(chunk.text)
                except Exception as exc:
                    raise ProviderError(
                        f"failed to get embedding for chunk {i}: {exc}",
                        {
                            "chunk_index": i,
                            "source": chunk.source,
                            "chars": len(chunk.text),
                            "estimated_tokens": estimate_tokens(chunk.text),
                        },
                    ) from exc

                store.add(chunk, embedding)
                bar.update(1)

                if (i + 1) % self.checkpoint_interval == 0:
                    save_checkpoint(store, ckpt)

                if self.request_delay and i + 1 < len(new_chunks):
                    time.sleep(self.request_delay)

        return start

    def _resume_point(self, store: VectorStore, new_chunks: list[Chunk], ckpt: Path) -> int:
        """Adopt a checkpoint left by an interrupted run, if it fits this run.

        The checkpoint must hold exactly the chunks already in ``store``
        followed by a prefix of ``new_chunks``. Anything else (a checkpoint
        from another kind of run, or one written before chunking changed)
        is ignored and embedding starts over.
        """
        if not ckpt.exists():
            return 0

        try:
            checkpoint = VectorStore.load(ckpt)
        except PersistenceError as exc:
            logger.warning(f"could not load checkpoint, starting over: {exc}")
            return 0

        base = len(store)
        done = len(checkpoint) - base
        if (
            not 0 <= done <= len(new_chunks)
            or checkpoint.chunks[:base] != store.chunks
            or checkpoint.chunks[base:] != new_chunks[:done]
        ):
            logger.warning(f"checkpoint {ckpt.name} does not match this run, starting over")
            return 0

        store.chunks = checkpoint.chunks
        store.embeddings = checkpoint.embeddings
        logger.info(f"found checkpoint, resuming from chunk {done}/{len(new_chunks)}")
        return done

    def _commit(
        self,
        store: VectorStore,
        source_dir: Path,
        output_path: Path,
        ckpt: Path,
        started: datetime,
        head: Optional[str],
    ) -> None:
        metadata = store.metadata
        metadata.source_path = str(source_dir.resolve())
        metadata.indexed_at = started.isoformat()
        metadata.chunk_count = len(store)
        metadata.file_count = len(metadata.indexed_files)
        metadata.embedding_model = self.embedder.model_name
        metadata.extensions = list(self.extensions)
        if head:
            metadata.last_commit = head

        output_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"saving {output_path.name}...")
        atomic_save(store, output_path)

        # Only a committed index makes the checkpoint redundant
        ckpt.unlink(missing_ok=True)
        logger.info(f"index committed ({len(store)} chunks, {metadata.file_count} files)")

    # Helpers

    @staticmethod
    def _require_source(source_dir: Path | str) -> Path:
        source_dir = Path(source_dir)
        if not source_dir.is_dir():
            raise SourceNotFoundError("source directory not found", {"path": str(source_dir)})
        return source_dir

    def _check_model(self, store: VectorStore, index_path: Path) -> None:
        # Vectors from different models share no space, so they never mix in one index
        recorded = store.metadata.embedding_model
        if recorded and recorded != self.embedder.model_name:
            raise DetectionError(
                "index was built with a different embedding model - full re-index required",
                {
                    "index": str(index_path),
                    "recorded": recorded,
                    "current": self.embedder.model_name,
                },
            )

    @staticmethod
    def _head_commit(source_dir: Path) -> Optional[str]:
        if not is_git_repo(source_dir):
            return None
        try:
            return git_head_commit(source_dir)
        except DetectionError as exc:
            # e.g. a repository without any commits yet
            logger.debug(f"no HEAD commit recorded: {exc}")
            return None

    @staticmethod
    def _load_existing(index_path: Path) -> VectorStore:
        store = VectorStore.load(index_path)
        metadata = store.metadata
        # Indexes written before indexed_files existed: recover it from chunks
        if not metadata.indexed_files and store.chunks:
            metadata.indexed_files = sorted({base_path(src) for src in store.indexed_sources()})
            logger.info(f"migrated index: found {len(metadata.indexed_files)} indexed files from chunks")
        return store

    @staticmethod
    def _stale_sources(store: VectorStore, paths: list[str]) -> set[str]:
        """Chunk sources to drop for ``paths``, including split-file parts."""
        wanted = set(paths)
        return wanted | {src for src in store.indexed_sources() if base_path(src) in wanted}

    @staticmethod
    def _indexed_at(store: VectorStore, index_path: Path) -> datetime:
        if store.metadata.indexed_at:
            return parse_indexed_at(store.metadata.indexed_at)
        # Legacy indexes: date from name_YYYYMMDD.lrindex, else the file mtime
        match = _FILENAME_DATE.search(index_path.name)
        if match:
            return datetime.strptime(match.group(1), "%Y%m%d")
        return datetime.fromtimestamp(index_path.stat().st_mtime)


def _now() -> datetime:
    return datetime.now(timezone.utc).astimezone()
