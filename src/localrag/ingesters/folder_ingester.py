"""Ingester for local source folders."""

import logging
from pathlib import Path
from typing import Iterable, Iterator, Sequence

from localrag.ingesters.result import LoadResult
from localrag.models import Document, FileMetadata, SkippedFile
from localrag.utils.binary import detect_binary
from localrag.utils.walk import has_matching_extension, walk_files

logger = logging.getLogger(__name__)

# Language tags used to pick a chunking strategy
_DOC_TYPES = {
    ".go": "go",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".templ": "templ",
    ".py": "python",
    ".java": "java",
    ".c": "c",
    ".h": "c",
    ".md": "markdown",
    ".markdown": "markdown",
}

_TEST_SUFFIXES = (
    "_test.go",
    "_test.ts",
    "_test.js",
    ".test.ts",
    ".test.js",
    "_test.py",
    "Test.java",
)


def doc_type_for(path: str) -> str:
    """Return the language tag for a path, ``"text"`` when unknown."""
    return _DOC_TYPES.get(Path(path).suffix.lower(), "text")


def is_test_file(path: str) -> bool:
    name = Path(path).name
    return name.endswith(_TEST_SUFFIXES) or name.startswith("test_")


class FolderIngester:
    """Loads text documents from a local directory tree.

    Args:
        extensions: Extension allow-list supplied by the caller (e.g. ``[".go", ".md"]``)
        max_file_size: Files larger than this many bytes are skipped or split
        split_large: Split oversized files into ``"path (part N)"`` documents
            instead of skipping them
        include_tests: Index test files too (they are useful usage examples)
    """

    def __init__(
        self,
        extensions: Sequence[str],
        *,
        max_file_size: int = 100 * 1024,
        split_large: bool = False,
        include_tests: bool = True,
    ):
        self.extensions = list(extensions)
        self.max_file_size = max_file_size
        self.split_large = split_large
        self.include_tests = include_tests

    def scan(self, root: Path) -> LoadResult:
        """Load every eligible file under ``root``."""
        root = Path(root)
        result = LoadResult()

        for rel_path, full_path in walk_files(root):
            result.total_files += 1

            if not has_matching_extension(rel_path, self.extensions):
                if full_path.suffix:
                    result.skipped_files.append(
                        SkippedFile(rel_path, f"wrong extension ({full_path.suffix})")
                    )
                continue

            self._load_one(rel_path, full_path, result)

        return result

    def load_files(self, root: Path, paths: Iterable[str]) -> LoadResult:
        """Load an explicit list of relative paths (used for changed files)."""
        root = Path(root)
        result = LoadResult()

        for rel_path in paths:
            result.total_files += 1
            full_path = root / rel_path
            if not full_path.is_file():
                result.skipped_files.append(SkippedFile(rel_path, "missing"))
                continue
            self._load_one(rel_path, full_path, result)

        return result

    def _load_one(self, rel_path: str, full_path: Path, result: LoadResult) -> None:
        if not self.include_tests and is_test_file(rel_path):
            result.skipped_files.append(
                SkippedFile(rel_path, "test file", self._size_of(full_path))
            )
            return

        try:
            raw_content = full_path.read_bytes()
        except OSError as exc:
            logger.warning(f"  could not read {rel_path}: {exc}")
            result.skipped_files.append(SkippedFile(rel_path, f"read error: {exc}"))
            return

        if detect_binary(rel_path, raw_content):
            result.skipped_files.append(
                SkippedFile(rel_path, "binary file", len(raw_content))
            )
            return

        content = raw_content.decode("utf-8", errors="replace")
        doc_type = doc_type_for(rel_path)

        if len(raw_content) > self.max_file_size:
            if not self.split_large:
                result.skipped_files.append(
                    SkippedFile(
                        rel_path,
                        f"too large ({len(raw_content) // 1024}KB, max {self.max_file_size // 1024}KB)",
                        len(raw_content),
                    )
                )
                return
            parts = list(split_large_file(content, rel_path, doc_type, self.max_file_size))
            logger.info(f"  split large file: {rel_path} into {len(parts)} parts")
            result.documents.extend(parts)
            return

        result.documents.append(
            Document(
                content=content,
                source=rel_path,
                metadata=FileMetadata(
                    path=rel_path, doc_type=doc_type, size_bytes=len(raw_content)
                ),
            )
        )

    @staticmethod
    def _size_of(path: Path) -> int:
        try:
            return path.stat().st_size
        except OSError:
            return 0


def split_large_file(content: str, path: str, doc_type: str, max_size: int) -> Iterator[Document]:
    """Split an oversized file by lines into documents of at most ``max_size`` bytes."""
    buffer: list[str] = []
    buffer_size = 0
    part = 1

    def make(text: str, number: int) -> Document:
        return Document(
            content=text,
            source=f"{path} (part {number})",
            metadata=FileMetadata(
                path=path, doc_type=doc_type, size_bytes=len(text.encode("utf-8")), part=number
            ),
        )

    for line in content.split("\n"):
        line_size = len(line.encode("utf-8")) + 1
        if buffer and buffer_size + line_size > max_size:
            yield make("\n".join(buffer) + "\n", part)
            buffer, buffer_size = [], 0
            part += 1
        buffer.append(line)
        buffer_size += line_size

    if buffer:
        yield make("\n".join(buffer) + "\n", part)
