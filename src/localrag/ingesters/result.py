"""Result type shared by ingesters."""

from dataclasses import dataclass, field

from localrag.models import Document, SkippedFile


@dataclass
class LoadResult:
    """Documents loaded from a source tree plus what was left out."""

    documents: list[Document] = field(default_factory=list)
    skipped_files: list[SkippedFile] = field(default_factory=list)
    total_files: int = 0

    @property
    def indexed_paths(self) -> list[str]:
        """Distinct file paths (not part sources) that produced documents."""
        return sorted({doc.metadata.path for doc in self.documents})
