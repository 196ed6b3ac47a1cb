"""Protocol for source tree loaders."""

from pathlib import Path
from typing import Iterable, Protocol, runtime_checkable

from localrag.ingesters.result import LoadResult


@runtime_checkable
class Ingester(Protocol):
    """Loads documents from a source tree.

    Implementations receive the extension allow-list from their caller and
    report unreadable or excluded files as skipped rather than failing.
    """

    def scan(self, root: Path) -> LoadResult:
        """Load every eligible file under ``root``."""
        ...

    def load_files(self, root: Path, paths: Iterable[str]) -> LoadResult:
        """Load an explicit list of paths relative to ``root``."""
        ...
