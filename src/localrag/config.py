"""Runtime configuration for LocalRag."""

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_CODE_EXTENSIONS = [".go", ".js", ".ts", ".jsx", ".tsx", ".templ", ".py", ".java", ".c", ".h"]
DEFAULT_DOC_EXTENSIONS = [".md"]


def data_dir() -> Path:
    """Index storage directory, following the XDG base directory layout."""
    data_home = os.environ.get("XDG_DATA_HOME")
    if data_home:
        return Path(data_home) / "lr" / "indexes"
    return Path.home() / ".local" / "share" / "lr" / "indexes"


def config_dir() -> Path:
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        return Path(config_home) / "lr"
    return Path.home() / ".config" / "lr"


def env_file_path() -> Path:
    """``.env`` in the working directory wins over ``<config_dir>/env``."""
    local = Path(".env")
    if local.exists():
        return local
    return config_dir() / "env"


@dataclass
class Settings:
    """Indexing and retrieval configuration.

    Attributes:
        index_dir: Where index files are stored
        chunk_size: Maximum chunk size in bytes
        checkpoint_interval: Persist a checkpoint every N embedded chunks
        request_delay: Seconds to wait between embedding requests (rate limiting)
        max_file_size: Files above this many bytes are skipped or split
        split_large: Split oversized files instead of skipping them
        include_tests: Index test files
        code_extensions: Default allow-list for source code
        doc_extensions: Default allow-list for documentation
        embedding_model: sentence-transformers model name
        top_k: Default number of chunks to retrieve
        watch_debounce: Quiet period before a watch batch is flushed (seconds)
        poll_interval: How often watch mode rescans the tree (seconds)
    """

    index_dir: Path = field(default_factory=data_dir)
    chunk_size: int = 1500
    checkpoint_interval: int = 100
    request_delay: float = 0.05
    max_file_size: int = 100 * 1024
    split_large: bool = False
    include_tests: bool = True
    code_extensions: list[str] = field(default_factory=lambda: list(DEFAULT_CODE_EXTENSIONS))
    doc_extensions: list[str] = field(default_factory=lambda: list(DEFAULT_DOC_EXTENSIONS))
    embedding_model: str = "all-MiniLM-L6-v2"
    top_k: int = 3
    watch_debounce: float = 0.5
    poll_interval: float = 1.0

    def extensions(self, code: bool = True, docs: bool = True) -> list[str]:
        """Allow-list for an indexing run."""
        selected: list[str] = []
        if code:
            selected.extend(self.code_extensions)
        if docs:
            selected.extend(self.doc_extensions)
        return selected

    def with_overrides(self, **changes) -> "Settings":
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "Settings":
        """Build settings from ``LR_*`` environment variables.

        A ``.env`` file is loaded first when present; variables already set
        in the environment take precedence over it.
        """
        env_file = env_file or env_file_path()
        if env_file.exists():
            load_dotenv(env_file, override=False)
            logger.debug(f"loaded environment from {env_file}")

        settings = cls()
        overrides: dict = {}
        if os.environ.get("LR_INDEX_DIR"):
            overrides["index_dir"] = Path(os.environ["LR_INDEX_DIR"]).expanduser()
        if os.environ.get("LR_EMBEDDING_MODEL"):
            overrides["embedding_model"] = os.environ["LR_EMBEDDING_MODEL"]
        for name, cast in (
            ("chunk_size", int),
            ("checkpoint_interval", int),
            ("request_delay", float),
            ("max_file_size", int),
            ("top_k", int),
        ):
            raw = os.environ.get(f"LR_{name.upper()}")
            if raw:
                overrides[name] = cast(raw)
        return replace(settings, **overrides)
