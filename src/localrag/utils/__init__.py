"""Utility functions for LocalRag."""

from localrag.utils.binary import detect_binary
from localrag.utils.walk import SKIP_DIRS, has_matching_extension, walk_files

__all__ = ["detect_binary", "has_matching_extension", "walk_files", "SKIP_DIRS"]
