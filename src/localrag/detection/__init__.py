"""Change detection between a source tree and its recorded index state."""

from localrag.detection.changeset import ChangeSet
from localrag.detection.git import detect_changes_git, git_head_commit, is_git_repo
from localrag.detection.mtime import detect_changes_mtime, parse_indexed_at

__all__ = [
    "ChangeSet",
    "detect_changes_git",
    "detect_changes_mtime",
    "git_head_commit",
    "is_git_repo",
    "parse_indexed_at",
]
