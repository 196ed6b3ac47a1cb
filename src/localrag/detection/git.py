"""Git-based change detection."""

import logging
import subprocess
from pathlib import Path
from typing import Sequence

from localrag.detection.changeset import ChangeSet
from localrag.errors import DetectionError
from localrag.utils.walk import has_matching_extension

logger = logging.getLogger(__name__)


def _git(repo_dir: Path | str, *args: str) -> str:
    try:
        completed = subprocess.run(
            ["git", *args],
            cwd=repo_dir,
            capture_output=True,
            text=True,
            check=True,
        )
    except FileNotFoundError as exc:
        raise DetectionError("git executable not found", {"repo": str(repo_dir)}) from exc
    except subprocess.CalledProcessError as exc:
        raise DetectionError(
            f"git {args[0]} failed: {exc.stderr.strip()}",
            {"repo": str(repo_dir), "args": list(args)},
        ) from exc
    return completed.stdout


def is_git_repo(path: Path | str) -> bool:
    """Check whether ``path`` is inside a git work tree."""
    if not Path(path).is_dir():
        return False
    try:
        return _git(path, "rev-parse", "--is-inside-work-tree").strip() == "true"
    except DetectionError:
        return False


def git_head_commit(repo_dir: Path | str) -> str:
    """Return the full hash of HEAD."""
    return _git(repo_dir, "rev-parse", "HEAD").strip()


def detect_changes_git(
    repo_dir: Path | str, last_commit: str, extensions: Sequence[str]
) -> ChangeSet:
    """Diff ``last_commit`` against HEAD.

    Paths are relative to ``repo_dir`` (which may be a subdirectory of the
    work tree). Renames become delete-old plus add-new.

    Raises:
        DetectionError: no commit was recorded, or the recorded commit is
            missing or no longer an ancestor of HEAD (rewritten history);
            callers should fall back to a full re-index
    """
    if not last_commit:
        raise DetectionError("no last commit recorded - full re-index required")

    try:
        _git(repo_dir, "cat-file", "-e", f"{last_commit}^{{commit}}")
        _git(repo_dir, "merge-base", "--is-ancestor", last_commit, "HEAD")
    except DetectionError as exc:
        raise DetectionError(
            "recorded commit is not reachable from HEAD - history was rewritten",
            {"repo": str(repo_dir), "commit": last_commit},
        ) from exc

    output = _git(
        repo_dir, "diff", "--name-status", "-M", "--relative", "-z", f"{last_commit}..HEAD"
    )
    changes = ChangeSet()

    def keep(path: str) -> bool:
        return has_matching_extension(path, extensions)

    # -z output: status NUL path NUL, with two paths for renames and copies
    tokens = output.split("\0")
    i = 0
    while i < len(tokens) and tokens[i]:
        status = tokens[i]
        kind = status[0]
        if kind in ("R", "C"):
            old_path, path = tokens[i + 1], tokens[i + 2]
            i += 3
        else:
            old_path, path = "", tokens[i + 1]
            i += 2

        if kind == "R":
            if keep(old_path):
                changes.deleted.append(old_path)
            if keep(path):
                changes.added.append(path)
        elif not keep(path):
            continue
        elif kind in ("A", "C"):
            changes.added.append(path)
        elif kind in ("M", "T"):
            changes.modified.append(path)
        elif kind == "D":
            changes.deleted.append(path)
        else:
            logger.debug(f"ignoring git status {status} for {path}")

    changes.added.sort()
    changes.modified.sort()
    changes.deleted.sort()
    return changes
