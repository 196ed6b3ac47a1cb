"""Tests for mtime- and git-based change detection."""

from datetime import datetime, timezone

import pytest

from conftest import age_files, git, touch_future, write_files
from localrag.detection import (
    ChangeSet,
    detect_changes_git,
    detect_changes_mtime,
    git_head_commit,
    is_git_repo,
    parse_indexed_at,
)
from localrag.errors import DetectionError

GO = [".go"]


def go_file(name: str) -> str:
    return f"package main\n\n// {name} is part of the detection fixture.\nfunc {name}() {{\n}}\n"


class TestChangeSet:
    def test_derived_lists(self):
        changes = ChangeSet(added=["a"], modified=["m"], deleted=["d"])

        assert changes.has_changes
        assert changes.changed_files == ["a", "m"]
        assert changes.removed_files == ["m", "d"]
        assert changes.summary() == "1 added, 1 modified, 1 deleted"
        assert not ChangeSet().has_changes


class TestMtimeDetection:
    def test_classifies_added_modified_deleted(self, tmp_path):
        write_files(tmp_path, {"file1.go": go_file("One"), "file2.go": go_file("Two")})
        age_files(tmp_path)
        indexed_at = datetime.now(timezone.utc)
        write_files(tmp_path, {"file4.go": go_file("Four")})
        touch_future(tmp_path / "file2.go")

        changes = detect_changes_mtime(
            tmp_path, indexed_at, ["file1.go", "file2.go", "file3.go"], GO
        )

        assert changes.added == ["file4.go"]
        assert changes.modified == ["file2.go"]
        assert changes.deleted == ["file3.go"]

    def test_ignores_other_extensions_and_skip_dirs(self, tmp_path):
        write_files(
            tmp_path,
            {
                "main.go": go_file("Main"),
                "README.txt": "not indexed",
                "node_modules/dep/index.go": go_file("Dep"),
            },
        )

        changes = detect_changes_mtime(tmp_path, datetime.now(timezone.utc), [], GO)

        assert changes.added == ["main.go"]

    def test_unchanged_skipped_files_are_not_re_added(self, tmp_path):
        write_files(tmp_path, {"huge.go": go_file("Huge"), "new.go": go_file("New")})
        age_files(tmp_path)

        changes = detect_changes_mtime(
            tmp_path, datetime.now(timezone.utc), [], GO, skipped_files=["huge.go", "new.go"]
        )
        assert not changes.has_changes

        touch_future(tmp_path / "new.go")
        changes = detect_changes_mtime(
            tmp_path, datetime.now(timezone.utc), [], GO, skipped_files=["huge.go", "new.go"]
        )
        assert changes.added == ["new.go"]

    def test_missing_root_raises(self, tmp_path):
        with pytest.raises(DetectionError):
            detect_changes_mtime(tmp_path / "gone", datetime.now(timezone.utc), [], GO)

    def test_parse_indexed_at(self):
        assert parse_indexed_at("2024-05-01T10:00:00Z") == datetime(2024, 5, 1, 10, tzinfo=timezone.utc)
        assert parse_indexed_at("2024-05-01T10:00:00.123456+00:00").microsecond == 123456
        with pytest.raises(DetectionError):
            parse_indexed_at("yesterday")


class TestGitDetection:
    def commit_all(self, repo, message="commit"):
        git(repo, "add", "-A")
        git(repo, "commit", "-q", "-m", message)
        return git_head_commit(repo)

    def test_is_git_repo(self, git_repo, tmp_path):
        plain = tmp_path / "plain"
        plain.mkdir()

        assert is_git_repo(git_repo)
        assert not is_git_repo(plain)
        assert not is_git_repo(tmp_path / "missing")

    def test_classifies_changes_between_commits(self, git_repo):
        write_files(
            git_repo,
            {"a.go": go_file("A"), "b.go": go_file("B"), "c.go": go_file("C")},
        )
        base = self.commit_all(git_repo, "initial")

        (git_repo / "b.go").write_text(go_file("B") + "\nfunc Extra() {\n}\n")
        (git_repo / "c.go").unlink()
        write_files(git_repo, {"d.go": go_file("D"), "notes.txt": "ignored"})
        git(git_repo, "mv", "a.go", "e.go")
        self.commit_all(git_repo, "changes")

        changes = detect_changes_git(git_repo, base, GO)

        assert changes.added == ["d.go", "e.go"]
        assert changes.modified == ["b.go"]
        assert changes.deleted == ["a.go", "c.go"]

    def test_paths_are_relative_to_subdirectory(self, git_repo):
        write_files(git_repo, {"svc/api.go": go_file("Api"), "top.go": go_file("Top")})
        base = self.commit_all(git_repo)
        write_files(git_repo, {"svc/new.go": go_file("New"), "top2.go": go_file("Top2")})
        self.commit_all(git_repo)

        changes = detect_changes_git(git_repo / "svc", base, GO)

        assert changes.added == ["new.go"]

    def test_no_changes_since_head(self, git_repo):
        write_files(git_repo, {"a.go": go_file("A")})
        head = self.commit_all(git_repo)

        assert not detect_changes_git(git_repo, head, GO).has_changes

    def test_rewritten_history_is_detected(self, git_repo):
        write_files(git_repo, {"a.go": go_file("A")})
        self.commit_all(git_repo, "first")
        write_files(git_repo, {"b.go": go_file("B")})
        recorded = self.commit_all(git_repo, "second")

        git(git_repo, "reset", "-q", "--hard", "HEAD~1")
        write_files(git_repo, {"c.go": go_file("C")})
        self.commit_all(git_repo, "rewritten")

        with pytest.raises(DetectionError, match="not reachable"):
            detect_changes_git(git_repo, recorded, GO)

    def test_unknown_or_missing_commit(self, git_repo):
        write_files(git_repo, {"a.go": go_file("A")})
        self.commit_all(git_repo)

        with pytest.raises(DetectionError):
            detect_changes_git(git_repo, "0" * 40, GO)
        with pytest.raises(DetectionError, match="no last commit"):
            detect_changes_git(git_repo, "", GO)
