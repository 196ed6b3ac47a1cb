import hashlib
import os
import shutil
import subprocess
import time
from pathlib import Path

import pytest


class FakeEmbedder:
    """Deterministic bag-of-words embedding: each word hashes into one slot."""

    model_name = "fake-embedder"

    def __init__(self, dimension: int = 32):
        self.dimension = dimension
        self.calls = 0

    def get_embedding(self, text: str) -> list[float]:
        self.calls += 1
        vector = [0.0] * self.dimension
        for word in text.lower().split():
            digest = hashlib.sha256(word.encode("utf-8")).digest()
            vector[digest[0] % self.dimension] += 1.0
        return vector


class FailingEmbedder(FakeEmbedder):
    """Fails on call number ``fail_on`` (1-based), like a provider outage."""

    def __init__(self, fail_on: int, dimension: int = 32):
        super().__init__(dimension)
        self.fail_on = fail_on

    def get_embedding(self, text: str) -> list[float]:
        if self.calls + 1 == self.fail_on:
            self.calls += 1
            raise RuntimeError("provider unavailable")
        return super().get_embedding(text)


class FakeChat:
    def __init__(self, reply: str = "the answer"):
        self.reply = reply
        self.messages = []

    def chat(self, messages) -> str:
        self.messages = list(messages)
        return self.reply


def doc_text(title: str, body: str = "") -> str:
    """A markdown file that chunks into exactly one chunk."""
    body = body or f"{title} explains how the indexing pipeline handles this topic in detail."
    return f"# {title}\n\n{body}\n"


def write_files(root: Path, files: dict[str, str]) -> None:
    for rel_path, content in files.items():
        path = root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")


def age_files(root: Path, seconds: float = 3600) -> None:
    """Backdate every file under ``root`` so it predates the next index run."""
    past = time.time() - seconds
    for dirpath, _, filenames in os.walk(root):
        for filename in filenames:
            os.utime(Path(dirpath) / filename, (past, past))


def touch_future(path: Path, seconds: float = 3600) -> None:
    future = time.time() + seconds
    os.utime(path, (future, future))


def git(repo: Path, *args: str) -> str:
    completed = subprocess.run(
        [
            "git",
            "-c", "user.email=test@example.com",
            "-c", "user.name=Test",
            "-c", "commit.gpgsign=false",
            "-c", "init.defaultBranch=main",
            *args,
        ],
        cwd=repo,
        capture_output=True,
        text=True,
        check=True,
    )
    return completed.stdout.strip()


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def source_dir(tmp_path):
    """Three markdown files, backdated so they predate any index built in the test."""
    root = tmp_path / "src"
    write_files(
        root,
        {
            "alpha.md": doc_text("Alpha"),
            "beta.md": doc_text("Beta"),
            "docs/gamma.md": doc_text("Gamma"),
        },
    )
    age_files(root)
    return root


@pytest.fixture
def git_repo(tmp_path):
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    repo = tmp_path / "repo"
    repo.mkdir()
    git(repo, "init", "-q")
    return repo
