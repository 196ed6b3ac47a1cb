"""Tests for atomic commits, the index directory and multi-source search."""

import os
import stat
import threading
from pathlib import Path

import pytest

from localrag.errors import PersistenceError, ValidationError
from localrag.models import Chunk
from localrag.storage import (
    MultiSourceStore,
    StoreHandle,
    VectorStore,
    atomic_save,
    checkpoint_path,
    directory_factory,
    find_existing_index,
    index_file_name,
    is_auxiliary,
    latest_by_source,
    list_index_files,
    save_checkpoint,
    source_name_of,
    temp_path,
)


def store_with(count: int, source: str = "file.md", offset: float = 0.0) -> VectorStore:
    vs = VectorStore()
    for i in range(count):
        vs.add(Chunk(text=f"{source} chunk {i}", source=source), [1.0, offset + i * 0.01])
    return vs


class TestAtomicSave:
    def test_sibling_paths_keep_suffix(self, tmp_path):
        final = tmp_path / "proj_20240501.lrindex"

        assert checkpoint_path(final).name == "proj_20240501.checkpoint.lrindex"
        assert temp_path(final).name == "proj_20240501.tmp.lrindex"
        assert temp_path(tmp_path / "old.json").name == "old.tmp.json"

    def test_commits_and_removes_temp_file(self, tmp_path):
        final = tmp_path / "proj.lrindex"

        atomic_save(store_with(4), final)

        assert len(VectorStore.load(final)) == 4
        assert not temp_path(final).exists()

    def test_validation_mismatch_leaves_previous_file_intact(self, tmp_path, monkeypatch):
        final = tmp_path / "proj.lrindex"
        atomic_save(store_with(2), final)
        before = final.read_bytes()

        # Reading the temp file back yields fewer chunks than were written
        monkeypatch.setattr(VectorStore, "load", classmethod(lambda cls, path: VectorStore()))

        with pytest.raises(ValidationError, match="chunk count mismatch"):
            atomic_save(store_with(5), final)

        assert final.read_bytes() == before
        assert not temp_path(final).exists()

    def test_unreadable_temp_file_is_a_validation_error(self, tmp_path, monkeypatch):
        final = tmp_path / "proj.lrindex"

        def broken_load(cls, path):
            raise PersistenceError("truncated")

        monkeypatch.setattr(VectorStore, "load", classmethod(broken_load))

        with pytest.raises(ValidationError, match="temp file corrupt"):
            atomic_save(store_with(1), final)

        assert not final.exists()
        assert not temp_path(final).exists()

    @pytest.mark.skipif(os.name != "posix", reason="directory fsync is POSIX only")
    def test_rename_is_flushed_to_the_directory(self, tmp_path, monkeypatch):
        final = tmp_path / "proj.lrindex"
        real_fsync = os.fsync
        synced_dirs = []

        def recording_fsync(fd):
            if stat.S_ISDIR(os.fstat(fd).st_mode):
                synced_dirs.append(fd)
            real_fsync(fd)

        monkeypatch.setattr(os, "fsync", recording_fsync)

        atomic_save(store_with(1), final)

        assert len(synced_dirs) == 1

    def test_checkpoint_is_replaced_whole(self, tmp_path):
        ckpt = checkpoint_path(tmp_path / "proj.lrindex")
        save_checkpoint(store_with(2), ckpt)

        save_checkpoint(store_with(4), ckpt)

        assert len(VectorStore.load(ckpt)) == 4
        assert not temp_path(ckpt).exists()

    def test_failed_checkpoint_write_keeps_the_old_one(self, tmp_path, monkeypatch):
        ckpt = checkpoint_path(tmp_path / "proj.lrindex")
        save_checkpoint(store_with(2), ckpt)

        def failing_save(self, path):
            Path(path).write_bytes(b"\x1f\x8b\x08trunc")
            raise PersistenceError("no space left on device")

        monkeypatch.setattr(VectorStore, "save", failing_save)

        with pytest.raises(PersistenceError):
            save_checkpoint(store_with(4), ckpt)

        monkeypatch.undo()
        assert len(VectorStore.load(ckpt)) == 2
        assert not temp_path(ckpt).exists()


class TestIndexDirectory:
    def test_index_file_name_is_date_suffixed(self):
        from datetime import date

        assert index_file_name("proj", date(2024, 5, 1)) == "proj_20240501.lrindex"

    @pytest.mark.parametrize(
        "filename,expected",
        [
            ("proj_20240501.lrindex", "proj"),
            ("proj.lrindex", "proj"),
            ("my_proj_20240501.json", "my_proj"),
            ("my_proj.json", "my_proj"),
        ],
    )
    def test_source_name_of(self, filename, expected):
        assert source_name_of(filename) == expected

    def test_auxiliary_files_are_never_listed(self, tmp_path):
        for name in [
            "proj_20240501.lrindex",
            "proj_20240501.checkpoint.lrindex",
            "proj_20240501.tmp.lrindex",
            "notes.txt",
        ]:
            (tmp_path / name).write_bytes(b"")

        assert is_auxiliary("proj.checkpoint.lrindex")
        assert not is_auxiliary("proj.lrindex")
        assert [p.name for p in list_index_files(tmp_path)] == ["proj_20240501.lrindex"]

    def test_latest_snapshot_wins(self, tmp_path):
        for name in ["proj_20240101.lrindex", "proj_20240301.lrindex", "other.lrindex"]:
            (tmp_path / name).write_bytes(b"")

        latest = latest_by_source(tmp_path)

        assert latest["proj"].name == "proj_20240301.lrindex"
        assert latest["other"].name == "other.lrindex"
        assert find_existing_index(tmp_path, "proj").name == "proj_20240301.lrindex"
        assert find_existing_index(tmp_path, "missing") is None

    def test_missing_directory_lists_nothing(self, tmp_path):
        assert list_index_files(tmp_path / "nope") == []


class TestMultiSourceStore:
    @pytest.fixture
    def multi(self, tmp_path):
        mss = MultiSourceStore(tmp_path)
        for n, name in enumerate(["one", "two", "three"]):
            mss.save_source(name, store_with(10, f"{name}.md", offset=n * 0.5))
        return mss

    def test_top_k_applies_to_merged_ranking(self, multi):
        results = multi.search([1.0, 0.0], 5)

        assert len(results) == 5
        similarities = [r.similarity for r in results]
        assert similarities == sorted(similarities, reverse=True)
        # Source "one" has vectors closest to the query
        assert {r.source_name for r in results} == {"one"}

    def test_search_restricted_to_named_sources(self, multi):
        results = multi.search([1.0, 0.0], 5, ["two", "unknown"])

        assert len(results) == 5
        assert {r.source_name for r in results} == {"two"}

    def test_empty_name_list_searches_everything(self, multi):
        assert len(multi.search([1.0, 0.0], 30, [])) == 30

    def test_load_all_reads_the_directory(self, multi, tmp_path):
        fresh = MultiSourceStore(tmp_path)

        assert fresh.load_all() == ["one", "three", "two"]
        assert fresh.source_stats() == {"one": 10, "three": 10, "two": 10}

    def test_load_all_skips_corrupt_files(self, multi, tmp_path):
        (tmp_path / "broken.lrindex").write_bytes(b"garbage")
        fresh = MultiSourceStore(tmp_path)

        assert fresh.load_all() == ["one", "three", "two"]

    def test_load_source_picks_latest_snapshot(self, tmp_path):
        store_with(2, "old.md").save(tmp_path / "proj_20240101.lrindex")
        store_with(3, "new.md").save(tmp_path / "proj_20240301.lrindex")
        mss = MultiSourceStore(tmp_path)

        assert len(mss.load_source("proj")) == 3
        with pytest.raises(PersistenceError):
            mss.load_source("missing")


class TestStoreHandle:
    def test_get_builds_lazily_and_reload_swaps(self, tmp_path):
        built = []

        def factory():
            mss = MultiSourceStore(tmp_path)
            built.append(mss)
            return mss

        handle = StoreHandle(factory)
        first = handle.get()

        assert handle.get() is first
        assert len(built) == 1

        second = handle.reload()
        assert second is not first
        assert handle.get() is second

    def test_swap_returns_previous(self, tmp_path):
        handle = StoreHandle(lambda: MultiSourceStore(tmp_path))
        a, b = MultiSourceStore(tmp_path), MultiSourceStore(tmp_path)

        assert handle.swap(a) is None
        assert handle.swap(b) is a

    def test_directory_factory_sees_new_indexes_on_reload(self, tmp_path):
        handle = StoreHandle(directory_factory(tmp_path))
        assert handle.get().list_sources() == []

        store_with(1).save(tmp_path / "late.lrindex")

        assert handle.reload().list_sources() == ["late"]

    def test_readers_see_whole_stores_during_reloads(self, tmp_path):
        store_with(3).save(tmp_path / "proj.lrindex")
        handle = StoreHandle(directory_factory(tmp_path))
        handle.get()
        seen = []

        def reader():
            for _ in range(50):
                seen.append(len(handle.get().search([1.0, 0.0], 10)))

        thread = threading.Thread(target=reader)
        thread.start()
        for _ in range(10):
            handle.reload()
        thread.join()

        assert set(seen) == {3}
