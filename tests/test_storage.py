"""Unit tests for the FileStore persistence layer."""

from __future__ import annotations

import asyncio
import gc
import json
import threading
from pathlib import Path

import pytest

from userprefs.storage import FileStore, PathLocks, encode, stringify


@pytest.fixture
def store():
    instance = FileStore()
    yield instance
    instance.close()


class TestRead:
    def test_missing_file_is_created_with_empty_document(
        self, store: FileStore, tmp_path: Path
    ) -> None:
        path = tmp_path / "nested" / "dir" / "prefs.json"

        assert store.read(str(path)) == {}
        assert path.read_text(encoding="utf-8") == "{}"

    def test_existing_document_is_returned(
        self, store: FileStore, tmp_path: Path
    ) -> None:
        path = tmp_path / "prefs.json"
        path.write_text(json.dumps({"theme": "dark"}), encoding="utf-8")

        assert store.read(str(path)) == {"theme": "dark"}

    def test_corrupt_json_is_removed(self, store: FileStore, tmp_path: Path) -> None:
        path = tmp_path / "prefs.json"
        path.write_text("{not valid json", encoding="utf-8")

        assert store.read(str(path)) == {}
        assert not path.exists()

        # The next read starts over from a fresh empty document.
        assert store.read(str(path)) == {}
        assert path.read_text(encoding="utf-8") == "{}"

    def test_non_object_root_counts_as_corrupt(
        self, store: FileStore, tmp_path: Path
    ) -> None:
        path = tmp_path / "prefs.json"
        path.write_text("[1, 2, 3]", encoding="utf-8")

        assert store.read(str(path)) == {}
        assert not path.exists()

    def test_other_io_errors_degrade_to_empty_document(
        self, store: FileStore, tmp_path: Path
    ) -> None:
        directory = tmp_path / "prefs.json"
        directory.mkdir()

        assert store.read(str(directory)) == {}
        assert directory.is_dir()


class TestWriteAndDelete:
    def test_write_replaces_contents_compactly(
        self, store: FileStore, tmp_path: Path
    ) -> None:
        path = tmp_path / "prefs.json"
        path.write_text(json.dumps({"old": "value"}), encoding="utf-8")

        assert store.write(str(path), {"x": "y"}) is True
        assert path.read_text(encoding="utf-8") == '{"x":"y"}'

    def test_write_creates_parent_directory(
        self, store: FileStore, tmp_path: Path
    ) -> None:
        path = tmp_path / "a" / "b" / "prefs.json"

        assert store.write(str(path), {}) is True
        assert path.exists()

    def test_write_failure_returns_false(
        self, store: FileStore, tmp_path: Path
    ) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")

        assert store.write(str(blocker / "prefs.json"), {"x": "y"}) is False

    def test_write_leaves_no_temporary_files(
        self, store: FileStore, tmp_path: Path
    ) -> None:
        path = tmp_path / "prefs.json"

        assert store.write(str(path), {"x": "y"}) is True
        assert store.write(str(path), {"x": "z"}) is True
        assert [p.name for p in tmp_path.iterdir()] == ["prefs.json"]

    def test_failed_replace_cleans_up(self, store: FileStore, tmp_path: Path) -> None:
        target = tmp_path / "prefs.json"
        target.mkdir()

        assert store.write(str(target), {"x": "y"}) is False
        assert [p.name for p in tmp_path.iterdir()] == ["prefs.json"]
        assert target.is_dir()

    def test_concurrent_reads_see_whole_documents(
        self, store: FileStore, tmp_path: Path
    ) -> None:
        path = str(tmp_path / "prefs.json")
        document = {f"k{i}": str(i) for i in range(500)}
        store.write(path, document)
        stop = threading.Event()
        sizes = []

        def read_until_stopped() -> None:
            while not stop.is_set():
                sizes.append(len(store.read(path)))

        readers = [threading.Thread(target=read_until_stopped) for _ in range(4)]
        for reader in readers:
            reader.start()
        try:
            for i in range(100):
                store.write(path, dict(document, k0=str(i)))
        finally:
            stop.set()
            for reader in readers:
                reader.join()

        assert set(sizes) <= {500}
        assert store.read(path)["k0"] == "99"

    def test_delete_existing_and_missing(
        self, store: FileStore, tmp_path: Path
    ) -> None:
        path = tmp_path / "prefs.json"
        path.write_text("{}", encoding="utf-8")

        assert store.delete(str(path)) is True
        assert not path.exists()
        assert store.delete(str(path)) is False


class TestCallingConventions:
    def test_async_variants_match_blocking(
        self, store: FileStore, tmp_path: Path
    ) -> None:
        path = str(tmp_path / "prefs.json")

        async def scenario():
            created = await store.read_async(path)
            written = await store.write_async(path, {"a": "1"})
            loaded = await store.read_async(path)
            deleted = await store.delete_async(path)
            deleted_again = await store.delete_async(path)
            return created, written, loaded, deleted, deleted_again

        assert asyncio.run(scenario()) == ({}, True, {"a": "1"}, True, False)

    def test_callback_variants_deliver_error_value_pairs(
        self, store: FileStore, tmp_path: Path
    ) -> None:
        path = str(tmp_path / "prefs.json")
        seen = []

        def record(err, value):
            seen.append((err, value))

        store.write_c(path, {"a": "1"}, record).result(timeout=5)
        store.read_c(path, record).result(timeout=5)
        store.delete_c(path, record).result(timeout=5)
        store.delete_c(path, record).result(timeout=5)

        assert seen == [(None, True), (None, {"a": "1"}), (None, True), (None, False)]

    def test_unexpected_errors_reach_callback_and_future(
        self, store: FileStore
    ) -> None:
        seen = []

        def boom():
            raise RuntimeError("boom")

        def record(err, value):
            seen.append((err, value))

        future = store.submit(boom, callback=record)

        with pytest.raises(RuntimeError):
            future.result(timeout=5)
        assert len(seen) == 1
        assert isinstance(seen[0][0], RuntimeError)
        assert seen[0][1] is None


class TestHelpers:
    def test_stringify(self) -> None:
        assert stringify("text") == "text"
        assert stringify(1) == "1"
        assert stringify(2.5) == "2.5"
        assert stringify(None) == "null"

    def test_encode_is_compact(self) -> None:
        assert encode({"x": "y", "n": "1"}) == '{"x":"y","n":"1"}'

    def test_path_locks_are_shared_per_file(self, tmp_path: Path) -> None:
        locks = PathLocks()
        first = locks.lock_for(str(tmp_path / "prefs.json"))
        again = locks.lock_for(str(tmp_path / "sub" / ".." / "prefs.json"))
        other = locks.lock_for(str(tmp_path / "other.json"))

        assert first is again
        assert first is not other

    def test_path_locks_are_reentrant(self, tmp_path: Path) -> None:
        locks = PathLocks()
        path = str(tmp_path / "prefs.json")

        with locks.lock_for(path):
            with locks.lock_for(path):
                pass

    def test_path_locks_are_dropped_when_unused(self, tmp_path: Path) -> None:
        locks = PathLocks()
        lock = locks.lock_for(str(tmp_path / "prefs.json"))
        assert len(locks) == 1

        del lock
        gc.collect()

        assert len(locks) == 0
