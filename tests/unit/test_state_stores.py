"""Unit tests for the filesystem and in-memory state stores.

Both backends must honour the same contract, so most tests run against
each of them through a parametrized fixture.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from venue_refresh.interfaces.state_store import IStateStore
from venue_refresh.providers.state.file_state_store import FileStateStore
from venue_refresh.providers.state.memory_state_store import MemoryStateStore


@pytest.fixture(params=["file", "memory"])
def backend(request: pytest.FixtureRequest, tmp_path: Path) -> IStateStore:
    if request.param == "file":
        return FileStateStore(tmp_path / "state")
    return MemoryStateStore()


# ======================================================================
# Shared contract
# ======================================================================


class TestStateStoreContract:
    def test_read_missing_returns_none(self, backend: IStateStore) -> None:
        assert backend.read("snapshots/current/a.json") is None

    def test_write_then_read(self, backend: IStateStore) -> None:
        backend.write("snapshots/current/a.json", b"hello")
        assert backend.read("snapshots/current/a.json") == b"hello"

    def test_write_replaces(self, backend: IStateStore) -> None:
        backend.write("k/v.json", b"one")
        backend.write("k/v.json", b"two")
        assert backend.read("k/v.json") == b"two"

    def test_create_exclusive_only_once(self, backend: IStateStore) -> None:
        assert backend.create_exclusive("locks/p.json", b"first") is True
        assert backend.create_exclusive("locks/p.json", b"second") is False
        assert backend.read("locks/p.json") == b"first"

    def test_delete(self, backend: IStateStore) -> None:
        backend.write("a/b.json", b"x")
        assert backend.delete("a/b.json") is True
        assert backend.delete("a/b.json") is False
        assert backend.read("a/b.json") is None

    def test_delete_if_equal_matches(self, backend: IStateStore) -> None:
        backend.write("locks/p.json", b"mine")
        assert backend.delete_if_equal("locks/p.json", b"mine") is True
        assert backend.read("locks/p.json") is None

    def test_delete_if_equal_mismatch_keeps_key(self, backend: IStateStore) -> None:
        backend.write("locks/p.json", b"theirs")
        assert backend.delete_if_equal("locks/p.json", b"mine") is False
        assert backend.read("locks/p.json") == b"theirs"

    def test_delete_if_equal_missing(self, backend: IStateStore) -> None:
        assert backend.delete_if_equal("locks/p.json", b"mine") is False

    def test_list_keys_sorted_and_scoped(self, backend: IStateStore) -> None:
        backend.write("snapshots/current/b.json", b"2")
        backend.write("snapshots/current/a.json", b"1")
        backend.write("snapshots/previous/a.json", b"0")
        backend.write("snapshots/marker.json", b"m")
        assert backend.list_keys("snapshots/current") == [
            "snapshots/current/a.json",
            "snapshots/current/b.json",
        ]

    def test_list_keys_unknown_prefix(self, backend: IStateStore) -> None:
        assert backend.list_keys("nothing/here") == []


# ======================================================================
# FileStateStore specifics
# ======================================================================


class TestFileStateStore:
    @pytest.mark.parametrize(
        "key",
        ["", "/etc/passwd", "../escape.json", "a/../../b", "a//b", "a\\b", "a/.hidden"],
    )
    def test_rejects_unsafe_keys(self, tmp_path: Path, key: str) -> None:
        store = FileStateStore(tmp_path)
        with pytest.raises(ValueError):
            store.write(key, b"x")

    def test_files_land_under_root(self, tmp_path: Path) -> None:
        store = FileStateStore(tmp_path)
        store.write("snapshots/current/a.json", b"x")
        assert (tmp_path / "snapshots" / "current" / "a.json").read_bytes() == b"x"

    def test_no_temp_files_left_behind(self, tmp_path: Path) -> None:
        store = FileStateStore(tmp_path)
        store.write("k/a.json", b"x")
        store.create_exclusive("k/b.json", b"y")
        store.create_exclusive("k/b.json", b"z")
        store.delete_if_equal("k/a.json", b"x")
        assert sorted(p.name for p in (tmp_path / "k").iterdir()) == ["b.json"]

    def test_list_keys_skips_hidden_files(self, tmp_path: Path) -> None:
        store = FileStateStore(tmp_path)
        store.write("k/a.json", b"x")
        (tmp_path / "k" / ".a.json.deadbeef.tmp").write_bytes(b"partial")
        assert store.list_keys("k") == ["k/a.json"]

    def test_provider_name(self, tmp_path: Path) -> None:
        assert FileStateStore(tmp_path).get_provider_name() == "filesystem"


class TestMemoryStateStore:
    def test_initial_contents(self) -> None:
        store = MemoryStateStore({"a/b.json": b"1"})
        assert store.read("a/b.json") == b"1"

    def test_snapshot_is_a_copy(self) -> None:
        store = MemoryStateStore()
        store.write("a/b.json", b"1")
        copy = store.snapshot()
        copy["a/b.json"] = b"changed"
        assert store.read("a/b.json") == b"1"
