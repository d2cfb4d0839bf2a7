"""Unit tests for change detection between snapshot generations."""

from __future__ import annotations

import pytest
from conftest import make_pages

from venue_refresh.models.delta import DeltaClass
from venue_refresh.providers.state.memory_state_store import MemoryStateStore
from venue_refresh.services.delta_detector import DeltaDetector
from venue_refresh.services.snapshot_store import SnapshotStore


@pytest.fixture()
def snapshots(store: MemoryStateStore) -> SnapshotStore:
    return SnapshotStore(store)


def _seed_previous(store: MemoryStateStore, snapshots: SnapshotStore, entity_id: str, *texts: str) -> None:
    snapshots.write(entity_id, make_pages(*texts))
    key = f"snapshots/current/{entity_id}.json"
    store.write(f"snapshots/previous/{entity_id}.json", store.read(key))
    store.delete(key)


class TestDeltaDetector:
    def test_absent_previous_is_new(self, snapshots: SnapshotStore) -> None:
        snapshots.write("v1", make_pages("hello"))
        report = DeltaDetector(snapshots).detect()
        assert report.get("v1").classification is DeltaClass.NEW
        assert report.work_queue == ["v1"]

    def test_identical_content_is_unchanged(self, store: MemoryStateStore, snapshots: SnapshotStore) -> None:
        _seed_previous(store, snapshots, "v1", "Burgers and beer")
        snapshots.write("v1", make_pages("Burgers and beer"))
        report = DeltaDetector(snapshots).detect()
        assert report.get("v1").classification is DeltaClass.UNCHANGED
        assert report.work_queue == []

    def test_date_only_difference_is_unchanged(self, store: MemoryStateStore, snapshots: SnapshotStore) -> None:
        _seed_previous(store, snapshots, "v1", "Specials for Monday March 2nd. Updated 2026-03-02T09:00:00Z")
        snapshots.write("v1", make_pages("Specials for Tuesday March 3rd. Updated 2026-03-03T09:00:00Z"))
        report = DeltaDetector(snapshots).detect()
        assert report.get("v1").classification is DeltaClass.UNCHANGED

    def test_content_edit_is_changed(self, store: MemoryStateStore, snapshots: SnapshotStore) -> None:
        _seed_previous(store, snapshots, "v1", "Open 11am - 10pm")
        snapshots.write("v1", make_pages("Open 11am - 11pm"))
        record = DeltaDetector(snapshots).detect().get("v1")
        assert record.classification is DeltaClass.CHANGED
        assert record.current_fingerprint != record.previous_fingerprint

    def test_unreadable_previous_fails_safe_to_changed(
        self, store: MemoryStateStore, snapshots: SnapshotStore
    ) -> None:
        store.write("snapshots/previous/v1.json", b"{broken")
        snapshots.write("v1", make_pages("hello"))
        record = DeltaDetector(snapshots).detect().get("v1")
        assert record.classification is DeltaClass.CHANGED
        assert record.reason == "previous_unreadable"

    def test_fingerprint_failure_fails_safe_to_changed(
        self, store: MemoryStateStore, snapshots: SnapshotStore
    ) -> None:
        _seed_previous(store, snapshots, "v1", "same")
        snapshots.write("v1", make_pages("same"))

        def broken(_texts):
            raise ValueError("boom")

        record = DeltaDetector(snapshots, fingerprint_fn=broken).detect().get("v1")
        assert record.classification is DeltaClass.CHANGED
        assert record.reason == "fingerprint_failed"

    def test_unreadable_current_gets_no_record(self, store: MemoryStateStore, snapshots: SnapshotStore) -> None:
        store.write("snapshots/current/v1.json", b"{broken")
        snapshots.write("v2", make_pages("fine"))
        report = DeltaDetector(snapshots).detect()
        assert report.get("v1") is None
        assert report.unreadable == ["v1"]
        assert report.work_queue == ["v2"]

    def test_entities_only_in_previous_produce_nothing(
        self, store: MemoryStateStore, snapshots: SnapshotStore
    ) -> None:
        _seed_previous(store, snapshots, "gone", "bye")
        assert DeltaDetector(snapshots).detect().records == []

    def test_records_in_sorted_id_order(self, snapshots: SnapshotStore) -> None:
        for entity_id in ("c", "a", "b"):
            snapshots.write(entity_id, make_pages(entity_id))
        report = DeltaDetector(snapshots).detect()
        assert [r.entity_id for r in report.records] == ["a", "b", "c"]
        assert report.counts() == {"new": 3, "changed": 0, "unchanged": 0}

    def test_detect_restricted_to_ids(self, snapshots: SnapshotStore) -> None:
        for entity_id in ("a", "b"):
            snapshots.write(entity_id, make_pages(entity_id))
        report = DeltaDetector(snapshots).detect(["b", "missing"])
        assert [r.entity_id for r in report.records] == ["b"]
