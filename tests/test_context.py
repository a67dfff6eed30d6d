from __future__ import annotations

from pathlib import Path

import pytest

from conftest import RecordingStore
from m2_mirror.context import SyncContext
from m2_mirror.exceptions import ConfigurationError, SyncFailure
from m2_mirror.models import Coordinate, Item

RELEASE = Coordinate(group_id="com", artifact_id="widget", version="1")
SNAPSHOT = Coordinate(group_id="com", artifact_id="widget", version="2-SNAPSHOT")


def _items(coordinate: Coordinate) -> list[Item]:
    return [
        Item(coordinate=coordinate, type="pom", file=Path("a.pom")),
        Item(coordinate=coordinate, type="jar", file=Path("a.jar")),
    ]


def test_bulk_deploy(tmp_path: Path) -> None:
    store = RecordingStore()
    context = SyncContext(store, None, tmp_path)

    synced = context.sync_all(RELEASE, _items(RELEASE))

    assert [i.filename for i in synced] == ["widget-1.pom", "widget-1.jar"]
    assert store.deploy_calls == [["widget-1.pom", "widget-1.jar"]]
    assert store.resolve_calls == []


def test_fallback_resolves_then_deploys_each_item(tmp_path: Path) -> None:
    store = RecordingStore(fail_bulk=True, resolvable=["widget-1.pom"])
    context = SyncContext(store, None, tmp_path)

    synced = context.sync_all(RELEASE, _items(RELEASE))

    assert [i.filename for i in synced] == ["widget-1.pom", "widget-1.jar"]
    assert store.resolve_calls == ["widget-1.pom", "widget-1.jar"]
    assert store.deploy_calls == [["widget-1.pom", "widget-1.jar"], ["widget-1.jar"]]


def test_fallback_fails_on_first_exhausted_item(tmp_path: Path) -> None:
    store = RecordingStore(fail_bulk=True, fail_deploy=["widget-1.pom", "widget-1.jar"])
    context = SyncContext(store, None, tmp_path)

    with pytest.raises(SyncFailure) as info:
        context.sync_all(RELEASE, _items(RELEASE))

    assert info.value.item is not None and info.value.item.filename == "widget-1.pom"
    assert info.value.coordinate == RELEASE
    # the jar is never attempted once the pom is exhausted
    assert store.resolve_calls == ["widget-1.pom"]


def test_snapshot_bulk_failure_fails_fast(tmp_path: Path) -> None:
    snapshots = RecordingStore(fail_bulk=True, resolvable=["widget-2-SNAPSHOT.pom", "widget-2-SNAPSHOT.jar"])
    context = SyncContext(RecordingStore(), snapshots, tmp_path)

    with pytest.raises(SyncFailure) as info:
        context.sync_all(SNAPSHOT, _items(SNAPSHOT))

    assert info.value.item is not None and info.value.item.filename == "widget-2-SNAPSHOT.pom"
    assert snapshots.deploy_calls == [["widget-2-SNAPSHOT.pom", "widget-2-SNAPSHOT.jar"]]
    assert snapshots.resolve_calls == []


def test_snapshot_routes_to_snapshot_store(tmp_path: Path) -> None:
    releases = RecordingStore()
    snapshots = RecordingStore()
    context = SyncContext(releases, snapshots, tmp_path)

    context.deploy(SNAPSHOT, _items(SNAPSHOT))
    context.deploy(RELEASE, _items(RELEASE))

    assert snapshots.deployed == {"widget-2-SNAPSHOT.pom", "widget-2-SNAPSHOT.jar"}
    assert releases.deployed == {"widget-1.pom", "widget-1.jar"}


def test_snapshot_without_snapshot_store(tmp_path: Path) -> None:
    releases = RecordingStore()
    context = SyncContext(releases, None, tmp_path)

    with pytest.raises(ConfigurationError):
        context.sync_all(SNAPSHOT, _items(SNAPSHOT))
    assert releases.deploy_calls == []


def test_close_closes_each_store_once(tmp_path: Path) -> None:
    store = RecordingStore()
    SyncContext(store, store, tmp_path).close()
    assert store.closed
