from __future__ import annotations

import zipfile
from pathlib import Path

from conftest import RecordingStore, write_files
from m2_mirror.archive import create_archive
from m2_mirror.context import SyncContext
from m2_mirror.index import Index, resolve_index
from m2_mirror.models import Coordinate, Item, StoreTarget
from m2_mirror.pipeline import FindDeployables
from m2_mirror.scanner import walk_local_repo
from m2_mirror.store import FileStore


def _index(archive: Path | None, group_id: str = "org.mirror", artifact_id: str = "idx") -> Index:
    coordinate = Coordinate(group_id=group_id, artifact_id=artifact_id, version="LATEST")
    return Index(
        Item(coordinate=coordinate, type="jar", file=archive),
        Item(coordinate=coordinate, type="pom"),
    )


def _archive(tmp_path: Path, entries: dict[str, bytes]) -> Path:
    src = tmp_path / "index-src"
    for name, content in entries.items():
        path = src.joinpath(*name.split("/"))
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
    src.mkdir(exist_ok=True)
    return create_archive(tmp_path / "idx.jar", src)


def _completed(local_repo: Path):
    return list(FindDeployables().attach_pipe(walk_local_repo(local_repo)))


def test_without_archive_only_drops_itself(local_repo: Path) -> None:
    write_files(local_repo, "com/widget/1", ["widget-1.pom", "widget-1.jar"])
    write_files(local_repo, "org/mirror/idx/v20200101000000", ["idx-v20200101000000.pom"])

    result = list(_index(None).attach_pipe(iter(_completed(local_repo))))

    assert [b.layout_prefix for b in result] == ["com/widget/1"]
    assert set(result[0].deployables) == {"widget-1.pom", "widget-1.jar"}


def test_applies_recorded_entry(local_repo: Path, tmp_path: Path) -> None:
    write_files(local_repo, "com/widget/1", ["widget-1.pom", "widget-1.jar"])
    archive = _archive(tmp_path, {"com/widget/1.txt": b"widget-1.jar\n"})

    (bundle,) = _index(archive).attach_pipe(iter(_completed(local_repo)))

    assert set(bundle.deployables) == {"widget-1.pom"}
    assert bundle.synchronized == {"widget-1.jar"}


def test_drops_fully_synchronized_bundles(local_repo: Path, tmp_path: Path) -> None:
    write_files(local_repo, "com/widget/1", ["widget-1.pom", "widget-1.jar"])
    write_files(local_repo, "com/widget/2", ["widget-2.pom"])
    archive = _archive(tmp_path, {"com/widget/1.txt": b"widget-1.jar\nwidget-1.pom\n"})

    result = list(_index(archive).attach_pipe(iter(_completed(local_repo))))

    assert [b.layout_prefix for b in result] == ["com/widget/2"]


def test_unreadable_entry_passes_through(local_repo: Path, tmp_path: Path) -> None:
    write_files(local_repo, "com/widget/1", ["widget-1.pom", "widget-1.jar"])
    archive = _archive(tmp_path, {"com/widget/1.txt": b"\xff\xfe\x00broken"})

    (bundle,) = _index(archive).attach_pipe(iter(_completed(local_repo)))

    assert set(bundle.deployables) == {"widget-1.pom", "widget-1.jar"}
    assert bundle.synchronized == frozenset()


def test_chained_indexes_narrow_further(local_repo: Path, tmp_path: Path) -> None:
    write_files(local_repo, "com/widget/1", ["widget-1.pom", "widget-1.jar", "widget-1-sources.jar"])
    first = tmp_path / "first"
    second = tmp_path / "second"
    first.mkdir()
    second.mkdir()
    primary = _index(_archive(first, {"com/widget/1.txt": b"widget-1.jar\n"}))
    alt = _index(_archive(second, {"com/widget/1.txt": b"widget-1-sources.jar\n"}), artifact_id="other")

    (bundle,) = alt.attach_pipe(primary.attach_pipe(iter(_completed(local_repo))))

    assert set(bundle.deployables) == {"widget-1.pom"}
    assert bundle.synchronized == {"widget-1.jar", "widget-1-sources.jar"}


def test_resolve_index_failure_degrades_to_empty(tmp_path: Path) -> None:
    context = SyncContext(RecordingStore(), None, tmp_path)

    index = resolve_index(context, "org.mirror", "idx")

    assert index.archive is None
    assert index.coordinate.compact() == "org.mirror:idx:LATEST"


def test_resolve_index_skipped(tmp_path: Path) -> None:
    store = RecordingStore(resolvable=["idx-LATEST.pom", "idx-LATEST.jar"])
    context = SyncContext(store, None, tmp_path)

    index = resolve_index(context, "org.mirror", "idx", do_resolve=False)

    assert index.archive is None
    assert store.resolve_calls == []


def test_resolve_index_downloads_latest(tmp_path: Path) -> None:
    remote = tmp_path / "remote"
    store = FileStore(StoreTarget(id="r", url=remote.as_uri()), tmp_path / "downloads", remote)
    coordinate = Coordinate(group_id="org.mirror", artifact_id="idx", version="v20240101000000")
    pom = write_files(tmp_path / "staging", "x", ["idx-v20240101000000.pom"]) / "idx-v20240101000000.pom"
    jar = _archive(tmp_path, {"com/widget/1.txt": b"widget-1.jar\n"})
    store.deploy(
        [
            Item(coordinate=coordinate, type="pom", file=pom, metadata=("artifact",)),
            Item(coordinate=coordinate, type="jar", file=jar, metadata=("artifact",)),
        ]
    )

    index = resolve_index(SyncContext(store, None, tmp_path), "org.mirror", "idx")

    assert index.coordinate.version == "v20240101000000"
    assert index.archive is not None and zipfile.is_zipfile(index.archive)
