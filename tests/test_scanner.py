from __future__ import annotations

from pathlib import Path

import pytest

from conftest import write_files
from m2_mirror.exceptions import ScanError
from m2_mirror.models import ARTIFACT_METADATA
from m2_mirror.scanner import walk_local_repo

GROUPS = ["com", "com/ex", "com/ex/ex", "net", "net/ex", "net/ex/ex"]
VERSIONS = ["1", "1-SNAPSHOT", "v12345"]


def test_walk_local_repo_finds_every_version_directory(local_repo: Path) -> None:
    for group in GROUPS:
        for version in VERSIONS:
            write_files(local_repo, f"{group}/widget/{version}", [f"widget-{version}.pom", f"widget-{version}.jar"])

    bundles = list(walk_local_repo(local_repo))

    assert len(bundles) == 18
    assert {b.layout_prefix for b in bundles} == {
        f"{group}/widget/{version}" for group in GROUPS for version in VERSIONS
    }
    assert all(not b.deployables for b in bundles)


def test_walk_local_repo_builds_descriptor_item(local_repo: Path) -> None:
    directory = write_files(local_repo, "com/ex/widget/1", ["widget-1.pom", "widget-1.jar"])

    (bundle,) = walk_local_repo(local_repo)

    assert bundle.coordinate.compact() == "com.ex:widget:1"
    assert bundle.descriptor.type == "pom"
    assert bundle.descriptor.file == directory / "widget-1.pom"
    assert bundle.descriptor.metadata == (ARTIFACT_METADATA,)


def test_walk_local_repo_ignores_directories_without_descriptor(local_repo: Path) -> None:
    write_files(local_repo, "com/widget/1", ["widget-1.jar"])
    write_files(local_repo, "com/widget/2", ["other-2.pom"])
    write_files(local_repo, "widget/3", ["widget-3.pom"])

    assert list(walk_local_repo(local_repo)) == []


def test_walk_local_repo_does_not_descend_into_version_directories(local_repo: Path) -> None:
    write_files(local_repo, "com/widget/1", ["widget-1.pom"])
    write_files(local_repo, "com/widget/1/nested/x", ["nested-x.pom"])

    assert [b.layout_prefix for b in walk_local_repo(local_repo)] == ["com/widget/1"]


def test_walk_local_repo_missing_root(tmp_path: Path) -> None:
    with pytest.raises(ScanError):
        list(walk_local_repo(tmp_path / "missing"))
