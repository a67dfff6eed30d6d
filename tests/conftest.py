"""Pytest configuration and fixtures for m2-mirror tests."""
from __future__ import annotations

import threading
from collections.abc import Iterable, Sequence
from pathlib import Path

import pytest

from m2_mirror.exceptions import DeployError, ResolveError
from m2_mirror.models import Item, StoreTarget

POM = """<?xml version="1.0" encoding="UTF-8"?>
<project><modelVersion>4.0.0</modelVersion></project>
"""


def write_files(root: Path, layout_prefix: str, names: Iterable[str]) -> Path:
    """Create `names` inside `root/layout_prefix` and return that directory."""
    directory = root.joinpath(*layout_prefix.split("/"))
    directory.mkdir(parents=True, exist_ok=True)
    for name in names:
        content = POM if name.endswith(".pom") else f"content of {name}\n"
        (directory / name).write_text(content, encoding="utf-8")
    return directory


class RecordingStore:
    """In-memory stand-in for a remote store.

    Bulk deploys (more than one item) fail when `fail_bulk` is set; any deploy
    touching a name in `fail_deploy` fails; `resolve` succeeds for names in
    `resolvable`.
    """

    def __init__(
        self,
        *,
        fail_bulk: bool = False,
        fail_deploy: Iterable[str] = (),
        resolvable: Iterable[str] = (),
    ) -> None:
        self.target = StoreTarget(id="fake", url="file:///fake")
        self.fail_bulk = fail_bulk
        self.fail_deploy = set(fail_deploy)
        self.resolvable = set(resolvable)
        self.deploy_calls: list[list[str]] = []
        self.resolve_calls: list[str] = []
        self.deployed: set[str] = set()
        self.closed = False
        self._lock = threading.Lock()

    def deploy(self, items: Sequence[Item]) -> None:
        names = [item.filename for item in items]
        with self._lock:
            self.deploy_calls.append(names)
        if self.fail_bulk and len(items) > 1:
            raise DeployError("bulk deploy rejected")
        failing = [name for name in names if name in self.fail_deploy]
        if failing:
            raise DeployError(f"rejected {failing}")
        with self._lock:
            self.deployed.update(names)

    def resolve(self, item: Item) -> Item:
        with self._lock:
            self.resolve_calls.append(item.filename)
        if item.filename in self.resolvable:
            return item
        raise ResolveError(f"{item.filename} not found")

    def close(self) -> None:
        self.closed = True

    def attempted(self) -> set[str]:
        return {name for call in self.deploy_calls for name in call}


@pytest.fixture
def local_repo(tmp_path: Path) -> Path:
    root = tmp_path / "repository"
    root.mkdir()
    return root


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()
