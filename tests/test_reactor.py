from __future__ import annotations

from pathlib import Path

import pytest

from m2_mirror.models import Bundle, Coordinate, Item
from m2_mirror.reactor import ReactorFilter


def _bundle(version: str, artifact_id: str = "widget") -> Bundle:
    coordinate = Coordinate(group_id="com", artifact_id=artifact_id, version=version)
    descriptor = Item(coordinate=coordinate, type="pom", file=Path(f"/repo/com/{artifact_id}/{version}/x.pom"))
    return Bundle(layout_prefix=f"com/{artifact_id}/{version}", descriptor=descriptor)


RELEASE = _bundle("1")
SNAPSHOT = _bundle("2-SNAPSHOT")
OTHER_RELEASE = _bundle("1", artifact_id="gadget")
OTHER_SNAPSHOT = _bundle("3-SNAPSHOT", artifact_id="gadget")
REACTOR = [RELEASE.coordinate, SNAPSHOT.coordinate]


def _run(reactor_filter: ReactorFilter) -> dict[str, bool]:
    bundles = [RELEASE, SNAPSHOT, OTHER_RELEASE, OTHER_SNAPSHOT]
    return {b.coordinate.compact(): b.fail_on_error for b in reactor_filter.attach_pipe(iter(bundles))}


def test_reactor_disabled_drops_all_snapshots() -> None:
    assert _run(ReactorFilter(REACTOR, False, True)) == {
        "com:widget:1": False,
        "com:gadget:1": False,
    }


def test_reactor_releases_fail_on_error() -> None:
    assert _run(ReactorFilter(REACTOR, True, False)) == {
        "com:widget:1": True,
        "com:gadget:1": False,
    }


def test_reactor_snapshots_deployed_when_enabled() -> None:
    assert _run(ReactorFilter(REACTOR, True, True)) == {
        "com:widget:1": True,
        "com:widget:2-SNAPSHOT": True,
        "com:gadget:1": False,
    }


@pytest.mark.parametrize(
    ("aware", "snapshots", "bundle", "expected"),
    [
        (True, False, RELEASE, True),
        (True, False, SNAPSHOT, False),
        (True, True, SNAPSHOT, True),
        (False, True, RELEASE, False),
        (True, True, OTHER_RELEASE, False),
    ],
)
def test_is_reactor_deployable(aware: bool, snapshots: bool, bundle: Bundle, expected: bool) -> None:
    assert ReactorFilter(REACTOR, aware, snapshots).is_reactor_deployable(bundle) is expected
