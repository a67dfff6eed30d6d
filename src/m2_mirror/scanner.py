from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from pathlib import Path

from m2_mirror.exceptions import ScanError
from m2_mirror.models import ARTIFACT_METADATA, DESCRIPTOR_TYPE, Bundle, Coordinate, Item

logger = logging.getLogger(__name__)

_DESCRIPTOR_EXT = "." + DESCRIPTOR_TYPE


def _raise_scan_error(exc: OSError) -> None:
    raise ScanError(f"Failed to walk local repository: {exc}") from exc


def _bundle_for(root: Path, directory: Path, filenames: list[str]) -> Bundle | None:
    """Build a descriptor-only bundle when `directory` is a version directory."""
    version = directory.name
    artifact_dir = directory.parent
    artifact_id = artifact_dir.name
    descriptor_name = f"{artifact_id}-{version}{_DESCRIPTOR_EXT}"
    if descriptor_name not in filenames:
        return None

    try:
        group_path = artifact_dir.parent.relative_to(root)
    except ValueError:
        return None
    if not group_path.parts:
        logger.debug("Skipping %s: no group directory above the artifact", directory)
        return None

    coordinate = Coordinate(
        group_id=".".join(group_path.parts),
        artifact_id=artifact_id,
        version=version,
    )
    descriptor = Item(
        coordinate=coordinate,
        type=DESCRIPTOR_TYPE,
        file=directory / descriptor_name,
        metadata=(ARTIFACT_METADATA,),
    )
    layout_prefix = directory.relative_to(root).as_posix()
    return Bundle(layout_prefix=layout_prefix, descriptor=descriptor)


def walk_local_repo(root: Path) -> Iterator[Bundle]:
    """Walk a local repository and yield one descriptor-only bundle per version directory.

    A version directory `<group...>/<artifact>/<version>/` is recognized by its
    `<artifact>-<version>.pom` file. Once found, the rest of that directory is
    not descended into.

    Raises:
        ScanError: If the root cannot be read or the walk fails.
    """
    root = root.absolute()
    if not root.is_dir():
        raise ScanError(f"Local repository not found: {root}")

    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise_scan_error):
        directory = Path(dirpath)
        if directory == root:
            continue
        bundle = _bundle_for(root, directory, filenames)
        if bundle is not None:
            dirnames[:] = []
            yield bundle
            continue
        dirnames.sort()
