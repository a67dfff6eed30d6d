"""The index: a jar of `<layout prefix>.txt` entries listing already synchronized files."""

from __future__ import annotations

import logging
import zipfile
from collections.abc import Iterator
from pathlib import Path

from m2_mirror.archive import read_entry
from m2_mirror.context import SyncContext
from m2_mirror.exceptions import IndexParseError, StoreError
from m2_mirror.models import ARTIFACT_METADATA, DESCRIPTOR_TYPE, Bundle, Coordinate, Item
from m2_mirror.store import LATEST_VERSION

logger = logging.getLogger(__name__)

INDEX_TYPE = "jar"


class Index:
    """Read-side index filter.

    `archive_item.file` is None when no previous index could be resolved, in
    which case bundles pass through unfiltered.
    """

    def __init__(self, archive_item: Item, descriptor_item: Item) -> None:
        self.archive_item = archive_item
        self.descriptor_item = descriptor_item

    @property
    def coordinate(self) -> Coordinate:
        return self.archive_item.coordinate

    @property
    def archive(self) -> Path | None:
        return self.archive_item.file

    def is_myself(self, bundle: Bundle) -> bool:
        """True for bundles of this index's own group and artifact, whatever the version."""
        return (
            bundle.coordinate.group_id == self.coordinate.group_id
            and bundle.coordinate.artifact_id == self.coordinate.artifact_id
        )

    def read_entry(self, archive: zipfile.ZipFile, bundle: Bundle) -> list[str] | None:
        """Return the synchronized file names recorded for `bundle`, or None when absent.

        Raises:
            IndexParseError: If the entry exists but cannot be decoded.
        """
        try:
            return read_entry(archive, bundle.index_file_rel_path)
        except (UnicodeDecodeError, zipfile.BadZipFile, OSError) as exc:
            raise IndexParseError(f"Unreadable index entry {bundle.index_file_rel_path}") from exc

    def apply_filter(self, archive: zipfile.ZipFile, bundle: Bundle) -> Bundle | None:
        try:
            names = self.read_entry(archive, bundle)
        except IndexParseError as exc:
            logger.info("Failed to read index for artifact group %s", bundle.layout_prefix, exc_info=exc)
            return bundle
        if names is None:
            return bundle
        filtered = bundle.filtered_by_index(names)
        if not filtered.deployables:
            return None
        return filtered

    def attach_pipe(self, bundles: Iterator[Bundle]) -> Iterator[Bundle]:
        archive_file = self.archive
        if archive_file is None:
            yield from (bundle for bundle in bundles if not self.is_myself(bundle))
            return

        with zipfile.ZipFile(archive_file) as archive:
            for bundle in bundles:
                if self.is_myself(bundle):
                    continue
                filtered = self.apply_filter(archive, bundle)
                if filtered is not None:
                    yield filtered

    def __repr__(self) -> str:
        return f"Index({self.coordinate.group_id}:{self.coordinate.artifact_id}, archive={self.archive})"


def resolve_index(context: SyncContext, group_id: str, artifact_id: str, do_resolve: bool = True) -> Index:
    """Resolve the latest published index for `group_id:artifact_id`.

    Resolution failure is not fatal: the index then has no archive and the
    run rebuilds it from scratch.
    """
    coordinate = Coordinate(group_id=group_id, artifact_id=artifact_id, version=LATEST_VERSION)
    archive_item = Item(coordinate=coordinate, type=INDEX_TYPE, metadata=(ARTIFACT_METADATA,))
    descriptor_item = Item(coordinate=coordinate, type=DESCRIPTOR_TYPE, metadata=(ARTIFACT_METADATA,))

    if do_resolve:
        try:
            descriptor_item = context.resolve(descriptor_item)
            resolved = context.resolve(archive_item.model_copy(update={"coordinate": descriptor_item.coordinate}))
            if resolved.file is not None and not zipfile.is_zipfile(resolved.file):
                raise StoreError(f"Resolved index is not a jar: {resolved.file}")
            archive_item = resolved
            logger.info("Resolved index file to %s", archive_item.file)
        except StoreError as exc:
            logger.warning("Failed to resolve latest index: %s", archive_item.label())
            logger.debug("Failed to resolve latest index: %s", archive_item.label(), exc_info=exc)

    return Index(archive_item, descriptor_item)
