from __future__ import annotations

import logging
import shutil
import zipfile
from collections.abc import Iterable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from lxml import etree

from m2_mirror.archive import create_archive, extract_archive
from m2_mirror.context import SyncContext
from m2_mirror.exceptions import (
    DeployError,
    FailureThresholdError,
    FatalSyncError,
    PublishError,
    SyncFailure,
    SyncFailuresError,
)
from m2_mirror.index import INDEX_TYPE, Index
from m2_mirror.models import ARTIFACT_METADATA, DESCRIPTOR_TYPE, DIRTY, FAILED, NOOP, Bundle, Coordinate, Item, Stats

logger = logging.getLogger(__name__)

INDEX_VERSION_FORMAT = "v%Y%m%d%H%M%S"
POM_NAMESPACE = "http://maven.apache.org/POM/4.0.0"


@dataclass(frozen=True)
class BuilderConfig:
    """Failure policy for a run.

    Attributes:
        ignore_failures: Finish successfully even when some bundles failed to sync.
        terminate_at_failure_count: Stop the run once this many bundles failed (0 disables).
    """

    ignore_failures: bool = False
    terminate_at_failure_count: int = 0


def write_descriptor(path: Path, coordinate: Coordinate) -> Path:
    """Write a minimal POM for the index artifact."""
    root = etree.Element("project", nsmap={None: POM_NAMESPACE})
    for name, value in (
        ("modelVersion", "4.0.0"),
        ("groupId", coordinate.group_id),
        ("artifactId", coordinate.artifact_id),
        ("version", coordinate.version),
    ):
        etree.SubElement(root, f"{{{POM_NAMESPACE}}}{name}").text = value
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(etree.tostring(root, xml_declaration=True, encoding="UTF-8", pretty_print=True))
    return path


class IndexBuilder:
    """Synchronizes bundles and records the results in a fresh copy of the index."""

    def __init__(
        self,
        index_dir: Path,
        archive_item: Item,
        descriptor_item: Item,
        context: SyncContext,
        config: BuilderConfig | None = None,
    ) -> None:
        self.index_dir = index_dir
        self.archive_item = archive_item
        self.descriptor_item = descriptor_item
        self.context = context
        self.config = config or BuilderConfig()

    @classmethod
    def from_index(
        cls,
        index: Index,
        context: SyncContext,
        config: BuilderConfig | None = None,
        now: datetime | None = None,
    ) -> IndexBuilder:
        """Mint a new index version and seed its directory from the resolved archive."""
        version = (now or datetime.now(timezone.utc)).strftime(INDEX_VERSION_FORMAT)
        coordinate = index.coordinate.with_version(version)
        base_name = f"{coordinate.artifact_id}-{version}"
        temp_dir = context.temp_dir

        descriptor_file = write_descriptor(temp_dir / f"{base_name}.{DESCRIPTOR_TYPE}", coordinate)
        index_dir = temp_dir / f"{base_name}.dir"
        if index.archive is None or not index.archive.is_file():
            index_dir.mkdir(parents=True, exist_ok=True)
        else:
            try:
                extract_archive(index.archive, index_dir)
            except (ValueError, OSError, zipfile.BadZipFile) as exc:
                logger.warning("Failed to extract previous index %s; rebuilding from scratch", index.archive)
                logger.debug("Failed to extract previous index %s", index.archive, exc_info=exc)
                shutil.rmtree(index_dir, ignore_errors=True)
                index_dir.mkdir(parents=True, exist_ok=True)

        archive_item = Item(
            coordinate=coordinate,
            type=INDEX_TYPE,
            file=temp_dir / f"{base_name}.{INDEX_TYPE}",
            metadata=(ARTIFACT_METADATA,),
        )
        descriptor_item = Item(
            coordinate=coordinate,
            type=DESCRIPTOR_TYPE,
            file=descriptor_file,
            metadata=(ARTIFACT_METADATA,),
        )
        return cls(index_dir, archive_item, descriptor_item, context, config)

    @property
    def coordinate(self) -> Coordinate:
        return self.archive_item.coordinate

    @property
    def items(self) -> list[Item]:
        return [self.descriptor_item, self.archive_item]

    def write_entry(self, bundle: Bundle, synchronized: Iterable[str]) -> Path:
        index_file = self.index_dir.joinpath(*bundle.index_file_rel_path.split("/"))
        index_file.parent.mkdir(parents=True, exist_ok=True)
        index_file.write_text("".join(f"{name}\n" for name in sorted(synchronized)), encoding="utf-8")
        return index_file

    def sync_bundle(self, bundle: Bundle) -> Stats:
        """Synchronize one bundle and record it in the index directory.

        Raises:
            FatalSyncError: If the bundle is marked fail-on-error and could not be synchronized.
        """
        deployables = {
            name: item for name, item in bundle.deployables.items() if name not in bundle.synchronized
        }
        if not deployables:
            return NOOP

        try:
            self.context.sync_all(bundle.coordinate, list(deployables.values()))
        except SyncFailure as exc:
            if bundle.fail_on_error:
                raise FatalSyncError(
                    bundle.coordinate, exc.item, f"Failed to sync reactor artifact {bundle.coordinate}: {exc}"
                ) from exc
            logger.warning("Failed to sync %s", bundle.coordinate)
            logger.debug("Failed to sync %s", bundle.coordinate, exc_info=exc)
            return FAILED

        if bundle.is_snapshot:
            logger.debug("Synced snapshot %s (not indexed)", bundle.coordinate)
            return NOOP

        self.write_entry(bundle, bundle.synchronized | deployables.keys())
        logger.debug("Synced %s (%d file(s))", bundle.coordinate, len(deployables))
        return DIRTY

    def _threshold_reached(self, stats: Stats) -> bool:
        limit = self.config.terminate_at_failure_count
        return limit > 0 and stats.failure_count >= limit

    def build_index_from(self, bundles: Iterable[Bundle], workers: int = 1) -> Stats:
        """Synchronize bundles on a bounded pool and fold their stats.

        New bundles stop being admitted once a fatal error occurs or the
        failure threshold is reached; syncs already running are allowed to finish.

        Raises:
            FatalSyncError: From a fail-on-error bundle.
            FailureThresholdError: When the configured failure count is reached.
        """
        stats = NOOP
        halted: BaseException | None = None
        source = iter(bundles)
        pending: set[Future[Stats]] = set()

        try:
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="m2-mirror-sync") as executor:
                while True:
                    while halted is None and len(pending) < workers:
                        bundle = next(source, None)
                        if bundle is None:
                            break
                        pending.add(executor.submit(self.sync_bundle, bundle))
                    if not pending:
                        break

                    done, pending = wait(pending, return_when=FIRST_COMPLETED)
                    for future in done:
                        try:
                            stats = stats.combine(future.result())
                        except Exception as exc:
                            halted = halted or exc
                            continue
                        if halted is None and self._threshold_reached(stats):
                            halted = FailureThresholdError(stats.failure_count)
        finally:
            # Index filters hold their archive open until the stream is closed.
            close = getattr(source, "close", None)
            if close is not None:
                close()

        if halted is not None:
            raise halted
        return stats

    def finish_and_upload(self, stats: Stats, no_upload: bool = False) -> Path:
        """Archive the index directory, publish it when dirty, then report failures.

        Raises:
            PublishError: If the index could not be deployed.
            SyncFailuresError: If bundles failed and failures are not ignored.
        """
        archive = create_archive(self.archive_item.file, self.index_dir)
        if stats.dirty and not no_upload:
            try:
                self.context.deploy(self.coordinate, self.items)
            except DeployError as exc:
                raise PublishError(f"Failed to deploy index {self.coordinate}: {exc}") from exc
            logger.info("Deployed index %s", self.coordinate)
        elif stats.dirty:
            logger.info("Skipping deployment of index %s", self.coordinate)
        else:
            logger.info("Index unchanged; nothing to deploy")

        if stats.failure_count:
            if self.config.ignore_failures:
                logger.warning("Ignoring %d sync failure(s)", stats.failure_count)
            else:
                raise SyncFailuresError(stats.failure_count)
        return archive
