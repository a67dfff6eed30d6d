"""Wire the scanner, filters, synchronizer and index builder into one run."""

from __future__ import annotations

import functools
import itertools
import logging
import tempfile
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import httpx

from m2_mirror.config import SyncConfig
from m2_mirror.context import SyncContext
from m2_mirror.exceptions import ConfigurationError
from m2_mirror.index import Index, resolve_index
from m2_mirror.index_builder import BuilderConfig, IndexBuilder
from m2_mirror.models import Bundle, Coordinate, MavenProject, Stats
from m2_mirror.parser import reactor_projects
from m2_mirror.reactor import ReactorFilter
from m2_mirror.scanner import walk_local_repo
from m2_mirror.store import open_store

logger = logging.getLogger(__name__)


class BundlePipe(Protocol):
    """A stage that narrows or transforms a stream of bundles."""

    def attach_pipe(self, bundles: Iterator[Bundle]) -> Iterator[Bundle]: ...


class FindDeployables:
    """Expand descriptor-only bundles into their deployable files."""

    def attach_pipe(self, bundles: Iterator[Bundle]) -> Iterator[Bundle]:
        for bundle in bundles:
            yield bundle.find_deployables()


def apply_pipes(bundles: Iterable[Bundle], pipes: Sequence[BundlePipe]) -> Iterator[Bundle]:
    return functools.reduce(lambda flow, pipe: pipe.attach_pipe(flow), pipes, iter(bundles))


def deployable_bundles(
    bundles: Iterable[Bundle],
    reactor_filter: ReactorFilter,
    indexes: Sequence[Index],
    limit: int = 0,
) -> Iterator[Bundle]:
    """Lazily filter scanned bundles down to what still needs syncing.

    Order: optional limit, reactor filter, file discovery, then the primary
    index followed by the alternate indexes.
    """
    stream: Iterator[Bundle] = iter(bundles)
    if limit > 0:
        stream = itertools.islice(stream, limit)
    return apply_pipes(stream, [reactor_filter, FindDeployables(), *indexes])


@dataclass
class RunResult:
    """Outcome of a completed run."""

    stats: Stats
    index_coordinate: Coordinate
    index_archive: Path


def make_temp_dir(config: SyncConfig, root_project: MavenProject | None) -> Path:
    if config.temp_directory is not None:
        config.temp_directory.mkdir(parents=True, exist_ok=True)
        return Path(tempfile.mkdtemp(prefix="m2_mirror_", dir=config.temp_directory))
    if root_project is not None and root_project.path is not None:
        project_tmp = root_project.path.parent / "target" / "m2-mirror-tmp"
        project_tmp.mkdir(parents=True, exist_ok=True)
        return project_tmp
    return Path(tempfile.mkdtemp(prefix="m2_mirror_"))


def build_context(
    config: SyncConfig,
    root_project: MavenProject | None,
    temp_dir: Path,
    client: httpx.Client | None = None,
) -> SyncContext:
    release = config.release_target(root_project.release_repository if root_project else None)
    snapshot = config.snapshot_target(root_project.snapshot_repository if root_project else None)
    download_dir = temp_dir / "downloads"

    release_store = open_store(release, download_dir, client)
    if snapshot is None:
        snapshot_store = None
    elif snapshot == release:
        snapshot_store = release_store
    else:
        snapshot_store = open_store(snapshot, download_dir, client)
    logger.info("Deploying releases to %s", release)
    if snapshot is not None:
        logger.info("Deploying snapshots to %s", snapshot)
    return SyncContext(release_store, snapshot_store, temp_dir)


def run_sync(config: SyncConfig, client: httpx.Client | None = None) -> RunResult:
    """Mirror the local repository to the configured remote repository.

    Raises:
        MirrorError: Any fatal condition; see `IndexBuilder.build_index_from`
            and `IndexBuilder.finish_and_upload`.
    """
    config.validate()
    projects = reactor_projects(config.project_dir) if config.project_dir is not None else []
    root_project = projects[0] if projects else None
    reactor_aware = config.reactor_aware and bool(projects)

    temp_dir = make_temp_dir(config, root_project)
    context = build_context(config, root_project, temp_dir, client)
    try:
        if (
            reactor_aware
            and config.reactor_deploy_snapshots
            and context.snapshot_store is None
            and any(p.project.is_snapshot for p in projects)
        ):
            raise ConfigurationError(
                "Reactor snapshot deployment is enabled but no snapshot deployment repository is configured"
            )

        index = resolve_index(
            context, config.index_group_id, config.index_artifact_id, not config.skip_resolve_index
        )
        alt_indexes = [
            resolve_index(context, group_id, artifact_id)
            for group_id, artifact_id in config.alt_index_coordinates()
        ]
        reactor_filter = ReactorFilter(
            [p.project for p in projects], reactor_aware, config.reactor_deploy_snapshots
        )
        builder = IndexBuilder.from_index(
            index,
            context,
            BuilderConfig(
                ignore_failures=config.ignore_failures,
                terminate_at_failure_count=config.terminate_at_failure_count,
            ),
        )
        bundles = deployable_bundles(
            walk_local_repo(config.local_repo),
            reactor_filter,
            [index, *alt_indexes],
            limit=config.limit_artifact_count,
        )
        stats = builder.build_index_from(bundles, workers=config.workers)
        logger.info("Synced with %d failure(s), dirty=%s", stats.failure_count, stats.dirty)
        archive = builder.finish_and_upload(stats, no_upload=config.skip_deploy_index)
    finally:
        context.close()
    return RunResult(stats=stats, index_coordinate=builder.coordinate, index_archive=archive)
