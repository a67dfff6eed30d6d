"""Run configuration.

Values are read from `M2_MIRROR_*` environment variables and may be
overridden by CLI options.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from m2_mirror.exceptions import ConfigurationError
from m2_mirror.models import StoreTarget

_TRUE = {"1", "true", "yes", "on"}


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in _TRUE


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from None


def _env_path(name: str) -> Path | None:
    value = os.getenv(name)
    return Path(value).expanduser() if value else None


def _parse_target(value: str | None) -> StoreTarget | None:
    if value is None or not value.strip():
        return None
    try:
        return StoreTarget.parse(value)
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from None


@dataclass
class SyncConfig:
    """Sync run configuration container.

    Attributes:
        index_group_id: groupId of the index resolved and deployed by this run
        index_artifact_id: artifactId of that index
        local_repo: Local repository to mirror
        alt_index: Comma separated `groupId:artifactId` list of read-only indexes
        alt_deployment_repository: `id::url` used for both releases and snapshots
        alt_release_deployment_repository: `id::url` for releases only
        alt_snapshot_deployment_repository: `id::url` for snapshots only
        project_dir: Directory holding the reactor's root pom.xml
        temp_directory: Parent for temporary files
    """

    index_group_id: str | None = None
    index_artifact_id: str | None = None
    local_repo: Path = field(default_factory=lambda: Path.home() / ".m2" / "repository")
    alt_index: str | None = None

    alt_deployment_repository: str | None = None
    alt_release_deployment_repository: str | None = None
    alt_snapshot_deployment_repository: str | None = None

    skip_resolve_index: bool = False
    skip_deploy_index: bool = False
    ignore_failures: bool = False
    terminate_at_failure_count: int = 0
    reactor_aware: bool = True
    reactor_deploy_snapshots: bool = False
    limit_artifact_count: int = 0
    workers: int = 4

    project_dir: Path | None = None
    temp_directory: Path | None = None

    @classmethod
    def from_env(cls) -> "SyncConfig":
        """Create configuration from environment variables.

        Environment variables:
            M2_MIRROR_INDEX_GROUP_ID / M2_MIRROR_INDEX_ARTIFACT_ID: Index coordinates
            M2_MIRROR_ALT_INDEX: Alternate indexes, e.g. ":other-pipeline,com.acme:shared"
            M2_MIRROR_LOCAL_REPO: Local repository (default: ~/.m2/repository)
            M2_MIRROR_DEPLOY_REPO / M2_MIRROR_RELEASE_REPO / M2_MIRROR_SNAPSHOT_REPO: `id::url`
            M2_MIRROR_SKIP_RESOLVE_INDEX, M2_MIRROR_SKIP_DEPLOY_INDEX, M2_MIRROR_IGNORE_FAILURES,
            M2_MIRROR_REACTOR_AWARE (default: true), M2_MIRROR_REACTOR_DEPLOY_SNAPSHOTS: booleans
            M2_MIRROR_TERMINATE_AT_FAILURE_COUNT, M2_MIRROR_LIMIT, M2_MIRROR_WORKERS: integers
            M2_MIRROR_PROJECT_DIR, M2_MIRROR_TEMP_DIR: paths
        """
        config = cls(
            index_group_id=os.getenv("M2_MIRROR_INDEX_GROUP_ID") or None,
            index_artifact_id=os.getenv("M2_MIRROR_INDEX_ARTIFACT_ID") or None,
            alt_index=os.getenv("M2_MIRROR_ALT_INDEX") or None,
            alt_deployment_repository=os.getenv("M2_MIRROR_DEPLOY_REPO") or None,
            alt_release_deployment_repository=os.getenv("M2_MIRROR_RELEASE_REPO") or None,
            alt_snapshot_deployment_repository=os.getenv("M2_MIRROR_SNAPSHOT_REPO") or None,
            skip_resolve_index=_env_bool("M2_MIRROR_SKIP_RESOLVE_INDEX"),
            skip_deploy_index=_env_bool("M2_MIRROR_SKIP_DEPLOY_INDEX"),
            ignore_failures=_env_bool("M2_MIRROR_IGNORE_FAILURES"),
            terminate_at_failure_count=_env_int("M2_MIRROR_TERMINATE_AT_FAILURE_COUNT", 0),
            reactor_aware=_env_bool("M2_MIRROR_REACTOR_AWARE", True),
            reactor_deploy_snapshots=_env_bool("M2_MIRROR_REACTOR_DEPLOY_SNAPSHOTS"),
            limit_artifact_count=_env_int("M2_MIRROR_LIMIT", 0),
            workers=_env_int("M2_MIRROR_WORKERS", 4),
            project_dir=_env_path("M2_MIRROR_PROJECT_DIR"),
            temp_directory=_env_path("M2_MIRROR_TEMP_DIR"),
        )
        local_repo = _env_path("M2_MIRROR_LOCAL_REPO")
        if local_repo is not None:
            config.local_repo = local_repo
        return config

    def validate(self) -> None:
        """Validate the configuration.

        Raises:
            ConfigurationError: If required configuration is missing or out of range.
        """
        if not self.index_group_id:
            raise ConfigurationError("index group id is required (M2_MIRROR_INDEX_GROUP_ID)")
        if not self.index_artifact_id:
            raise ConfigurationError("index artifact id is required (M2_MIRROR_INDEX_ARTIFACT_ID)")
        if self.terminate_at_failure_count < 0:
            raise ConfigurationError("terminate-at-failure-count must not be negative")
        if self.limit_artifact_count < 0:
            raise ConfigurationError("limit must not be negative")
        if self.workers < 1:
            raise ConfigurationError("workers must be at least 1")
        for value in (
            self.alt_deployment_repository,
            self.alt_release_deployment_repository,
            self.alt_snapshot_deployment_repository,
        ):
            _parse_target(value)

    def alt_index_coordinates(self) -> list[tuple[str, str]]:
        """Parse `alt_index` into (groupId, artifactId) pairs.

        Entries without a colon are ignored, a blank groupId defaults to the
        primary index groupId, and the primary index itself is skipped.
        """
        if not self.alt_index or not self.alt_index.strip():
            return []
        pairs: list[tuple[str, str]] = []
        for part in self.alt_index.split(","):
            if ":" not in part:
                continue
            group_id, _, artifact_id = part.strip().partition(":")
            group_id = group_id.strip() or (self.index_group_id or "")
            artifact_id = artifact_id.strip()
            if not group_id or not artifact_id:
                continue
            if (group_id, artifact_id) == (self.index_group_id, self.index_artifact_id):
                continue
            if (group_id, artifact_id) not in pairs:
                pairs.append((group_id, artifact_id))
        return pairs

    def release_target(self, fallback: StoreTarget | None = None) -> StoreTarget:
        """The release deployment target; `fallback` comes from the project's distributionManagement.

        Raises:
            ConfigurationError: If no release target is available.
        """
        target = (
            _parse_target(self.alt_release_deployment_repository)
            or _parse_target(self.alt_deployment_repository)
            or fallback
        )
        if target is None:
            raise ConfigurationError(
                "No release deployment repository: set M2_MIRROR_RELEASE_REPO or M2_MIRROR_DEPLOY_REPO "
                "(id::url), or run from a project with distributionManagement"
            )
        return target

    def snapshot_target(self, fallback: StoreTarget | None = None) -> StoreTarget | None:
        return (
            _parse_target(self.alt_snapshot_deployment_repository)
            or _parse_target(self.alt_deployment_repository)
            or fallback
        )
