"""Pydantic models for Maven coordinates, artifact items and sync bundles."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

SNAPSHOT_MARKERS = ("SNAPSHOT", "LATEST")
DESCRIPTOR_TYPE = "pom"
PARTIAL_DOWNLOAD_SUFFIX = ".lastUpdated"
INDEX_FILE_SUFFIX = ".txt"

# Metadata tag: deploying the item also updates <group>/<artifact>/maven-metadata.xml.
ARTIFACT_METADATA = "artifact"


class Coordinate(BaseModel):
    """Maven coordinates (GroupId, ArtifactId, Version)."""

    model_config = ConfigDict(frozen=True)

    group_id: str = Field(..., min_length=1)
    artifact_id: str = Field(..., min_length=1)
    version: str = Field(..., min_length=1)

    @property
    def is_snapshot(self) -> bool:
        return self.version.endswith(SNAPSHOT_MARKERS)

    def compact(self) -> str:
        """Return a compact string representation.

        Returns:
            A string like `groupId:artifactId:version`.
        """
        return f"{self.group_id}:{self.artifact_id}:{self.version}"

    def with_version(self, version: str) -> Coordinate:
        return Coordinate(group_id=self.group_id, artifact_id=self.artifact_id, version=version)

    def __str__(self) -> str:
        return self.compact()


class Item(BaseModel):
    """A single deployable file of a coordinate: its type, classifier and local file."""

    model_config = ConfigDict(frozen=True)

    coordinate: Coordinate
    type: str = Field(..., min_length=1)
    classifier: str = ""
    file: Path | None = None
    metadata: tuple[str, ...] = ()

    @property
    def filename(self) -> str:
        """Repository file name, e.g. `widget-1-sources.jar`."""
        classifier = f"-{self.classifier}" if self.classifier else ""
        return f"{self.coordinate.artifact_id}-{self.coordinate.version}{classifier}.{self.type}"

    def with_file(self, file: Path | None) -> Item:
        return self.model_copy(update={"file": file})

    def label(self) -> str:
        parts = [self.coordinate.compact(), self.type]
        if self.classifier:
            parts.append(self.classifier)
        return ":".join(parts)


def split_suffix(suffix: str) -> tuple[str, str] | None:
    """Split the remainder of a file name after `<artifact>-<version>`.

    `-sources.jar` => ("sources", "jar"), `.jar.sha1` => ("", "jar.sha1").
    Returns None for remainders that do not look like a classifier/type pair.
    """
    first_period = suffix.find(".")
    if first_period < 0 or first_period == len(suffix) - 1:
        return None
    if suffix.startswith("-") and first_period > 1:
        return suffix[1:first_period], suffix[first_period + 1 :]
    if first_period == 0:
        return "", suffix[1:]
    return None


class Bundle(BaseModel):
    """All files of one version directory in the local repository.

    Bundles are never mutated: every transform returns a new value. A file name
    listed in `synchronized` is never present in `deployables`.
    """

    model_config = ConfigDict(frozen=True)

    layout_prefix: str = Field(..., min_length=1)
    descriptor: Item
    deployables: dict[str, Item] = Field(default_factory=dict)
    synchronized: frozenset[str] = frozenset()
    fail_on_error: bool = False

    @property
    def coordinate(self) -> Coordinate:
        return self.descriptor.coordinate

    @property
    def is_snapshot(self) -> bool:
        return self.coordinate.is_snapshot

    @property
    def index_file_rel_path(self) -> str:
        return self.layout_prefix + INDEX_FILE_SUFFIX

    def find_deployables(self) -> Bundle:
        """Collect the descriptor and its sibling files into `deployables`."""
        deployables = dict(self.deployables)
        descriptor_file = self.descriptor.file
        if descriptor_file is None:
            return self

        descriptor_name = descriptor_file.name
        if descriptor_name not in deployables and descriptor_name not in self.synchronized:
            deployables[descriptor_name] = self.descriptor

        coordinate = self.coordinate
        prefix = f"{coordinate.artifact_id}-{coordinate.version}"
        try:
            siblings = sorted(descriptor_file.parent.iterdir())
        except OSError as exc:
            logger.warning("Cannot list %s: %s", descriptor_file.parent, exc)
            siblings = []

        for path in siblings:
            name = path.name
            if (
                name == descriptor_name
                or not name.startswith(prefix)
                or name in self.synchronized
                or name.endswith(PARTIAL_DOWNLOAD_SUFFIX)
            ):
                continue
            split = split_suffix(name[len(prefix) :])
            if split is None or not path.is_file():
                continue
            classifier, type_ = split
            deployables[name] = Item(
                coordinate=coordinate,
                type=type_,
                classifier=classifier,
                file=path,
                metadata=self.descriptor.metadata,
            )
        return self.model_copy(update={"deployables": deployables})

    def filtered_by_index(self, indexed: Iterable[str]) -> Bundle:
        """Apply a list of already synchronized file names."""
        names = frozenset(indexed)
        deployables = {name: item for name, item in self.deployables.items() if name not in names}
        return self.model_copy(
            update={"deployables": deployables, "synchronized": self.synchronized | names}
        )

    def mark_fail_on_error(self, fail_on_error: bool) -> Bundle:
        return self.model_copy(update={"fail_on_error": fail_on_error})


class Stats(BaseModel):
    """Per-run sync statistics. `combine` is associative and commutative with `NOOP` as identity."""

    model_config = ConfigDict(frozen=True)

    failure_count: int = Field(default=0, ge=0)
    dirty: bool = False

    def combine(self, other: Stats) -> Stats:
        return Stats(
            failure_count=self.failure_count + other.failure_count,
            dirty=self.dirty or other.dirty,
        )


NOOP = Stats()
DIRTY = Stats(dirty=True)
FAILED = Stats(failure_count=1)


class StoreTarget(BaseModel):
    """A remote repository descriptor: the id used for credentials and its URL."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)

    @classmethod
    def parse(cls, value: str) -> StoreTarget:
        """Parse an `id::url` descriptor.

        Raises:
            ValueError: If the value does not follow the `id::url` syntax.
        """
        repo_id, sep, url = value.partition("::")
        if not sep or not repo_id.strip() or not url.strip():
            raise ValueError(f'Invalid syntax for repository "{value}". Use "id::url".')
        return cls(id=repo_id.strip(), url=url.strip())

    def __str__(self) -> str:
        return f"{self.id}::{self.url}"


class MavenProject(BaseModel):
    """A parsed Maven project model, as far as the reactor needs it."""

    project: Coordinate
    path: Path | None = None
    modules: list[str] = Field(default_factory=list)
    release_repository: StoreTarget | None = None
    snapshot_repository: StoreTarget | None = None
