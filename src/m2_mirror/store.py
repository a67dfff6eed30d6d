"""Remote artifact stores speaking the Maven repository layout.

Two backends share the layout logic in `LayoutStore`:

- `FileStore` for `file://` URLs (a repository directory on disk)
- `HttpStore` for `http(s)://` URLs, using an `httpx.Client`

Both are safe to share between worker threads. Metadata read-modify-write
cycles are serialized per store.
"""

from __future__ import annotations

import hashlib
import logging
import shutil
import threading
from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol
from urllib.parse import unquote, urlparse

import httpx
from lxml import etree

from m2_mirror.exceptions import ConfigurationError, DeployError, ResolveError, StoreError
from m2_mirror.metadata import METADATA_FILENAME, merge_version, parse_versioning
from m2_mirror.models import ARTIFACT_METADATA, Coordinate, Item, StoreTarget

logger = logging.getLogger(__name__)

LATEST_VERSION = "LATEST"
RELEASE_VERSION = "RELEASE"


class RemoteStore(Protocol):
    """The two operations the sync engine needs from a remote repository."""

    target: StoreTarget

    def deploy(self, items: Sequence[Item]) -> None: ...

    def resolve(self, item: Item) -> Item: ...

    def close(self) -> None: ...


def coordinate_dir(coordinate: Coordinate) -> str:
    return "/".join([*coordinate.group_id.split("."), coordinate.artifact_id, coordinate.version])


def artifact_path(item: Item) -> str:
    """Repository path of an item, e.g. `com/acme/widget/1/widget-1.jar`."""
    return f"{coordinate_dir(item.coordinate)}/{item.filename}"


def metadata_path(coordinate: Coordinate) -> str:
    return "/".join([*coordinate.group_id.split("."), coordinate.artifact_id, METADATA_FILENAME])


class LayoutStore(ABC):
    """Deploy and resolve on top of four primitive path operations."""

    def __init__(self, target: StoreTarget, download_dir: Path) -> None:
        self.target = target
        self.download_dir = download_dir
        self._metadata_lock = threading.Lock()

    @abstractmethod
    def _exists(self, path: str) -> bool:
        """Return whether `path` exists. Raises StoreError on transport failures."""

    @abstractmethod
    def _read(self, path: str) -> bytes | None:
        """Return the content at `path`, or None when absent."""

    @abstractmethod
    def _write(self, path: str, data: bytes) -> None: ...

    @abstractmethod
    def _upload(self, path: str, file: Path) -> None: ...

    @abstractmethod
    def _download(self, path: str, dest: Path) -> bool:
        """Copy `path` to `dest`. Returns False when absent."""

    def close(self) -> None:
        return None

    def deploy(self, items: Sequence[Item]) -> None:
        """Upload every item, then update artifact metadata for tagged coordinates.

        Raises:
            DeployError: If any upload or metadata update fails.
        """
        metadata_coordinates: list[Coordinate] = []
        for item in items:
            if item.file is None or not item.file.is_file():
                raise DeployError(f"No local file to deploy for {item.label()}")
            path = artifact_path(item)
            try:
                self._upload(path, item.file)
            except StoreError as exc:
                raise DeployError(f"Failed to deploy {item.label()} to {self.target.id}: {exc}") from exc
            logger.debug("Deployed %s to %s", path, self.target.id)
            if ARTIFACT_METADATA in item.metadata and item.coordinate not in metadata_coordinates:
                metadata_coordinates.append(item.coordinate)

        for coordinate in metadata_coordinates:
            try:
                self._update_metadata(coordinate)
            except StoreError as exc:
                raise DeployError(f"Failed to update metadata for {coordinate} in {self.target.id}: {exc}") from exc

    def _update_metadata(self, coordinate: Coordinate) -> None:
        path = metadata_path(coordinate)
        with self._metadata_lock:
            document = merge_version(self._read(path), coordinate)
            self._write(path, document)
            self._write(path + ".sha1", hashlib.sha1(document).hexdigest().encode("ascii"))

    def resolve_version(self, coordinate: Coordinate) -> Coordinate:
        """Turn a `LATEST` or `RELEASE` version into a concrete one using metadata."""
        if coordinate.version not in (LATEST_VERSION, RELEASE_VERSION):
            return coordinate
        try:
            data = self._read(metadata_path(coordinate))
        except StoreError as exc:
            raise ResolveError(f"Failed to read metadata for {coordinate}: {exc}") from exc
        if data is None:
            raise ResolveError(f"No metadata found for {coordinate} in {self.target.id}")
        try:
            versioning = parse_versioning(data)
        except etree.XMLSyntaxError as exc:
            raise ResolveError(f"Unreadable metadata for {coordinate}") from exc

        if coordinate.version == RELEASE_VERSION:
            version = versioning.release
        else:
            version = versioning.latest or (versioning.versions[-1] if versioning.versions else None)
        if not version:
            raise ResolveError(f"No {coordinate.version} version recorded for {coordinate}")
        return coordinate.with_version(version)

    def resolve(self, item: Item) -> Item:
        """Check that `item` exists remotely.

        Items without a local file are downloaded below `download_dir` and
        returned with `file` set.

        Raises:
            ResolveError: If the item is not present or cannot be fetched.
        """
        resolved = item.model_copy(update={"coordinate": self.resolve_version(item.coordinate)})
        path = artifact_path(resolved)
        try:
            if resolved.file is not None:
                if not self._exists(path):
                    raise ResolveError(f"{resolved.label()} not found in {self.target.id}")
                return resolved
            dest = self.download_dir.joinpath(*path.split("/"))
            if not self._download(path, dest):
                raise ResolveError(f"{resolved.label()} not found in {self.target.id}")
        except ResolveError:
            raise
        except StoreError as exc:
            raise ResolveError(f"Failed to resolve {resolved.label()}: {exc}") from exc
        return resolved.with_file(dest)


class FileStore(LayoutStore):
    """A Maven repository in a local directory."""

    def __init__(self, target: StoreTarget, download_dir: Path, root: Path) -> None:
        super().__init__(target, download_dir)
        self.root = root

    def _path(self, path: str) -> Path:
        return self.root.joinpath(*path.split("/"))

    def _exists(self, path: str) -> bool:
        return self._path(path).is_file()

    def _read(self, path: str) -> bytes | None:
        file = self._path(path)
        try:
            return file.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StoreError(str(exc)) from exc

    def _write(self, path: str, data: bytes) -> None:
        file = self._path(path)
        try:
            file.parent.mkdir(parents=True, exist_ok=True)
            file.write_bytes(data)
        except OSError as exc:
            raise StoreError(str(exc)) from exc

    def _upload(self, path: str, file: Path) -> None:
        target = self._path(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(file, target)
        except OSError as exc:
            raise StoreError(str(exc)) from exc

    def _download(self, path: str, dest: Path) -> bool:
        source = self._path(path)
        if not source.is_file():
            return False
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, dest)
        except OSError as exc:
            raise StoreError(str(exc)) from exc
        return True


class HttpStore(LayoutStore):
    """A Maven repository reachable over HTTP: PUT to deploy, HEAD/GET to resolve.

    Proxies and netrc credentials are picked up from the environment by httpx.
    """

    def __init__(
        self,
        target: StoreTarget,
        download_dir: Path,
        client: httpx.Client | None = None,
        timeout: float = 60.0,
    ) -> None:
        super().__init__(target, download_dir)
        self._base_url = target.url.rstrip("/") + "/"
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout, follow_redirects=True, trust_env=True)

    def _url(self, path: str) -> str:
        return self._base_url + path

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return self._client.request(method, self._url(path), **kwargs)
        except httpx.HTTPError as exc:
            raise StoreError(f"{method} {path} failed: {exc}") from exc

    @staticmethod
    def _check(response: httpx.Response) -> None:
        if not response.is_success:
            raise StoreError(f"{response.request.method} {response.request.url} returned {response.status_code}")

    def _exists(self, path: str) -> bool:
        response = self._request("HEAD", path)
        if response.status_code == 404:
            return False
        self._check(response)
        return True

    def _read(self, path: str) -> bytes | None:
        response = self._request("GET", path)
        if response.status_code == 404:
            return None
        self._check(response)
        return response.content

    def _write(self, path: str, data: bytes) -> None:
        self._check(self._request("PUT", path, content=data))

    def _upload(self, path: str, file: Path) -> None:
        try:
            with file.open("rb") as fh:
                response = self._request("PUT", path, content=fh)
        except OSError as exc:
            raise StoreError(f"Cannot read {file}: {exc}") from exc
        self._check(response)

    def _download(self, path: str, dest: Path) -> bool:
        try:
            with self._client.stream("GET", self._url(path)) as response:
                if response.status_code == 404:
                    return False
                self._check(response)
                dest.parent.mkdir(parents=True, exist_ok=True)
                with dest.open("wb") as out:
                    for chunk in response.iter_bytes():
                        out.write(chunk)
        except httpx.HTTPError as exc:
            raise StoreError(f"GET {path} failed: {exc}") from exc
        except OSError as exc:
            raise StoreError(f"Cannot write {dest}: {exc}") from exc
        return True


def open_store(target: StoreTarget, download_dir: Path, client: httpx.Client | None = None) -> LayoutStore:
    """Create the store backend matching the target URL scheme.

    Raises:
        ConfigurationError: For unsupported URL schemes.
    """
    parsed = urlparse(target.url)
    if parsed.scheme == "file":
        return FileStore(target, download_dir, Path(unquote(parsed.path)))
    if parsed.scheme in ("http", "https"):
        return HttpStore(target, download_dir, client=client)
    raise ConfigurationError(f"Unsupported repository URL for {target.id}: {target.url}")
