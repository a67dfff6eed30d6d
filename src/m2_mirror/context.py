from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from m2_mirror.exceptions import ConfigurationError, DeployError, ResolveError, SyncFailure
from m2_mirror.models import Coordinate, Item
from m2_mirror.store import RemoteStore

logger = logging.getLogger(__name__)


class SyncContext:
    """Deploy and resolve against a release store and an optional snapshot store."""

    def __init__(
        self,
        release_store: RemoteStore,
        snapshot_store: RemoteStore | None,
        temp_dir: Path,
    ) -> None:
        self.release_store = release_store
        self.snapshot_store = snapshot_store
        self.temp_dir = temp_dir

    def store_for(self, coordinate: Coordinate) -> RemoteStore:
        """Pick the deployment store for a coordinate.

        Raises:
            ConfigurationError: If a snapshot needs deploying and no snapshot store is configured.
        """
        if not coordinate.is_snapshot:
            return self.release_store
        if self.snapshot_store is None:
            raise ConfigurationError(
                f"{coordinate} is a snapshot but no snapshot deployment repository is configured"
            )
        return self.snapshot_store

    def deploy(self, coordinate: Coordinate, items: Sequence[Item]) -> None:
        self.store_for(coordinate).deploy(items)

    def resolve(self, item: Item) -> Item:
        return self.release_store.resolve(item)

    def sync_all(self, coordinate: Coordinate, items: Sequence[Item]) -> list[Item]:
        """Make every item present in the remote store.

        A single bulk deploy is tried first. When it fails for a release, each
        item is resolved or else deployed on its own; snapshots fail at once.

        Returns:
            The items, all of which are now known to be present remotely.

        Raises:
            SyncFailure: Naming the first item that could be neither resolved nor deployed.
            ConfigurationError: If the coordinate routes to a missing snapshot store.
        """
        store = self.store_for(coordinate)
        try:
            store.deploy(items)
            return list(items)
        except DeployError as deploy_all_error:
            logger.debug("Bulk deploy of %s failed", coordinate, exc_info=deploy_all_error)
            if coordinate.is_snapshot:
                if items:
                    raise SyncFailure(
                        coordinate,
                        items[0],
                        f"Failed to deploy snapshot {items[0].label()}: {deploy_all_error}",
                    ) from deploy_all_error
                raise SyncFailure(coordinate, None, f"Failed to deploy {coordinate}") from deploy_all_error

        synced: list[Item] = []
        for item in items:
            try:
                self.resolve(item)
                logger.debug("%s already present remotely", item.label())
            except ResolveError:
                try:
                    store.deploy([item])
                except DeployError as deploy_one_error:
                    raise SyncFailure(
                        coordinate,
                        item,
                        f"Failed to resolve or deploy {item.label()}: {deploy_one_error}",
                    ) from deploy_one_error
            synced.append(item)
        return synced

    def close(self) -> None:
        self.release_store.close()
        if self.snapshot_store is not None and self.snapshot_store is not self.release_store:
            self.snapshot_store.close()
