"""Custom exceptions for m2-mirror."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from m2_mirror.models import Coordinate, Item


class MirrorError(Exception):
    """Base exception for m2-mirror."""


class ScanError(MirrorError):
    """Raised when the local repository cannot be walked."""


class IndexParseError(MirrorError):
    """Raised when an index entry cannot be read or decoded."""


class ConfigurationError(MirrorError):
    """Raised when the run is misconfigured (bad repository descriptor, missing target)."""


class StoreError(MirrorError):
    """Base exception for remote store operations."""


class DeployError(StoreError):
    """Raised when a remote store rejects or fails an upload."""


class ResolveError(StoreError):
    """Raised when an artifact cannot be found in a remote store."""


class SyncFailure(MirrorError):
    """Raised when a bundle could not be synchronized after all fallbacks."""

    def __init__(self, coordinate: Coordinate, item: Item | None, message: str) -> None:
        super().__init__(message)
        self.coordinate = coordinate
        self.item = item


class FatalSyncError(SyncFailure):
    """Raised when a bundle marked fail-on-error could not be synchronized."""


class FailureThresholdError(MirrorError):
    """Raised when the configured failure count is reached during a run."""

    def __init__(self, failure_count: int) -> None:
        super().__init__(f"terminated after reaching {failure_count} sync failure(s)")
        self.failure_count = failure_count


class SyncFailuresError(MirrorError):
    """Raised at the end of a run with a non-zero failure count."""

    def __init__(self, failure_count: int) -> None:
        super().__init__(f"{failure_count} artifact group(s) failed to sync")
        self.failure_count = failure_count


class PublishError(MirrorError):
    """Raised when the rebuilt index could not be deployed."""


class PomNotFoundError(ConfigurationError):
    """Raised when a pom.xml file cannot be found."""


class PomParseError(ConfigurationError):
    """Raised when a pom.xml file cannot be parsed."""


class PomModelError(ConfigurationError):
    """Raised when required Maven model fields are missing or invalid."""
