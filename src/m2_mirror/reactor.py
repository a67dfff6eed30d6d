from __future__ import annotations

from collections.abc import Iterable, Iterator

from m2_mirror.models import Bundle, Coordinate


class ReactorFilter:
    """Drop non-reactor snapshots and mark deployable reactor bundles as fail-on-error."""

    def __init__(
        self,
        reactor_coordinates: Iterable[Coordinate],
        reactor_aware: bool,
        reactor_deploy_snapshots: bool,
    ) -> None:
        self.reactor_coordinates = frozenset(reactor_coordinates)
        self.reactor_aware = reactor_aware
        self.reactor_deploy_snapshots = reactor_deploy_snapshots

    def is_reactor_deployable(self, bundle: Bundle) -> bool:
        return (
            self.reactor_aware
            and bundle.coordinate in self.reactor_coordinates
            and (self.reactor_deploy_snapshots or not bundle.is_snapshot)
        )

    def attach_pipe(self, bundles: Iterator[Bundle]) -> Iterator[Bundle]:
        for bundle in bundles:
            deployable = self.is_reactor_deployable(bundle)
            if bundle.is_snapshot and not deployable:
                continue
            yield bundle.mark_fail_on_error(True) if deployable else bundle
