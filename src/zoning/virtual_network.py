"""
Virtual (zonal) network shared with zone-aware dispatch policies.

A VirtualNetwork is immutable once built and is shared by reference across
all policy variants of a scenario.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional

import numpy as np


@dataclass(frozen=True)
class Zone:
    """A virtual node: centroid plus the links and demand points it owns."""

    index: int
    centroid: tuple[float, float]
    link_ids: frozenset[str] = frozenset()
    point_indices: frozenset[int] = frozenset()

    @property
    def zone_id(self) -> str:
        return f"vNode_{self.index}"


@dataclass(frozen=True)
class VirtualLink:
    """Directed connection between two zones."""

    from_zone: int
    to_zone: int
    distance: float


@dataclass(frozen=True)
class VirtualNetwork:
    """
    Ordered list of disjoint zones with constant-time link lookup.

    Build with `VirtualNetwork.build`; the link index is derived from the
    zones and never mutated afterwards.
    """

    zones: tuple[Zone, ...]
    virtual_links: tuple[VirtualLink, ...] = ()
    _link_index: Mapping[str, int] = field(default_factory=dict, repr=False, compare=False)
    _centroids: Optional[np.ndarray] = field(default=None, repr=False, compare=False)

    @classmethod
    def build(
        cls,
        zones: list[Zone],
        complete_graph: bool = True,
    ) -> "VirtualNetwork":
        """Index zones by member link and optionally connect every zone pair."""
        link_index: dict[str, int] = {}
        for zone in zones:
            for link_id in zone.link_ids:
                if link_id in link_index:
                    raise ValueError(
                        f"Link '{link_id}' belongs to zones {link_index[link_id]} "
                        f"and {zone.index}"
                    )
                link_index[link_id] = zone.index

        virtual_links = []
        if complete_graph:
            for a in zones:
                for b in zones:
                    if a.index == b.index:
                        continue
                    distance = float(np.hypot(
                        a.centroid[0] - b.centroid[0], a.centroid[1] - b.centroid[1]
                    ))
                    virtual_links.append(VirtualLink(a.index, b.index, distance))

        centroids = np.array([z.centroid for z in zones], dtype=np.float64).reshape(-1, 2)
        centroids.setflags(write=False)

        return cls(
            zones=tuple(zones),
            virtual_links=tuple(virtual_links),
            _link_index=MappingProxyType(link_index),
            _centroids=centroids,
        )

    def __len__(self) -> int:
        return len(self.zones)

    @property
    def link_ids(self) -> frozenset[str]:
        return frozenset(self._link_index)

    def zone_for_link(
        self,
        link_id: str,
        coord: Optional[tuple[float, float]] = None,
    ) -> Zone:
        """Owning zone of a link.

        Links outside the partition (e.g. transit-only activity links) fall
        back to the zone nearest `coord` when one is given.

        Raises:
            KeyError: if the link was not part of the partition and no
                `coord` is given
        """
        index = self._link_index.get(link_id)
        if index is not None:
            return self.zones[index]
        if coord is None:
            raise KeyError(link_id)
        return self.zone_for_coord(coord)

    def zone_for_coord(self, coord: tuple[float, float]) -> Zone:
        """Zone with the nearest centroid (lowest index on ties)."""
        if not self.zones:
            raise ValueError("Virtual network has no zones")
        sq_dist = np.sum((self._centroids - np.asarray(coord)) ** 2, axis=1)
        return self.zones[int(np.argmin(sq_dist))]

    def neighbours(self, zone_index: int) -> list[VirtualLink]:
        return [vl for vl in self.virtual_links if vl.from_zone == zone_index]
