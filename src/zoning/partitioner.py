"""
Zonal partitioning of demand into a virtual network.

Clusters demand coordinates with k-means, then assigns every routable link
of the network to its nearest centroid.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from ..errors import DegenerateClusteringError, ScenarioConfigError
from ..network.model import AV_MODE, Network
from ..population.plans import Population
from .kmeans import DEFAULT_MAX_ITERATIONS, assign_points, distinct_points, lloyd_kmeans
from .virtual_network import VirtualNetwork, Zone

logger = logging.getLogger(__name__)


@dataclass
class PartitionConfig:
    """Zoning parameters."""

    n_zones: int = 4
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    complete_graph: bool = True
    link_mode: str = AV_MODE

    def __post_init__(self):
        if self.n_zones < 1:
            raise ScenarioConfigError(f"n_zones must be at least 1, got {self.n_zones}")
        if self.max_iterations < 1:
            raise ScenarioConfigError("max_iterations must be at least 1")


class ZonalPartitioner:
    """
    Builds a VirtualNetwork from demand coordinates.

    Read-only with respect to the network and population.
    """

    def __init__(self, config: PartitionConfig):
        self.config = config

    def partition_points(
        self,
        points: Sequence[tuple[float, float]],
        network: Optional[Network] = None,
    ) -> VirtualNetwork:
        """
        Cluster `points` into at most `n_zones` non-empty zones.

        If `network` is given, each link admitting `link_mode` is assigned to
        the zone with the nearest centroid (link midpoint distance).
        """
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        if len(pts) == 0:
            raise ValueError("Cannot partition an empty set of demand points")

        k = self.config.n_zones
        try:
            result = lloyd_kmeans(pts, k, self.config.max_iterations)
        except DegenerateClusteringError as exc:
            logger.warning(f"{exc}; reducing zone count to {exc.available}")
            k = exc.available
            result = lloyd_kmeans(pts, k, self.config.max_iterations)

        if not result.converged:
            logger.warning(
                f"k-means hit the iteration cap ({self.config.max_iterations}) "
                f"without converging"
            )

        link_members: list[set[str]] = [set() for _ in range(k)]
        if network is not None:
            link_ids = sorted(network.links_for_mode(self.config.link_mode))
            if link_ids:
                midpoints = np.array([network.link_midpoint(lid) for lid in link_ids])
                link_labels = assign_points(midpoints, result.centroids)
                for link_id, label in zip(link_ids, link_labels):
                    link_members[int(label)].add(link_id)

        zones = [
            Zone(
                index=j,
                centroid=(float(result.centroids[j][0]), float(result.centroids[j][1])),
                link_ids=frozenset(link_members[j]),
                point_indices=frozenset(int(i) for i in np.flatnonzero(result.labels == j)),
            )
            for j in range(k)
        ]

        logger.info(
            f"Built virtual network with {k} zones from {len(pts)} demand points "
            f"({len(distinct_points(pts))} distinct) in {result.iterations} iterations"
        )
        return VirtualNetwork.build(zones, complete_graph=self.config.complete_graph)

    def partition(self, population: Population, network: Network) -> VirtualNetwork:
        """Partition using every activity coordinate of the population."""
        return self.partition_points(population.activity_coords(), network)
