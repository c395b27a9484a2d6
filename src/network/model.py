"""
Road network representation for dispatch-validation scenarios.

Nodes carry planar coordinates in metres; links are directed and carry
the set of travel modes allowed on them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

import numpy as np

from ..errors import MissingNodeError

CAR_MODE = "car"
AV_MODE = "av"
PT_MODE = "pt"
WALK_MODE = "walk"

# Modes that move a vehicle over the road network
VEHICULAR_MODES: frozenset[str] = frozenset({CAR_MODE, AV_MODE})


@dataclass(frozen=True)
class Node:
    """A network node (intersection)."""

    node_id: str
    coord: tuple[float, float]  # x, y in metres


@dataclass
class Link:
    """A directed link between two nodes."""

    link_id: str
    from_node: str
    to_node: str
    free_speed: float  # m/s
    length: float  # metres
    allowed_modes: frozenset[str] = field(default_factory=lambda: frozenset({CAR_MODE}))

    def __post_init__(self):
        self.allowed_modes = frozenset(self.allowed_modes)
        if not self.allowed_modes:
            raise ValueError(f"Link '{self.link_id}' must allow at least one mode")

    @property
    def travel_time(self) -> float:
        """Free-flow traversal time in seconds."""
        return self.length / max(self.free_speed, 1e-6)

    def allows(self, mode: str) -> bool:
        return mode in self.allowed_modes

    @property
    def is_vehicular(self) -> bool:
        """Whether any vehicular mode may use this link."""
        return bool(self.allowed_modes & VEHICULAR_MODES)


@dataclass
class Network:
    """
    Directed road network.

    Every link's endpoints must exist in the node mapping; `add_link`
    enforces this.
    """

    nodes: dict[str, Node] = field(default_factory=dict)
    links: dict[str, Link] = field(default_factory=dict)

    def add_node(self, node: Node) -> None:
        """Add a node to the network."""
        self.nodes[node.node_id] = node

    def add_link(self, link: Link) -> None:
        """Add a link; both endpoints must already exist."""
        for node_id in (link.from_node, link.to_node):
            if node_id not in self.nodes:
                raise MissingNodeError(node_id)
        self.links[link.link_id] = link

    def get_node(self, node_id: str) -> Node:
        try:
            return self.nodes[node_id]
        except KeyError:
            raise MissingNodeError(node_id) from None

    def link_midpoint(self, link_id: str) -> tuple[float, float]:
        """Coordinate halfway along a link."""
        link = self.links[link_id]
        x0, y0 = self.nodes[link.from_node].coord
        x1, y1 = self.nodes[link.to_node].coord
        return ((x0 + x1) / 2.0, (y0 + y1) / 2.0)

    def links_for_mode(self, mode: str) -> dict[str, Link]:
        """Return the subset of links that admit `mode`."""
        return {lid: link for lid, link in self.links.items() if link.allows(mode)}

    def nearest_link(
        self,
        coord: tuple[float, float],
        mode: Optional[str] = None,
    ) -> str:
        """Return the id of the link whose midpoint is closest to `coord`."""
        candidates = self.links_for_mode(mode) if mode else self.links
        if not candidates:
            raise ValueError(f"No links available for mode '{mode}'")

        link_ids = list(candidates)
        midpoints = np.array([self.link_midpoint(lid) for lid in link_ids])
        distances = np.sum((midpoints - np.asarray(coord)) ** 2, axis=1)
        return link_ids[int(np.argmin(distances))]

    def validate(self) -> None:
        """Check that every link's endpoints exist."""
        for link in self.links.values():
            self.get_node(link.from_node)
            self.get_node(link.to_node)


def node_id_for(i: int, j: int) -> str:
    """Grid node naming scheme: 'i:j'."""
    return f"{i}:{j}"


def create_grid_network(
    size: int = 10,
    spacing: float = 1000.0,
    free_speed: float = 30.0 * 1000.0 / 3600.0,
    modes: Iterable[str] = (CAR_MODE, AV_MODE),
) -> Network:
    """
    Create a square grid road network.

    Nodes are named 'i:j' at (i * spacing, j * spacing). Neighbouring nodes
    are connected by a pair of directed links.

    Args:
        size: Number of nodes per side
        spacing: Distance between neighbouring nodes (metres)
        free_speed: Free-flow speed of road links (m/s)
        modes: Modes allowed on road links

    Returns:
        Network with size * size nodes
    """
    if size < 1:
        raise ValueError("Grid size must be at least 1")

    network = Network()
    allowed = frozenset(modes)

    for i in range(size):
        for j in range(size):
            network.add_node(Node(node_id_for(i, j), (i * spacing, j * spacing)))

    for i in range(size):
        for j in range(size):
            here = node_id_for(i, j)
            for di, dj in ((1, 0), (0, 1)):
                ni, nj = i + di, j + dj
                if ni >= size or nj >= size:
                    continue
                there = node_id_for(ni, nj)
                for a, b in ((here, there), (there, here)):
                    network.add_link(
                        Link(
                            link_id=f"{a}->{b}",
                            from_node=a,
                            to_node=b,
                            free_speed=free_speed,
                            length=spacing,
                            allowed_modes=allowed,
                        )
                    )

    return network
