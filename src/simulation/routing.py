"""
Mode-filtered shortest-path routing over the road network.
"""

from __future__ import annotations

from functools import lru_cache

import networkx as nx

from ..network.model import Network


class Router:
    """
    Link-to-link shortest paths on the subgraph of links admitting `mode`.

    Routes start after the origin link and include the destination link.
    """

    def __init__(self, network: Network, mode: str):
        self.network = network
        self.mode = mode
        self.graph = nx.DiGraph()

        for link in network.links_for_mode(mode).values():
            self.graph.add_edge(
                link.from_node,
                link.to_node,
                link_id=link.link_id,
                weight=link.travel_time,
            )

        self._route = lru_cache(maxsize=65536)(self._compute_route)

    def is_routable(self, link_id: str) -> bool:
        link = self.network.links.get(link_id)
        return link is not None and link.allows(self.mode)

    def route(self, from_link: str, to_link: str) -> list[str]:
        """
        Links to traverse to go from the end of `from_link` into `to_link`.

        Raises:
            nx.NetworkXNoPath: if no route exists on the mode subgraph
        """
        return list(self._route(from_link, to_link))

    def _compute_route(self, from_link: str, to_link: str) -> tuple[str, ...]:
        if from_link == to_link:
            return ()

        start = self.network.links[from_link].to_node
        target = self.network.links[to_link]
        nodes = nx.shortest_path(self.graph, start, target.from_node, weight="weight")
        links = [self.graph.edges[a, b]["link_id"] for a, b in zip(nodes[:-1], nodes[1:])]
        links.append(to_link)
        return tuple(links)

    def route_time(self, links: list[str]) -> float:
        return sum(self.network.links[lid].travel_time for lid in links)
