"""
AMoD fleet: vehicle state and initial placement.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Optional

import numpy as np

from ..errors import ScenarioConfigError
from ..network.model import AV_MODE, Network
from ..population.plans import Population

logger = logging.getLogger(__name__)

AV_ID_PREFIX = "av_"


class VehicleStatus(Enum):
    """Lifecycle state of a fleet vehicle."""

    IDLE = auto()
    TO_PICKUP = auto()
    WITH_CUSTOMER = auto()
    REBALANCING = auto()


@dataclass
class Vehicle:
    """A fleet vehicle positioned on a link."""

    vehicle_id: str
    link_id: str
    status: VehicleStatus = VehicleStatus.IDLE
    request_id: Optional[str] = None
    route: list[str] = field(default_factory=list)
    distance_travelled: float = 0.0

    @property
    def is_idle(self) -> bool:
        return self.status == VehicleStatus.IDLE


@dataclass
class FleetConfig:
    """Fleet size and placement strategy."""

    n_vehicles: int = 100
    operator_id: str = "test"
    generator: str = "PopulationDensity"
    mode: str = AV_MODE

    def __post_init__(self):
        if self.n_vehicles < 1:
            raise ScenarioConfigError(
                f"n_vehicles must be a positive integer, got {self.n_vehicles}"
            )
        if self.generator not in FLEET_GENERATORS:
            raise ScenarioConfigError(
                f"Unknown fleet generator '{self.generator}'. "
                f"Available: {sorted(FLEET_GENERATORS)}"
            )


def vehicle_id_for(operator_id: str, index: int) -> str:
    return f"{AV_ID_PREFIX}{operator_id}_{index}"


def _population_density_links(
    network: Network,
    population: Population,
    config: FleetConfig,
    rng: np.random.Generator,
) -> list[str]:
    """Sample start links proportionally to activity counts on routable links."""
    counts = Counter(
        act.link_id
        for plan in population.iter_plans()
        for act in plan.activities
        if act.link_id in network.links and network.links[act.link_id].allows(config.mode)
    )
    if not counts:
        # No routable activity links: spread uniformly over the mode subgraph
        counts = Counter(sorted(network.links_for_mode(config.mode)))
    if not counts:
        raise ScenarioConfigError(f"Network has no links for fleet mode '{config.mode}'")

    link_ids = sorted(counts)
    weights = np.array([counts[lid] for lid in link_ids], dtype=np.float64)
    picks = rng.choice(len(link_ids), size=config.n_vehicles, p=weights / weights.sum())
    return [link_ids[int(i)] for i in picks]


def _uniform_links(
    network: Network,
    population: Population,
    config: FleetConfig,
    rng: np.random.Generator,
) -> list[str]:
    link_ids = sorted(network.links_for_mode(config.mode))
    if not link_ids:
        raise ScenarioConfigError(f"Network has no links for fleet mode '{config.mode}'")
    picks = rng.choice(len(link_ids), size=config.n_vehicles)
    return [link_ids[int(i)] for i in picks]


FLEET_GENERATORS = {
    "PopulationDensity": _population_density_links,
    "Uniform": _uniform_links,
}


def generate_fleet(
    network: Network,
    population: Population,
    config: FleetConfig,
    rng: Optional[np.random.Generator] = None,
) -> dict[str, Vehicle]:
    """
    Place `config.n_vehicles` idle vehicles on the network.

    Off-network activity links are never used as start positions.
    """
    if rng is None:
        rng = np.random.default_rng()

    start_links = FLEET_GENERATORS[config.generator](network, population, config, rng)
    fleet = {}
    for idx, link_id in enumerate(start_links):
        vid = vehicle_id_for(config.operator_id, idx)
        fleet[vid] = Vehicle(vehicle_id=vid, link_id=link_id)

    logger.debug(f"Generated {len(fleet)} vehicles with '{config.generator}' placement")
    return fleet
