"""
Network augmentation for multimodal edge cases.

Builds a fast transit-only corridor along the diagonal of a grid network
and appends an off-network "pt interaction" activity to every plan, so that
dispatch policies and the oracle see the kind of multimodal scenario a
routed population produces in practice.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..errors import MissingNodeError, ScenarioConfigError
from ..population.plans import Activity, Leg, Population
from .model import PT_MODE, WALK_MODE, Link, Network, node_id_for

logger = logging.getLogger(__name__)


@dataclass
class AugmentationConfig:
    """Parameters of the injected corridor and off-network activity."""

    corridor_range: int = 9
    free_speed: float = 100.0 * 1000.0 / 3600.0  # m/s
    link_length: float = 1000.0  # metres
    corridor_mode: str = PT_MODE
    access_mode: str = WALK_MODE
    activity_purpose: str = "pt interaction"
    fallback_coord: tuple[float, float] = (5500.0, 5500.0)

    def __post_init__(self):
        if self.corridor_range < 0:
            raise ScenarioConfigError(
                f"corridor_range must be non-negative, got {self.corridor_range}"
            )


@dataclass
class AugmentationSummary:
    """What an augmentation pass changed."""

    injected_link_ids: list[str] = field(default_factory=list)
    activity_link_id: str = ""
    activity_coord: tuple[float, float] = (0.0, 0.0)
    plans_augmented: int = 0


def forward_link_id(i: int) -> str:
    return f"pt_fwd_{i}:{i}"


def backward_link_id(i: int) -> str:
    return f"pt_bck_{i}:{i}"


class NetworkAugmenter:
    """
    Injects a transit-only corridor and off-network activities.

    Not idempotent: a second `augment` call re-adds the corridor links under
    the same ids and appends a second pair of plan elements to every plan.
    Invoke exactly once per scenario.
    """

    def __init__(self, config: AugmentationConfig):
        self.config = config

    @property
    def activity_index(self) -> int:
        """Corridor index whose forward link hosts the off-network activity."""
        r = self.config.corridor_range
        return max(0, min(r - 1, (r + 1) // 2))

    def required_node_ids(self) -> list[str]:
        r = self.config.corridor_range
        if r == 0:
            return []
        return [node_id_for(i, i) for i in range(r + 1)]

    def inject_corridor(self, network: Network) -> list[str]:
        """
        Add R forward/backward transit link pairs between nodes 'i:i' and
        'i+1:i+1' for i in [0, R).

        Raises:
            MissingNodeError: if a corridor node is absent. The network is
                left untouched in that case.
        """
        for node_id in self.required_node_ids():
            if node_id not in network.nodes:
                raise MissingNodeError(node_id)

        cfg = self.config
        modes = frozenset({cfg.corridor_mode})
        injected = []

        for i in range(cfg.corridor_range):
            from_node = node_id_for(i, i)
            to_node = node_id_for(i + 1, i + 1)

            for link_id, a, b in (
                (forward_link_id(i), from_node, to_node),
                (backward_link_id(i), to_node, from_node),
            ):
                network.add_link(
                    Link(
                        link_id=link_id,
                        from_node=a,
                        to_node=b,
                        free_speed=cfg.free_speed,
                        length=cfg.link_length,
                        allowed_modes=modes,
                    )
                )
                injected.append(link_id)

        logger.info(
            f"Injected {len(injected)} '{cfg.corridor_mode}' links "
            f"(corridor range {cfg.corridor_range})"
        )
        return injected

    def append_offnetwork_activities(
        self,
        network: Network,
        population: Population,
    ) -> tuple[str, tuple[float, float], int]:
        """
        Append an access leg and an off-network activity to every plan.

        Returns:
            Tuple of (activity link id, activity coordinate, plans touched)
        """
        cfg = self.config
        link_id = forward_link_id(self.activity_index)
        if link_id in network.links:
            coord = network.link_midpoint(link_id)
        else:
            coord = cfg.fallback_coord

        n_plans = 0
        for plan in population.iter_plans():
            plan.add_leg(Leg(cfg.access_mode))
            plan.add_activity(Activity(cfg.activity_purpose, coord, link_id))
            n_plans += 1

        logger.info(
            f"Appended '{cfg.activity_purpose}' activity on {link_id} to {n_plans} plans"
        )
        return link_id, coord, n_plans

    def augment(self, network: Network, population: Population) -> AugmentationSummary:
        """Mutate `network` and `population` in place."""
        injected = self.inject_corridor(network)
        link_id, coord, n_plans = self.append_offnetwork_activities(network, population)

        return AugmentationSummary(
            injected_link_ids=injected,
            activity_link_id=link_id,
            activity_coord=coord,
            plans_augmented=n_plans,
        )
