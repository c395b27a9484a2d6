"""
Synthetic demand for test scenarios.

Generates a closed, finite population of home-work-home commuters whose
trips are all served by the AMoD fleet.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from ..network.model import AV_MODE, Network
from .plans import Activity, Leg, Person, Plan, Population


def create_population(
    network: Network,
    n_agents: int = 100,
    rng: Optional[np.random.Generator] = None,
    mode: str = AV_MODE,
    departure_time_dist: tuple[float, float] = (8 * 3600, 1800),  # (mean, std)
    work_duration: float = 8 * 3600,
) -> Population:
    """
    Create a population of commuters travelling by `mode`.

    Each plan is home -> leg -> work -> leg -> home, with home and work on
    distinct links that admit `mode`. The final activity has no end time.

    Args:
        network: Road network to place activities on
        n_agents: Number of persons
        rng: Random number generator
        mode: Leg mode for both trips
        departure_time_dist: (mean, std) of the morning departure time
        work_duration: Mean time spent at work (seconds)

    Returns:
        Population with one plan per person
    """
    if rng is None:
        rng = np.random.default_rng()

    link_ids = sorted(network.links_for_mode(mode))
    if len(link_ids) < 2:
        raise ValueError(f"Network needs at least two '{mode}' links to place activities")

    population = Population()

    for i in range(n_agents):
        home_idx, work_idx = rng.choice(len(link_ids), size=2, replace=False)
        home_link = link_ids[int(home_idx)]
        work_link = link_ids[int(work_idx)]

        leave_home = float(
            np.clip(rng.normal(*departure_time_dist), 5 * 3600, 11 * 3600)
        )
        leave_work = leave_home + work_duration + float(rng.uniform(-1800, 1800))

        plan = Plan()
        plan.add_activity(
            Activity("home", network.link_midpoint(home_link), home_link, end_time=leave_home)
        )
        plan.add_leg(Leg(mode))
        plan.add_activity(
            Activity("work", network.link_midpoint(work_link), work_link, end_time=leave_work)
        )
        plan.add_leg(Leg(mode))
        plan.add_activity(Activity("home", network.link_midpoint(home_link), home_link))

        population.add_person(Person(person_id=f"person_{i:05d}", plans=[plan]))

    return population
