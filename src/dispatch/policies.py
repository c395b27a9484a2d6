"""
Reference dispatch policies.

These are deliberately simple heuristics used to exercise the harness; they
are not tuned dispatch algorithms.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np
from scipy.optimize import linear_sum_assignment

from ..zoning.virtual_network import VirtualNetwork
from .base import (
    Assignment,
    DispatchDecision,
    DispatchPolicy,
    FleetState,
    Rebalance,
    TransportRequest,
)

logger = logging.getLogger(__name__)


def _nearest_first(
    state: FleetState,
    requests: list[TransportRequest],
    vehicles: list,
) -> list[Assignment]:
    """Serve requests in order, each taking the nearest remaining vehicle."""
    assignments = []
    available = list(vehicles)
    if not available or not requests:
        return assignments

    distances = state.distance_matrix(available, requests)
    taken = np.zeros(len(available), dtype=bool)

    for r_idx, request in enumerate(requests):
        if taken.all():
            break
        column = np.where(taken, np.inf, distances[:, r_idx])
        v_idx = int(np.argmin(column))
        taken[v_idx] = True
        assignments.append(Assignment(available[v_idx].vehicle_id, request.request_id))

    return assignments


class SingleHeuristicDispatcher(DispatchPolicy):
    """First-come first-served: each request gets the nearest idle vehicle."""

    name = "SingleHeuristic"

    def dispatch(
        self,
        state: FleetState,
        virtual_network: Optional[VirtualNetwork] = None,
    ) -> DispatchDecision:
        requests = sorted(state.unassigned_requests, key=lambda r: r.submission_time)
        return DispatchDecision(
            assignments=_nearest_first(state, requests, state.idle_vehicles)
        )


class DemandSupplyBalancingDispatcher(DispatchPolicy):
    """
    Switches matching direction on the supply/demand balance.

    With oversupply each request picks its nearest vehicle; with undersupply
    each vehicle picks its nearest request.
    """

    name = "DemandSupplyBalancingDispatcher"

    def dispatch(
        self,
        state: FleetState,
        virtual_network: Optional[VirtualNetwork] = None,
    ) -> DispatchDecision:
        requests = sorted(state.unassigned_requests, key=lambda r: r.submission_time)
        vehicles = state.idle_vehicles
        if not requests or not vehicles:
            return DispatchDecision()

        if len(vehicles) >= len(requests):
            return DispatchDecision(assignments=_nearest_first(state, requests, vehicles))

        distances = state.distance_matrix(vehicles, requests)
        taken = np.zeros(len(requests), dtype=bool)
        assignments = []
        for v_idx, vehicle in enumerate(vehicles):
            row = np.where(taken, np.inf, distances[v_idx])
            r_idx = int(np.argmin(row))
            taken[r_idx] = True
            assignments.append(Assignment(vehicle.vehicle_id, requests[r_idx].request_id))

        return DispatchDecision(assignments=assignments)


class GlobalBipartiteMatchingDispatcher(DispatchPolicy):
    """Minimum total pickup distance matching (Hungarian algorithm)."""

    name = "GlobalBipartiteMatchingDispatcher"

    def match(self, state: FleetState) -> list[Assignment]:
        requests = state.unassigned_requests
        vehicles = state.idle_vehicles
        if not requests or not vehicles:
            return []

        distances = state.distance_matrix(vehicles, requests)
        rows, cols = linear_sum_assignment(distances)
        return [
            Assignment(vehicles[int(v)].vehicle_id, requests[int(r)].request_id)
            for v, r in zip(rows, cols)
        ]

    def dispatch(
        self,
        state: FleetState,
        virtual_network: Optional[VirtualNetwork] = None,
    ) -> DispatchDecision:
        return DispatchDecision(assignments=self.match(state))


class AdaptiveRealTimeRebalancingPolicy(GlobalBipartiteMatchingDispatcher):
    """
    Bipartite matching plus zone-level rebalancing.

    Every `rebalancingPeriod` epochs, idle vehicles left over after matching
    are spread over the zones in proportion to each zone's share of demand
    points: vehicles move from over-supplied zones to the member link closest
    to the centroid of under-supplied zones.
    """

    name = "AdaptiveRealTimeRebalancingPolicy"
    requires_virtual_network = True

    def dispatch(
        self,
        state: FleetState,
        virtual_network: Optional[VirtualNetwork] = None,
    ) -> DispatchDecision:
        if virtual_network is None:
            raise ValueError(f"{self.name} requires a virtual network")

        assignments = self.match(state)
        decision = DispatchDecision(assignments=assignments)

        period = int(self.param("rebalancingPeriod", 10))
        if period <= 0 or self.n_epochs % period != 0:
            return decision

        assigned = {a.vehicle_id for a in assignments}
        spare = [v for v in state.idle_vehicles if v.vehicle_id not in assigned]
        if spare:
            decision.rebalances = self._rebalance(state, virtual_network, spare)
        return decision

    def _rebalance(
        self,
        state: FleetState,
        virtual_network: VirtualNetwork,
        spare: list,
    ) -> list[Rebalance]:
        k = len(virtual_network)
        weights = np.array([len(z.point_indices) for z in virtual_network.zones], dtype=float)
        if weights.sum() <= 0:
            return []
        desired = np.floor(weights / weights.sum() * len(spare)).astype(int)

        supply: dict[int, list] = {j: [] for j in range(k)}
        for vehicle in spare:
            coord = state.link_coord(vehicle.link_id)
            zone = virtual_network.zone_for_link(vehicle.link_id, coord)
            supply[zone.index].append(vehicle)

        rebalances = []
        for target in range(k):
            need = desired[target] - len(supply[target])
            if need <= 0:
                continue
            destination = self._zone_anchor_link(state, virtual_network, target)
            if destination is None:
                continue
            donors = sorted(
                (j for j in range(k) if len(supply[j]) > desired[j]),
                key=lambda j: len(supply[j]) - desired[j],
                reverse=True,
            )
            for donor in donors:
                while need > 0 and len(supply[donor]) > desired[donor]:
                    vehicle = supply[donor].pop()
                    rebalances.append(Rebalance(vehicle.vehicle_id, destination))
                    need -= 1

        if rebalances:
            logger.debug(f"{self.name}: {len(rebalances)} rebalancing moves at t={state.time:.0f}")
        return rebalances

    @staticmethod
    def _zone_anchor_link(
        state: FleetState,
        virtual_network: VirtualNetwork,
        zone_index: int,
    ) -> Optional[str]:
        """Member link closest to the zone centroid."""
        zone = virtual_network.zones[zone_index]
        if not zone.link_ids:
            return None
        link_ids = sorted(zone.link_ids)
        midpoints = np.array([state.link_coord(lid) for lid in link_ids])
        distances = np.sum((midpoints - np.asarray(zone.centroid)) ** 2, axis=1)
        return link_ids[int(np.argmin(distances))]
