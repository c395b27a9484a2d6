"""
Base classes for dispatch policies.

A dispatch policy is a black box to the harness: at each decision epoch it
receives the fleet state (and the virtual network when it needs one) and
returns vehicle assignments and rebalancing moves.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

import numpy as np
from numpy.typing import NDArray

from ..network.model import Network
from ..zoning.virtual_network import VirtualNetwork

if TYPE_CHECKING:
    from ..simulation.fleet import Vehicle


@dataclass
class OperatorConfig:
    """Operator settings shared by every policy variant of a scenario."""

    operator_id: str = "test"
    dispatcher: str = "SingleHeuristic"
    # Opaque to the harness; forwarded to policies as-is
    price_structure: dict[str, Any] = field(default_factory=dict)
    dispatcher_params: dict[str, Any] = field(default_factory=dict)


@dataclass
class TransportRequest:
    """An open AMoD trip request."""

    request_id: str
    person_id: str
    origin_link: str
    destination_link: str
    submission_time: float
    leg_index: int = 0
    vehicle_id: Optional[str] = None

    @property
    def is_assigned(self) -> bool:
        return self.vehicle_id is not None


@dataclass(frozen=True)
class Assignment:
    """Send an idle vehicle to serve a request."""

    vehicle_id: str
    request_id: str


@dataclass(frozen=True)
class Rebalance:
    """Move an idle vehicle to a link.

    If `route` is given the engine follows it verbatim instead of routing.
    """

    vehicle_id: str
    destination_link: str
    route: Optional[tuple[str, ...]] = None


@dataclass
class DispatchDecision:
    """Commands issued at one decision epoch."""

    assignments: list[Assignment] = field(default_factory=list)
    rebalances: list[Rebalance] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.assignments) + len(self.rebalances)


@dataclass
class FleetState:
    """Snapshot handed to a policy at a decision epoch."""

    time: float
    network: Network
    vehicles: dict[str, Vehicle]
    open_requests: list[TransportRequest]

    @property
    def idle_vehicles(self) -> list[Vehicle]:
        return [v for v in self.vehicles.values() if v.is_idle]

    @property
    def unassigned_requests(self) -> list[TransportRequest]:
        return [r for r in self.open_requests if not r.is_assigned]

    def link_coord(self, link_id: str) -> tuple[float, float]:
        return self.network.link_midpoint(link_id)

    def distance_matrix(
        self,
        vehicles: list[Vehicle],
        requests: list[TransportRequest],
    ) -> NDArray[np.float64]:
        """Euclidean distances, shape (len(vehicles), len(requests))."""
        if not vehicles or not requests:
            return np.zeros((len(vehicles), len(requests)))
        v = np.array([self.link_coord(x.link_id) for x in vehicles])
        r = np.array([self.link_coord(x.origin_link) for x in requests])
        return np.linalg.norm(v[:, None, :] - r[None, :, :], axis=2)


class DispatchPolicy(ABC):
    """
    Abstract base class for dispatch policies.

    Subclasses implement `dispatch`. Policies that need the zonal partition
    set `requires_virtual_network = True`; the harness then supplies the
    shared VirtualNetwork.
    """

    name: str = "abstract"
    requires_virtual_network: bool = False

    def __init__(self, operator_config: OperatorConfig):
        self.operator_config = operator_config
        self.n_epochs = 0
        self.n_assignments = 0
        self.n_rebalances = 0

    @abstractmethod
    def dispatch(
        self,
        state: FleetState,
        virtual_network: Optional[VirtualNetwork] = None,
    ) -> DispatchDecision:
        """
        Decide assignments and rebalancing for one epoch.

        Args:
            state: Current fleet and request state (read-only)
            virtual_network: Shared zonal partition, if the policy needs one

        Returns:
            DispatchDecision with commands for idle vehicles only
        """
        pass

    def __call__(
        self,
        state: FleetState,
        virtual_network: Optional[VirtualNetwork] = None,
    ) -> DispatchDecision:
        decision = self.dispatch(state, virtual_network)
        self.n_epochs += 1
        self.n_assignments += len(decision.assignments)
        self.n_rebalances += len(decision.rebalances)
        return decision

    def param(self, key: str, default: Any) -> Any:
        return self.operator_config.dispatcher_params.get(key, default)
