"""
Event-driven AMoD simulation engine.

Processes events from a priority queue, moves fleet vehicles link by link,
invokes the dispatch policy at fixed decision epochs and publishes
traversal and trip events to subscribed handlers.

This engine is a compact stand-in for a full transport simulation: it has
free-flow travel times only and no congestion or scoring.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import math
import time as time_module
from dataclasses import dataclass, field
from typing import Any, Optional

import networkx as nx
import numpy as np
import pandas as pd

from ..dispatch.base import DispatchDecision, DispatchPolicy, FleetState, TransportRequest
from ..errors import InvalidDispatchError, PolicyError, RunPhaseError
from ..network.model import PT_MODE, WALK_MODE, Network
from ..population.plans import Activity, Leg, Population
from ..zoning.virtual_network import VirtualNetwork
from .events import (
    PUBLISHED_EVENTS,
    Event,
    EventHandler,
    EventType,
    create_arrival_event,
    create_departure_event,
    create_link_enter_event,
    create_simulation_end_event,
)
from .fleet import FleetConfig, Vehicle, VehicleStatus, generate_fleet
from .routing import Router

logger = logging.getLogger(__name__)


@dataclass
class SimulationConfig:
    """Configuration for a simulation run."""

    end_time: float = 30 * 3600  # seconds
    dispatch_period: float = 30.0  # seconds between decision epochs
    random_seed: int = 42

    # Teleportation speeds (m/s) for legs not served by the fleet
    teleport_speeds: dict[str, float] = field(
        default_factory=lambda: {WALK_MODE: 1.4, PT_MODE: 8.0}
    )
    default_teleport_speed: float = 4.0


@dataclass
class SimulationResult:
    """Results from a simulation run."""

    config: SimulationConfig
    policy_name: str
    metrics: dict[str, Any]
    raw_data: pd.DataFrame  # one row per completed leg
    end_time: float
    duration_seconds: float  # wall clock


class SimulationEngine:
    """
    Event-driven simulation engine.

    Handlers registered with `add_event_handler` are invoked synchronously,
    in increasing timestamp order, for every published event. An exception
    raised by a handler aborts the run immediately. Non-harness exceptions
    raised by the dispatch policy are re-raised as PolicyError.
    """

    def __init__(
        self,
        config: SimulationConfig,
        network: Network,
        population: Population,
        fleet_config: FleetConfig,
        policy: DispatchPolicy,
        virtual_network: Optional[VirtualNetwork] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        self.config = config
        self.network = network
        self.population = population
        self.fleet_config = fleet_config
        self.policy = policy
        self.virtual_network = virtual_network
        self.rng = rng or np.random.default_rng(config.random_seed)

        self.router = Router(network, fleet_config.mode)
        self.vehicles: dict[str, Vehicle] = generate_fleet(
            network, population, fleet_config, self.rng
        )

        # Event queue (min-heap by time, then sequence)
        self.event_queue: list[Event] = []
        self._sequence = itertools.count()

        self._handlers: list[EventHandler] = []

        # State
        self.current_time: float = 0.0
        self.is_running: bool = False
        self.requests: dict[str, TransportRequest] = {}
        self._request_counter = itertools.count()
        self._pending_departures = 0
        self._teleports_in_flight = 0
        self._dispatch_scheduled = False
        self._trip_log: list[dict[str, Any]] = []
        self._departure_times: dict[tuple[str, int], float] = {}

        # Statistics
        self.n_departures = 0
        self.n_arrivals = 0
        self.n_link_enters = 0

        self._dispatch_table = {
            EventType.DEPARTURE: self._handle_departure,
            EventType.ARRIVAL: self._handle_teleport_arrival,
            EventType.VEHICLE_STEP: self._handle_vehicle_step,
            EventType.DISPATCH: self._handle_dispatch,
        }

    def add_event_handler(self, handler: EventHandler) -> None:
        """Subscribe a handler to published events."""
        self._handlers.append(handler)

    def schedule_event(self, event: Event) -> None:
        """Schedule an event for processing."""
        event.sequence = next(self._sequence)
        heapq.heappush(self.event_queue, event)

    def publish(self, event: Event) -> None:
        """Deliver an event to every subscribed handler."""
        if event.event_type not in PUBLISHED_EVENTS:
            return
        for handler in self._handlers:
            handler.handle_event(event)

    def run(self) -> SimulationResult:
        """
        Run the simulation until no work remains or `end_time` is reached.

        Returns:
            SimulationResult with trip data and summary metrics
        """
        start_wall_time = time_module.time()
        self.is_running = True

        try:
            self._schedule_initial_departures()

            while self.event_queue and self.is_running:
                event = heapq.heappop(self.event_queue)
                if event.time > self.config.end_time:
                    break

                self.current_time = event.time
                handler = self._dispatch_table.get(event.event_type)
                if handler:
                    handler(event)

            end_time = self.current_time
            self.publish(create_simulation_end_event(end_time))
        finally:
            self.is_running = False

        wall_time = time_module.time() - start_wall_time
        logger.info(
            f"Run with '{self.policy.name}' finished at t={end_time:.0f}s: "
            f"{self.n_departures} departures, {self.n_arrivals} arrivals, "
            f"{self.n_link_enters} link enters"
        )

        return SimulationResult(
            config=self.config,
            policy_name=self.policy.name,
            metrics=self.get_summary_metrics(),
            raw_data=self.to_dataframe(),
            end_time=end_time,
            duration_seconds=wall_time,
        )

    def stop(self) -> None:
        """Stop the simulation."""
        self.is_running = False

    def get_summary_metrics(self) -> dict[str, Any]:
        distances = [v.distance_travelled for v in self.vehicles.values()]
        return {
            "total_departures": self.n_departures,
            "total_arrivals": self.n_arrivals,
            "total_link_enters": self.n_link_enters,
            "open_requests": len(self.requests),
            "fleet_distance": float(np.sum(distances)) if distances else 0.0,
            "dispatch_epochs": self.policy.n_epochs,
            "assignments": self.policy.n_assignments,
            "rebalances": self.policy.n_rebalances,
        }

    def to_dataframe(self) -> pd.DataFrame:
        """Completed legs as a DataFrame."""
        if not self._trip_log:
            return pd.DataFrame()
        return pd.DataFrame(self._trip_log)

    # Plan execution

    def _plan_elements(self, person_id: str) -> list:
        return self.population.persons[person_id].selected_plan.elements

    def _schedule_initial_departures(self) -> None:
        for person_id in sorted(self.population.persons):
            self._schedule_next_leg(person_id, activity_index=0, not_before=0.0)

    def _schedule_next_leg(self, person_id: str, activity_index: int, not_before: float) -> None:
        elements = self._plan_elements(person_id)
        activity = elements[activity_index]
        leg_index = activity_index + 1

        if activity.end_time is None or leg_index >= len(elements):
            return  # agent stays at this activity

        self._pending_departures += 1
        self.schedule_event(
            create_departure_event(
                time=max(activity.end_time, not_before),
                agent_id=person_id,
                link_id=activity.link_id,
                mode=elements[leg_index].mode,
                leg_index=leg_index,
            )
        )

    def _handle_departure(self, event: Event) -> None:
        """Person starts a leg."""
        self._pending_departures -= 1
        self.n_departures += 1
        self.publish(event)

        person_id = event.agent_id
        leg_index = event.data["leg_index"]
        elements = self._plan_elements(person_id)
        origin: Activity = elements[leg_index - 1]
        leg: Leg = elements[leg_index]
        destination: Activity = elements[leg_index + 1]
        self._departure_times[(person_id, leg_index)] = event.time

        if leg.mode == self.fleet_config.mode:
            self._submit_request(person_id, leg_index, origin, destination, event.time)
        else:
            self._teleport(person_id, leg_index, leg, origin, destination, event.time)

    def _teleport(
        self,
        person_id: str,
        leg_index: int,
        leg: Leg,
        origin: Activity,
        destination: Activity,
        now: float,
    ) -> None:
        distance = math.hypot(
            destination.coord[0] - origin.coord[0], destination.coord[1] - origin.coord[1]
        )
        speed = self.config.teleport_speeds.get(leg.mode, self.config.default_teleport_speed)
        self._teleports_in_flight += 1
        self.schedule_event(
            create_arrival_event(
                time=now + distance / speed,
                agent_id=person_id,
                link_id=destination.link_id,
                mode=leg.mode,
                leg_index=leg_index,
            )
        )

    def _handle_teleport_arrival(self, event: Event) -> None:
        self._teleports_in_flight -= 1
        self._complete_leg(event)

    def _complete_leg(self, event: Event) -> None:
        self.n_arrivals += 1
        self.publish(event)

        person_id = event.agent_id
        leg_index = event.data["leg_index"]
        departure_time = self._departure_times.pop((person_id, leg_index), event.time)
        self._trip_log.append(
            {
                "person_id": person_id,
                "leg_index": leg_index,
                "mode": event.mode,
                "vehicle_id": event.vehicle_id,
                "departure_time": departure_time,
                "arrival_time": event.time,
                "travel_time": event.time - departure_time,
            }
        )
        self._schedule_next_leg(person_id, leg_index + 1, not_before=event.time)

    # Fleet operation

    def _routable_link(self, activity: Activity) -> str:
        """Activity link, or the nearest fleet-routable link if off-network."""
        if self.router.is_routable(activity.link_id):
            return activity.link_id
        return self.network.nearest_link(activity.coord, self.fleet_config.mode)

    def _submit_request(
        self,
        person_id: str,
        leg_index: int,
        origin: Activity,
        destination: Activity,
        now: float,
    ) -> None:
        request_id = f"req_{next(self._request_counter)}"
        self.requests[request_id] = TransportRequest(
            request_id=request_id,
            person_id=person_id,
            origin_link=self._routable_link(origin),
            destination_link=self._routable_link(destination),
            submission_time=now,
            leg_index=leg_index,
        )
        self._ensure_dispatch_scheduled(now)

    def _ensure_dispatch_scheduled(self, now: float) -> None:
        if self._dispatch_scheduled:
            return
        period = self.config.dispatch_period
        epoch = math.ceil(now / period) * period
        self._dispatch_scheduled = True
        self.schedule_event(Event(time=epoch, event_type=EventType.DISPATCH))

    def _fleet_busy(self) -> bool:
        return bool(self.requests) or any(not v.is_idle for v in self.vehicles.values())

    def _handle_dispatch(self, event: Event) -> None:
        """Decision epoch: ask the policy for commands and apply them."""
        self._dispatch_scheduled = False

        state = FleetState(
            time=event.time,
            network=self.network,
            vehicles=dict(self.vehicles),
            open_requests=sorted(self.requests.values(), key=lambda r: r.submission_time),
        )
        virtual_network = self.virtual_network if self.policy.requires_virtual_network else None
        try:
            decision = self.policy(state, virtual_network)
        except RunPhaseError:
            raise
        except Exception as exc:
            raise PolicyError(
                f"Dispatch at t={event.time:.0f}s raised {type(exc).__name__}: {exc}",
                policy=self.policy.name,
            ) from exc
        self._apply_decision(decision, event.time)

        if self._fleet_busy():
            self._ensure_dispatch_scheduled(event.time + self.config.dispatch_period)

    def _apply_decision(self, decision: DispatchDecision, now: float) -> None:
        commanded: set[str] = set()

        for assignment in decision.assignments:
            vehicle = self._commandable_vehicle(assignment.vehicle_id, commanded)
            request = self.requests.get(assignment.request_id)
            if request is None or request.is_assigned:
                raise InvalidDispatchError(
                    f"Request '{assignment.request_id}' is unknown or already assigned",
                    policy=self.policy.name,
                )
            request.vehicle_id = vehicle.vehicle_id
            vehicle.request_id = request.request_id
            vehicle.status = VehicleStatus.TO_PICKUP
            self._send_vehicle(vehicle, self._route(vehicle.link_id, request.origin_link), now)

        for rebalance in decision.rebalances:
            vehicle = self._commandable_vehicle(rebalance.vehicle_id, commanded)
            if rebalance.route is not None:
                route = list(rebalance.route)
                unknown = [lid for lid in route if lid not in self.network.links]
                if unknown:
                    raise InvalidDispatchError(
                        f"Rebalancing route uses unknown links {unknown}",
                        policy=self.policy.name,
                    )
            else:
                if rebalance.destination_link not in self.network.links:
                    raise InvalidDispatchError(
                        f"Unknown rebalancing destination '{rebalance.destination_link}'",
                        policy=self.policy.name,
                    )
                route = self._route(vehicle.link_id, rebalance.destination_link)
            vehicle.status = VehicleStatus.REBALANCING
            self._send_vehicle(vehicle, route, now)

    def _commandable_vehicle(self, vehicle_id: str, commanded: set[str]) -> Vehicle:
        vehicle = self.vehicles.get(vehicle_id)
        if vehicle is None or not vehicle.is_idle or vehicle_id in commanded:
            raise InvalidDispatchError(
                f"Vehicle '{vehicle_id}' is unknown, busy or commanded twice",
                policy=self.policy.name,
            )
        commanded.add(vehicle_id)
        return vehicle

    def _route(self, from_link: str, to_link: str) -> list[str]:
        try:
            return self.router.route(from_link, to_link)
        except (nx.NetworkXNoPath, nx.NodeNotFound) as exc:
            raise InvalidDispatchError(
                f"No '{self.fleet_config.mode}' route from {from_link} to {to_link}",
                policy=self.policy.name,
            ) from exc

    def _send_vehicle(self, vehicle: Vehicle, route: list[str], now: float) -> None:
        vehicle.route = list(route)
        self.schedule_event(
            Event(time=now, event_type=EventType.VEHICLE_STEP, vehicle_id=vehicle.vehicle_id)
        )

    def _handle_vehicle_step(self, event: Event) -> None:
        """Vehicle finished its current link: enter the next one or stop."""
        vehicle = self.vehicles[event.vehicle_id]

        if not vehicle.route:
            self._on_route_complete(vehicle, event.time)
            return

        link_id = vehicle.route.pop(0)
        link = self.network.links[link_id]
        vehicle.link_id = link_id
        vehicle.distance_travelled += link.length
        self.n_link_enters += 1
        self.publish(create_link_enter_event(event.time, vehicle.vehicle_id, link_id))

        self.schedule_event(
            Event(
                time=event.time + link.travel_time,
                event_type=EventType.VEHICLE_STEP,
                vehicle_id=vehicle.vehicle_id,
            )
        )

    def _on_route_complete(self, vehicle: Vehicle, now: float) -> None:
        if vehicle.status == VehicleStatus.TO_PICKUP:
            request = self.requests[vehicle.request_id]
            self.publish(
                Event(
                    time=now,
                    event_type=EventType.PICKUP,
                    agent_id=request.person_id,
                    vehicle_id=vehicle.vehicle_id,
                    link_id=vehicle.link_id,
                )
            )
            vehicle.status = VehicleStatus.WITH_CUSTOMER
            self._send_vehicle(vehicle, self._route(vehicle.link_id, request.destination_link), now)

        elif vehicle.status == VehicleStatus.WITH_CUSTOMER:
            request = self.requests.pop(vehicle.request_id)
            self.publish(
                Event(
                    time=now,
                    event_type=EventType.DROPOFF,
                    agent_id=request.person_id,
                    vehicle_id=vehicle.vehicle_id,
                    link_id=vehicle.link_id,
                )
            )
            vehicle.status = VehicleStatus.IDLE
            vehicle.request_id = None
            self._complete_leg(
                create_arrival_event(
                    time=now,
                    agent_id=request.person_id,
                    link_id=request.destination_link,
                    mode=self.fleet_config.mode,
                    leg_index=request.leg_index,
                    vehicle_id=vehicle.vehicle_id,
                )
            )

        else:
            vehicle.status = VehicleStatus.IDLE
