"""
Tests for the src/simulation package.

Tests cover:
- Event ordering
- Fleet generation and FleetConfig validation
- Mode-filtered routing
- SimulationEngine end-to-end runs and handler semantics
"""

import numpy as np
import pytest

from src.dispatch import (
    DispatchDecision,
    DispatchPolicy,
    OperatorConfig,
    Rebalance,
    SingleHeuristicDispatcher,
)
from src.errors import InvalidDispatchError, PolicyError, ScenarioConfigError
from src.network.augment import AugmentationConfig, NetworkAugmenter
from src.network.model import AV_MODE, create_grid_network
from src.population import create_population
from src.simulation import (
    AV_ID_PREFIX,
    Event,
    EventType,
    FleetConfig,
    Router,
    SimulationConfig,
    SimulationEngine,
    generate_fleet,
)


class RecordingHandler:
    """Collects every published event."""

    def __init__(self):
        self.events = []

    def handle_event(self, event):
        self.events.append(event)

    def of_type(self, event_type):
        return [e for e in self.events if e.event_type == event_type]


@pytest.fixture
def scenario():
    network = create_grid_network(size=5)
    population = create_population(network, n_agents=10, rng=np.random.default_rng(11))
    NetworkAugmenter(AugmentationConfig(corridor_range=4)).augment(network, population)
    return network, population


def make_engine(scenario, policy=None, n_vehicles=10, **sim_kwargs):
    network, population = scenario
    return SimulationEngine(
        SimulationConfig(**sim_kwargs),
        network,
        population,
        FleetConfig(n_vehicles=n_vehicles),
        policy or SingleHeuristicDispatcher(OperatorConfig()),
        rng=np.random.default_rng(5),
    )


class TestEvent:
    """Tests for Event ordering."""

    def test_ordered_by_time_then_sequence(self):
        """Events should sort by time, then by scheduling order."""
        a = Event(time=5.0, sequence=2)
        b = Event(time=5.0, sequence=1)
        c = Event(time=1.0, sequence=9)
        assert sorted([a, b, c]) == [c, b, a]


class TestFleet:
    """Tests for fleet generation."""

    def test_vehicle_count_and_prefix(self, scenario):
        """Verify fleet size and the av_ id prefix."""
        network, population = scenario
        fleet = generate_fleet(network, population, FleetConfig(n_vehicles=25), np.random.default_rng(0))
        assert len(fleet) == 25
        assert all(vid.startswith(AV_ID_PREFIX) for vid in fleet)

    def test_no_vehicle_on_offnetwork_link(self, scenario):
        """Vehicles are never placed on transit-only activity links."""
        network, population = scenario
        fleet = generate_fleet(network, population, FleetConfig(n_vehicles=200), np.random.default_rng(0))
        for vehicle in fleet.values():
            assert network.links[vehicle.link_id].allows(AV_MODE)

    def test_uniform_generator(self, scenario):
        """Verify the Uniform generator places the requested number of vehicles."""
        network, population = scenario
        fleet = generate_fleet(
            network, population, FleetConfig(n_vehicles=5, generator="Uniform"), np.random.default_rng(0)
        )
        assert len(fleet) == 5

    def test_invalid_fleet_size(self):
        """An empty fleet should be rejected."""
        with pytest.raises(ScenarioConfigError):
            FleetConfig(n_vehicles=0)

    def test_unknown_generator(self):
        """Verify unknown fleet generators are rejected."""
        with pytest.raises(ScenarioConfigError):
            FleetConfig(generator="Teleport")


class TestRouter:
    """Tests for mode-filtered routing."""

    def test_route_avoids_transit_links(self, scenario):
        """Fleet routes should never use transit-only links."""
        network, _ = scenario
        router = Router(network, AV_MODE)
        route = router.route("0:0->1:0", "3:4->4:4")

        assert route[-1] == "3:4->4:4"
        assert all(network.links[lid].allows(AV_MODE) for lid in route)
        assert not any(lid.startswith("pt_") for lid in route)

    def test_route_is_contiguous(self, scenario):
        """Verify each route link starts where the previous one ends."""
        network, _ = scenario
        route = Router(network, AV_MODE).route("0:0->1:0", "4:3->4:4")
        prev = network.links["0:0->1:0"]
        for lid in route:
            link = network.links[lid]
            assert link.from_node == prev.to_node
            prev = link

    def test_same_link_route_empty(self, scenario):
        """A route to the current link should be empty."""
        network, _ = scenario
        assert Router(network, AV_MODE).route("0:0->1:0", "0:0->1:0") == []

    def test_pt_link_not_routable(self, scenario):
        """Verify transit-only links are not routable for the fleet."""
        network, _ = scenario
        router = Router(network, AV_MODE)
        assert not router.is_routable("pt_fwd_1:1")
        assert router.is_routable("0:0->1:0")


class TestSimulationEngine:
    """End-to-end engine runs."""

    def test_all_trips_complete(self, scenario):
        """Verify every fleet leg departs, is picked up and arrives."""
        engine = make_engine(scenario)
        handler = RecordingHandler()
        engine.add_event_handler(handler)

        result = engine.run()

        # Two AV legs per agent; the appended walk leg follows an open-ended activity
        assert result.metrics["total_departures"] == 20
        assert result.metrics["total_arrivals"] == 20
        assert result.metrics["open_requests"] == 0
        assert len(handler.of_type(EventType.DEPARTURE)) == 20
        assert len(handler.of_type(EventType.ARRIVAL)) == 20
        assert len(handler.of_type(EventType.PICKUP)) == 20
        assert len(result.raw_data) == 20

    def test_events_in_time_order(self, scenario):
        """Handlers should see events in time order, ending with SIMULATION_END."""
        engine = make_engine(scenario)
        handler = RecordingHandler()
        engine.add_event_handler(handler)
        engine.run()

        times = [e.time for e in handler.events]
        assert times == sorted(times)
        assert handler.events[-1].event_type == EventType.SIMULATION_END

    def test_fleet_stays_on_road_links(self, scenario):
        """Verify router-planned trips only enter vehicular links."""
        network, _ = scenario
        engine = make_engine(scenario)
        handler = RecordingHandler()
        engine.add_event_handler(handler)
        engine.run()

        enters = handler.of_type(EventType.LINK_ENTER)
        assert enters
        assert all(network.links[e.link_id].is_vehicular for e in enters)

    def test_handler_exception_aborts_run(self, scenario):
        """A handler exception should abort the run and propagate."""
        class Boom(Exception):
            pass

        class FailingHandler:
            def handle_event(self, event):
                if event.event_type == EventType.LINK_ENTER:
                    raise Boom()

        engine = make_engine(scenario)
        engine.add_event_handler(FailingHandler())
        with pytest.raises(Boom):
            engine.run()
        assert not engine.is_running

    def test_explicit_route_followed_verbatim(self, scenario):
        """The engine does not police modes on explicit routes."""

        class TransitRouter(DispatchPolicy):
            name = "TransitRouter"

            def dispatch(self, state, virtual_network=None):
                if self.n_epochs > 0 or not state.idle_vehicles:
                    return DispatchDecision()
                vehicle = sorted(state.idle_vehicles, key=lambda v: v.vehicle_id)[0]
                return DispatchDecision(
                    rebalances=[Rebalance(vehicle.vehicle_id, "pt_fwd_1:1", route=("pt_fwd_1:1",))]
                )

        engine = make_engine(scenario, policy=TransitRouter(OperatorConfig()))
        handler = RecordingHandler()
        engine.add_event_handler(handler)
        engine.run()

        enters = [e.link_id for e in handler.of_type(EventType.LINK_ENTER)]
        assert enters == ["pt_fwd_1:1"]

    def test_invalid_assignment_raises(self, scenario):
        """Verify assigning one request twice raises InvalidDispatchError."""
        class DoubleBooker(DispatchPolicy):
            name = "DoubleBooker"

            def dispatch(self, state, virtual_network=None):
                from src.dispatch import Assignment

                requests = state.unassigned_requests
                idle = state.idle_vehicles
                if not requests or len(idle) < 2:
                    return DispatchDecision()
                rid = requests[0].request_id
                return DispatchDecision(
                    assignments=[
                        Assignment(idle[0].vehicle_id, rid),
                        Assignment(idle[1].vehicle_id, rid),
                    ]
                )

        engine = make_engine(scenario, policy=DoubleBooker(OperatorConfig()))
        with pytest.raises(InvalidDispatchError) as exc_info:
            engine.run()
        assert exc_info.value.policy == "DoubleBooker"

    def test_policy_exception_wrapped(self, scenario):
        """Verify a policy bug surfaces as a PolicyError naming the policy."""

        class Broken(DispatchPolicy):
            name = "Broken"

            def dispatch(self, state, virtual_network=None):
                raise KeyError("missing vehicle index")

        engine = make_engine(scenario, policy=Broken(OperatorConfig()))
        with pytest.raises(PolicyError) as exc_info:
            engine.run()

        assert exc_info.value.policy == "Broken"
        assert exc_info.value.kind == "policy_error"
        assert isinstance(exc_info.value.__cause__, KeyError)
        assert not engine.is_running

    def test_unserved_requests_remain_open(self, scenario):
        """A policy that never dispatches leaves departures without arrivals."""

        class Idle(DispatchPolicy):
            name = "Idle"

            def dispatch(self, state, virtual_network=None):
                return DispatchDecision()

        engine = make_engine(scenario, policy=Idle(OperatorConfig()), end_time=12 * 3600)
        result = engine.run()

        assert result.metrics["total_departures"] > 0
        assert result.metrics["total_arrivals"] == 0
        assert result.end_time <= 12 * 3600
