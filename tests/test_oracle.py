"""
Tests for src/oracle module.

Tests cover:
- RunRecord accumulation and discrepancy
- Mode-access violation detection and short-circuit
- ConservationOracle state machine
"""

import pytest

from src.errors import ConservationMismatch, ModeAccessViolation, OracleStateError
from src.network.augment import AugmentationConfig, NetworkAugmenter
from src.network.model import create_grid_network
from src.oracle import ConservationOracle, OracleState, RunRecord
from src.simulation.events import (
    Event,
    EventType,
    create_arrival_event,
    create_departure_event,
    create_link_enter_event,
    create_simulation_end_event,
)


@pytest.fixture
def network():
    net = create_grid_network(size=10)
    NetworkAugmenter(AugmentationConfig(corridor_range=9)).inject_corridor(net)
    return net


@pytest.fixture
def oracle(network):
    return ConservationOracle(network, policy_name="TestPolicy")


def departure(t, agent="p1"):
    return create_departure_event(t, agent, "0:0->1:0", "av", 1)


def arrival(t, agent="p1"):
    return create_arrival_event(t, agent, "1:0->2:0", "av", 1)


class TestRunRecord:
    """Tests for RunRecord dataclass."""

    def test_defaults(self):
        """A new record should start with zero counts."""
        record = RunRecord(policy_name="x")
        assert record.departures == 0
        assert record.arrivals == 0
        assert record.violations == 0
        assert record.discrepancy == 0
        assert not record.violated

    def test_discrepancy(self):
        """Verify discrepancy is departures minus arrivals."""
        record = RunRecord(policy_name="x", departures=5, arrivals=3)
        assert record.discrepancy == 2
        assert record.to_dict()["discrepancy"] == 2


class TestStateMachine:
    """Tests for the oracle lifecycle."""

    def test_initial_state(self, oracle):
        """Verify a new oracle starts in REGISTERED."""
        assert oracle.state == OracleState.REGISTERED

    def test_accumulating_after_first_event(self, oracle):
        """The first event should move the oracle to ACCUMULATING."""
        oracle.handle_event(departure(10.0))
        assert oracle.state == OracleState.ACCUMULATING

    def test_terminated_on_simulation_end(self, oracle):
        """Verify SIMULATION_END terminates the oracle and records the end time."""
        oracle.handle_event(departure(10.0))
        oracle.handle_event(arrival(20.0))
        oracle.handle_event(create_simulation_end_event(30.0))

        assert oracle.state == OracleState.TERMINATED
        assert oracle.record.end_time == 30.0

    def test_events_after_termination_rejected(self, oracle):
        """Events after termination should raise OracleStateError."""
        oracle.handle_event(create_simulation_end_event(30.0))
        with pytest.raises(OracleStateError):
            oracle.handle_event(departure(40.0))

    def test_conservation_requires_termination(self, oracle):
        """Verify conservation cannot be checked mid-run."""
        oracle.handle_event(departure(10.0))
        with pytest.raises(OracleStateError):
            oracle.check_conservation()

    def test_register_subscribes(self, oracle):
        """Registering should subscribe the oracle to the engine."""
        class FakeEngine:
            def __init__(self):
                self.handlers = []

            def add_event_handler(self, handler):
                self.handlers.append(handler)

        engine = FakeEngine()
        assert oracle.register(engine) is oracle
        assert engine.handlers == [oracle]

    def test_register_twice_rejected(self, oracle):
        """Verify an oracle cannot be registered once it has seen events."""
        oracle.handle_event(departure(1.0))
        with pytest.raises(OracleStateError):
            oracle.register(object())


class TestConservation:
    """Tests for departure/arrival accounting."""

    def test_balanced_run_passes(self, oracle):
        """A run where every departure arrives should pass."""
        for i in range(3):
            oracle.handle_event(departure(10.0 + i, agent=f"p{i}"))
        for i in range(3):
            oracle.handle_event(arrival(100.0 + i, agent=f"p{i}"))
        oracle.handle_event(create_simulation_end_event(200.0))

        record = oracle.check_conservation()
        assert record.departures == 3
        assert record.arrivals == 3
        assert record.discrepancy == 0
        assert record.departures_by_mode == {"av": 3}

    def test_missing_arrival_reported(self, oracle):
        """Verify a missing arrival raises ConservationMismatch with the policy name."""
        oracle.handle_event(departure(10.0, agent="p1"))
        oracle.handle_event(departure(11.0, agent="p2"))
        oracle.handle_event(arrival(50.0, agent="p1"))
        oracle.handle_event(create_simulation_end_event(100.0))

        with pytest.raises(ConservationMismatch) as exc_info:
            oracle.check_conservation()

        assert exc_info.value.discrepancy == 1
        assert exc_info.value.policy == "TestPolicy"

    def test_mismatch_is_not_a_violation(self, oracle):
        """A conservation mismatch should not count as a mode-access violation."""
        oracle.handle_event(departure(10.0))
        oracle.handle_event(create_simulation_end_event(100.0))
        with pytest.raises(ConservationMismatch):
            oracle.check_conservation()
        assert oracle.record.violations == 0


class TestModeAccess:
    """Tests for mode-access violation detection."""

    def test_road_link_is_fine(self, oracle):
        """Verify fleet vehicles on road links are not flagged."""
        oracle.handle_event(create_link_enter_event(5.0, "av_test_0", "0:0->1:0"))
        assert oracle.record.link_enters == 1
        assert oracle.record.violations == 0

    def test_av_on_pt_link_raises(self, oracle):
        """A fleet vehicle on a transit-only link raises ModeAccessViolation."""
        with pytest.raises(ModeAccessViolation) as exc_info:
            oracle.handle_event(create_link_enter_event(5.0, "av_test_0", "pt_fwd_5:5"))

        exc = exc_info.value
        assert exc.vehicle_id == "av_test_0"
        assert exc.link_id == "pt_fwd_5:5"
        assert exc.policy == "TestPolicy"
        assert oracle.state == OracleState.VIOLATED
        assert oracle.record.violations == 1
        assert oracle.record.first_violation.link_id == "pt_fwd_5:5"

    def test_violation_is_terminal(self, oracle):
        """Verify no further events are accepted after a violation."""
        with pytest.raises(ModeAccessViolation):
            oracle.handle_event(create_link_enter_event(5.0, "av_test_0", "pt_bck_0:0"))
        with pytest.raises(OracleStateError):
            oracle.handle_event(create_simulation_end_event(10.0))
        assert oracle.record.violations == 1

    def test_non_fleet_vehicle_on_pt_link_ignored(self, oracle):
        """Only vehicles with the fleet prefix are policed."""
        oracle.handle_event(create_link_enter_event(5.0, "bus_1", "pt_fwd_5:5"))
        assert oracle.record.violations == 0

    def test_unknown_link_ignored(self, oracle):
        """Links missing from the network should not be flagged."""
        oracle.handle_event(create_link_enter_event(5.0, "av_test_0", "nowhere"))
        assert oracle.state == OracleState.ACCUMULATING

    def test_pickup_events_do_not_count(self, oracle):
        """Verify pickups are not counted as departures or arrivals."""
        oracle.handle_event(Event(time=1.0, event_type=EventType.PICKUP, agent_id="p1"))
        assert oracle.record.departures == 0
        assert oracle.record.arrivals == 0
