"""
Run-time correctness oracle.

Subscribes to the engine's event stream and checks two invariants:
trip conservation (every departure arrives) and mode access (fleet vehicles
never enter links closed to vehicular traffic).
"""

from __future__ import annotations

import logging

from ..errors import ConservationMismatch, ModeAccessViolation, OracleStateError
from ..network.model import Network
from ..simulation.events import Event, EventType
from ..simulation.fleet import AV_ID_PREFIX
from .records import OracleState, RunRecord, ViolationRecord

logger = logging.getLogger(__name__)


class ConservationOracle:
    """
    Stateful event handler owning one RunRecord.

    State machine: REGISTERED -> ACCUMULATING -> (VIOLATED | TERMINATED).
    A mode-access violation raises immediately, which aborts the run.
    Conservation is only checked once the run has terminated cleanly.
    """

    def __init__(
        self,
        network: Network,
        policy_name: str,
        fleet_id_prefix: str = AV_ID_PREFIX,
    ):
        self.network = network
        self.fleet_id_prefix = fleet_id_prefix
        self.record = RunRecord(policy_name=policy_name)
        self.state = OracleState.REGISTERED

    @property
    def is_terminal(self) -> bool:
        return self.state in (OracleState.VIOLATED, OracleState.TERMINATED)

    def register(self, engine) -> "ConservationOracle":
        """Subscribe to `engine`'s event stream."""
        if self.state != OracleState.REGISTERED:
            raise OracleStateError(f"Cannot register an oracle in state {self.state.name}")
        engine.add_event_handler(self)
        return self

    def handle_event(self, event: Event) -> None:
        if self.is_terminal:
            raise OracleStateError(
                f"Received {event.event_type.name} after the run reached {self.state.name}"
            )
        if self.state == OracleState.REGISTERED:
            self.state = OracleState.ACCUMULATING

        if event.event_type == EventType.DEPARTURE:
            self.record.departures += 1
            self._bump(self.record.departures_by_mode, event.mode)
        elif event.event_type == EventType.ARRIVAL:
            self.record.arrivals += 1
            self._bump(self.record.arrivals_by_mode, event.mode)
        elif event.event_type == EventType.LINK_ENTER:
            self.record.link_enters += 1
            self._check_mode_access(event)
        elif event.event_type == EventType.SIMULATION_END:
            self.record.end_time = event.time
            self.state = OracleState.TERMINATED

    def _check_mode_access(self, event: Event) -> None:
        vehicle_id = event.vehicle_id or ""
        if not vehicle_id.startswith(self.fleet_id_prefix):
            return

        link = self.network.links.get(event.link_id)
        if link is None or link.is_vehicular:
            return

        self.record.violations += 1
        self.record.first_violation = ViolationRecord(
            vehicle_id=vehicle_id,
            link_id=link.link_id,
            time=event.time,
            allowed_modes=link.allowed_modes,
        )
        self.state = OracleState.VIOLATED
        logger.error(
            f"[{self.record.policy_name}] vehicle {vehicle_id} entered "
            f"non-vehicular link {link.link_id} at t={event.time:.1f}s"
        )
        raise ModeAccessViolation(
            vehicle_id=vehicle_id,
            link_id=link.link_id,
            time=event.time,
            allowed_modes=link.allowed_modes,
            policy=self.record.policy_name,
        )

    def check_conservation(self) -> RunRecord:
        """
        Assert departures == arrivals on a terminated run.

        Raises:
            OracleStateError: if the run has not terminated cleanly
            ConservationMismatch: if the counts differ
        """
        if self.state != OracleState.TERMINATED:
            raise OracleStateError(
                f"Conservation is only defined after termination (state {self.state.name})"
            )
        if self.record.discrepancy != 0:
            raise ConservationMismatch(
                self.record.departures,
                self.record.arrivals,
                policy=self.record.policy_name,
            )
        return self.record

    @staticmethod
    def _bump(counts: dict[str, int], mode) -> None:
        key = mode or "unknown"
        counts[key] = counts.get(key, 0) + 1
