"""
Error taxonomy for the dispatch-validation harness.

Setup-phase errors abort the whole harness invocation. Run-phase errors are
scoped to a single dispatch-policy variant and are collected into the report.
"""

from __future__ import annotations

from typing import Optional


class HarnessError(Exception):
    """Base class for all harness errors."""


class SetupError(HarnessError):
    """Raised while building the scenario fixture, before any run starts."""


class RunPhaseError(HarnessError):
    """Raised during a single policy run; does not stop other variants."""

    kind = "run_error"

    def __init__(self, message: str, policy: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.policy = policy

    def __str__(self) -> str:
        if self.policy:
            return f"[{self.policy}] {self.message}"
        return self.message


class MissingNodeError(SetupError, KeyError):
    """Augmentation referenced a node id that is absent from the network."""

    def __init__(self, node_id: str):
        super().__init__(node_id)
        self.node_id = node_id

    def __str__(self) -> str:
        return f"Node '{self.node_id}' does not exist in the network"


class ScenarioConfigError(SetupError, ValueError):
    """Scenario, fleet or dispatcher configuration is malformed."""


class ModeAccessViolation(RunPhaseError):
    """An AMoD vehicle entered a link that does not admit vehicular traffic."""

    kind = "mode_access_violation"

    def __init__(
        self,
        vehicle_id: str,
        link_id: str,
        time: float,
        allowed_modes: frozenset[str] = frozenset(),
        policy: Optional[str] = None,
    ):
        modes = ", ".join(sorted(allowed_modes)) or "none"
        super().__init__(
            f"Vehicle '{vehicle_id}' entered link '{link_id}' at t={time:.1f}s "
            f"(allowed modes: {modes})",
            policy=policy,
        )
        self.vehicle_id = vehicle_id
        self.link_id = link_id
        self.time = time
        self.allowed_modes = allowed_modes


class ConservationMismatch(RunPhaseError):
    """Departures and arrivals differ at run termination."""

    kind = "conservation_mismatch"

    def __init__(self, departures: int, arrivals: int, policy: Optional[str] = None):
        super().__init__(
            f"{departures} departures vs {arrivals} arrivals "
            f"(discrepancy {departures - arrivals})",
            policy=policy,
        )
        self.departures = departures
        self.arrivals = arrivals

    @property
    def discrepancy(self) -> int:
        return self.departures - self.arrivals


class InvalidDispatchError(RunPhaseError):
    """A dispatch policy issued a command the engine cannot execute."""

    kind = "invalid_dispatch"


class PolicyError(RunPhaseError):
    """A dispatch policy raised while deciding an epoch."""

    kind = "policy_error"


class DegenerateClusteringError(HarnessError, ValueError):
    """Fewer distinct demand points than requested zones.

    Soft error: the partitioner recovers by reducing the zone count.
    """

    def __init__(self, requested: int, available: int):
        super().__init__(
            f"Requested {requested} zones but only {available} distinct points exist"
        )
        self.requested = requested
        self.available = available


class OracleStateError(HarnessError, RuntimeError):
    """The conservation oracle was driven outside its state machine."""
