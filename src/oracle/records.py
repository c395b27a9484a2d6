"""
Per-run accumulator owned by the conservation oracle.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Optional


class OracleState(Enum):
    """Lifecycle of an oracle within one run."""

    REGISTERED = auto()
    ACCUMULATING = auto()
    VIOLATED = auto()  # terminal
    TERMINATED = auto()  # terminal


@dataclass
class ViolationRecord:
    """Details of a mode-access violation."""

    vehicle_id: str
    link_id: str
    time: float
    allowed_modes: frozenset[str] = frozenset()


@dataclass
class RunRecord:
    """Departure/arrival tallies for one policy variant."""

    policy_name: str
    departures: int = 0
    arrivals: int = 0
    violations: int = 0
    link_enters: int = 0
    departures_by_mode: dict[str, int] = field(default_factory=dict)
    arrivals_by_mode: dict[str, int] = field(default_factory=dict)
    first_violation: Optional[ViolationRecord] = None
    end_time: Optional[float] = None

    @property
    def discrepancy(self) -> int:
        """departures - arrivals"""
        return self.departures - self.arrivals

    @property
    def violated(self) -> bool:
        return self.violations > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "policy": self.policy_name,
            "departures": self.departures,
            "arrivals": self.arrivals,
            "discrepancy": self.discrepancy,
            "violations": self.violations,
            "link_enters": self.link_enters,
            "end_time": self.end_time,
        }
