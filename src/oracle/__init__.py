"""Run-time conservation and mode-access oracle."""

from .conservation import ConservationOracle
from .records import OracleState, RunRecord, ViolationRecord

__all__ = [
    "ConservationOracle",
    "OracleState",
    "RunRecord",
    "ViolationRecord",
]
