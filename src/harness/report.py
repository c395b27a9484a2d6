"""
Per-policy outcomes and the overall harness report.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Optional

import pandas as pd

from ..oracle.records import RunRecord


@dataclass
class PolicyOutcome:
    """Pass/fail result for one dispatch-policy variant."""

    policy: str
    passed: bool
    departures: int = 0
    arrivals: int = 0
    violations: int = 0
    failure_kind: Optional[str] = None
    message: str = ""
    metrics: dict[str, Any] = field(default_factory=dict)

    @property
    def discrepancy(self) -> int:
        return self.departures - self.arrivals

    @property
    def violated(self) -> bool:
        return self.violations > 0

    @classmethod
    def from_record(
        cls,
        record: RunRecord,
        failure_kind: Optional[str] = None,
        message: str = "",
        metrics: Optional[dict[str, Any]] = None,
    ) -> "PolicyOutcome":
        return cls(
            policy=record.policy_name,
            passed=failure_kind is None,
            departures=record.departures,
            arrivals=record.arrivals,
            violations=record.violations,
            failure_kind=failure_kind,
            message=message,
            metrics=metrics or {},
        )


@dataclass
class HarnessReport:
    """Outcomes of every policy variant run against one scenario."""

    scenario: str
    outcomes: list[PolicyOutcome] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return bool(self.outcomes) and all(o.passed for o in self.outcomes)

    @property
    def exit_code(self) -> int:
        return 0 if self.passed else 1

    @property
    def failed_policies(self) -> list[str]:
        return [o.policy for o in self.outcomes if not o.passed]

    def outcome_for(self, policy: str) -> PolicyOutcome:
        for outcome in self.outcomes:
            if outcome.policy == policy:
                return outcome
        raise KeyError(policy)

    def to_dataframe(self) -> pd.DataFrame:
        """One row per policy variant."""
        records = []
        for outcome in self.outcomes:
            row = asdict(outcome)
            row.pop("metrics")
            row["discrepancy"] = outcome.discrepancy
            row["violated"] = outcome.violated
            records.append(row)
        return pd.DataFrame(records)

    def format_summary(self) -> str:
        """Markdown summary of all outcomes."""
        lines = [
            f"# Dispatch validation: {self.scenario}",
            f"Generated: {datetime.now().isoformat()}",
            "",
            f"Overall: {'PASS' if self.passed else 'FAIL'}",
            "",
        ]

        for o in self.outcomes:
            status = "PASS" if o.passed else f"FAIL ({o.failure_kind})"
            lines.append(f"## {o.policy}: {status}")
            lines.append(f"- Departures: {o.departures}")
            lines.append(f"- Arrivals: {o.arrivals}")
            lines.append(f"- Discrepancy: {o.discrepancy}")
            lines.append(f"- Mode-access violation: {'yes' if o.violated else 'no'}")
            if o.message:
                lines.append(f"- Detail: {o.message}")
            lines.append("")

        return "\n".join(lines)
