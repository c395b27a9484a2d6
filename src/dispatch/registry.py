"""
Name-based lookup of dispatch policies.
"""

from __future__ import annotations

from typing import Optional

from ..errors import ScenarioConfigError
from .base import DispatchPolicy, OperatorConfig
from .policies import (
    AdaptiveRealTimeRebalancingPolicy,
    DemandSupplyBalancingDispatcher,
    GlobalBipartiteMatchingDispatcher,
    SingleHeuristicDispatcher,
)

POLICY_REGISTRY: dict[str, type[DispatchPolicy]] = {
    cls.name: cls
    for cls in (
        SingleHeuristicDispatcher,
        DemandSupplyBalancingDispatcher,
        GlobalBipartiteMatchingDispatcher,
        AdaptiveRealTimeRebalancingPolicy,
    )
}


def register_policy(cls: type[DispatchPolicy], name: Optional[str] = None) -> type[DispatchPolicy]:
    """Register a policy class under `name` (defaults to `cls.name`)."""
    POLICY_REGISTRY[name or cls.name] = cls
    return cls


def available_policies() -> list[str]:
    return sorted(POLICY_REGISTRY)


def create_policy(name: str, operator_config: Optional[OperatorConfig] = None) -> DispatchPolicy:
    """
    Instantiate a registered policy.

    Raises:
        ScenarioConfigError: if `name` is not registered
    """
    try:
        cls = POLICY_REGISTRY[name]
    except KeyError:
        raise ScenarioConfigError(
            f"Unknown dispatcher '{name}'. Available: {available_policies()}"
        ) from None

    return cls(operator_config or OperatorConfig(dispatcher=name))
