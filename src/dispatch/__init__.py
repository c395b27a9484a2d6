"""Dispatch-policy interface, reference policies and registry."""

from .base import (
    Assignment,
    DispatchDecision,
    DispatchPolicy,
    FleetState,
    OperatorConfig,
    Rebalance,
    TransportRequest,
)
from .policies import (
    AdaptiveRealTimeRebalancingPolicy,
    DemandSupplyBalancingDispatcher,
    GlobalBipartiteMatchingDispatcher,
    SingleHeuristicDispatcher,
)
from .registry import POLICY_REGISTRY, available_policies, create_policy, register_policy

__all__ = [
    # Interface
    "Assignment",
    "DispatchDecision",
    "DispatchPolicy",
    "FleetState",
    "OperatorConfig",
    "Rebalance",
    "TransportRequest",
    # Policies
    "AdaptiveRealTimeRebalancingPolicy",
    "DemandSupplyBalancingDispatcher",
    "GlobalBipartiteMatchingDispatcher",
    "SingleHeuristicDispatcher",
    # Registry
    "POLICY_REGISTRY",
    "available_policies",
    "create_policy",
    "register_policy",
]
