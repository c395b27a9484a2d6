"""Agents, plans and synthetic demand for dispatch-validation scenarios."""

from .generator import create_population
from .plans import Activity, Leg, Person, Plan, PlanElement, Population

__all__ = [
    "Activity",
    "Leg",
    "Person",
    "Plan",
    "PlanElement",
    "Population",
    "create_population",
]
