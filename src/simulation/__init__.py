"""
Simulation engine for AMoD dispatch scenarios.

Provides event-driven simulation with a vehicle fleet, routing, and an
event-subscription interface for run-time observers.
"""

from .engine import SimulationConfig, SimulationEngine, SimulationResult
from .events import PUBLISHED_EVENTS, Event, EventHandler, EventType
from .fleet import (
    AV_ID_PREFIX,
    FleetConfig,
    Vehicle,
    VehicleStatus,
    generate_fleet,
)
from .routing import Router

__all__ = [
    # Engine
    "SimulationConfig",
    "SimulationEngine",
    "SimulationResult",
    # Events
    "Event",
    "EventHandler",
    "EventType",
    "PUBLISHED_EVENTS",
    # Fleet
    "AV_ID_PREFIX",
    "FleetConfig",
    "Vehicle",
    "VehicleStatus",
    "generate_fleet",
    # Routing
    "Router",
]
