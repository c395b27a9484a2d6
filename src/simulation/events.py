"""
Event types for the simulation engine.

Defines the events that drive the discrete-event simulation and the
notifications delivered to subscribed handlers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Optional, Protocol


class EventType(Enum):
    """Types of events in the simulation."""

    DEPARTURE = auto()  # Person starts a leg
    ARRIVAL = auto()  # Person finishes a leg
    LINK_ENTER = auto()  # Vehicle enters a link
    PICKUP = auto()  # Vehicle picks up a passenger
    DROPOFF = auto()  # Vehicle drops off a passenger
    DISPATCH = auto()  # Dispatcher decision epoch
    VEHICLE_STEP = auto()  # Vehicle reaches the end of its current link
    SIMULATION_END = auto()  # Run terminated normally


# Events forwarded to subscribed handlers
PUBLISHED_EVENTS = frozenset(
    {
        EventType.DEPARTURE,
        EventType.ARRIVAL,
        EventType.LINK_ENTER,
        EventType.PICKUP,
        EventType.DROPOFF,
        EventType.SIMULATION_END,
    }
)


@dataclass(order=True)
class Event:
    """
    A simulation event.

    Events are ordered by (time, sequence) so that simultaneous events are
    processed in scheduling order.
    """

    time: float  # Simulation time in seconds
    sequence: int = 0
    event_type: EventType = field(default=EventType.DISPATCH, compare=False)
    agent_id: Optional[str] = field(default=None, compare=False)
    vehicle_id: Optional[str] = field(default=None, compare=False)
    link_id: Optional[str] = field(default=None, compare=False)
    data: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def mode(self) -> Optional[str]:
        return self.data.get("mode")


class EventHandler(Protocol):
    """Single-method callback registered with the engine."""

    def handle_event(self, event: Event) -> None:
        ...


def create_link_enter_event(time: float, vehicle_id: str, link_id: str) -> Event:
    """Create a link-traversal event."""
    return Event(
        time=time,
        event_type=EventType.LINK_ENTER,
        vehicle_id=vehicle_id,
        link_id=link_id,
    )


def create_departure_event(
    time: float,
    agent_id: str,
    link_id: str,
    mode: str,
    leg_index: int,
) -> Event:
    """Create a departure event."""
    return Event(
        time=time,
        event_type=EventType.DEPARTURE,
        agent_id=agent_id,
        link_id=link_id,
        data={"mode": mode, "leg_index": leg_index},
    )


def create_arrival_event(
    time: float,
    agent_id: str,
    link_id: str,
    mode: str,
    leg_index: int,
    vehicle_id: Optional[str] = None,
) -> Event:
    """Create an arrival event."""
    return Event(
        time=time,
        event_type=EventType.ARRIVAL,
        agent_id=agent_id,
        vehicle_id=vehicle_id,
        link_id=link_id,
        data={"mode": mode, "leg_index": leg_index},
    )


def create_simulation_end_event(time: float) -> Event:
    """Create the terminal notification."""
    return Event(time=time, event_type=EventType.SIMULATION_END)
