"""
Agent plans: alternating activities and legs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Optional, Union


@dataclass
class Activity:
    """An activity at a location.

    `link_id` may reference a link that is not part of the routable road
    graph (an off-network activity).
    """

    purpose: str
    coord: tuple[float, float]
    link_id: str
    end_time: Optional[float] = None  # None: agent stays until the end


@dataclass
class Leg:
    """A trip between two activities."""

    mode: str


PlanElement = Union[Activity, Leg]


@dataclass
class Plan:
    """Ordered sequence of plan elements."""

    elements: list[PlanElement] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.elements)

    def __iter__(self) -> Iterator[PlanElement]:
        return iter(self.elements)

    def add_activity(self, activity: Activity) -> None:
        self.elements.append(activity)

    def add_leg(self, leg: Leg) -> None:
        self.elements.append(leg)

    @property
    def activities(self) -> list[Activity]:
        return [e for e in self.elements if isinstance(e, Activity)]

    @property
    def legs(self) -> list[Leg]:
        return [e for e in self.elements if isinstance(e, Leg)]

    def is_well_formed(self) -> bool:
        """Check the activity/leg alternation, starting and ending on an activity."""
        if not self.elements:
            return False
        for idx, element in enumerate(self.elements):
            expected = Activity if idx % 2 == 0 else Leg
            if not isinstance(element, expected):
                return False
        return isinstance(self.elements[-1], Activity)


@dataclass
class Person:
    """A simulated agent owning one or more plans."""

    person_id: str
    plans: list[Plan] = field(default_factory=list)

    @property
    def selected_plan(self) -> Plan:
        return self.plans[0]


@dataclass
class Population:
    """Collection of persons keyed by id."""

    persons: dict[str, Person] = field(default_factory=dict)

    def add_person(self, person: Person) -> None:
        self.persons[person.person_id] = person

    def __len__(self) -> int:
        return len(self.persons)

    def iter_plans(self) -> Iterator[Plan]:
        for person in self.persons.values():
            yield from person.plans

    def activity_coords(self) -> list[tuple[float, float]]:
        """Coordinates of every activity in every plan."""
        return [act.coord for plan in self.iter_plans() for act in plan.activities]

    def count_legs(self, mode: str) -> int:
        return sum(1 for plan in self.iter_plans() for leg in plan.legs if leg.mode == mode)
