"""
Scenario configuration for the dispatch-validation harness.

All parameters are fixed before augmentation starts; nothing is
reconfigured mid-run.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from ..dispatch.base import OperatorConfig
from ..errors import ScenarioConfigError
from ..network.augment import AugmentationConfig
from ..simulation.engine import SimulationConfig
from ..simulation.fleet import FleetConfig
from ..zoning.partitioner import PartitionConfig

DEFAULT_DISPATCHERS = [
    "SingleHeuristic",
    "DemandSupplyBalancingDispatcher",
    "GlobalBipartiteMatchingDispatcher",
    "AdaptiveRealTimeRebalancingPolicy",
]


@dataclass
class ScenarioConfig:
    """Base scenario shared by every dispatch-policy variant."""

    name: str = "standard_scenario"
    dispatchers: list[str] = field(default_factory=lambda: list(DEFAULT_DISPATCHERS))

    # Demand and supply
    n_agents: int = 100
    fleet_size: int = 100
    fleet_generator: str = "PopulationDensity"
    operator_id: str = "test"

    # Network
    grid_size: int = 10
    grid_spacing: float = 1000.0
    corridor_range: int = 9

    # Zoning
    n_zones: int = 4

    # Opaque operator parameters
    price_structure: dict[str, Any] = field(default_factory=dict)
    dispatcher_params: dict[str, Any] = field(
        default_factory=lambda: {"publishPeriod": -1}
    )

    random_seed: int = 42
    simulation: SimulationConfig = field(default_factory=SimulationConfig)

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Raise ScenarioConfigError on malformed settings."""
        if not self.dispatchers:
            raise ScenarioConfigError("At least one dispatcher must be configured")
        if len(set(self.dispatchers)) != len(self.dispatchers):
            raise ScenarioConfigError(f"Duplicate dispatchers in {self.dispatchers}")
        for key in ("n_agents", "fleet_size", "grid_size", "n_zones"):
            value = getattr(self, key)
            if not isinstance(value, int) or value < 1:
                raise ScenarioConfigError(f"{key} must be a positive integer, got {value!r}")
        if not isinstance(self.corridor_range, int) or self.corridor_range < 0:
            raise ScenarioConfigError(
                f"corridor_range must be a non-negative integer, got {self.corridor_range!r}"
            )

    def operator_config(self, dispatcher: str) -> OperatorConfig:
        return OperatorConfig(
            operator_id=self.operator_id,
            dispatcher=dispatcher,
            price_structure=dict(self.price_structure),
            dispatcher_params=dict(self.dispatcher_params),
        )

    def fleet_config(self) -> FleetConfig:
        return FleetConfig(
            n_vehicles=self.fleet_size,
            operator_id=self.operator_id,
            generator=self.fleet_generator,
        )

    def augmentation_config(self) -> AugmentationConfig:
        return AugmentationConfig(corridor_range=self.corridor_range)

    def partition_config(self) -> PartitionConfig:
        return PartitionConfig(n_zones=self.n_zones)


def scenario_config_from_dict(data: dict[str, Any]) -> ScenarioConfig:
    """Build a ScenarioConfig from a plain mapping (e.g. parsed YAML)."""
    data = dict(data or {})
    known = {f.name for f in fields(ScenarioConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ScenarioConfigError(f"Unknown scenario settings: {unknown}")

    sim_data = data.pop("simulation", None) or {}
    sim_known = {f.name for f in fields(SimulationConfig)}
    sim_unknown = sorted(set(sim_data) - sim_known)
    if sim_unknown:
        raise ScenarioConfigError(f"Unknown simulation settings: {sim_unknown}")

    return ScenarioConfig(simulation=SimulationConfig(**sim_data), **data)


def load_scenario_config(config_path: Path) -> ScenarioConfig:
    """Load a scenario configuration from a YAML file."""
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        data = yaml.safe_load(f)

    if data is not None and not isinstance(data, dict):
        raise ScenarioConfigError(f"{config_path} must contain a mapping at the top level")

    return scenario_config_from_dict(data or {})
