"""
Dispatch-validation harness.

Builds the augmented scenario fixture once and runs it against each
dispatch policy with the conservation oracle attached.
"""

from .config import (
    DEFAULT_DISPATCHERS,
    ScenarioConfig,
    load_scenario_config,
    scenario_config_from_dict,
)
from .report import HarnessReport, PolicyOutcome
from .runner import ScenarioHarness, ScenarioSnapshot, run_scenario

__all__ = [
    "DEFAULT_DISPATCHERS",
    "ScenarioConfig",
    "load_scenario_config",
    "scenario_config_from_dict",
    "HarnessReport",
    "PolicyOutcome",
    "ScenarioHarness",
    "ScenarioSnapshot",
    "run_scenario",
]
