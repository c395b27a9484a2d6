"""
Scenario harness: one independent run per dispatch-policy variant.

The base scenario is built and augmented once; each variant runs on a deep
copy of it so no mutation residue leaks between runs. The virtual network
is computed once and shared by reference.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from ..dispatch.base import DispatchPolicy, OperatorConfig
from ..dispatch.registry import create_policy
from ..errors import RunPhaseError
from ..network.augment import AugmentationSummary, NetworkAugmenter
from ..network.model import Network, create_grid_network
from ..oracle.conservation import ConservationOracle
from ..population.generator import create_population
from ..population.plans import Population
from ..simulation.engine import SimulationEngine
from ..zoning.partitioner import ZonalPartitioner
from ..zoning.virtual_network import VirtualNetwork
from .config import ScenarioConfig
from .report import HarnessReport, PolicyOutcome

logger = logging.getLogger(__name__)

PolicyFactory = Callable[[str, OperatorConfig], DispatchPolicy]


@dataclass(frozen=True)
class ScenarioSnapshot:
    """Augmented scenario plus its virtual network; read-only once built."""

    network: Network
    population: Population
    virtual_network: VirtualNetwork
    augmentation: AugmentationSummary


class ScenarioHarness:
    """
    Runs a fixed scenario once per dispatch policy and collects outcomes.

    Setup errors (missing corridor nodes, malformed configuration, unknown
    dispatchers) propagate to the caller. Run-phase errors, including
    exceptions raised inside a policy, are recorded against the offending
    policy and the remaining policies still run.
    """

    def __init__(
        self,
        config: ScenarioConfig,
        network: Optional[Network] = None,
        population: Optional[Population] = None,
        policy_factory: PolicyFactory = create_policy,
        engine_factory: Callable[..., SimulationEngine] = SimulationEngine,
    ):
        self.config = config
        self._base_network = network
        self._base_population = population
        self.policy_factory = policy_factory
        self.engine_factory = engine_factory
        self.snapshot: Optional[ScenarioSnapshot] = None

    def prepare(self) -> ScenarioSnapshot:
        """Build, augment and partition the scenario exactly once."""
        if self.snapshot is not None:
            return self.snapshot

        config = self.config
        rng = np.random.default_rng(config.random_seed)

        network = self._base_network
        if network is None:
            network = create_grid_network(config.grid_size, config.grid_spacing)
        else:
            network = copy.deepcopy(network)

        population = self._base_population
        if population is None:
            population = create_population(network, config.n_agents, rng)
        else:
            population = copy.deepcopy(population)

        self._check_policies()

        augmentation = NetworkAugmenter(config.augmentation_config()).augment(network, population)
        virtual_network = ZonalPartitioner(config.partition_config()).partition(
            population, network
        )

        logger.info(
            f"Scenario '{config.name}' ready: {len(network.nodes)} nodes, "
            f"{len(network.links)} links, {len(population)} persons, "
            f"{len(virtual_network)} zones"
        )

        self.snapshot = ScenarioSnapshot(
            network=network,
            population=population,
            virtual_network=virtual_network,
            augmentation=augmentation,
        )
        return self.snapshot

    def _check_policies(self) -> None:
        """
        Fail fast on unknown dispatcher names.

        The factory decides which names it accepts, so each name is built once
        here and the instance discarded; `run_policy` always builds a fresh
        policy so epoch counters start at zero for every run.
        """
        for name in self.config.dispatchers:
            self.policy_factory(name, self.config.operator_config(name))

    def run(self) -> HarnessReport:
        """Run every configured policy sequentially."""
        snapshot = self.prepare()
        report = HarnessReport(scenario=self.config.name)

        for idx, name in enumerate(self.config.dispatchers):
            logger.info(f"Policy {idx + 1}/{len(self.config.dispatchers)}: {name}")
            outcome = self.run_policy(name, snapshot)
            report.outcomes.append(outcome)

            if outcome.passed:
                logger.info(f"  {name}: PASS ({outcome.departures} trips)")
            else:
                logger.warning(f"  {name}: FAIL ({outcome.failure_kind}) {outcome.message}")

        return report

    def run_policy(self, name: str, snapshot: ScenarioSnapshot) -> PolicyOutcome:
        """Execute one isolated run and assert the invariants."""
        config = self.config
        network = copy.deepcopy(snapshot.network)
        population = copy.deepcopy(snapshot.population)
        policy = self.policy_factory(name, config.operator_config(name))

        engine = self.engine_factory(
            config.simulation,
            network,
            population,
            config.fleet_config(),
            policy,
            virtual_network=snapshot.virtual_network,
            rng=np.random.default_rng(config.random_seed),
        )
        oracle = ConservationOracle(network, policy_name=name).register(engine)

        try:
            result = engine.run()
            oracle.check_conservation()
        except RunPhaseError as exc:
            exc.policy = exc.policy or name
            return PolicyOutcome.from_record(
                oracle.record,
                failure_kind=exc.kind,
                message=exc.message,
            )

        return PolicyOutcome.from_record(oracle.record, metrics=result.metrics)


def run_scenario(
    config: ScenarioConfig,
    network: Optional[Network] = None,
    population: Optional[Population] = None,
    policy_factory: PolicyFactory = create_policy,
) -> HarnessReport:
    """
    Convenience function to validate every configured dispatcher.

    Args:
        config: Scenario configuration
        network: Base road network (defaults to a generated grid)
        population: Base population (defaults to generated commuters)
        policy_factory: Maps a dispatcher name to a policy instance

    Returns:
        HarnessReport with one outcome per dispatcher
    """
    harness = ScenarioHarness(config, network, population, policy_factory)
    return harness.run()
