"""
Experiment Runner — headless sandbox runs, A/B comparisons and sweeps.

``Simulation`` owns everything the economy engine treats as external: a
random tile grid, randomly placed settlements, the tick clock, and a
harvest step that credits last tick's production into storage (the engine
computes production but never moves it into storage itself).
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any

import numpy as np

from hamlet.core.config import (
    ConfigManager,
    ConfigValidationResult,
    EconomyConfig,
    SimulationConfig,
)
from hamlet.core.engine import EconomyEngine, TickReport
from hamlet.core.settlement import RESOURCE_TYPES, EconomyRecord, Settlement, TickTime
from hamlet.core.world import make_resource_grid, place_settlements
from hamlet.metrics.collector import MetricsCollector, TickMetrics


class Simulation:
    """One sandbox world stepped tick by tick."""

    def __init__(self, config: SimulationConfig):
        self.config = config
        self.config_manager = ConfigManager(config.economy)
        config.economy = self.config_manager.config

        self.rng = np.random.default_rng(config.random_seed)
        self.engine = EconomyEngine(
            config.economy, rng=self.rng, log_capacity=config.log_capacity,
        )
        self.collector = MetricsCollector(config)

        self.tile_map = make_resource_grid(config.map_size, self.rng)
        self.settlements: list[Settlement] = place_settlements(
            self.tile_map, config.settlement_count, self.rng,
            capacity=self.engine.guard.capacity_for(1),
        )
        self.current_time = 0.0
        self.reports: list[TickReport] = []

    @property
    def tick_count(self) -> int:
        return len(self.reports)

    def get_settlement(self, settlement_id: str) -> Settlement | None:
        for s in self.settlements:
            if s.id == settlement_id:
                return s
        return None

    def update_economy(self, **changes: Any) -> ConfigValidationResult:
        """Validate and commit economy parameter changes, then rewire the engine."""
        result = self.config_manager.update(**changes)
        self._apply_economy(self.config_manager.config)
        return result

    def reset_economy(self) -> EconomyConfig:
        economy = self.config_manager.reset()
        self._apply_economy(economy)
        return economy

    def _apply_economy(self, economy: EconomyConfig) -> None:
        self.config.economy = economy
        self.engine.apply_config(economy)

    def step(self) -> TickMetrics:
        dt = self.config.delta_time
        self.current_time += dt
        tick = TickTime(current_time=self.current_time, delta_time=dt)

        self._harvest(dt)
        report = self.engine.step(self.settlements, tick, self.tile_map)
        self.reports.append(report)
        return self.collector.collect(self.settlements, report, self.engine.guard)

    def run(self, ticks: int | None = None) -> list[TickMetrics]:
        ticks = ticks if ticks is not None else self.config.ticks_to_run
        return [self.step() for _ in range(ticks)]

    def _harvest(self, delta_time: float) -> None:
        """Credit last tick's production into storage, up to stock capacity."""
        for s in self.settlements:
            economy = s.economy
            if not isinstance(economy, EconomyRecord):
                continue
            capacity = economy.stock.capacity
            for r in RESOURCE_TYPES:
                room = max(0.0, capacity - s.storage[r])
                s.storage[r] += min(room, max(0.0, economy.production[r] * delta_time))


@dataclass
class ExperimentResult:
    """Result of a single experiment run."""
    config: SimulationConfig
    metrics: list[TickMetrics]
    final_population: int
    final_buildings: int
    mean_critical_settlements: float
    total_errors: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "experiment_name": self.config.experiment_name,
            "ticks": len(self.metrics),
            "final_population": self.final_population,
            "final_buildings": self.final_buildings,
            "mean_critical_settlements": round(self.mean_critical_settlements, 4),
            "total_errors": self.total_errors,
        }


@dataclass
class ComparisonResult:
    """Result of comparing two or more experiments."""
    results: dict[str, ExperimentResult]
    config_diffs: dict[str, Any]


class ExperimentRunner:
    """
    Run, compare, and sweep sandbox experiments.
    """

    def run_experiment(self, config: SimulationConfig) -> ExperimentResult:
        """Run a single experiment and return results."""
        sim = Simulation(config)
        metrics = sim.run()

        critical = [m.critical_settlements for m in metrics]
        last = metrics[-1] if metrics else None

        return ExperimentResult(
            config=config,
            metrics=metrics,
            final_population=last.total_population if last else 0,
            final_buildings=last.total_buildings if last else 0,
            mean_critical_settlements=float(np.mean(critical)) if critical else 0.0,
            total_errors=sum(m.new_errors for m in metrics),
        )

    def compare_experiments(
        self, configs: dict[str, SimulationConfig],
    ) -> ComparisonResult:
        """Run multiple experiments and compare results."""
        results = {name: self.run_experiment(c) for name, c in configs.items()}

        config_names = list(configs.keys())
        diffs: dict[str, Any] = {}
        if len(config_names) >= 2:
            base = configs[config_names[0]]
            for name in config_names[1:]:
                diffs[f"{config_names[0]}_vs_{name}"] = base.diff(configs[name])

        return ComparisonResult(results=results, config_diffs=diffs)

    def run_ab_test(
        self,
        config_a: SimulationConfig,
        config_b: SimulationConfig,
        label_a: str = "A",
        label_b: str = "B",
    ) -> ComparisonResult:
        """Run an A/B test between two configurations."""
        return self.compare_experiments({label_a: config_a, label_b: config_b})

    def run_parameter_sweep(
        self,
        base_config: SimulationConfig,
        param_name: str,
        values: list[Any],
    ) -> dict[str, ExperimentResult]:
        """
        Sweep a single parameter across multiple values.

        ``param_name`` may name a ``SimulationConfig`` field or an
        ``EconomyConfig`` field; economy fields are set on the nested config.

        Returns:
            Dict mapping value label -> ExperimentResult
        """
        economy_fields = {f.name for f in fields(EconomyConfig)}
        results: dict[str, ExperimentResult] = {}

        for val in values:
            config_dict = base_config.to_dict()
            if param_name in economy_fields:
                config_dict["economy"][param_name] = val
            else:
                config_dict[param_name] = val
            config_dict["experiment_name"] = f"sweep_{param_name}={val}"
            config = SimulationConfig.from_dict(config_dict)

            results[f"{param_name}={val}"] = self.run_experiment(config)

        return results

    def run_multi_seed(
        self, config: SimulationConfig, seeds: list[int],
    ) -> list[ExperimentResult]:
        """Run the same configuration with multiple random seeds."""
        results: list[ExperimentResult] = []
        for seed in seeds:
            config_dict = config.to_dict()
            config_dict["random_seed"] = seed
            config_dict["experiment_name"] = f"{config.experiment_name}_seed{seed}"
            results.append(self.run_experiment(SimulationConfig.from_dict(config_dict)))
        return results
