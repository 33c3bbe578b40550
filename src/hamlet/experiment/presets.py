"""
Experiment presets — pre-configured sandbox runs.

Each preset returns a SimulationConfig whose economy parameters push the
settlements toward a particular regime (scarcity, plenty, building booms).
"""

from __future__ import annotations

from typing import Callable

from hamlet.core.config import EconomyConfig, SimulationConfig


def baseline() -> SimulationConfig:
    """Default economy, eight settlements, fifty ticks."""
    return SimulationConfig(experiment_name="baseline")


def famine() -> SimulationConfig:
    """Hungry villagers on a crowded map: food shortages spread quickly."""
    return SimulationConfig(
        experiment_name="famine",
        settlement_count=16,
        economy=EconomyConfig(
            food_consumption_per_capita=0.8,
            population_decline_rate=0.1,
        ),
    )


def abundance() -> SimulationConfig:
    """Frugal villagers, fast growth, generous storage."""
    return SimulationConfig(
        experiment_name="abundance",
        settlement_count=4,
        economy=EconomyConfig(
            food_consumption_per_capita=0.15,
            population_growth_rate=0.05,
            base_storage_capacity=200.0,
        ),
    )


def building_boom() -> SimulationConfig:
    """Cheap buildings and a high building target per head."""
    return SimulationConfig(
        experiment_name="building_boom",
        economy=EconomyConfig(
            buildings_per_population=0.3,
            building_wood_cost=4.0,
            building_ore_cost=2.0,
            construction_time=2.0,
        ),
    )


def strict_thresholds() -> SimulationConfig:
    """Narrow balanced band: more settlements flagged as shortage or surplus."""
    return SimulationConfig(
        experiment_name="strict_thresholds",
        economy=EconomyConfig(
            surplus_threshold=1.2,
            shortage_threshold=0.9,
            critical_threshold=0.5,
        ),
    )


def long_run() -> SimulationConfig:
    """Baseline economy over many ticks on a larger map."""
    return SimulationConfig(
        experiment_name="long_run",
        map_size=40,
        settlement_count=20,
        ticks_to_run=500,
    )


PRESETS: dict[str, Callable[[], SimulationConfig]] = {
    "baseline": baseline,
    "famine": famine,
    "abundance": abundance,
    "building_boom": building_boom,
    "strict_thresholds": strict_thresholds,
    "long_run": long_run,
}


def get_preset(name: str) -> SimulationConfig:
    """Get a preset configuration by name."""
    if name not in PRESETS:
        raise KeyError(f"Unknown preset: '{name}'. Available: {list(PRESETS.keys())}")
    return PRESETS[name]()


def list_presets() -> list[str]:
    """List all available preset names."""
    return list(PRESETS.keys())
