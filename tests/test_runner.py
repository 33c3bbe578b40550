"""Tests for Simulation and ExperimentRunner."""

import pytest

from hamlet.core.config import EconomyConfig, SimulationConfig
from hamlet.experiment.runner import (
    ComparisonResult,
    ExperimentResult,
    ExperimentRunner,
    Simulation,
)


def _make_config(**overrides):
    params = dict(map_size=8, settlement_count=4, ticks_to_run=5, random_seed=42)
    params.update(overrides)
    return SimulationConfig(**params)


class TestSimulation:
    def test_world_setup(self):
        sim = Simulation(_make_config())
        assert len(sim.tile_map) == 8
        assert len(sim.settlements) == 4
        assert sim.current_time == 0.0
        assert sim.tick_count == 0

    def test_settlements_start_with_building_capacity(self):
        sim = Simulation(_make_config())
        assert all(s.economy.stock.capacity == 120 for s in sim.settlements)

    def test_step_advances_clock(self):
        sim = Simulation(_make_config(delta_time=0.5))
        sim.step()
        sim.step()
        assert sim.current_time == 1.0
        assert sim.tick_count == 2

    def test_run_defaults_to_config_ticks(self):
        sim = Simulation(_make_config())
        history = sim.run()
        assert len(history) == 5
        assert sim.collector.metrics_history == history

    def test_harvest_credits_production(self):
        sim = Simulation(_make_config())
        s = sim.settlements[0]
        s.economy.production = {"food": 3.0, "wood": 2.0, "ore": 1.0}
        before = dict(s.storage)
        sim._harvest(1.0)
        assert s.storage["food"] == before["food"] + 3.0
        assert s.storage["wood"] == before["wood"] + 2.0
        assert s.storage["ore"] == before["ore"] + 1.0

    def test_harvest_respects_capacity(self):
        sim = Simulation(_make_config())
        s = sim.settlements[0]
        s.storage["food"] = 119.0
        s.economy.production["food"] = 50.0
        sim._harvest(1.0)
        assert s.storage["food"] == 120.0

    def test_stock_mirror_synced_after_step(self):
        sim = Simulation(_make_config())
        sim.run(3)
        for s in sim.settlements:
            for r in ("food", "wood", "ore"):
                assert s.economy.stock.get(r) == s.storage[r]

    def test_seeded_runs_repeat(self):
        a = Simulation(_make_config()).run()
        b = Simulation(_make_config()).run()
        assert [m.to_dict() for m in a] == [m.to_dict() for m in b]

    def test_get_settlement(self):
        sim = Simulation(_make_config())
        assert sim.get_settlement("settlement_0") is sim.settlements[0]
        assert sim.get_settlement("missing") is None

    def test_invalid_economy_corrected_on_load(self):
        config = _make_config(economy=EconomyConfig(building_wood_cost=1000.0))
        sim = Simulation(config)
        assert sim.engine.config.building_wood_cost == 100

    def test_update_economy_rewires_engine(self):
        sim = Simulation(_make_config())
        result = sim.update_economy(building_ore_cost=4.0)
        assert result.is_valid
        assert sim.engine.construction.cost().ore == 4.0
        assert sim.config.economy.building_ore_cost == 4.0

    def test_reset_economy(self):
        sim = Simulation(_make_config())
        sim.update_economy(building_ore_cost=4.0)
        sim.reset_economy()
        assert sim.engine.config == EconomyConfig()


class TestExperimentRunner:
    def test_run_experiment(self):
        result = ExperimentRunner().run_experiment(_make_config())
        assert isinstance(result, ExperimentResult)
        assert len(result.metrics) == 5
        assert result.final_population > 0
        assert result.final_buildings >= 4
        assert result.to_dict()["ticks"] == 5

    def test_compare(self):
        runner = ExperimentRunner()
        result = runner.compare_experiments({
            "a": _make_config(experiment_name="a"),
            "b": _make_config(
                experiment_name="b", economy=EconomyConfig(building_wood_cost=12.0),
            ),
        })
        assert isinstance(result, ComparisonResult)
        assert set(result.results) == {"a", "b"}
        diff = result.config_diffs["a_vs_b"]
        assert diff["economy.building_wood_cost"] == (10.0, 12.0)

    def test_ab_test_labels(self):
        result = ExperimentRunner().run_ab_test(
            _make_config(), _make_config(), label_a="x", label_b="y",
        )
        assert set(result.results) == {"x", "y"}

    def test_sweep_economy_parameter(self):
        results = ExperimentRunner().run_parameter_sweep(
            _make_config(), "food_consumption_per_capita", [0.3, 0.6],
        )
        assert set(results) == {
            "food_consumption_per_capita=0.3", "food_consumption_per_capita=0.6",
        }
        assert results["food_consumption_per_capita=0.6"].config.economy \
            .food_consumption_per_capita == 0.6

    def test_sweep_simulation_parameter(self):
        results = ExperimentRunner().run_parameter_sweep(
            _make_config(), "settlement_count", [2, 3],
        )
        assert results["settlement_count=3"].config.settlement_count == 3
        assert results["settlement_count=2"].metrics[-1].settlement_count == 2

    def test_multi_seed(self):
        results = ExperimentRunner().run_multi_seed(_make_config(), [1, 2])
        assert [r.config.random_seed for r in results] == [1, 2]
        assert results[0].config.experiment_name == "default_seed1"
