"""Tests for ConstructionEngine."""

import pytest

from hamlet.core.config import EconomyConfig
from hamlet.core.construction import MAX_QUEUE, ConstructionEngine
from hamlet.core.settlement import TickTime, create_settlement
from hamlet.core.validation import ErrorKind, ValidationGuard

TICK = TickTime(current_time=1.0, delta_time=1.0)


def _make_engine(config=None):
    config = config or EconomyConfig()
    return ConstructionEngine(config, ValidationGuard(config))


def _make_settlement(population=30, wood=50.0, ore=20.0, count=1, queue=0):
    s = create_settlement("s1", 0, 0)
    s.population = population
    s.storage["wood"] = wood
    s.storage["ore"] = ore
    s.economy.stock.wood = wood
    s.economy.stock.ore = ore
    s.economy.buildings.count = count
    s.economy.buildings.construction_queue = queue
    return s


class TestTargets:
    def test_target_count(self):
        engine = _make_engine()
        assert engine.target_count(10) == 1
        assert engine.target_count(30) == 3
        assert engine.target_count(39) == 3

    def test_target_at_least_one(self):
        engine = _make_engine()
        assert engine.target_count(0) == 1
        assert engine.target_count(5) == 1

    def test_cost_from_config(self):
        engine = _make_engine(EconomyConfig(building_wood_cost=12.0, building_ore_cost=4.0))
        assert engine.cost().to_dict() == {"wood": 12.0, "ore": 4.0}


class TestStartBuilding:
    def test_starts_when_short_and_affordable(self):
        engine = _make_engine()
        s = _make_settlement()
        engine.update(s, TICK)
        b = s.economy.buildings
        assert b.target_count == 3
        assert b.construction_queue == 1
        assert s.storage["wood"] == 40.0
        assert s.storage["ore"] == 15.0
        assert s.economy.stock.wood == 40.0
        assert s.economy.stock.ore == 15.0

    def test_one_start_per_tick(self):
        engine = _make_engine()
        s = _make_settlement()
        engine.update(s, TICK)
        engine.update(s, TICK)
        assert s.economy.buildings.construction_queue == 2
        assert s.storage["wood"] == 30.0

    def test_stops_at_target(self):
        engine = _make_engine()
        s = _make_settlement(count=1, queue=2)
        engine.update(s, TickTime(current_time=1.0, delta_time=0.0))
        assert s.economy.buildings.construction_queue == 2
        assert s.storage["wood"] == 50.0

    def test_insufficient_resources(self):
        engine = _make_engine()
        s = _make_settlement(wood=5.0)
        engine.update(s, TICK)
        assert s.economy.buildings.construction_queue == 0
        assert s.storage["wood"] == 5.0

    def test_queue_limit(self):
        engine = _make_engine()
        s = _make_settlement(population=1000, wood=1000.0, ore=1000.0, queue=MAX_QUEUE)
        engine.update(s, TickTime(current_time=1.0, delta_time=0.0))
        assert s.economy.buildings.construction_queue == MAX_QUEUE
        assert s.storage["wood"] == 1000.0


class TestCompletion:
    def test_completes_after_construction_time(self):
        engine = _make_engine()
        s = _make_settlement(population=10, queue=1)
        for _ in range(4):
            engine.update(s, TICK)
        assert s.economy.buildings.count == 1
        engine.update(s, TICK)
        assert s.economy.buildings.count == 2
        assert s.economy.buildings.construction_queue == 0
        assert s.economy.buildings.construction_progress == 0.0

    def test_completion_updates_capacity(self):
        engine = _make_engine()
        s = _make_settlement(population=10, queue=1)
        engine.update(s, TickTime(current_time=5.0, delta_time=5.0))
        assert s.economy.stock.capacity == 100 + 2 * 20

    def test_never_completes_more_than_queued(self):
        engine = _make_engine()
        s = _make_settlement(population=10, count=1, queue=2)
        engine.update(s, TickTime(current_time=100.0, delta_time=100.0))
        assert s.economy.buildings.count == 3
        assert s.economy.buildings.construction_queue == 0

    def test_progress_carries_over(self):
        engine = _make_engine()
        s = _make_settlement(population=10, count=1, queue=2)
        engine.update(s, TickTime(current_time=7.0, delta_time=7.0))
        b = s.economy.buildings
        assert b.count == 2
        assert b.construction_queue == 1
        assert b.construction_progress == pytest.approx(2.0)

    def test_idle_queue_resets_progress(self):
        engine = _make_engine()
        s = _make_settlement(population=10, wood=0.0)
        s.economy.buildings.construction_progress = 3.0
        engine.update(s, TICK)
        assert s.economy.buildings.construction_progress == 0.0


class TestRobustness:
    def test_negative_counts_clamped(self):
        engine = _make_engine()
        s = _make_settlement(population=10, wood=0.0, count=-3, queue=-2)
        engine.update(s, TICK)
        assert s.economy.buildings.count == 0
        assert s.economy.buildings.construction_queue == 0

    def test_bad_delta_time_falls_back(self):
        config = EconomyConfig()
        guard = ValidationGuard(config)
        engine = ConstructionEngine(config, guard)
        s = _make_settlement(population=10, queue=1)
        engine.update(s, TickTime(current_time=1.0, delta_time="soon"))
        assert s.economy.buildings.construction_queue == 1
        assert ErrorKind.CALCULATION in [e.kind for e in guard.get_log()]


    def test_zero_construction_time_keeps_buildings(self):
        config = EconomyConfig(construction_time=0.0)
        guard = ValidationGuard(config)
        engine = ConstructionEngine(config, guard)
        s = _make_settlement(population=10, wood=0.0, count=3, queue=2)
        engine.update(s, TICK)
        b = s.economy.buildings
        assert b.count == 3
        assert b.construction_queue == 2
        kinds = [e.kind for e in guard.get_log()]
        assert ErrorKind.CALCULATION in kinds
        assert ErrorKind.STATE_INCONSISTENCY not in kinds


class TestStats:
    def test_max_buildable(self):
        engine = _make_engine()
        assert engine.max_buildable(_make_settlement(wood=35.0, ore=12.0)) == 2
        assert engine.max_buildable(_make_settlement(wood=0.0, ore=100.0)) == 0

    def test_stats(self):
        engine = _make_engine()
        s = _make_settlement()
        s.economy.buildings.target_count = 3
        d = engine.stats(s).to_dict()
        assert d["current_count"] == 1
        assert d["target_count"] == 3
        assert d["construction_queue"] == 0
        assert d["can_build"] is True
        assert d["cost"] == {"wood": 10.0, "ore": 5.0}
        assert d["max_buildable"] == 4

    def test_stats_cannot_build_when_poor(self):
        engine = _make_engine()
        s = _make_settlement(wood=1.0)
        s.economy.buildings.target_count = 3
        assert engine.stats(s).can_build is False
