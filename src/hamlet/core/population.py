"""
Population engine — food-driven growth and decline.

Each tick a settlement eats from its food stock, then either declines
(starving), grows (well fed, production keeps up, food not in shortage),
or stays put. Transitions are Bernoulli draws against a computed chance,
so the random source is injectable: anything with a ``random()`` method
returning a float in [0, 1) works, ``numpy.random.Generator`` included.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

import numpy as np

from hamlet.core.config import EconomyConfig
from hamlet.core.settlement import Settlement, SupplyDemandLevel, TickTime
from hamlet.core.validation import PopulationPolicy, ValidationGuard, settlement_key

logger = logging.getLogger(__name__)

# Larger settlements eat slightly less per head, never below 80%
EFFICIENCY_PIVOT = 10
EFFICIENCY_SLOPE = 0.002
MIN_EFFICIENCY = 0.8

GROWTH_BUFFER_PERIODS = 3.0  # Food on hand needed, in periods of future consumption
MAX_ABUNDANCE = 2.0
DECLINE_PRODUCTION_FLOOR = 0.3  # Production below this share of consumption is starving
RADIUS_STEP = 20  # One extra tile of collection radius per this many people


class RandomSource(Protocol):
    def random(self) -> float: ...


class PopulationTrend(str, Enum):
    GROWING = "growing"
    STABLE = "stable"
    DECLINING = "declining"


@dataclass
class PopulationStats:
    current_population: float
    food_consumption: float
    can_grow: bool
    should_decline: bool
    trend: PopulationTrend

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_population": self.current_population,
            "food_consumption": round(self.food_consumption, 4),
            "can_grow": self.can_grow,
            "should_decline": self.should_decline,
            "trend": self.trend.value,
        }


def food_consumption(population: float, config: EconomyConfig) -> float:
    """Food eaten per unit of time by ``population`` people."""
    population = max(0, population or 0)
    if population <= 0:
        return 0.0
    base = population * config.food_consumption_per_capita
    efficiency = max(
        MIN_EFFICIENCY, 1.0 - (population - EFFICIENCY_PIVOT) * EFFICIENCY_SLOPE,
    )
    return max(0.0, base * efficiency)


class PopulationEngine:
    """Per-settlement growth/decline state machine."""

    def __init__(
        self,
        config: EconomyConfig | None = None,
        guard: ValidationGuard | None = None,
        rng: RandomSource | None = None,
    ) -> None:
        self.config = config if config is not None else EconomyConfig()
        self.guard = guard if guard is not None else ValidationGuard(self.config)
        self.rng = rng if rng is not None else np.random.default_rng()

    def update(self, settlement: Settlement, tick: TickTime) -> Settlement:
        """Eat, then apply at most one population transition."""
        sid = settlement_key(settlement)
        guard = self.guard

        try:
            guard.correct(settlement, PopulationPolicy.MINIMUM_ONE)

            consumption = guard.guarded(
                lambda: self.consume_per_capita(settlement.population),
                0.0, "consume_per_capita", sid,
            )
            eaten = guard.guarded(
                lambda: min(consumption * tick.delta_time, settlement.storage["food"]),
                0.0, "food eaten this tick", sid,
            )
            food_left = max(0.0, settlement.storage["food"] - max(0.0, eaten))
            settlement.storage["food"] = food_left
            settlement.economy.stock.food = food_left

            should_decline = guard.guarded(
                lambda: self.should_decline(settlement), False, "should_decline", sid,
            )
            can_grow = guard.guarded(
                lambda: self.can_grow(settlement), False, "can_grow", sid,
            )

            if should_decline:
                self._decline(settlement, tick, sid)
            elif can_grow:
                self._grow(settlement, tick, sid)

            settlement.record_population()
            guard.correct(settlement, PopulationPolicy.MINIMUM_ONE)
        except Exception:
            logger.exception("Population update failed for %s", sid)
            guard.reset_to_defaults(settlement)

        return settlement

    # ------------------------------------------------------------------
    # Formulas
    # ------------------------------------------------------------------
    def consume_per_capita(self, population: float) -> float:
        return food_consumption(population, self.config)

    def can_grow(self, settlement: Settlement) -> bool:
        economy = settlement.economy
        future_consumption = self.consume_per_capita(settlement.population + 1)
        food = settlement.storage["food"]

        has_room = settlement.population < self.config.max_population
        has_buffer = food >= future_consumption * GROWTH_BUFFER_PERIODS
        production_keeps_up = economy.production["food"] >= future_consumption
        status_ok = economy.supply_demand_status["food"] not in (
            SupplyDemandLevel.SHORTAGE, SupplyDemandLevel.CRITICAL,
        )
        return has_room and has_buffer and production_keeps_up and status_ok

    def should_decline(self, settlement: Settlement) -> bool:
        economy = settlement.economy
        consumption = self.consume_per_capita(settlement.population)

        depleted = settlement.storage["food"] <= 0
        starving = (
            economy.production["food"] < consumption * DECLINE_PRODUCTION_FLOOR
            and economy.supply_demand_status["food"] == SupplyDemandLevel.CRITICAL
        )
        return settlement.population > 1 and (depleted or starving)

    def growth_chance(self, settlement: Settlement, delta_time: float) -> float:
        consumption = self.consume_per_capita(settlement.population)
        abundance = min(MAX_ABUNDANCE, settlement.storage["food"] / (consumption * 10))
        return self.config.population_growth_rate * delta_time * abundance

    def decline_chance(self, settlement: Settlement, delta_time: float) -> float:
        consumption = self.consume_per_capita(settlement.population)
        severity = max(1.0, 2.0 - settlement.storage["food"] / max(0.1, consumption))
        return self.config.population_decline_rate * delta_time * severity

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def _grow(self, settlement: Settlement, tick: TickTime, sid: str) -> None:
        chance = self.guard.guarded(
            lambda: self.growth_chance(settlement, tick.delta_time),
            0.0, "growth_chance", sid,
        )
        if self.rng.random() < chance:
            settlement.population += 1
            radius = min(
                self.config.max_growth_radius,
                math.floor(settlement.population / RADIUS_STEP) + 1,
            )
            settlement.collection_radius = max(settlement.collection_radius, radius)
            logger.debug("%s grew to %s", sid, settlement.population)

    def _decline(self, settlement: Settlement, tick: TickTime, sid: str) -> None:
        chance = self.guard.guarded(
            lambda: self.decline_chance(settlement, tick.delta_time),
            0.0, "decline_chance", sid,
        )
        if self.rng.random() < chance and settlement.population > 1:
            settlement.population -= 1
            radius = max(1, math.floor(settlement.population / RADIUS_STEP) + 1)
            settlement.collection_radius = min(settlement.collection_radius, radius)
            logger.debug("%s declined to %s", sid, settlement.population)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def stats(self, settlement: Settlement) -> PopulationStats:
        sid = settlement_key(settlement)
        guard = self.guard

        history = list(settlement.population_history or [])
        trend = PopulationTrend.STABLE
        if len(history) >= 3:
            recent = history[-3:]
            if recent[2] > recent[0]:
                trend = PopulationTrend.GROWING
            elif recent[2] < recent[0]:
                trend = PopulationTrend.DECLINING

        return PopulationStats(
            current_population=settlement.population,
            food_consumption=guard.guarded(
                lambda: self.consume_per_capita(settlement.population),
                0.0, "consume_per_capita", sid,
            ),
            can_grow=guard.guarded(
                lambda: self.can_grow(settlement), False, "can_grow", sid,
            ),
            should_decline=guard.guarded(
                lambda: self.should_decline(settlement), False, "should_decline", sid,
            ),
            trend=trend,
        )
