"""
Construction engine — building demand and the construction queue.

A settlement wants ``max(1, floor(population * buildings_per_population))``
buildings. While completed plus queued buildings fall short of that target
and the settlement can pay the wood/ore cost, one building is started per
tick: the cost leaves storage immediately and the queue grows by one.
Queued buildings complete one at a time as elapsed tick time accumulates
past ``construction_time``.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any

from hamlet.core.config import EconomyConfig
from hamlet.core.settlement import Settlement, TickTime
from hamlet.core.validation import RANGES, ValidationGuard, settlement_key

logger = logging.getLogger(__name__)

MAX_QUEUE = int(RANGES["construction_queue"].max)


@dataclass(frozen=True)
class BuildingCost:
    wood: float
    ore: float

    def to_dict(self) -> dict[str, float]:
        return {"wood": self.wood, "ore": self.ore}


@dataclass
class BuildingStats:
    current_count: int
    target_count: int
    construction_queue: int
    can_build: bool
    cost: BuildingCost
    max_buildable: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_count": self.current_count,
            "target_count": self.target_count,
            "construction_queue": self.construction_queue,
            "can_build": self.can_build,
            "cost": self.cost.to_dict(),
            "max_buildable": self.max_buildable,
        }


class ConstructionEngine:
    def __init__(
        self,
        config: EconomyConfig | None = None,
        guard: ValidationGuard | None = None,
    ) -> None:
        self.config = config if config is not None else EconomyConfig()
        self.guard = guard if guard is not None else ValidationGuard(self.config)

    def target_count(self, population: float) -> int:
        return max(1, math.floor(population * self.config.buildings_per_population))

    def cost(self) -> BuildingCost:
        return BuildingCost(
            wood=self.config.building_wood_cost,
            ore=self.config.building_ore_cost,
        )

    def update(self, settlement: Settlement, tick: TickTime) -> Settlement:
        """Advance the queue, then start one building if short of target and affordable."""
        sid = settlement_key(settlement)
        guard = self.guard

        try:
            guard.correct(settlement)
            self._advance_queue(settlement, tick, sid)

            buildings = settlement.economy.buildings
            buildings.target_count = guard.guarded(
                lambda: self.target_count(settlement.population),
                1, "target_count", sid,
            )

            planned = buildings.count + buildings.construction_queue
            if planned < buildings.target_count and self._can_start(settlement):
                self._start_building(settlement, sid)

            guard.correct(settlement)
        except Exception:
            logger.exception("Construction update failed for %s", sid)
            guard.reset_to_defaults(settlement)

        return settlement

    def can_afford(self, settlement: Settlement) -> bool:
        cost = self.cost()
        storage = settlement.storage
        return storage["wood"] >= cost.wood and storage["ore"] >= cost.ore

    def max_buildable(self, settlement: Settlement) -> int:
        """Buildings the current wood and ore could pay for."""
        cost = self.cost()
        by_wood = math.floor(settlement.storage["wood"] / cost.wood)
        by_ore = math.floor(settlement.storage["ore"] / cost.ore)
        return max(0, min(by_wood, by_ore))

    def _can_start(self, settlement: Settlement) -> bool:
        queue = settlement.economy.buildings.construction_queue
        return queue < MAX_QUEUE and self.can_afford(settlement)

    def _start_building(self, settlement: Settlement, sid: str) -> None:
        cost = self.cost()
        storage = settlement.storage
        stock = settlement.economy.stock

        storage["wood"] -= cost.wood
        storage["ore"] -= cost.ore
        stock.wood = storage["wood"]
        stock.ore = storage["ore"]
        settlement.economy.buildings.construction_queue += 1

        logger.debug(
            "%s started a building (wood %s, ore %s), queue %d",
            sid, cost.wood, cost.ore, settlement.economy.buildings.construction_queue,
        )

    def _advance_queue(self, settlement: Settlement, tick: TickTime, sid: str) -> None:
        buildings = settlement.economy.buildings
        if buildings.construction_queue <= 0:
            buildings.construction_progress = 0.0
            return

        elapsed = self.guard.guarded(
            lambda: max(0.0, tick.delta_time), 0.0, "construction elapsed time", sid,
        )
        buildings.construction_progress += elapsed

        construction_time = self.config.construction_time
        done = self.guard.guarded(
            lambda: min(
                buildings.construction_queue,
                math.floor(buildings.construction_progress / construction_time),
            ),
            0, "construction completion", sid,
        )
        if done <= 0:
            return

        buildings.count += done
        buildings.construction_queue -= done
        buildings.construction_progress -= done * construction_time
        if buildings.construction_queue == 0:
            buildings.construction_progress = 0.0

        settlement.economy.stock.capacity = self.guard.capacity_for(buildings.count)
        logger.debug("%s completed %d building(s), total %d", sid, done, buildings.count)

    def stats(self, settlement: Settlement) -> BuildingStats:
        sid = settlement_key(settlement)
        buildings = settlement.economy.buildings
        planned = buildings.count + buildings.construction_queue
        return BuildingStats(
            current_count=buildings.count,
            target_count=buildings.target_count,
            construction_queue=buildings.construction_queue,
            can_build=self.guard.guarded(
                lambda: planned < buildings.target_count and self._can_start(settlement),
                False, "can_build", sid,
            ),
            cost=self.cost(),
            max_buildable=self.guard.guarded(
                lambda: self.max_buildable(settlement), 0, "max_buildable", sid,
            ),
        )
