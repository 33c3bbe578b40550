"""
Economy orchestrator — the per-tick entry point for one settlement.

One pass: correct the settlement, read the neighborhood's resources from the
map, compute production and consumption, copy legacy storage into the
economy stock, and classify every resource. Each formula runs under
``ValidationGuard.guarded``; if the pass still fails, production and
consumption fall back to zero and every resource to balanced.
"""

from __future__ import annotations

import logging
from typing import Iterable

from hamlet.core.classifier import SupplyDemandClassifier
from hamlet.core.config import EconomyConfig
from hamlet.core.population import food_consumption
from hamlet.core.settlement import (
    RESOURCE_TYPES,
    EconomyRecord,
    Settlement,
    TickTime,
    balanced_status,
    zero_resources,
)
from hamlet.core.validation import ValidationGuard, is_finite_number, settlement_key
from hamlet.core.world import TileMap, neighborhood_resources

logger = logging.getLogger(__name__)

# Share of the neighborhood's standing resources extracted per unit of time
EXTRACTION_RATES: dict[str, float] = {"food": 0.1, "wood": 0.08, "ore": 0.05}

POPULATION_BONUS_PIVOT = 10
POPULATION_BONUS_SLOPE = 0.02
MAX_POPULATION_BONUS = 2.0
BUILDING_BONUS_SLOPE = 0.1
MAX_BUILDING_BONUS = 1.5


class EconomyOrchestrator:
    def __init__(
        self,
        config: EconomyConfig | None = None,
        guard: ValidationGuard | None = None,
        classifier: SupplyDemandClassifier | None = None,
    ) -> None:
        self.config = config if config is not None else EconomyConfig()
        self.guard = guard if guard is not None else ValidationGuard(self.config)
        self.classifier = (
            classifier if classifier is not None
            else SupplyDemandClassifier(self.config)
        )

    def update(
        self, settlement: Settlement, tick: TickTime, tile_map: TileMap | None,
    ) -> Settlement:
        sid = settlement_key(settlement)
        guard = self.guard
        guard.set_clock(tick.current_time)

        try:
            guard.correct(settlement)
            economy = settlement.economy

            available = guard.guarded(
                lambda: self.available_resources(settlement, tile_map),
                zero_resources(), "available_resources", sid,
            )
            economy.production = guard.guarded(
                lambda: self.calc_production(settlement, available),
                zero_resources(), "calc_production", sid,
            )
            economy.consumption = guard.guarded(
                lambda: self.calc_consumption(settlement),
                zero_resources(), "calc_consumption", sid,
            )

            self.sync_stock(settlement)

            economy.supply_demand_status = guard.guarded(
                lambda: self.classifier.evaluate(settlement),
                balanced_status(), "classify", sid,
            )

            if is_finite_number(tick.current_time):
                settlement.last_update_time = tick.current_time

            guard.correct(settlement)
        except Exception:
            logger.exception("Economy update failed for %s", sid)
            self._fall_back(settlement)

        return settlement

    def update_all(
        self, settlements: Iterable[Settlement], tick: TickTime,
        tile_map: TileMap | None,
    ) -> list[Settlement]:
        return [self.update(s, tick, tile_map) for s in settlements]

    # ------------------------------------------------------------------
    # Formulas
    # ------------------------------------------------------------------
    def available_resources(
        self, settlement: Settlement, tile_map: TileMap | None,
    ) -> dict[str, float]:
        available, _maximum = neighborhood_resources(
            tile_map, settlement.x, settlement.y, settlement.collection_radius,
        )
        return available

    def calc_production(
        self, settlement: Settlement, available: dict[str, float],
    ) -> dict[str, float]:
        """Extraction from the neighborhood, scaled by population and buildings.

        Never exceeds what the neighborhood holds.
        """
        population = max(0, settlement.population)
        building_count = max(0, settlement.economy.buildings.count)

        population_bonus = min(
            MAX_POPULATION_BONUS,
            max(0.0, 1.0 + (population - POPULATION_BONUS_PIVOT) * POPULATION_BONUS_SLOPE),
        )
        building_bonus = min(
            MAX_BUILDING_BONUS, 1.0 + building_count * BUILDING_BONUS_SLOPE,
        )
        multiplier = population_bonus * building_bonus

        production = {}
        for r in RESOURCE_TYPES:
            local = max(0.0, available.get(r, 0.0))
            production[r] = min(local, local * EXTRACTION_RATES[r] * multiplier)
        return production

    def calc_consumption(self, settlement: Settlement) -> dict[str, float]:
        """Food from population; wood and ore from buildings under construction."""
        queue = max(0, settlement.economy.buildings.construction_queue)
        return {
            "food": food_consumption(settlement.population, self.config),
            "wood": queue * self.config.building_wood_cost,
            "ore": queue * self.config.building_ore_cost,
        }

    def sync_stock(self, settlement: Settlement) -> None:
        """Copy legacy storage into the economy stock and recompute capacity."""
        stock = settlement.economy.stock
        for r in RESOURCE_TYPES:
            stock.set(r, settlement.storage[r])
        stock.capacity = self.guard.capacity_for(settlement.economy.buildings.count)

    # ------------------------------------------------------------------
    # Recovery
    # ------------------------------------------------------------------
    def _fall_back(self, settlement: Settlement) -> None:
        """Zero production/consumption and mark everything balanced."""
        try:
            economy = settlement.economy
            if not isinstance(economy, EconomyRecord):
                raise TypeError(f"economy record is {type(economy).__name__}")
            economy.production = zero_resources()
            economy.consumption = zero_resources()
            economy.supply_demand_status = balanced_status()
            self.guard.correct(settlement)
            self.sync_stock(settlement)
        except Exception:
            self.guard.reset_to_defaults(settlement)
