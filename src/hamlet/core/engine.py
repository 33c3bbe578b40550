"""
Economy engine — the per-tick batch pipeline.

Phases per tick, for every settlement in order:
1. Economy pass (production, consumption, stock sync, classification)
2. Population (eat, then grow / decline)
3. Construction (advance the queue, maybe start a building)

After all settlements: a cross-settlement imbalance report. No resources
are moved between settlements; the report only describes who would trade.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable

import numpy as np

from hamlet.core.classifier import ImbalanceReport, SupplyDemandClassifier
from hamlet.core.config import EconomyConfig
from hamlet.core.construction import ConstructionEngine
from hamlet.core.economy import EconomyOrchestrator
from hamlet.core.population import PopulationEngine, RandomSource
from hamlet.core.settlement import Settlement, TickTime
from hamlet.core.validation import DEFAULT_LOG_CAPACITY, ValidationGuard
from hamlet.core.world import TileMap

logger = logging.getLogger(__name__)


@dataclass
class TickReport:
    """What one tick left behind."""
    current_time: float
    settlement_count: int
    imbalance: ImbalanceReport

    @property
    def critical_count(self) -> int:
        return len(self.imbalance.critical)

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_time": self.current_time,
            "settlement_count": self.settlement_count,
            "critical_count": self.critical_count,
            "shortage": [s.id for s in self.imbalance.shortage],
            "surplus": [s.id for s in self.imbalance.surplus],
            "critical": [s.id for s in self.imbalance.critical],
        }


class EconomyEngine:
    """
    Wires the guard, classifier and the three per-settlement engines
    together around one shared config, error log and random source.
    """

    def __init__(
        self,
        config: EconomyConfig | None = None,
        rng: RandomSource | None = None,
        log_capacity: int = DEFAULT_LOG_CAPACITY,
    ) -> None:
        self.config = config if config is not None else EconomyConfig()
        self.rng = rng if rng is not None else np.random.default_rng()

        self.guard = ValidationGuard(self.config, log_capacity=log_capacity)
        self.classifier = SupplyDemandClassifier(self.config)
        self.orchestrator = EconomyOrchestrator(self.config, self.guard, self.classifier)
        self.population = PopulationEngine(self.config, self.guard, self.rng)
        self.construction = ConstructionEngine(self.config, self.guard)

    def apply_config(self, config: EconomyConfig) -> None:
        """Point every component at a new config; the error log is kept."""
        self.config = config
        for component in (
            self.guard, self.classifier, self.orchestrator,
            self.population, self.construction,
        ):
            component.config = config

    def update_settlement(
        self, settlement: Settlement, tick: TickTime, tile_map: TileMap | None,
    ) -> Settlement:
        settlement = self.orchestrator.update(settlement, tick, tile_map)
        settlement = self.population.update(settlement, tick)
        return self.construction.update(settlement, tick)

    def step(
        self,
        settlements: Iterable[Settlement],
        tick: TickTime,
        tile_map: TileMap | None,
    ) -> TickReport:
        settlements = list(settlements)
        for s in settlements:
            self.update_settlement(s, tick, tile_map)

        imbalance = self.classifier.identify_imbalanced(settlements)
        report = TickReport(
            current_time=tick.current_time,
            settlement_count=len(settlements),
            imbalance=imbalance,
        )
        if report.critical_count:
            logger.info(
                "t=%s: %d of %d settlements critical on at least one resource",
                tick.current_time, report.critical_count, len(settlements),
            )
        return report
