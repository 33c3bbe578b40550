"""
Metrics Collector — per-tick aggregate statistics.

Summarizes the settlement set after each engine tick: population and
building totals, stock/production/consumption per resource, how many
settlements sit at each supply/demand level, and how many guard records
the tick produced. Provides time series extraction and export.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np

from hamlet.core.config import SimulationConfig
from hamlet.core.engine import TickReport
from hamlet.core.settlement import RESOURCE_TYPES, Settlement, SupplyDemandLevel
from hamlet.core.validation import ValidationGuard


@dataclass
class TickMetrics:
    """Aggregate metrics for a single tick."""

    tick: int
    current_time: float
    settlement_count: int

    # Population
    total_population: int
    mean_population: float
    max_population: int

    # Buildings
    total_buildings: int
    total_construction_queue: int

    # Per-resource totals
    total_stock: dict[str, float]
    total_production: dict[str, float]
    total_consumption: dict[str, float]

    # resource -> level -> settlement count
    level_counts: dict[str, dict[str, int]]

    # Settlements with at least one resource at the level
    critical_settlements: int
    shortage_settlements: int
    surplus_settlements: int

    # Guard records appended during this tick
    new_errors: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "tick": self.tick,
            "current_time": self.current_time,
            "settlement_count": self.settlement_count,
            "total_population": self.total_population,
            "mean_population": round(self.mean_population, 4),
            "max_population": self.max_population,
            "total_buildings": self.total_buildings,
            "total_construction_queue": self.total_construction_queue,
            "total_stock": {k: round(v, 4) for k, v in self.total_stock.items()},
            "total_production": {k: round(v, 4) for k, v in self.total_production.items()},
            "total_consumption": {k: round(v, 4) for k, v in self.total_consumption.items()},
            "level_counts": self.level_counts,
            "critical_settlements": self.critical_settlements,
            "shortage_settlements": self.shortage_settlements,
            "surplus_settlements": self.surplus_settlements,
            "new_errors": self.new_errors,
        }


class MetricsCollector:
    """Collects one ``TickMetrics`` per tick and keeps the history."""

    def __init__(self, config: SimulationConfig | None = None):
        self.config = config
        self.metrics_history: list[TickMetrics] = []
        self._last_error_total = 0

    def collect(
        self,
        settlements: list[Settlement],
        report: TickReport,
        guard: ValidationGuard | None = None,
    ) -> TickMetrics:
        populations = np.array([s.population for s in settlements], dtype=float)

        level_counts = {
            r: {level.value: 0 for level in SupplyDemandLevel} for r in RESOURCE_TYPES
        }
        total_stock = {r: 0.0 for r in RESOURCE_TYPES}
        total_production = {r: 0.0 for r in RESOURCE_TYPES}
        total_consumption = {r: 0.0 for r in RESOURCE_TYPES}
        total_buildings = 0
        total_queue = 0

        for s in settlements:
            economy = s.economy
            total_buildings += economy.buildings.count
            total_queue += economy.buildings.construction_queue
            for r in RESOURCE_TYPES:
                total_stock[r] += economy.stock.get(r)
                total_production[r] += economy.production[r]
                total_consumption[r] += economy.consumption[r]
                level_counts[r][SupplyDemandLevel(economy.supply_demand_status[r]).value] += 1

        new_errors = 0
        if guard is not None:
            total = guard.total_recorded
            new_errors = max(0, total - self._last_error_total)
            self._last_error_total = total

        metrics = TickMetrics(
            tick=len(self.metrics_history),
            current_time=report.current_time,
            settlement_count=len(settlements),
            total_population=int(populations.sum()) if len(populations) else 0,
            mean_population=float(populations.mean()) if len(populations) else 0.0,
            max_population=int(populations.max()) if len(populations) else 0,
            total_buildings=total_buildings,
            total_construction_queue=total_queue,
            total_stock=total_stock,
            total_production=total_production,
            total_consumption=total_consumption,
            level_counts=level_counts,
            critical_settlements=len(report.imbalance.critical),
            shortage_settlements=len(report.imbalance.shortage),
            surplus_settlements=len(report.imbalance.surplus),
            new_errors=new_errors,
        )
        self.metrics_history.append(metrics)
        return metrics

    def get_time_series(self, field_name: str) -> list[Any]:
        """Extract a time series for a specific metric field."""
        return [getattr(m, field_name) for m in self.metrics_history]

    def get_resource_series(self, field_name: str, resource: str) -> list[float]:
        """Time series of one resource from a per-resource field, e.g. ``total_stock``."""
        return [getattr(m, field_name)[resource] for m in self.metrics_history]

    def export_for_visualization(self) -> list[dict[str, Any]]:
        """Export all metrics as a list of JSON-serializable dicts."""
        return [m.to_dict() for m in self.metrics_history]
