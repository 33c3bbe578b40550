"""
Supply/demand classification.

Turns (production, consumption, stock) into one of four health levels and
compares settlements against each other. Nothing here mutates a settlement.

Classification, for consumption > 0:

    ratio      = production / consumption
    stock_days = stock / consumption

    critical   if ratio <  critical_threshold or stock_days < 1
    surplus    if ratio >= surplus_threshold  and stock_days > 10
    shortage   if ratio <  shortage_threshold and stock_days < 5
    balanced   otherwise

With no consumption the level depends on stock alone (>50 surplus,
>20 balanced, >5 shortage, else critical).

Settlements without an economy record are left out of every cross-settlement
result and evaluate as balanced.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Iterable

from hamlet.core.config import EconomyConfig
from hamlet.core.settlement import (
    RESOURCE_TYPES,
    EconomyRecord,
    Settlement,
    SupplyDemandLevel,
    balanced_status,
)

# Idle-resource stock bands (no consumption)
IDLE_SURPLUS_STOCK = 50.0
IDLE_BALANCED_STOCK = 20.0
IDLE_SHORTAGE_STOCK = 5.0

# Stock-days bands (consumption > 0)
CRITICAL_STOCK_DAYS = 1.0
SURPLUS_STOCK_DAYS = 10.0
SHORTAGE_STOCK_DAYS = 5.0

# Supplier ranking
RESERVED_PERIODS = 3.0  # Periods of consumption a supplier keeps back
STOCK_SHARE = 0.1  # Fraction of stock above the reserve that can be offered
MIN_DISTANCE_DECAY = 0.1
DEFAULT_MAX_DISTANCE = 10.0


@dataclass
class ResourceBalance:
    """One settlement's position for one resource."""
    settlement: Settlement
    resource: str
    level: SupplyDemandLevel
    production: float
    consumption: float
    stock: float
    net_balance: float
    stock_days: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "settlement_id": self.settlement.id,
            "resource": self.resource,
            "level": self.level.value,
            "production": round(self.production, 4),
            "consumption": round(self.consumption, 4),
            "stock": round(self.stock, 4),
            "net_balance": round(self.net_balance, 4),
            "stock_days": (
                round(self.stock_days, 4) if math.isfinite(self.stock_days) else None
            ),
        }


@dataclass
class BalanceComparison:
    """Settlements partitioned by level for one resource."""
    resource: str
    surplus: list[ResourceBalance] = field(default_factory=list)
    shortage: list[ResourceBalance] = field(default_factory=list)
    balanced: list[ResourceBalance] = field(default_factory=list)
    critical: list[ResourceBalance] = field(default_factory=list)

    def bucket(self, level: SupplyDemandLevel) -> list[ResourceBalance]:
        return getattr(self, level.value)

    def to_dict(self) -> dict[str, Any]:
        return {
            "resource": self.resource,
            "surplus": [b.to_dict() for b in self.surplus],
            "shortage": [b.to_dict() for b in self.shortage],
            "balanced": [b.to_dict() for b in self.balanced],
            "critical": [b.to_dict() for b in self.critical],
        }


@dataclass
class ImbalanceReport:
    """Settlements with at least one resource at a given level. Sets may overlap."""
    shortage: list[Settlement] = field(default_factory=list)
    surplus: list[Settlement] = field(default_factory=list)
    critical: list[Settlement] = field(default_factory=list)
    by_resource: dict[str, BalanceComparison] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "shortage": [s.id for s in self.shortage],
            "surplus": [s.id for s in self.surplus],
            "critical": [s.id for s in self.critical],
            "by_resource": {r: c.to_dict() for r, c in self.by_resource.items()},
        }


@dataclass
class SupplierCandidate:
    supplier: Settlement
    distance: float
    available_supply: float
    supply_capacity: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "supplier_id": self.supplier.id,
            "distance": round(self.distance, 4),
            "available_supply": round(self.available_supply, 4),
            "supply_capacity": round(self.supply_capacity, 4),
        }


def distance(a: Settlement, b: Settlement) -> float:
    """Straight-line distance between two settlements."""
    return math.hypot(a.x - b.x, a.y - b.y)


class SupplyDemandClassifier:
    """Pure classification and cross-settlement comparison."""

    def __init__(self, config: EconomyConfig | None = None) -> None:
        self.config = config if config is not None else EconomyConfig()

    # ------------------------------------------------------------------
    # Single resource
    # ------------------------------------------------------------------
    def classify(
        self, production: float, consumption: float, stock: float,
    ) -> SupplyDemandLevel:
        if consumption <= 0:
            if stock > IDLE_SURPLUS_STOCK:
                return SupplyDemandLevel.SURPLUS
            if stock > IDLE_BALANCED_STOCK:
                return SupplyDemandLevel.BALANCED
            if stock > IDLE_SHORTAGE_STOCK:
                return SupplyDemandLevel.SHORTAGE
            return SupplyDemandLevel.CRITICAL

        ratio = production / consumption
        stock_days = stock / consumption

        if ratio < self.config.critical_threshold or stock_days < CRITICAL_STOCK_DAYS:
            return SupplyDemandLevel.CRITICAL
        if ratio >= self.config.surplus_threshold and stock_days > SURPLUS_STOCK_DAYS:
            return SupplyDemandLevel.SURPLUS
        if ratio < self.config.shortage_threshold and stock_days < SHORTAGE_STOCK_DAYS:
            return SupplyDemandLevel.SHORTAGE
        return SupplyDemandLevel.BALANCED

    def evaluate(self, settlement: Settlement) -> dict[str, SupplyDemandLevel]:
        """Classify every resource of one settlement from its economy record."""
        economy = settlement.economy
        if not isinstance(economy, EconomyRecord):
            return balanced_status()
        return {
            r: self.classify(
                economy.production[r], economy.consumption[r], economy.stock.get(r),
            )
            for r in RESOURCE_TYPES
        }

    # ------------------------------------------------------------------
    # Cross-settlement
    # ------------------------------------------------------------------
    def balance_of(self, settlement: Settlement, resource: str) -> ResourceBalance:
        economy = settlement.economy
        production = economy.production[resource]
        consumption = economy.consumption[resource]
        stock = economy.stock.get(resource)

        if consumption > 0:
            stock_days = stock / consumption
        else:
            stock_days = math.inf if stock > 0 else 0.0

        return ResourceBalance(
            settlement=settlement,
            resource=resource,
            level=self.classify(production, consumption, stock),
            production=production,
            consumption=consumption,
            stock=stock,
            net_balance=production - consumption,
            stock_days=stock_days,
        )

    def compare_settlements(
        self, settlements: Iterable[Settlement], resource: str,
    ) -> BalanceComparison:
        """Partition settlements into the four level buckets for one resource."""
        comparison = BalanceComparison(resource=resource)
        for s in settlements:
            if not isinstance(s.economy, EconomyRecord):
                continue
            balance = self.balance_of(s, resource)
            comparison.bucket(balance.level).append(balance)
        return comparison

    def compare_all(
        self, settlements: Iterable[Settlement],
    ) -> dict[str, BalanceComparison]:
        settlements = list(settlements)
        return {r: self.compare_settlements(settlements, r) for r in RESOURCE_TYPES}

    def identify_imbalanced(self, settlements: Iterable[Settlement]) -> ImbalanceReport:
        """Group settlements by the levels their stored status holds on any resource."""
        settlements = list(settlements)
        report = ImbalanceReport(by_resource=self.compare_all(settlements))
        for s in settlements:
            if not isinstance(s.economy, EconomyRecord):
                continue
            levels = set(s.economy.supply_demand_status.values())
            if SupplyDemandLevel.SHORTAGE in levels:
                report.shortage.append(s)
            if SupplyDemandLevel.SURPLUS in levels:
                report.surplus.append(s)
            if SupplyDemandLevel.CRITICAL in levels:
                report.critical.append(s)
        return report

    def rank_suppliers(
        self,
        needy: Settlement,
        candidates: Iterable[Settlement],
        resource: str,
        max_distance: float = DEFAULT_MAX_DISTANCE,
    ) -> list[SupplierCandidate]:
        """Nearby surplus settlements ordered by distance-decayed spare supply."""
        ranked: list[SupplierCandidate] = []
        for supplier in candidates:
            if supplier is needy:
                continue
            if not isinstance(supplier.economy, EconomyRecord):
                continue
            dist = distance(needy, supplier)
            if dist > max_distance:
                continue
            if supplier.economy.supply_demand_status[resource] != SupplyDemandLevel.SURPLUS:
                continue

            economy = supplier.economy
            production = economy.production[resource]
            consumption = economy.consumption[resource]
            stock = economy.stock.get(resource)

            net_production = max(0.0, production - consumption)
            excess_stock = max(0.0, stock - consumption * RESERVED_PERIODS)
            available = net_production + excess_stock * STOCK_SHARE

            decay = MIN_DISTANCE_DECAY
            if max_distance > 0:
                decay = max(MIN_DISTANCE_DECAY, 1 - dist / max_distance)
            capacity = available * decay
            if capacity <= 0:
                continue

            ranked.append(SupplierCandidate(
                supplier=supplier,
                distance=dist,
                available_supply=available,
                supply_capacity=capacity,
            ))

        ranked.sort(key=lambda c: c.supply_capacity, reverse=True)
        return ranked
