"""
Settlement and economy record data structures.

A ``Settlement`` keeps two views of its stock: the legacy ``storage`` dict,
which external producers and trade write to directly, and the
``EconomyRecord.stock`` mirror the engines read. The orchestrator copies
``storage`` into ``economy.stock`` on every pass; never the other way round.

Fields are deliberately loosely typed at runtime: the validation guard has
to cope with settlements whose numbers are negative, NaN, or missing.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Resource(str, Enum):
    """Resource types tracked by the economy."""

    FOOD = "food"
    WOOD = "wood"
    ORE = "ore"


RESOURCE_TYPES: list[str] = [r.value for r in Resource]


class SupplyDemandLevel(str, Enum):
    """Health of one resource in one settlement, worst to best."""

    CRITICAL = "critical"
    SHORTAGE = "shortage"
    BALANCED = "balanced"
    SURPLUS = "surplus"

    @property
    def rank(self) -> int:
        return _LEVEL_ORDER.index(self)


_LEVEL_ORDER = [
    SupplyDemandLevel.CRITICAL,
    SupplyDemandLevel.SHORTAGE,
    SupplyDemandLevel.BALANCED,
    SupplyDemandLevel.SURPLUS,
]

HISTORY_LENGTH = 10

INITIAL_POPULATION = 10
INITIAL_STORAGE: dict[str, float] = {"food": 5.0, "wood": 5.0, "ore": 2.0}


def zero_resources() -> dict[str, float]:
    return {r: 0.0 for r in RESOURCE_TYPES}


def balanced_status() -> dict[str, SupplyDemandLevel]:
    return {r: SupplyDemandLevel.BALANCED for r in RESOURCE_TYPES}


@dataclass
class TickTime:
    """Time supplied by the scheduler for one invocation."""
    current_time: float
    delta_time: float


@dataclass
class Stock:
    food: float = 0.0
    wood: float = 0.0
    ore: float = 0.0
    capacity: float = 100.0

    def get(self, resource: str) -> float:
        return getattr(self, resource)

    def set(self, resource: str, value: float) -> None:
        setattr(self, resource, value)

    def to_dict(self) -> dict[str, float]:
        return {
            "food": self.food, "wood": self.wood, "ore": self.ore,
            "capacity": self.capacity,
        }


@dataclass
class Buildings:
    count: int = 1
    target_count: int = 1
    construction_queue: int = 0
    construction_progress: float = 0.0  # Elapsed time toward the next completion

    def to_dict(self) -> dict[str, Any]:
        return {
            "count": self.count,
            "target_count": self.target_count,
            "construction_queue": self.construction_queue,
            "construction_progress": self.construction_progress,
        }


@dataclass
class EconomyRecord:
    """Production, consumption, stock, buildings and health of one settlement."""
    production: dict[str, float] = field(default_factory=zero_resources)
    consumption: dict[str, float] = field(default_factory=zero_resources)
    stock: Stock = field(default_factory=Stock)
    buildings: Buildings = field(default_factory=Buildings)
    supply_demand_status: dict[str, SupplyDemandLevel] = field(
        default_factory=balanced_status,
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "production": dict(self.production),
            "consumption": dict(self.consumption),
            "stock": self.stock.to_dict(),
            "buildings": self.buildings.to_dict(),
            "supply_demand_status": {
                k: SupplyDemandLevel(v).value
                for k, v in self.supply_demand_status.items()
            },
        }


@dataclass
class Settlement:
    """A village: population, legacy storage, collection radius, economy."""
    id: str
    x: int
    y: int
    population: Any = INITIAL_POPULATION
    storage: dict[str, float] | None = field(
        default_factory=lambda: dict(INITIAL_STORAGE),
    )
    collection_radius: Any = 1
    population_history: deque = field(
        default_factory=lambda: deque(maxlen=HISTORY_LENGTH),
    )
    last_update_time: float = 0.0
    economy: EconomyRecord | None = None

    def record_population(self) -> None:
        if not isinstance(self.population_history, deque):
            self.population_history = deque(
                self.population_history or [], maxlen=HISTORY_LENGTH,
            )
        self.population_history.append(self.population)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "x": self.x,
            "y": self.y,
            "population": self.population,
            "storage": dict(self.storage) if self.storage is not None else None,
            "collection_radius": self.collection_radius,
            "population_history": list(self.population_history),
            "last_update_time": self.last_update_time,
            "economy": self.economy.to_dict() if self.economy is not None else None,
        }


def default_economy(
    storage: dict[str, float] | None = None,
    capacity: float = 100.0,
    building_count: int = 1,
) -> EconomyRecord:
    """Zeroed economy record with stock derived from ``storage``."""
    storage = storage or {}
    stock = Stock(capacity=capacity)
    for r in RESOURCE_TYPES:
        stock.set(r, float(storage.get(r, 0.0)))
    return EconomyRecord(
        stock=stock,
        buildings=Buildings(
            count=building_count, target_count=building_count,
            construction_queue=0,
        ),
    )


def create_settlement(
    settlement_id: str, x: int, y: int,
    storage: dict[str, float] | None = None,
    capacity: float = 100.0,
) -> Settlement:
    """World-population-time factory: population 10, one building, all balanced."""
    storage = dict(storage) if storage is not None else dict(INITIAL_STORAGE)
    settlement = Settlement(
        id=settlement_id, x=x, y=y,
        population=INITIAL_POPULATION,
        storage=storage,
        collection_radius=1,
        economy=default_economy(storage, capacity=capacity),
    )
    settlement.record_population()
    return settlement
