"""
Map boundary for the economy engine.

The engine only reads tiles: for a square neighborhood of radius R around a
settlement it sums each tile's current and maximum resource amounts.
Depletion and recovery belong to whatever owns the map.

``make_resource_grid`` and ``place_settlements`` are sandbox stand-ins for
the external terrain generator and settlement placer: uniform random tile
yields and random distinct positions, nothing more.
"""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass, field
from typing import Any, Sequence

import numpy as np

from hamlet.core.settlement import (
    RESOURCE_TYPES,
    Settlement,
    create_settlement,
    zero_resources,
)

TileMap = Sequence[Sequence["Tile"]]

# Sandbox grid: per-tile resource ceilings
DEFAULT_MAX_YIELD: dict[str, float] = {"food": 20.0, "wood": 15.0, "ore": 10.0}


@dataclass
class Tile:
    resources: dict[str, float] = field(default_factory=zero_resources)
    max_resources: dict[str, float] = field(default_factory=zero_resources)

    def to_dict(self) -> dict[str, Any]:
        return {
            "resources": {k: round(v, 4) for k, v in self.resources.items()},
            "max_resources": {k: round(v, 4) for k, v in self.max_resources.items()},
        }


def _amount(values: Any, resource: str) -> float:
    if not isinstance(values, dict):
        return 0.0
    v = values.get(resource, 0.0)
    if isinstance(v, bool) or not isinstance(v, numbers.Real) or not math.isfinite(v):
        return 0.0
    return max(0.0, float(v))


def neighborhood_resources(
    tile_map: TileMap | None, x: int, y: int, radius: int,
) -> tuple[dict[str, float], dict[str, float]]:
    """Sum current and maximum amounts over tiles within ``radius`` of (x, y).

    A missing or malformed map, and tiles outside it, contribute nothing.
    """
    available = zero_resources()
    maximum = zero_resources()
    if tile_map is None:
        return available, maximum

    try:
        radius = int(radius)
        x = int(x)
        y = int(y)
    except (TypeError, ValueError, OverflowError):
        return available, maximum

    try:
        height = len(tile_map)
        for ty in range(y - radius, y + radius + 1):
            if ty < 0 or ty >= height:
                continue
            row = tile_map[ty]
            if row is None:
                continue
            for tx in range(x - radius, x + radius + 1):
                if tx < 0 or tx >= len(row):
                    continue
                tile = row[tx]
                if tile is None:
                    continue
                for r in RESOURCE_TYPES:
                    available[r] += _amount(getattr(tile, "resources", None), r)
                    maximum[r] += _amount(getattr(tile, "max_resources", None), r)
    except (TypeError, IndexError, KeyError):
        return zero_resources(), zero_resources()

    return available, maximum


def make_resource_grid(
    size: int,
    rng: np.random.Generator,
    max_yield: dict[str, float] | None = None,
) -> list[list[Tile]]:
    """Square grid with random per-tile ceilings, each tile starting full."""
    max_yield = max_yield or DEFAULT_MAX_YIELD
    ceilings = {
        r: rng.uniform(0.0, max_yield.get(r, 0.0), size=(size, size))
        for r in RESOURCE_TYPES
    }

    grid: list[list[Tile]] = []
    for ty in range(size):
        row = []
        for tx in range(size):
            maxima = {r: float(ceilings[r][ty, tx]) for r in RESOURCE_TYPES}
            row.append(Tile(resources=dict(maxima), max_resources=maxima))
        grid.append(row)
    return grid


def place_settlements(
    tile_map: TileMap,
    count: int,
    rng: np.random.Generator,
    capacity: float = 100.0,
) -> list[Settlement]:
    """Create up to ``count`` settlements on distinct random tiles."""
    height = len(tile_map)
    width = len(tile_map[0]) if height else 0
    cells = height * width
    count = min(count, cells)
    if count <= 0:
        return []

    picks = rng.choice(cells, size=count, replace=False)
    settlements = []
    for i, cell in enumerate(sorted(int(c) for c in picks)):
        y, x = divmod(cell, width)
        settlements.append(
            create_settlement(f"settlement_{i}", x, y, capacity=capacity),
        )
    return settlements
