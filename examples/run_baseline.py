#!/usr/bin/env python3
"""Run a baseline Hamlet economy sandbox and print results."""

import logging

from hamlet.core.config import SimulationConfig
from hamlet.core.settlement import RESOURCE_TYPES
from hamlet.experiment.runner import Simulation


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    config = SimulationConfig(
        experiment_name="baseline",
        settlement_count=8,
        ticks_to_run=30,
        random_seed=42,
    )

    print(f"=== Hamlet Economy: {config.experiment_name} ===")
    print(f"Map: {config.map_size}x{config.map_size}, settlements: {config.settlement_count}")
    print(f"Ticks: {config.ticks_to_run} (dt={config.delta_time})")
    print()

    sim = Simulation(config)
    history = sim.run()

    print(f"{'Tick':>4} {'Pop':>5} {'Bld':>4} {'Queue':>5} "
          f"{'Food':>8} {'Wood':>8} {'Ore':>8} {'Crit':>4} {'Short':>5} {'Surp':>4} {'Err':>4}")
    print("-" * 74)

    for m in history:
        print(
            f"{m.tick:4d} {m.total_population:5d} {m.total_buildings:4d} "
            f"{m.total_construction_queue:5d} "
            f"{m.total_stock['food']:8.1f} {m.total_stock['wood']:8.1f} {m.total_stock['ore']:8.1f} "
            f"{m.critical_settlements:4d} {m.shortage_settlements:5d} "
            f"{m.surplus_settlements:4d} {m.new_errors:4d}"
        )

    final = history[-1]
    print()
    print(f"=== Final State (t={final.current_time}) ===")
    for r in RESOURCE_TYPES:
        counts = ", ".join(f"{level}={n}" for level, n in final.level_counts[r].items())
        print(f"  {r:5s}: {counts}")

    print("\nSettlements:")
    for s in sim.settlements:
        status = {r: level.value for r, level in s.economy.supply_demand_status.items()}
        print(
            f"  {s.id:14s} ({s.x:2d},{s.y:2d}) pop={s.population:3d} "
            f"buildings={s.economy.buildings.count:2d} {status}"
        )

    stats = sim.engine.guard.statistics()
    print(f"\nGuard log: {stats['total_errors']} records, by kind {stats['errors_by_kind']}")


if __name__ == "__main__":
    main()
