#!/usr/bin/env python3
"""Compare economy presets side by side, then sweep one parameter."""

import logging

from hamlet.experiment.presets import get_preset
from hamlet.experiment.runner import ExperimentRunner


def main():
    logging.basicConfig(level=logging.WARNING)
    runner = ExperimentRunner()

    configs = {}
    for name in ("baseline", "famine", "abundance", "building_boom"):
        config = get_preset(name)
        config.random_seed = 7
        config.ticks_to_run = 40
        configs[name] = config

    comparison = runner.compare_experiments(configs)

    print(f"{'Preset':18s} {'Pop':>6} {'Bld':>5} {'Crit/tick':>9} {'Errors':>6}")
    print("-" * 50)
    for name, result in comparison.results.items():
        print(
            f"{name:18s} {result.final_population:6d} {result.final_buildings:5d} "
            f"{result.mean_critical_settlements:9.2f} {result.total_errors:6d}"
        )

    print("\nConfig differences vs baseline:")
    for label, diff in comparison.config_diffs.items():
        print(f"  {label}:")
        for key, (a, b) in diff.items():
            print(f"    {key}: {a} -> {b}")

    print("\nSweep: food_consumption_per_capita")
    sweep = runner.run_parameter_sweep(
        configs["baseline"], "food_consumption_per_capita", [0.2, 0.4, 0.8],
    )
    for label, result in sweep.items():
        print(f"  {label:36s} pop={result.final_population:4d} "
              f"critical/tick={result.mean_critical_settlements:.2f}")


if __name__ == "__main__":
    main()
