"""
Configuration for the Hamlet economy engine.

ALL tunable parameters live here. Engines never hardcode a rate, cost or
threshold; they read it from an ``EconomyConfig`` instance.

``EconomyConfig`` is immutable. Changes go through ``ConfigManager``, which
validates every field against a hard range (clamped) and a recommended range
(warned) before committing a new instance.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field, fields, replace
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EconomyConfig:
    """Immutable parameter set shared by every engine."""

    # === Population ===
    food_consumption_per_capita: float = 0.2
    population_growth_rate: float = 0.02
    population_decline_rate: float = 0.05

    # === Buildings ===
    buildings_per_population: float = 0.1
    building_wood_cost: float = 10.0
    building_ore_cost: float = 5.0

    # === Supply/demand thresholds (production / consumption ratio) ===
    surplus_threshold: float = 1.5
    shortage_threshold: float = 0.8
    critical_threshold: float = 0.3

    # === Storage ===
    base_storage_capacity: float = 100.0
    storage_capacity_per_building: float = 20.0

    # === Engine constants ===
    construction_time: float = 5.0  # Elapsed time per completed building
    max_population: int = 100  # Growth stops at this population
    max_growth_radius: int = 4  # Growth never widens collection past this

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> EconomyConfig:
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in d.items() if k in known})


DEFAULT_ECONOMY_CONFIG = EconomyConfig()


# ---------------------------------------------------------------------------
# Constraints
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ConfigConstraint:
    """Hard and recommended range for one configuration field."""
    min: float
    max: float
    recommended_min: float
    recommended_max: float


CONFIG_CONSTRAINTS: dict[str, ConfigConstraint] = {
    "food_consumption_per_capita": ConfigConstraint(0.1, 2.0, 0.3, 1.0),
    "population_growth_rate": ConfigConstraint(0.001, 0.1, 0.01, 0.05),
    "population_decline_rate": ConfigConstraint(0.001, 0.2, 0.02, 0.1),
    "buildings_per_population": ConfigConstraint(0.05, 1.0, 0.08, 0.2),
    "building_wood_cost": ConfigConstraint(1, 100, 5, 20),
    "building_ore_cost": ConfigConstraint(1, 50, 2, 15),
    "surplus_threshold": ConfigConstraint(1.1, 3.0, 1.2, 2.0),
    "shortage_threshold": ConfigConstraint(0.3, 0.95, 0.6, 0.9),
    "critical_threshold": ConfigConstraint(0.1, 0.6, 0.2, 0.5),
    "base_storage_capacity": ConfigConstraint(50, 500, 80, 200),
    "storage_capacity_per_building": ConfigConstraint(5, 100, 10, 50),
    "construction_time": ConfigConstraint(0.5, 50.0, 2.0, 10.0),
    "max_population": ConfigConstraint(10, 1000, 50, 500),
    "max_growth_radius": ConfigConstraint(1, 10, 2, 6),
}

CONFIG_DESCRIPTIONS: dict[str, str] = {
    "food_consumption_per_capita": (
        "Food eaten per person per unit of time. Higher values make food "
        "shortages more likely."
    ),
    "population_growth_rate": "Chance per unit of time that a well-fed settlement grows by one.",
    "population_decline_rate": "Chance per unit of time that a starving settlement shrinks by one.",
    "buildings_per_population": "Target buildings per inhabitant.",
    "building_wood_cost": "Wood spent to start one building.",
    "building_ore_cost": "Ore spent to start one building.",
    "surplus_threshold": "Production/consumption ratio at or above which a resource is in surplus.",
    "shortage_threshold": "Production/consumption ratio below which a resource is in shortage.",
    "critical_threshold": "Production/consumption ratio below which a resource is critical.",
    "base_storage_capacity": "Storage capacity of a settlement with no buildings.",
    "storage_capacity_per_building": "Storage capacity added by each completed building.",
    "construction_time": "Elapsed time needed to finish one queued building.",
    "max_population": "Population at which settlements stop growing.",
    "max_growth_radius": "Largest collection radius growth can widen a settlement to.",
}


@dataclass
class ConfigIssue:
    """One validation error or warning for a configuration field."""
    field: str
    value: Any
    message: str
    suggested_value: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "field": self.field,
            "value": self.value,
            "message": self.message,
            "suggested_value": self.suggested_value,
        }


@dataclass
class ConfigValidationResult:
    is_valid: bool
    errors: list[ConfigIssue] = field(default_factory=list)
    warnings: list[ConfigIssue] = field(default_factory=list)
    corrected: EconomyConfig | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "corrected": self.corrected.to_dict() if self.corrected else None,
        }


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_config(config: EconomyConfig) -> ConfigValidationResult:
    """Check every constrained field and the threshold ordering.

    Out-of-range values are clamped into the hard range; non-finite values
    are replaced by the recommended minimum. The returned ``corrected``
    config is only set when at least one error was found.
    """
    errors: list[ConfigIssue] = []
    warnings: list[ConfigIssue] = []
    corrections: dict[str, float] = {}

    for name, c in CONFIG_CONSTRAINTS.items():
        value = getattr(config, name)

        if not _is_number(value) or not math.isfinite(value):
            errors.append(ConfigIssue(
                field=name, value=value,
                message=f"{name} must be a finite number",
                suggested_value=c.recommended_min,
            ))
            corrections[name] = c.recommended_min
            continue

        if value < c.min or value > c.max:
            suggested = max(c.min, min(c.max, value))
            errors.append(ConfigIssue(
                field=name, value=value,
                message=f"{name} must be between {c.min} and {c.max}",
                suggested_value=suggested,
            ))
            corrections[name] = suggested
        elif value < c.recommended_min or value > c.recommended_max:
            warnings.append(ConfigIssue(
                field=name, value=value,
                message=(
                    f"{name} is outside the recommended range "
                    f"{c.recommended_min}-{c.recommended_max}"
                ),
                suggested_value=max(c.recommended_min, min(c.recommended_max, value)),
            ))

    corrected = replace(config, **corrections) if corrections else config
    corrected = _check_consistency(corrected, errors, warnings)

    has_errors = len(errors) > 0
    return ConfigValidationResult(
        is_valid=not has_errors,
        errors=errors,
        warnings=warnings,
        corrected=corrected if has_errors else None,
    )


def _check_consistency(
    config: EconomyConfig,
    errors: list[ConfigIssue],
    warnings: list[ConfigIssue],
) -> EconomyConfig:
    """Threshold ordering (critical <= shortage <= surplus) and rate/cost sanity."""
    if config.shortage_threshold > config.surplus_threshold:
        suggested = config.surplus_threshold * 0.9
        errors.append(ConfigIssue(
            field="shortage_threshold", value=config.shortage_threshold,
            message="shortage_threshold must not exceed surplus_threshold",
            suggested_value=suggested,
        ))
        config = replace(config, shortage_threshold=suggested)

    if config.critical_threshold > config.shortage_threshold:
        suggested = config.shortage_threshold * 0.9
        errors.append(ConfigIssue(
            field="critical_threshold", value=config.critical_threshold,
            message="critical_threshold must not exceed shortage_threshold",
            suggested_value=suggested,
        ))
        config = replace(config, critical_threshold=suggested)

    if config.population_decline_rate <= config.population_growth_rate:
        warnings.append(ConfigIssue(
            field="population_decline_rate", value=config.population_decline_rate,
            message="population_decline_rate is usually set above population_growth_rate",
            suggested_value=config.population_growth_rate * 2,
        ))

    wood_ore_ratio = config.building_wood_cost / config.building_ore_cost
    if wood_ore_ratio < 1.5 or wood_ore_ratio > 4.0:
        warnings.append(ConfigIssue(
            field="building_wood_cost", value=config.building_wood_cost,
            message="building_wood_cost is usually 1.5-4x building_ore_cost",
            suggested_value=config.building_ore_cost * 2.5,
        ))

    return config


class ConfigManager:
    """Holds the current ``EconomyConfig`` and gates every change through validation."""

    def __init__(self, config: EconomyConfig | None = None) -> None:
        config = config if config is not None else EconomyConfig()
        result = validate_config(config)
        if not result.is_valid:
            logger.warning(
                "Economy config corrected on load: %s",
                ", ".join(e.message for e in result.errors),
            )
        self._config = result.corrected or config

    @property
    def config(self) -> EconomyConfig:
        return self._config

    def get(self) -> EconomyConfig:
        return self._config

    def update(self, **changes: Any) -> ConfigValidationResult:
        """Merge ``changes`` into the current config, validate, clamp and commit."""
        known = {f.name for f in fields(EconomyConfig)}
        unknown = [k for k in changes if k not in known]
        accepted = {k: v for k, v in changes.items() if k in known}

        merged = replace(self._config, **accepted)
        result = validate_config(merged)
        for name in unknown:
            result.errors.append(ConfigIssue(
                field=name, value=changes[name],
                message=f"unknown configuration field {name!r}",
            ))
            result.is_valid = False

        self._config = result.corrected or merged
        if result.errors:
            logger.warning(
                "Economy config update corrected: %s",
                ", ".join(e.message for e in result.errors),
            )
        return result

    def reset(self) -> EconomyConfig:
        self._config = EconomyConfig()
        return self._config

    def describe(self, name: str) -> str:
        return CONFIG_DESCRIPTIONS.get(name, "No description available.")

    def recommended_range(self, name: str) -> dict[str, Any]:
        c = CONFIG_CONSTRAINTS[name]
        return {
            "min": c.min,
            "max": c.max,
            "recommended": {"min": c.recommended_min, "max": c.recommended_max},
            "current": getattr(self._config, name),
        }

    def stats(self) -> dict[str, Any]:
        """Field counts by validation outcome plus an overall health label."""
        result = validate_config(self._config)
        total = len(CONFIG_CONSTRAINTS)
        n_errors = len(result.errors)
        n_warnings = len(result.warnings)

        if n_errors > 0:
            health = "error"
        elif n_warnings > 3:
            health = "warning"
        elif n_warnings > 0:
            health = "good"
        else:
            health = "excellent"

        return {
            "total_fields": total,
            "valid_fields": total - n_errors,
            "warning_fields": n_warnings,
            "error_fields": n_errors,
            "overall_health": health,
        }


# ---------------------------------------------------------------------------
# Sandbox run configuration
# ---------------------------------------------------------------------------

@dataclass
class SimulationConfig:
    """
    Parameters for one sandbox run: world size, settlement count, tick
    schedule, and the economy parameters the engines share.

    Use ``to_dict()`` / ``from_dict()`` for serialization and comparison.
    """

    experiment_name: str = "default"
    random_seed: int | None = None

    # === World ===
    map_size: int = 20
    settlement_count: int = 8

    # === Schedule ===
    ticks_to_run: int = 50
    delta_time: float = 1.0

    # === Guard ===
    log_capacity: int = 1000

    # === Supplier search ===
    supplier_max_distance: float = 10.0

    economy: EconomyConfig = field(default_factory=EconomyConfig)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {}
        for f in fields(self):
            v = getattr(self, f.name)
            d[f.name] = v.to_dict() if isinstance(v, EconomyConfig) else v
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> SimulationConfig:
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in d.items() if k in known}
        economy = kwargs.get("economy")
        if isinstance(economy, dict):
            kwargs["economy"] = EconomyConfig.from_dict(economy)
        return cls(**kwargs)

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, default=str)

    @classmethod
    def from_json(cls, s: str) -> SimulationConfig:
        return cls.from_dict(json.loads(s))

    def diff(self, other: SimulationConfig) -> dict[str, tuple[Any, Any]]:
        """Return parameters that differ between two configs."""
        diffs: dict[str, tuple[Any, Any]] = {}
        mine = self.to_dict()
        theirs = other.to_dict()
        for k, v1 in mine.items():
            v2 = theirs[k]
            if k == "economy":
                for ek, ev1 in v1.items():
                    if ev1 != v2[ek]:
                        diffs[f"economy.{ek}"] = (ev1, v2[ek])
            elif v1 != v2:
                diffs[k] = (v1, v2)
        return diffs
