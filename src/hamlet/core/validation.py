"""
Validation guard — keeps every engine total.

The guard owns the declared range table, corrects out-of-range or
non-finite settlement fields in place, wraps formulas so that exceptions
and non-finite results become a fallback value, and rebuilds economy
records that are beyond local repair. Every recovery is appended to a
bounded in-memory error log and mirrored to the module logger.

Population has two policies. ``ALLOW_ZERO`` clamps into the table's
[0, 1000]; ``MINIMUM_ONE`` raises the floor to 1. ``ValidationGuard.correct``
defaults to ``ALLOW_ZERO``; the population engine corrects with
``MINIMUM_ONE`` because a settlement never shrinks below one inhabitant.
"""

from __future__ import annotations

import logging
import math
import numbers
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, TypeVar

from hamlet.core.config import EconomyConfig
from hamlet.core.settlement import (
    RESOURCE_TYPES,
    Buildings,
    EconomyRecord,
    Settlement,
    Stock,
    SupplyDemandLevel,
    default_economy,
    zero_resources,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_LOG_CAPACITY = 1000
RECENT_WINDOW = 60.0 * 60.0  # One simulated hour, in tick time units


class ErrorKind(str, Enum):
    CALCULATION = "calculation"
    DATA_INTEGRITY = "data_integrity"
    STATE_INCONSISTENCY = "state_inconsistency"
    VALIDATION = "validation"


class PopulationPolicy(str, Enum):
    """Lower bound applied to population by ``ValidationGuard.correct``."""
    ALLOW_ZERO = "allow_zero"
    MINIMUM_ONE = "minimum_one"


@dataclass(frozen=True)
class NumericRange:
    min: float
    max: float
    default: float

    def contains(self, value: Any) -> bool:
        return is_finite_number(value) and self.min <= value <= self.max

    def clamp(self, value: Any) -> float:
        if not is_finite_number(value):
            return self.default
        return max(self.min, min(self.max, value))


RANGES: dict[str, NumericRange] = {
    "population": NumericRange(0, 1000, 1),
    "resource": NumericRange(0, 100000, 0),
    "production": NumericRange(0, 10000, 0),
    "consumption": NumericRange(0, 10000, 0),
    "buildings": NumericRange(0, 500, 0),
    "collection_radius": NumericRange(1, 10, 1),
    "capacity": NumericRange(0, 200000, 100),
    "construction_queue": NumericRange(0, 10, 0),
}


def is_finite_number(value: Any) -> bool:
    return (
        isinstance(value, numbers.Real)
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _has_non_finite(value: Any) -> bool:
    """True if ``value`` is a non-finite number or a dict holding one."""
    if isinstance(value, bool):
        return False
    if isinstance(value, numbers.Real):
        return not math.isfinite(value)
    if isinstance(value, dict):
        return any(_has_non_finite(v) for v in value.values())
    return False


def settlement_key(settlement: Any) -> str:
    sid = getattr(settlement, "id", None)
    if sid:
        return str(sid)
    return f"{getattr(settlement, 'x', '?')},{getattr(settlement, 'y', '?')}"


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass
class ErrorRecord:
    """One logged recovery."""
    settlement_id: str
    kind: ErrorKind
    message: str
    timestamp: float
    recovery_action: str
    original_value: Any = None
    corrected_value: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "settlement_id": self.settlement_id,
            "kind": self.kind.value,
            "message": self.message,
            "timestamp": self.timestamp,
            "recovery_action": self.recovery_action,
            "original_value": _jsonable(self.original_value),
            "corrected_value": _jsonable(self.corrected_value),
        }


def _jsonable(value: Any) -> Any:
    if isinstance(value, float) and not math.isfinite(value):
        return str(value)
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return repr(value)


@dataclass
class ValidationResult:
    is_valid: bool
    errors: list[ErrorRecord] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Guard
# ---------------------------------------------------------------------------

class ValidationGuard:
    """Range checks, in-place correction, guarded evaluation and the error log."""

    def __init__(
        self,
        config: EconomyConfig | None = None,
        log_capacity: int = DEFAULT_LOG_CAPACITY,
    ) -> None:
        self.config = config if config is not None else EconomyConfig()
        self._log: deque[ErrorRecord] = deque(maxlen=max(1, log_capacity))
        # Records ever appended; unaffected by the log bound or clear_log
        self.total_recorded = 0
        self.clock: float = 0.0

    def set_clock(self, current_time: float) -> None:
        """Advance the simulated time stamped onto new error records."""
        if is_finite_number(current_time):
            self.clock = float(current_time)

    def capacity_for(self, building_count: float) -> float:
        return (
            self.config.base_storage_capacity
            + building_count * self.config.storage_capacity_per_building
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------
    def validate(self, settlement: Settlement) -> ValidationResult:
        """Report range violations and suspicious relationships without mutating."""
        errors: list[ErrorRecord] = []
        warnings: list[str] = []
        sid = settlement_key(settlement)

        try:
            self._validate_basic(settlement, errors, sid)
            self._validate_economy(settlement, errors, sid)
            self._validate_relationships(settlement, warnings)
            self._validate_calculations(settlement, warnings)
        except Exception as exc:
            record = self._make_record(
                sid, ErrorKind.VALIDATION,
                f"validation pass failed: {exc!r}",
                "validation aborted, partial result returned",
            )
            errors.append(record)
            self._append(record)

        return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)

    def _validate_basic(
        self, settlement: Settlement, errors: list[ErrorRecord], sid: str,
    ) -> None:
        if not RANGES["population"].contains(settlement.population):
            errors.append(self._make_record(
                sid, ErrorKind.DATA_INTEGRITY,
                f"population out of range: {settlement.population}",
                "clamp population into range",
            ))
        if not RANGES["collection_radius"].contains(settlement.collection_radius):
            errors.append(self._make_record(
                sid, ErrorKind.DATA_INTEGRITY,
                f"collection radius out of range: {settlement.collection_radius}",
                "clamp collection radius into range",
            ))
        if not isinstance(settlement.storage, dict):
            errors.append(self._make_record(
                sid, ErrorKind.STATE_INCONSISTENCY,
                "storage is missing",
                "create empty storage",
            ))

    def _validate_economy(
        self, settlement: Settlement, errors: list[ErrorRecord], sid: str,
    ) -> None:
        economy = settlement.economy
        if economy is None:
            errors.append(self._make_record(
                sid, ErrorKind.STATE_INCONSISTENCY,
                "economy record is missing",
                "create default economy record",
            ))
            return

        for section in ("production", "consumption"):
            values = getattr(economy, section, None)
            if not isinstance(values, dict):
                continue
            for resource, value in values.items():
                if not RANGES[section].contains(value):
                    errors.append(self._make_record(
                        sid, ErrorKind.DATA_INTEGRITY,
                        f"{section}.{resource} out of range: {value}",
                        f"clamp {section} into range",
                    ))

        buildings = getattr(economy, "buildings", None)
        if isinstance(buildings, Buildings):
            if not RANGES["buildings"].contains(buildings.count):
                errors.append(self._make_record(
                    sid, ErrorKind.DATA_INTEGRITY,
                    f"building count out of range: {buildings.count}",
                    "clamp building count into range",
                ))

    def _validate_relationships(
        self, settlement: Settlement, warnings: list[str],
    ) -> None:
        economy = settlement.economy
        if economy is None:
            return

        if isinstance(settlement.storage, dict) and isinstance(economy.stock, Stock):
            for r in RESOURCE_TYPES:
                stored = settlement.storage.get(r, 0.0)
                mirrored = economy.stock.get(r)
                if abs(stored - mirrored) > 0.1:
                    warnings.append(
                        f"{r} stock out of sync: storage={stored}, economy={mirrored}"
                    )

        if isinstance(economy.buildings, Buildings):
            if economy.buildings.count > settlement.population:
                warnings.append(
                    f"building count exceeds population: "
                    f"population={settlement.population}, "
                    f"buildings={economy.buildings.count}"
                )

    def _validate_calculations(
        self, settlement: Settlement, warnings: list[str],
    ) -> None:
        economy = settlement.economy
        if economy is None:
            return
        if not isinstance(economy.production, dict) or not isinstance(economy.consumption, dict):
            return
        for r in RESOURCE_TYPES:
            production = economy.production.get(r, 0.0)
            consumption = economy.consumption.get(r, 0.0)
            if consumption > production * 10:
                warnings.append(
                    f"{r} consumption far exceeds production: "
                    f"production={production}, consumption={consumption}"
                )

    # ------------------------------------------------------------------
    # Correction
    # ------------------------------------------------------------------
    def correct(
        self,
        settlement: Settlement,
        policy: PopulationPolicy = PopulationPolicy.ALLOW_ZERO,
    ) -> bool:
        """Clamp every ranged field in place. Returns True if anything changed."""
        sid = settlement_key(settlement)
        corrected = False

        try:
            corrected = self._correct_basic(settlement, sid, policy) or corrected
            corrected = self._correct_storage(settlement, sid) or corrected
            corrected = self._correct_economy(settlement, sid) or corrected
        except Exception as exc:
            self._append(self._make_record(
                sid, ErrorKind.DATA_INTEGRITY,
                f"correction pass failed: {exc!r}",
                "correction aborted",
            ))

        return corrected

    def _clamp_attr(
        self, obj: Any, attr: str, rng: NumericRange, sid: str, label: str,
    ) -> bool:
        original = getattr(obj, attr)
        value = rng.clamp(original)
        if value != original or not is_finite_number(original):
            setattr(obj, attr, value)
            self._log_correction(sid, label, original, value)
            return True
        return False

    def _clamp_key(
        self, values: dict[str, Any], key: str, rng: NumericRange, sid: str, label: str,
    ) -> bool:
        original = values.get(key)
        value = rng.clamp(original)
        if value != original or not is_finite_number(original):
            values[key] = value
            self._log_correction(sid, label, original, value)
            return True
        return False

    def _correct_basic(
        self, settlement: Settlement, sid: str, policy: PopulationPolicy,
    ) -> bool:
        corrected = False
        pop_range = RANGES["population"]
        if policy == PopulationPolicy.MINIMUM_ONE:
            pop_range = NumericRange(1, pop_range.max, pop_range.default)
        corrected = self._clamp_attr(
            settlement, "population", pop_range, sid, "population",
        ) or corrected
        corrected = self._clamp_attr(
            settlement, "collection_radius", RANGES["collection_radius"],
            sid, "collection_radius",
        ) or corrected
        return corrected

    def _correct_storage(self, settlement: Settlement, sid: str) -> bool:
        corrected = False
        if not isinstance(settlement.storage, dict):
            self._log_correction(sid, "storage", settlement.storage, "default")
            settlement.storage = zero_resources()
            corrected = True
        for r in RESOURCE_TYPES:
            corrected = self._clamp_key(
                settlement.storage, r, RANGES["resource"], sid, f"storage.{r}",
            ) or corrected
        return corrected

    def _correct_economy(self, settlement: Settlement, sid: str) -> bool:
        economy = settlement.economy
        if economy is None:
            settlement.economy = default_economy(
                settlement.storage, capacity=self.capacity_for(1),
            )
            self._append(self._make_record(
                sid, ErrorKind.STATE_INCONSISTENCY,
                "economy record is missing",
                "created default economy record",
            ))
            return True
        if not isinstance(economy, EconomyRecord):
            self.reset_to_defaults(settlement)
            return True

        corrected = False
        for section in ("production", "consumption"):
            values = getattr(economy, section)
            if not isinstance(values, dict):
                self._log_correction(sid, section, values, "zeroed")
                setattr(economy, section, zero_resources())
                corrected = True
                continue
            for r in RESOURCE_TYPES:
                corrected = self._clamp_key(
                    values, r, RANGES[section], sid, f"{section}.{r}",
                ) or corrected

        corrected = self._correct_stock(economy, settlement, sid) or corrected
        corrected = self._correct_buildings(economy, sid) or corrected
        corrected = self._correct_status(economy, sid) or corrected
        return corrected

    def _correct_stock(
        self, economy: EconomyRecord, settlement: Settlement, sid: str,
    ) -> bool:
        corrected = False
        if not isinstance(economy.stock, Stock):
            self._log_correction(sid, "stock", economy.stock, "rebuilt from storage")
            stock = Stock(capacity=self.config.base_storage_capacity)
            for r in RESOURCE_TYPES:
                stock.set(r, settlement.storage.get(r, 0.0))
            economy.stock = stock
            corrected = True
        for r in RESOURCE_TYPES:
            corrected = self._clamp_attr(
                economy.stock, r, RANGES["resource"], sid, f"stock.{r}",
            ) or corrected
        corrected = self._clamp_attr(
            economy.stock, "capacity", RANGES["capacity"], sid, "stock.capacity",
        ) or corrected
        return corrected

    def _correct_buildings(self, economy: EconomyRecord, sid: str) -> bool:
        corrected = False
        if not isinstance(economy.buildings, Buildings):
            self._log_correction(sid, "buildings", economy.buildings, "default")
            economy.buildings = Buildings()
            corrected = True

        b = economy.buildings
        corrected = self._clamp_attr(
            b, "count", RANGES["buildings"], sid, "buildings.count",
        ) or corrected
        corrected = self._clamp_attr(
            b, "target_count", RANGES["buildings"], sid, "buildings.target_count",
        ) or corrected
        corrected = self._clamp_attr(
            b, "construction_queue", RANGES["construction_queue"],
            sid, "buildings.construction_queue",
        ) or corrected
        if not is_finite_number(b.construction_progress) or b.construction_progress < 0:
            self._log_correction(
                sid, "buildings.construction_progress", b.construction_progress, 0.0,
            )
            b.construction_progress = 0.0
            corrected = True
        return corrected

    def _correct_status(self, economy: EconomyRecord, sid: str) -> bool:
        corrected = False
        status = economy.supply_demand_status
        if not isinstance(status, dict):
            self._log_correction(sid, "supply_demand_status", status, "balanced")
            economy.supply_demand_status = {
                r: SupplyDemandLevel.BALANCED for r in RESOURCE_TYPES
            }
            return True
        for r in RESOURCE_TYPES:
            try:
                status[r] = SupplyDemandLevel(status.get(r))
            except ValueError:
                self._log_correction(
                    sid, f"supply_demand_status.{r}", status.get(r), "balanced",
                )
                status[r] = SupplyDemandLevel.BALANCED
                corrected = True
        return corrected

    def sanitize(self, value: Any, range_name: str) -> float:
        """Clamp a single value against a named range without logging."""
        return RANGES[range_name].clamp(value)

    # ------------------------------------------------------------------
    # Guarded evaluation
    # ------------------------------------------------------------------
    def guarded(
        self,
        compute: Callable[[], T],
        fallback: T,
        context: str,
        settlement_id: str | None = None,
    ) -> T:
        """Run ``compute``; on an exception, None, or a non-finite number return ``fallback``."""
        sid = settlement_id or "unknown"
        try:
            result = compute()
        except Exception as exc:
            self._append(self._make_record(
                sid, ErrorKind.CALCULATION,
                f"{context} raised {exc!r}",
                f"used fallback {fallback!r}",
            ))
            return fallback

        if result is None:
            self._append(self._make_record(
                sid, ErrorKind.CALCULATION,
                f"{context} produced no value",
                f"used fallback {fallback!r}",
            ))
            return fallback

        if _has_non_finite(result):
            self._append(self._make_record(
                sid, ErrorKind.CALCULATION,
                f"{context} produced a non-finite value: {result!r}",
                f"used fallback {fallback!r}",
                original_value=result,
                corrected_value=fallback,
            ))
            return fallback

        return result

    # ------------------------------------------------------------------
    # Last-resort recovery
    # ------------------------------------------------------------------
    def reset_to_defaults(self, settlement: Settlement) -> None:
        """Replace the whole economy record with a zeroed default."""
        sid = settlement_key(settlement)
        try:
            storage = settlement.storage if isinstance(settlement.storage, dict) else {}
            clean = {r: RANGES["resource"].clamp(storage.get(r, 0.0)) for r in RESOURCE_TYPES}
            settlement.economy = default_economy(clean, capacity=self.capacity_for(1))
            self._append(self._make_record(
                sid, ErrorKind.STATE_INCONSISTENCY,
                "economy record reset to defaults",
                "zeroed production/consumption, stock resynced from storage",
            ))
        except Exception as exc:
            settlement.economy = default_economy(
                capacity=self.config.base_storage_capacity,
            )
            self._append(self._make_record(
                sid, ErrorKind.STATE_INCONSISTENCY,
                f"reset failed: {exc!r}",
                "created minimal economy record",
            ))

    # ------------------------------------------------------------------
    # Error log
    # ------------------------------------------------------------------
    def get_log(self, limit: int = 50) -> list[ErrorRecord]:
        """Most recent ``limit`` records, oldest first."""
        if limit <= 0:
            return []
        entries = list(self._log)
        return entries[-limit:]

    def get_log_for(self, settlement_id: str, limit: int = 20) -> list[ErrorRecord]:
        if limit <= 0:
            return []
        entries = [e for e in self._log if e.settlement_id == settlement_id]
        return entries[-limit:]

    def clear_log(self) -> None:
        self._log.clear()

    def statistics(self) -> dict[str, Any]:
        """Totals by kind and by settlement, plus records in the last simulated hour."""
        by_kind = {k.value: 0 for k in ErrorKind}
        by_settlement: dict[str, int] = {}
        since = self.clock - RECENT_WINDOW
        recent = 0

        for e in self._log:
            by_kind[e.kind.value] += 1
            by_settlement[e.settlement_id] = by_settlement.get(e.settlement_id, 0) + 1
            if e.timestamp >= since:
                recent += 1

        return {
            "total_errors": len(self._log),
            "errors_by_kind": by_kind,
            "errors_by_settlement": by_settlement,
            "recent_errors": recent,
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _make_record(
        self, sid: str, kind: ErrorKind, message: str, recovery_action: str,
        original_value: Any = None, corrected_value: Any = None,
    ) -> ErrorRecord:
        return ErrorRecord(
            settlement_id=sid,
            kind=kind,
            message=message,
            timestamp=self.clock,
            recovery_action=recovery_action,
            original_value=original_value,
            corrected_value=corrected_value,
        )

    def _append(self, record: ErrorRecord) -> None:
        self._log.append(record)
        self.total_recorded += 1
        logger.warning(
            "[%s] %s: %s (%s)",
            record.kind.value, record.settlement_id, record.message,
            record.recovery_action,
        )

    def _log_correction(
        self, sid: str, label: str, original: Any, corrected: Any,
    ) -> None:
        self._append(self._make_record(
            sid, ErrorKind.DATA_INTEGRITY,
            f"corrected {label}: {original!r} -> {corrected!r}",
            "automatic data correction",
            original_value=original,
            corrected_value=corrected,
        ))
