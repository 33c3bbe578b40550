"""
Pydantic models for API request/response validation.
"""

from __future__ import annotations

from pydantic import BaseModel, Field
from typing import Any


# === Simulation ===

class CreateSessionRequest(BaseModel):
    config: dict[str, Any] | None = None
    preset: str | None = None
    name: str | None = None


class StepRequest(BaseModel):
    n: int = Field(default=1, ge=1, le=10_000)


class SessionSummary(BaseModel):
    id: str
    name: str
    status: str
    current_tick: int
    max_ticks: int
    current_time: float
    settlement_count: int
    total_population: int


class SessionResponse(SessionSummary):
    config: dict[str, Any]
    latest_metrics: dict[str, Any] | None = None


# === Configuration ===

class ConfigUpdateRequest(BaseModel):
    changes: dict[str, Any]


class ConfigIssueResponse(BaseModel):
    field: str
    value: Any
    message: str
    suggested_value: Any = None


class ConfigUpdateResponse(BaseModel):
    is_valid: bool
    errors: list[ConfigIssueResponse]
    warnings: list[ConfigIssueResponse]
    config: dict[str, Any]


# === Error log ===

class ErrorRecordResponse(BaseModel):
    settlement_id: str
    kind: str
    message: str
    timestamp: float
    recovery_action: str
    original_value: Any = None
    corrected_value: Any = None


class ErrorStatisticsResponse(BaseModel):
    total_errors: int
    errors_by_kind: dict[str, int]
    errors_by_settlement: dict[str, int]
    recent_errors: int
