"""Economy configuration endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request

from hamlet.api.schemas import ConfigUpdateRequest, ConfigUpdateResponse
from hamlet.core.config import CONFIG_CONSTRAINTS

router = APIRouter()


def _get_simulation(request: Request, session_id: str):
    mgr = request.app.state.session_manager
    try:
        return mgr.get_session(session_id).simulation
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")


@router.get("/{session_id}")
def get_config(session_id: str, request: Request) -> dict[str, Any]:
    sim = _get_simulation(request, session_id)
    return {
        "config": sim.config_manager.config.to_dict(),
        "stats": sim.config_manager.stats(),
    }


@router.patch("/{session_id}", response_model=ConfigUpdateResponse)
def update_config(session_id: str, req: ConfigUpdateRequest, request: Request):
    """Validate, clamp and commit. Invalid values are corrected, not rejected."""
    sim = _get_simulation(request, session_id)
    result = sim.update_economy(**req.changes)
    return {
        "is_valid": result.is_valid,
        "errors": [e.to_dict() for e in result.errors],
        "warnings": [w.to_dict() for w in result.warnings],
        "config": sim.config_manager.config.to_dict(),
    }


@router.post("/{session_id}/reset")
def reset_config(session_id: str, request: Request) -> dict[str, Any]:
    sim = _get_simulation(request, session_id)
    return {"config": sim.reset_economy().to_dict()}


@router.get("/{session_id}/ranges")
def get_ranges(session_id: str, request: Request) -> dict[str, Any]:
    """Hard and recommended range, description and current value per field."""
    sim = _get_simulation(request, session_id)
    mgr = sim.config_manager
    return {
        name: {**mgr.recommended_range(name), "description": mgr.describe(name)}
        for name in CONFIG_CONSTRAINTS
    }
