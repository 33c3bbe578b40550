"""Cross-settlement supply/demand endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request

from hamlet.core.settlement import Resource

router = APIRouter()


def _get_simulation(request: Request, session_id: str):
    mgr = request.app.state.session_manager
    try:
        return mgr.get_session(session_id).simulation
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")


@router.get("/{session_id}/balance/{resource}")
def get_balance(session_id: str, resource: Resource, request: Request) -> dict[str, Any]:
    """Settlements partitioned into surplus / balanced / shortage / critical."""
    sim = _get_simulation(request, session_id)
    comparison = sim.engine.classifier.compare_settlements(sim.settlements, resource.value)
    return comparison.to_dict()


@router.get("/{session_id}/imbalanced")
def get_imbalanced(session_id: str, request: Request) -> dict[str, Any]:
    """Settlements with any resource in shortage, surplus or critical."""
    sim = _get_simulation(request, session_id)
    report = sim.engine.classifier.identify_imbalanced(sim.settlements)
    return report.to_dict()
