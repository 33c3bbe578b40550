"""Settlement inspection and supplier search endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request

from hamlet.core.settlement import Resource

router = APIRouter()


def _get_simulation(request: Request, session_id: str):
    mgr = request.app.state.session_manager
    try:
        return mgr.get_session(session_id).simulation
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")


def _get_settlement(sim, settlement_id: str):
    settlement = sim.get_settlement(settlement_id)
    if settlement is None:
        raise HTTPException(
            status_code=404, detail=f"Settlement '{settlement_id}' not found",
        )
    return settlement


@router.get("/{session_id}")
def list_settlements(session_id: str, request: Request) -> list[dict[str, Any]]:
    """Compact view of every settlement: position, population, health."""
    sim = _get_simulation(request, session_id)
    result = []
    for s in sim.settlements:
        economy = s.economy
        result.append({
            "id": s.id,
            "x": s.x,
            "y": s.y,
            "population": s.population,
            "collection_radius": s.collection_radius,
            "buildings": economy.buildings.count,
            "construction_queue": economy.buildings.construction_queue,
            "supply_demand_status": economy.to_dict()["supply_demand_status"],
        })
    return result


@router.get("/{session_id}/{settlement_id}")
def get_settlement(session_id: str, settlement_id: str, request: Request) -> dict[str, Any]:
    """Full settlement record plus population and building statistics."""
    sim = _get_simulation(request, session_id)
    settlement = _get_settlement(sim, settlement_id)
    engine = sim.engine
    return {
        **settlement.to_dict(),
        "population_stats": engine.population.stats(settlement).to_dict(),
        "building_stats": engine.construction.stats(settlement).to_dict(),
    }


@router.get("/{session_id}/{settlement_id}/suppliers")
def get_suppliers(
    session_id: str,
    settlement_id: str,
    request: Request,
    resource: Resource = Query(...),
    max_distance: float | None = Query(default=None, ge=0),
) -> dict[str, Any]:
    """Surplus settlements within reach, best supply capacity first."""
    sim = _get_simulation(request, session_id)
    settlement = _get_settlement(sim, settlement_id)
    if max_distance is None:
        max_distance = sim.config.supplier_max_distance

    ranked = sim.engine.classifier.rank_suppliers(
        settlement, sim.settlements, resource.value, max_distance=max_distance,
    )
    return {
        "settlement_id": settlement.id,
        "resource": resource.value,
        "max_distance": max_distance,
        "suppliers": [c.to_dict() for c in ranked],
    }
