"""Validation guard error log endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, Request

from hamlet.api.schemas import ErrorRecordResponse, ErrorStatisticsResponse

router = APIRouter()


def _get_guard(request: Request, session_id: str):
    mgr = request.app.state.session_manager
    try:
        return mgr.get_session(session_id).simulation.engine.guard
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")


@router.get("/{session_id}", response_model=list[ErrorRecordResponse])
def get_errors(session_id: str, request: Request, limit: int = Query(default=50, ge=0)):
    guard = _get_guard(request, session_id)
    return [e.to_dict() for e in guard.get_log(limit)]


@router.get("/{session_id}/statistics", response_model=ErrorStatisticsResponse)
def get_error_statistics(session_id: str, request: Request):
    return _get_guard(request, session_id).statistics()


@router.get(
    "/{session_id}/settlements/{settlement_id}",
    response_model=list[ErrorRecordResponse],
)
def get_settlement_errors(
    session_id: str,
    settlement_id: str,
    request: Request,
    limit: int = Query(default=20, ge=0),
):
    guard = _get_guard(request, session_id)
    return [e.to_dict() for e in guard.get_log_for(settlement_id, limit)]


@router.delete("/{session_id}")
def clear_errors(session_id: str, request: Request):
    _get_guard(request, session_id).clear_log()
    return {"cleared": True}
