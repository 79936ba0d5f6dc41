"""
Security event API endpoints.

Exposed endpoints:
- GET  /api/incidents                     - Events in the caller's zones (view_all_events)
- POST /api/incidents                     - Raise an event (create_events + zone)
- POST /api/incidents/{event_id}/resolve  - Resolve an event (resolve_events + zone)
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from auth.rbac_dependencies import RequestContext, get_optional_caller, get_request_context
from incidents.schemas import LogEventRequest, SecurityEventResponse
from incidents.service import DEFAULT_LIST_LIMIT, MAX_LIST_LIMIT, IncidentService
from storage.relational.database import DatabaseManager

router = APIRouter(prefix="/api/incidents", tags=["incidents"])


@router.get("", response_model=List[SecurityEventResponse])
def list_events(
    resolved: Optional[bool] = Query(None),
    zone: Optional[str] = Query(None),
    limit: int = Query(DEFAULT_LIST_LIMIT, ge=1, le=MAX_LIST_LIMIT),
    caller_id: Optional[str] = Depends(get_optional_caller),
    db: Session = Depends(DatabaseManager.get_session)
):
    return IncidentService.list_events(db, caller_id, resolved=resolved, zone=zone, limit=limit)


@router.post("", response_model=SecurityEventResponse, status_code=201)
def log_event(
    request: LogEventRequest,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(DatabaseManager.get_session)
):
    return IncidentService.log_event(
        db, ctx.caller_id,
        ip_address=ctx.ip_address,
        user_agent=ctx.user_agent,
        **request.model_dump()
    )


@router.post("/{event_id}/resolve", response_model=SecurityEventResponse)
def resolve_event(
    event_id: str,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(DatabaseManager.get_session)
):
    return IncidentService.resolve_event(
        db, ctx.caller_id, event_id,
        ip_address=ctx.ip_address, user_agent=ctx.user_agent
    )
