"""
Calendar event API endpoints.

Preview building, preview confirmation and owner-scoped CRUD, leveraging
the CalendarAgent for business logic.
"""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query

from backend.dependencies import get_calendar_agent, get_owner_scope
from backend.schemas import (
    AgentResponseSchema,
    EventDraft,
    EventListResponse,
    EventPreviewSchema,
    EventResponse,
    EventUpdate,
)
from src.agents import CalendarAgent
from src.core.errors import UpstreamUnavailable
from src.core.models import OwnerScope

router = APIRouter(prefix="/events", tags=["events"])


async def _run(agent: CalendarAgent, intent: str, context: dict):
    try:
        return await agent.process(intent, context)
    except UpstreamUnavailable as e:
        raise HTTPException(status_code=503, detail=f"{e.service} unavailable")


@router.post("/preview", response_model=EventPreviewSchema)
async def preview_event(
    draft: EventDraft,
    agent: CalendarAgent = Depends(get_calendar_agent),
):
    """
    Turn raw event fields into a preview.

    A missing or unreadable date falls back to the configured default
    (tomorrow); problems with times are listed in ``field_errors``.
    """
    response = await _run(agent, "preview_event", {"event": draft.model_dump()})
    if not response.success:
        raise HTTPException(status_code=400, detail=response.message)
    return EventPreviewSchema(**response.data["preview"])


@router.post("/confirm", response_model=AgentResponseSchema, status_code=201)
async def confirm_event(
    preview: EventPreviewSchema,
    scope: OwnerScope = Depends(get_owner_scope),
    agent: CalendarAgent = Depends(get_calendar_agent),
):
    """Save a confirmed preview: insert when it has no id, update otherwise."""
    response = await _run(agent, "confirm_event", {"scope": scope, "preview": preview.model_dump()})
    if not response.success:
        status_code = 404 if "not found" in response.message else 400
        raise HTTPException(status_code=status_code, detail=response.message)
    return AgentResponseSchema(**response.to_dict())


@router.get("/search", response_model=EventListResponse)
async def search_events(
    q: str = Query(..., min_length=1, description="Title fragment"),
    limit: Optional[int] = Query(None, ge=1, le=50),
    scope: OwnerScope = Depends(get_owner_scope),
    agent: CalendarAgent = Depends(get_calendar_agent),
):
    """Substring title search, most recent first."""
    response = await _run(agent, "search_events", {"scope": scope, "query": q, "limit": limit})
    if not response.success:
        raise HTTPException(status_code=400, detail=response.message)

    events = response.data["events"]
    return EventListResponse(events=[EventResponse(**e) for e in events], total=len(events))


@router.get("/{event_id}", response_model=EventResponse)
async def get_event(
    event_id: int,
    scope: OwnerScope = Depends(get_owner_scope),
    agent: CalendarAgent = Depends(get_calendar_agent),
):
    """Get a single event by ID."""
    response = await _run(agent, "get_event", {"scope": scope, "event_id": event_id})
    if not response.success:
        raise HTTPException(status_code=404, detail=response.message)
    return EventResponse(**response.data["event"])


@router.patch("/{event_id}", response_model=AgentResponseSchema)
async def update_event(
    event_id: int,
    update: EventUpdate,
    scope: OwnerScope = Depends(get_owner_scope),
    agent: CalendarAgent = Depends(get_calendar_agent),
):
    """Update fields of an event. Only provided fields are changed."""
    context = {"scope": scope, "event_id": event_id}
    context.update(update.model_dump(exclude_none=True))

    response = await _run(agent, "update_event", context)
    if not response.success:
        status_code = 404 if "not found" in response.message else 400
        raise HTTPException(status_code=status_code, detail=response.message)
    return AgentResponseSchema(**response.to_dict())


@router.delete("/{event_id}", response_model=AgentResponseSchema)
async def delete_event(
    event_id: int,
    scope: OwnerScope = Depends(get_owner_scope),
    agent: CalendarAgent = Depends(get_calendar_agent),
):
    """Delete an event."""
    response = await _run(agent, "delete_event", {"scope": scope, "event_id": event_id})
    if not response.success:
        raise HTTPException(status_code=404, detail=response.message)
    return AgentResponseSchema(**response.to_dict())
