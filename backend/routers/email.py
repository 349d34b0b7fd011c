"""
Email processing API endpoint.

Extracts events from a forwarded email and saves every valid one with
source 'email'. Events missing a title, date or start time, or whose end
time is not after the start time, are skipped and reported.
"""

from fastapi import APIRouter, Depends, HTTPException

from backend.dependencies import get_calendar_agent, get_owner_scope
from backend.schemas import EmailRequest, EmailResponse
from src.agents import CalendarAgent
from src.core.errors import UpstreamUnavailable
from src.core.models import OwnerScope
from src.llm import format_email

router = APIRouter(prefix="/email", tags=["email"])


@router.post("/process", response_model=EmailResponse)
async def process_email(
    request: EmailRequest,
    scope: OwnerScope = Depends(get_owner_scope),
    agent: CalendarAgent = Depends(get_calendar_agent),
):
    """Extract and save the events mentioned in an email."""
    email_text = format_email(request.subject, request.body, request.sender, request.sender_name)

    try:
        response = await agent.process("ingest_email", {"scope": scope, "email_text": email_text})
    except UpstreamUnavailable as e:
        raise HTTPException(status_code=503, detail=f"Email processing unavailable: {e.service}")

    if not response.success:
        raise HTTPException(status_code=400, detail=response.message)

    return EmailResponse(
        message=response.message,
        events_created=response.data["events_created"],
        events=response.data["events"],
        skipped=response.data["skipped"],
    )
