"""
Pydantic schemas for API request/response validation.

These schemas provide:
- Type safety for API inputs and outputs
- Automatic validation and error messages
- OpenAPI documentation generation
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


# =============================================================================
# Base Response Schemas
# =============================================================================

class AgentResponseSchema(BaseModel):
    """Standard response from any agent operation."""
    success: bool
    message: str
    data: Optional[Dict[str, Any]] = None
    errors: Optional[List[Dict[str, str]]] = None

    class Config:
        from_attributes = True


class ErrorResponse(BaseModel):
    """Error response for API errors."""
    detail: str
    code: Optional[str] = None


# =============================================================================
# Event Schemas
# =============================================================================

class EventResponse(BaseModel):
    """A stored calendar event."""
    id: int
    title: str
    user_id: Optional[str] = None
    family_id: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    is_recurring: bool = False
    recurrence_pattern: Optional[Dict[str, Any]] = None
    source: str = "manual"
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class EventPreviewSchema(BaseModel):
    """An unsaved event shown to the user for confirmation."""
    id: Optional[int] = None
    title: str = Field(..., min_length=1, max_length=500)
    date: str  # YYYY-MM-DD
    start_time: Optional[str] = None  # HH:MM, 24-hour
    end_time: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    is_recurring: bool = False
    recurrence_pattern: Optional[Any] = None
    field_errors: List[Dict[str, str]] = Field(default_factory=list)


class EventDraft(BaseModel):
    """Raw event fields (e.g. from a form) to turn into a preview."""
    id: Optional[int] = None
    title: Optional[str] = None
    date: Optional[str] = None  # ISO or natural language
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    is_recurring: bool = False
    recurrence_pattern: Optional[Any] = None


class EventUpdate(BaseModel):
    """Request body for updating an event. Only provided fields change."""
    title: Optional[str] = Field(default=None, min_length=1, max_length=500)
    description: Optional[str] = None
    location: Optional[str] = None
    date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    is_recurring: Optional[bool] = None
    recurrence_pattern: Optional[Any] = None


class EventListResponse(BaseModel):
    """List of events."""
    events: List[EventResponse]
    total: int


# =============================================================================
# Chat Schemas
# =============================================================================

class ChatRequest(BaseModel):
    """A chat message from the user."""
    message: str = Field(..., min_length=1, max_length=4000)
    conversation_id: Optional[str] = None


class ChatResponse(BaseModel):
    """What the assistant decided to do with a chat message."""
    message: str
    action: str = "none"  # edit, search, preview, none
    intent: str = "none"
    conversation_id: Optional[str] = None
    event_id: Optional[int] = None
    search_term: Optional[str] = None
    candidates: List[EventResponse] = Field(default_factory=list)
    preview: Optional[EventPreviewSchema] = None


# =============================================================================
# Email Schemas
# =============================================================================

class EmailRequest(BaseModel):
    """A forwarded email to scan for events."""
    body: str = Field(..., min_length=1)
    subject: Optional[str] = None
    sender: Optional[str] = None
    sender_name: Optional[str] = None


class EmailResponse(BaseModel):
    """Events created from an email."""
    message: str
    events_created: int
    events: List[EventResponse] = Field(default_factory=list)
    skipped: List[Dict[str, Any]] = Field(default_factory=list)
