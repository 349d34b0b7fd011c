"""
Data models for the Family Calendar Assistant
Defines conversation messages, extracted events, previews and persisted events.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union
import json

from dateutil import parser as date_parser


class MessageRole(str, Enum):
    """Author of a conversation message"""
    USER = "user"
    ASSISTANT = "assistant"


class Intent(str, Enum):
    """Classification output of the resolver. Not a stored entity."""
    CREATE_EVENT = "create_event"
    UPDATE_EVENT = "update_event"
    EDIT_EVENT = "edit_event"
    SEARCH = "search"
    NONE = "none"

    @classmethod
    def from_value(cls, value: Any) -> 'Intent':
        """Map a loosely formatted intent string to an Intent, defaulting to NONE."""
        if isinstance(value, Intent):
            return value
        if not isinstance(value, str):
            return cls.NONE
        normalized = value.strip().lower().replace("-", "_").replace(" ", "_")
        for member in cls:
            if member.value == normalized:
                return member
        return cls.NONE

    @property
    def is_edit(self) -> bool:
        return self in (Intent.UPDATE_EVENT, Intent.EDIT_EVENT)


class ActionType(str, Enum):
    """Decision returned by the orchestrator"""
    EDIT = "edit"
    SEARCH = "search"
    PREVIEW = "preview"
    NONE = "none"


@dataclass(frozen=True)
class RawMessage:
    """A single chat message. Immutable once created."""
    text: str
    role: MessageRole = MessageRole.USER
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_turn(self) -> Dict[str, str]:
        """Role/content pair for the completion service"""
        return {"role": self.role.value, "content": self.text}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RawMessage':
        """Create RawMessage from database row dictionary"""
        timestamp = _parse_datetime(data.get('created_at') or data.get('timestamp'))
        return cls(
            text=data.get('content') or data.get('text') or '',
            role=MessageRole(data.get('role', 'user')),
            timestamp=timestamp or datetime.now(timezone.utc),
        )


@dataclass
class ConversationContext:
    """
    The most recent messages of a conversation, oldest first.

    Only the last ``max_messages`` entries are kept. The resolver reads
    the context and never mutates it.
    """
    messages: Tuple[RawMessage, ...] = ()
    max_messages: int = 10

    def __post_init__(self):
        messages = tuple(self.messages)
        if self.max_messages >= 0 and len(messages) > self.max_messages:
            messages = messages[len(messages) - self.max_messages:]
        self.messages = messages

    def __len__(self) -> int:
        return len(self.messages)

    def to_turns(self) -> List[Dict[str, str]]:
        return [message.to_turn() for message in self.messages]

    def with_message(self, message: RawMessage) -> 'ConversationContext':
        """Return a new context with ``message`` appended."""
        return ConversationContext(self.messages + (message,), self.max_messages)


@dataclass(frozen=True)
class OwnerScope:
    """
    Persistence filter for events.

    A family id selects the shared family event set; otherwise the
    personal set of ``user_id`` is used.
    """
    user_id: str
    family_id: Optional[str] = None

    @property
    def is_shared(self) -> bool:
        return bool(self.family_id)

    def owner_filter(self) -> Tuple[str, str]:
        """Column and value that restrict a query to this scope"""
        if self.is_shared:
            return "family_id", self.family_id
        return "user_id", self.user_id


@dataclass
class ExtractedEvent:
    """Structured event guess produced by the completion service. Has no identity."""
    title: Optional[str] = None
    date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    is_recurring: bool = False
    recurrence_pattern: Optional[Union[Dict[str, Any], str]] = None
    id: Optional[Any] = None

    REQUIRED_FIELDS = ("title", "date", "start_time")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ExtractedEvent':
        """Create ExtractedEvent from a completion-service payload"""
        return cls(
            title=_clean_str(data.get('title')),
            date=_clean_str(data.get('date')),
            start_time=_clean_str(data.get('start_time')),
            end_time=_clean_str(data.get('end_time')),
            location=_clean_str(data.get('location')),
            description=_clean_str(data.get('description')),
            is_recurring=bool(data.get('is_recurring', False)),
            recurrence_pattern=data.get('recurrence_pattern') or None,
            id=data.get('id'),
        )

    def missing_required_fields(self) -> List[str]:
        return [name for name in self.REQUIRED_FIELDS if not getattr(self, name)]

    def is_populated(self) -> bool:
        """True when the event carries anything beyond an empty shell"""
        return any([self.title, self.date, self.start_time, self.end_time, self.location])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "date": self.date,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "location": self.location,
            "description": self.description,
            "is_recurring": self.is_recurring,
            "recurrence_pattern": self.recurrence_pattern,
        }


@dataclass
class EventPreview:
    """
    Transient, unpersisted event shown to the user for confirmation.

    ``id`` is only set when it refers to a verified existing event;
    a preview without an id becomes a new event on confirm.
    """
    title: str
    date: date
    start_time: Optional[str] = None  # HH:MM, 24-hour
    end_time: Optional[str] = None
    id: Optional[int] = None
    location: Optional[str] = None
    description: Optional[str] = None
    is_recurring: bool = False
    recurrence_pattern: Optional[Union[Dict[str, Any], str]] = None
    field_errors: List[Dict[str, str]] = field(default_factory=list)

    @property
    def is_new(self) -> bool:
        return self.id is None

    @property
    def has_errors(self) -> bool:
        return bool(self.field_errors)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "date": self.date.isoformat(),
            "start_time": self.start_time,
            "end_time": self.end_time,
            "location": self.location,
            "description": self.description,
            "is_recurring": self.is_recurring,
            "recurrence_pattern": self.recurrence_pattern,
            "field_errors": list(self.field_errors),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EventPreview':
        raw_date = data.get('date')
        if isinstance(raw_date, str):
            raw_date = date.fromisoformat(raw_date[:10])
        return cls(
            id=data.get('id'),
            title=data.get('title') or "New Event",
            date=raw_date,
            start_time=data.get('start_time'),
            end_time=data.get('end_time'),
            location=data.get('location'),
            description=data.get('description'),
            is_recurring=bool(data.get('is_recurring', False)),
            recurrence_pattern=data.get('recurrence_pattern'),
            field_errors=list(data.get('field_errors') or []),
        )


@dataclass
class CalendarEvent:
    """Persisted calendar event"""
    id: Optional[int] = None
    title: str = ""
    user_id: Optional[str] = None
    family_id: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    is_recurring: bool = False
    recurrence_pattern: Optional[Dict[str, Any]] = None
    source: str = "manual"  # 'chat', 'email', 'manual'
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CalendarEvent':
        """Create CalendarEvent from database row dictionary"""
        return cls(
            id=data.get('id'),
            title=data.get('title', ''),
            user_id=data.get('user_id'),
            family_id=data.get('family_id'),
            description=data.get('description'),
            location=data.get('location'),
            start_time=_parse_datetime(data.get('start_time')),
            end_time=_parse_datetime(data.get('end_time')),
            is_recurring=bool(data.get('is_recurring', False)),
            recurrence_pattern=_parse_json(data.get('recurrence_pattern')),
            source=data.get('source') or 'manual',
            created_at=_parse_datetime(data.get('created_at')),
            updated_at=_parse_datetime(data.get('updated_at'))
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "user_id": self.user_id,
            "family_id": self.family_id,
            "description": self.description,
            "location": self.location,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "is_recurring": self.is_recurring,
            "recurrence_pattern": self.recurrence_pattern,
            "source": self.source,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class ResolvedAction:
    """Decision payload returned by the intent resolver. Never persisted."""
    action: ActionType
    message: str = ""
    intent: Intent = Intent.NONE
    event_id: Optional[int] = None
    search_term: Optional[str] = None
    candidates: List[CalendarEvent] = field(default_factory=list)
    preview: Optional[EventPreview] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action.value,
            "message": self.message,
            "intent": self.intent.value,
            "event_id": self.event_id,
            "search_term": self.search_term,
            "candidates": [c.to_dict() for c in self.candidates],
            "preview": self.preview.to_dict() if self.preview else None,
        }


def _clean_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_datetime(dt_value: Any) -> Optional[datetime]:
    """Parse datetime value from database"""
    if dt_value is None or dt_value == "":
        return None
    if isinstance(dt_value, datetime):
        return dt_value
    try:
        return date_parser.isoparse(str(dt_value))
    except ValueError:
        try:
            return date_parser.parse(str(dt_value))
        except (ValueError, OverflowError):
            return None


def _parse_json(json_value: Any) -> Optional[Dict[str, Any]]:
    """Parse JSON column from database"""
    if json_value is None or json_value == "":
        return None
    if isinstance(json_value, dict):
        return json_value
    try:
        parsed = json.loads(json_value)
    except (json.JSONDecodeError, TypeError):
        return {"description": str(json_value)}
    return parsed if isinstance(parsed, dict) else {"description": str(parsed)}
