"""
Core module for the Family Calendar Assistant
Contains database, configuration, errors, stores and model definitions
"""

from .config import Config
from .database import Database, SQLiteDatabase, PostgreSQLDatabase, get_database
from .event_store import EventStore
from .conversation_store import ConversationStore
from .models import (
    ActionType,
    CalendarEvent,
    ConversationContext,
    EventPreview,
    ExtractedEvent,
    Intent,
    MessageRole,
    OwnerScope,
    RawMessage,
    ResolvedAction,
)

__all__ = [
    'Config',
    'Database',
    'SQLiteDatabase',
    'PostgreSQLDatabase',
    'get_database',
    'EventStore',
    'ConversationStore',
    'ActionType',
    'CalendarEvent',
    'ConversationContext',
    'EventPreview',
    'ExtractedEvent',
    'Intent',
    'MessageRole',
    'OwnerScope',
    'RawMessage',
    'ResolvedAction',
]
