"""
Dependency injection for FastAPI endpoints.

Provides singleton instances of Config, the database, stores and the
completion-service adapter, plus per-request agents and the caller's
owner scope.

Pattern: **Dependency Injection** - FastAPI's Depends() mechanism
lets tests swap any of these via app.dependency_overrides.
"""

from functools import lru_cache
from typing import Optional
import sys
from pathlib import Path

from fastapi import Header, HTTPException

# Add project root to path for imports
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from src.core.config import Config
from src.core.conversation_store import ConversationStore
from src.core.database import Database, get_database as create_database
from src.core.event_store import EventStore
from src.core.models import OwnerScope
from src.agents import CalendarAgent, IntentResolver
from src.llm import EventExtractor
from src.nlp import TitleMatcher


@lru_cache()
def get_config() -> Config:
    """
    Get cached Config instance.

    lru_cache ensures we only create one Config instance
    for the lifetime of the application (singleton pattern).
    """
    return Config()


@lru_cache()
def get_database() -> Database:
    """Get cached Database instance (SQLite unless DATABASE_URL is set)."""
    return create_database(get_config().get_database_path())


@lru_cache()
def get_event_store() -> EventStore:
    return EventStore(get_database())


@lru_cache()
def get_conversation_store() -> ConversationStore:
    window = get_config().get("context_window", section="assistant", default=10)
    return ConversationStore(get_database(), window=window)


@lru_cache()
def get_extractor() -> EventExtractor:
    """Completion-service adapter; the OpenAI client is created on first use."""
    return EventExtractor.from_config(get_config())


def get_title_matcher() -> TitleMatcher:
    config = get_config()
    return TitleMatcher(
        get_event_store(),
        min_length=config.get("min_title_length", section="assistant", default=2),
        search_limit=config.get("search_result_limit", section="assistant", default=5),
    )


def get_intent_resolver() -> IntentResolver:
    """
    Get an IntentResolver for chat messages.

    Created per request; shares the store and extractor singletons.
    """
    return IntentResolver.from_config(get_event_store(), get_extractor(), get_config())


def get_calendar_agent() -> CalendarAgent:
    """Get CalendarAgent for event persistence and email ingestion."""
    return CalendarAgent(
        get_event_store(),
        get_config(),
        extractor=get_extractor(),
        matcher=get_title_matcher(),
    )


def get_owner_scope(
    authorization: Optional[str] = Header(None),
    x_family_id: Optional[str] = Header(None),
) -> OwnerScope:
    """
    Resolve the caller's owner scope from request headers.

    ``Authorization: Bearer <user_id>`` identifies the user; an optional
    ``X-Family-Id`` header selects the shared family calendar.
    """
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing authorization header")

    scheme, _, token = authorization.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(status_code=401, detail="Invalid authorization header")

    family_id = x_family_id.strip() if x_family_id and x_family_id.strip() else None
    return OwnerScope(user_id=token, family_id=family_id)
