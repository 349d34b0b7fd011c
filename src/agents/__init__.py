"""
Agent Layer for the Family Calendar Assistant

Architecture Overview:
- IntentResolver: Decides what a chat message asks for (edit, search, preview, none)
- BaseAgent: Abstract base class defining the agent interface
- AgentResponse: Standard response structure for agent outputs
- CalendarAgent: Persists previews and edits, ingests emails

Usage:
    from src.agents import IntentResolver, CalendarAgent
    from src.core import Config, EventStore, get_database
    from src.llm import EventExtractor

    config = Config()
    store = EventStore(get_database(config.get_database_path()))
    extractor = EventExtractor.from_config(config)

    resolver = IntentResolver.from_config(store, extractor, config)
    action = await resolver.resolve("Can you update my dentist appointment", context, scope)

    agent = CalendarAgent(store, config, extractor=extractor)
    response = await agent.process("confirm_event", {"scope": scope, "preview": action.preview})
"""

from .base_agent import BaseAgent, AgentResponse
from .calendar_agent import CalendarAgent
from .intent_resolver import IntentResolver, build_event_preview

__all__ = [
    'BaseAgent',
    'AgentResponse',
    'CalendarAgent',
    'IntentResolver',
    'build_event_preview',
]
