"""
LLM Extraction Adapter

Sends a user message (plus recent conversation turns and an optional
title hint) to the OpenAI chat completions API and turns the JSON reply
into an ExtractionResult. A second entry point extracts every event
mentioned in an email.

Failure handling:
- network, auth or API errors raise UpstreamUnavailable. The client is
  built with max_retries=0; retries belong to the caller.
- unparseable or mis-shaped JSON is a normal outcome (failed=True),
  never an exception.
- nothing is persisted here.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

import openai
from openai import AsyncOpenAI

from ..core.errors import ExtractionParseError, UpstreamUnavailable
from ..core.models import ConversationContext, ExtractedEvent, Intent
from .json_parsing import DEFAULT_MAX_SCAN_CHARS, JSON_OBJECT_PATTERN, parse_json_object

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"

# Intents the completion service may return; anything else means a plain reply
EXTRACTION_INTENTS = (Intent.CREATE_EVENT, Intent.UPDATE_EVENT, Intent.EDIT_EVENT)

FALLBACK_REPLY = "I understand your request. Is there anything else you'd like me to help with?"
EDIT_REPLY = "Let me find that event for you."

CHAT_SYSTEM_PROMPT = """You are a helpful assistant for a family calendar app.
Help the user manage their calendar events and answer questions about their schedule.

Always reply with a single JSON object and nothing else:
{{
  "message": "friendly natural-language reply, without any JSON",
  "intent": "create_event" | "update_event" | "edit_event" | null,
  "existing_event_id": null,
  "event": {{
    "title": "Event title",
    "date": "YYYY-MM-DD",
    "start_time": "HH:MM",
    "end_time": "HH:MM",
    "location": "Location",
    "description": "Description",
    "is_recurring": false,
    "recurrence_pattern": null
  }}
}}

Use "create_event" when the user asks to add a new event.
Use "update_event" or "edit_event" when the user wants to change an existing event;
put the existing event's title in event.title and only include the fields that change.
Use null for intent and omit "event" when the message is not about calendar events.
Times are 24-hour HH:MM. Dates are YYYY-MM-DD.

Current date and time: {now}"""

SEARCH_HINT_PROMPT = """

The user may be referring to an existing event titled "{hint}".
If so, use intent "update_event" and set event.title to that title."""

EMAIL_SYSTEM_PROMPT = """You are an assistant that extracts calendar events from emails.
Extract any event details from the provided email, including:
- Event title (required)
- Date (required, in YYYY-MM-DD format)
- Start time (required, in 24-hour HH:MM format)
- End time (if available, in 24-hour HH:MM format)
- Location (if available)
- Description (if available)
- Is this a recurring event? (boolean)
- Recurrence details (if it's recurring)

Return the extracted information in JSON format:
{{
  "events": [
    {{
      "title": "Event Title",
      "date": "YYYY-MM-DD",
      "start_time": "HH:MM",
      "end_time": "HH:MM",
      "location": "Location",
      "description": "Description",
      "is_recurring": false,
      "recurrence_pattern": null
    }}
  ]
}}

If multiple events are found, include them all in the events array.
If no event is found, return {{"events": []}}

Current date: {today}"""


@dataclass
class ExtractionResult:
    """
    Outcome of a conversational extraction.

    ``failed`` is True when the completion could not be parsed; the
    message then holds a safe fallback reply.
    """
    message: str
    intent: Intent = Intent.NONE
    event: Optional[ExtractedEvent] = None
    existing_event_id: Optional[Any] = None
    failed: bool = False

    @classmethod
    def failure(cls, message: str = FALLBACK_REPLY) -> 'ExtractionResult':
        return cls(message=message, failed=True)


def format_email(subject: Optional[str], body: str, sender: Optional[str] = None,
                 sender_name: Optional[str] = None) -> str:
    """Render an email the way the extraction prompt expects it."""
    from_line = sender or ""
    if sender_name:
        from_line = f"{from_line} ({sender_name})".strip()
    return f"From: {from_line}\nSubject: {subject or ''}\n\n{body or ''}"


def clean_reply(text: Optional[str]) -> str:
    """Strip JSON objects and stray braces from a reply meant for the user."""
    if not text:
        return ""
    cleaned = JSON_OBJECT_PATTERN.sub("", text)
    cleaned = re.sub(r"\s*\}\s*\}", "", cleaned)
    cleaned = re.sub(r"```(?:json)?\s*```", "", cleaned)
    return cleaned.strip()


class EventExtractor:
    """
    Completion-service adapter for event extraction.

    Args:
        client: AsyncOpenAI-compatible client; built lazily when omitted
        model: Chat completion model name
        temperature: Sampling temperature
        context_window: Maximum number of prior conversation turns sent
        max_scan_chars: Bound for the fallback JSON scan
    """

    def __init__(self, client=None, model: str = DEFAULT_MODEL, temperature: float = 0.2,
                 context_window: int = 10, max_scan_chars: int = DEFAULT_MAX_SCAN_CHARS,
                 api_key: Optional[str] = None):
        self._client = client
        self._api_key = api_key
        self.model = model
        self.temperature = temperature
        self.context_window = context_window
        self.max_scan_chars = max_scan_chars

    @classmethod
    def from_config(cls, config, client=None) -> 'EventExtractor':
        return cls(
            client=client,
            model=config.get("openai_model", section="assistant", default=DEFAULT_MODEL),
            temperature=config.get("temperature", section="assistant", default=0.2),
            context_window=config.get("context_window", section="assistant", default=10),
            max_scan_chars=config.get("max_scan_chars", section="assistant",
                                      default=DEFAULT_MAX_SCAN_CHARS),
            api_key=config.openai_api_key,
        )

    @property
    def client(self):
        if self._client is None:
            try:
                self._client = AsyncOpenAI(api_key=self._api_key, max_retries=0)
            except openai.OpenAIError as e:
                raise UpstreamUnavailable("openai", str(e)) from e
        return self._client

    # =========================================================================
    # Conversational extraction
    # =========================================================================

    async def extract(self, message: str, context: Optional[ConversationContext] = None,
                      search_hint: Optional[str] = None,
                      now: Optional[datetime] = None) -> ExtractionResult:
        """
        Extract intent and event fields from a chat message.

        Args:
            message: The user's latest message
            context: Prior conversation; only the most recent turns are sent
            search_hint: Candidate title of an existing event, if one was detected
            now: Reference time included in the prompt

        Returns:
            ExtractionResult (failed=True when the reply could not be parsed)

        Raises:
            UpstreamUnavailable: on any completion-service error
        """
        system_prompt = CHAT_SYSTEM_PROMPT.format(now=(now or datetime.now()).isoformat())
        if search_hint:
            system_prompt += SEARCH_HINT_PROMPT.format(hint=search_hint)

        turns = context.to_turns() if context else []
        turns = turns[-self.context_window:] if self.context_window > 0 else []
        turns = turns + [{"role": "user", "content": message}]

        content = await self._complete(system_prompt, turns)

        try:
            payload = parse_json_object(content, max_chars=self.max_scan_chars)
        except ExtractionParseError as e:
            logger.warning(f"Extraction failed: {e}")
            reply = clean_reply(content)
            return ExtractionResult.failure(reply if len(reply) >= 5 else FALLBACK_REPLY)

        if not any(key in payload for key in ("message", "intent", "event")):
            logger.warning(f"Extraction payload has unexpected shape: {sorted(payload.keys())}")
            return ExtractionResult.failure()

        return self._build_result(payload)

    def _build_result(self, payload: Dict[str, Any]) -> ExtractionResult:
        intent = Intent.from_value(payload.get("intent"))
        if intent not in EXTRACTION_INTENTS:
            intent = Intent.NONE

        event_data = payload.get("event")
        event = ExtractedEvent.from_dict(event_data) if isinstance(event_data, dict) else None

        existing_event_id = payload.get("existing_event_id")
        if existing_event_id in ("", "null"):
            existing_event_id = None

        message = clean_reply(payload.get("message") if isinstance(payload.get("message"), str) else "")
        if len(message) < 5:
            if event is not None and event.title and intent == Intent.CREATE_EVENT:
                message = f'I\'ll add "{event.title}" to your calendar.'
            elif intent.is_edit:
                message = EDIT_REPLY
            else:
                message = FALLBACK_REPLY

        return ExtractionResult(
            message=message,
            intent=intent,
            event=event,
            existing_event_id=existing_event_id,
        )

    # =========================================================================
    # Batch (email) extraction
    # =========================================================================

    async def extract_batch(self, email_text: str,
                            now: Optional[datetime] = None) -> List[ExtractedEvent]:
        """
        Extract all events mentioned in an email.

        Events missing title, date or start_time are dropped, never defaulted.

        Raises:
            UpstreamUnavailable: on any completion-service error
        """
        system_prompt = EMAIL_SYSTEM_PROMPT.format(today=(now or datetime.now()).date().isoformat())
        content = await self._complete(system_prompt, [{"role": "user", "content": email_text}])

        try:
            payload = parse_json_object(content, max_chars=self.max_scan_chars)
        except ExtractionParseError as e:
            logger.warning(f"Email extraction returned no parseable JSON: {e}")
            return []

        raw_events = payload.get("events")
        if not isinstance(raw_events, list):
            logger.warning("Email extraction payload has no events list")
            return []

        events = []
        for raw in raw_events:
            if not isinstance(raw, dict):
                continue
            event = ExtractedEvent.from_dict(raw)
            missing = event.missing_required_fields()
            if missing:
                logger.warning(f"Skipping event with missing required fields {missing}: {raw}")
                continue
            events.append(event)
        return events

    # =========================================================================
    # Transport
    # =========================================================================

    async def _complete(self, system_prompt: str, turns: List[Dict[str, str]]) -> Optional[str]:
        messages = [{"role": "system", "content": system_prompt}] + turns
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                response_format={"type": "json_object"},
            )
        except openai.OpenAIError as e:
            logger.error(f"Completion request failed: {e}", exc_info=True)
            raise UpstreamUnavailable("openai", str(e)) from e

        if not response.choices:
            return None
        return response.choices[0].message.content
