"""
Intent Resolver for the Family Calendar Assistant

The IntentResolver is the orchestration layer that:
1. Runs the local edit-intent detector on the raw message
2. Resolves a detected title to an event id via the TitleMatcher
3. Otherwise asks the completion service for a structured guess
4. Reconciles both signals into a single ResolvedAction

Decision order: an explicit, verified event id beats a title guess; a title
that resolves to one event beats showing search results; search results are
the last resort, never a silent failure. The resolver never writes to
storage. Persisting a preview or an edit is the caller's job.
"""

from datetime import datetime, time as dt_time
from typing import Any, List, Optional
import logging

from ..core.errors import AuthenticationRequired, EventValidationError
from ..core.models import (
    ActionType,
    CalendarEvent,
    ConversationContext,
    EventPreview,
    ExtractedEvent,
    Intent,
    OwnerScope,
    ResolvedAction,
)
from ..nlp.datetime_normalizer import DateTimeNormalizer, format_time, parse_time
from ..nlp.edit_intent import detect, extract_event_title
from ..nlp.title_matcher import TitleMatcher

DEFAULT_TITLE = "New Event"
EMPTY_MESSAGE_REPLY = "What would you like to do with your calendar?"


def coerce_event_id(value: Any) -> Optional[int]:
    """Integer event id from an API value, or None when it is not one."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    text = str(value).strip()
    if text.isdigit() and int(text) > 0:
        return int(text)
    return None


def build_event_preview(event: ExtractedEvent, normalizer: DateTimeNormalizer,
                        base_date: Optional[datetime] = None,
                        event_id: Optional[int] = None) -> EventPreview:
    """
    Build a preview from extracted fields.

    The date goes through the normalizer (with its default-date policy).
    Unreadable times and an end time that is not after the start time
    are recorded in ``field_errors``, never corrected.
    """
    base = base_date or datetime.now()
    resolved_date = normalizer.resolve_date(event.date, base)
    field_errors = []

    start = parse_time(event.start_time)
    if event.start_time and start is None:
        field_errors.append({
            "field": "start_time",
            "message": f"Could not understand start time '{event.start_time}'",
        })

    end = parse_time(event.end_time)
    if event.end_time and end is None:
        field_errors.append({
            "field": "end_time",
            "message": f"Could not understand end time '{event.end_time}'",
        })

    start_text = format_time(dt_time(*start)) if start else None
    end_text = format_time(dt_time(*end)) if end else None

    if start and end:
        start_dt = normalizer.normalize(resolved_date.isoformat(), start_text, base)
        end_dt = normalizer.normalize(resolved_date.isoformat(), end_text, base)
        try:
            normalizer.check_time_range(start_dt, end_dt)
        except EventValidationError as e:
            field_errors.append(e.to_dict())

    return EventPreview(
        id=event_id,
        title=event.title or DEFAULT_TITLE,
        date=resolved_date,
        start_time=start_text,
        end_time=end_text,
        location=event.location,
        description=event.description,
        is_recurring=event.is_recurring,
        recurrence_pattern=event.recurrence_pattern,
        field_errors=field_errors,
    )


class IntentResolver:
    """
    Turns a chat message into an EDIT, SEARCH, PREVIEW or NONE decision.

    The IntentResolver does not inherit from BaseAgent: it decides what
    should happen and leaves persistence to the CalendarAgent.

    Args:
        store: EventStore used to verify explicit event ids
        matcher: TitleMatcher for title -> id resolution
        extractor: EventExtractor for completion-service extraction
        normalizer: DateTimeNormalizer for previews
    """

    def __init__(self, store, matcher: TitleMatcher, extractor,
                 normalizer: Optional[DateTimeNormalizer] = None):
        self.store = store
        self.matcher = matcher
        self.extractor = extractor
        self.normalizer = normalizer or DateTimeNormalizer()
        self.logger = logging.getLogger("agent.resolver")

    @classmethod
    def from_config(cls, store, extractor, config) -> 'IntentResolver':
        matcher = TitleMatcher(
            store,
            min_length=config.get("min_title_length", section="assistant", default=2),
            search_limit=config.get("search_result_limit", section="assistant", default=5),
        )
        normalizer = DateTimeNormalizer(
            config.get("default_date_policy", section="assistant", default="tomorrow")
        )
        return cls(store, matcher, extractor, normalizer)

    async def resolve(self, message: str, context: Optional[ConversationContext] = None,
                      scope: Optional[OwnerScope] = None,
                      now: Optional[datetime] = None) -> ResolvedAction:
        """
        Decide what the user wants done with their calendar.

        Args:
            message: Raw user text
            context: Recent conversation, read only
            scope: Owner scope of the current actor
            now: Reference time for relative dates

        Returns:
            ResolvedAction describing the decision

        Raises:
            AuthenticationRequired: if no actor identity is given
            UpstreamUnavailable: if the completion service or store fails
        """
        if scope is None or not scope.user_id:
            raise AuthenticationRequired("An authenticated user is required to resolve intents")

        if not message or not message.strip():
            return ResolvedAction(action=ActionType.NONE, message=EMPTY_MESSAGE_REPLY)

        # Step 1: cheap local detection short-circuits edit requests
        detection = detect(message)
        if detection.candidate_title:
            action = await self._resolve_title(detection.candidate_title, scope, Intent.EDIT_EVENT)
            if action is not None:
                self.logger.info("Resolved locally: rule=%s action=%s",
                                 detection.rule, action.action.value)
                return action

        # Step 2: completion service, grounded with the candidate title
        hint = detection.candidate_title or extract_event_title(message)
        result = await self.extractor.extract(message, context, search_hint=hint, now=now)

        if result.failed:
            self.logger.warning("Extraction failed, falling back to title hint: %s", hint)
            action = await self._resolve_title(hint, scope, Intent.EDIT_EVENT) if hint else None
            return action or ResolvedAction(action=ActionType.NONE, message=result.message)

        # Step 3: reconcile
        if result.intent.is_edit:
            action = await self._resolve_edit(result, hint, scope)
        elif result.intent == Intent.CREATE_EVENT and result.event is not None \
                and result.event.is_populated():
            preview = build_event_preview(result.event, self.normalizer, now)
            action = ResolvedAction(
                action=ActionType.PREVIEW,
                message=result.message,
                intent=Intent.CREATE_EVENT,
                preview=preview,
            )
        else:
            action = ResolvedAction(action=ActionType.NONE, message=result.message,
                                    intent=result.intent)

        self.logger.info("Resolved: intent=%s action=%s event_id=%s",
                         result.intent.value, action.action.value, action.event_id)
        return action

    async def _resolve_edit(self, result, hint: Optional[str],
                            scope: OwnerScope) -> ResolvedAction:
        event = result.event

        explicit_id = coerce_event_id(result.existing_event_id)
        if explicit_id is None and event is not None:
            explicit_id = coerce_event_id(event.id)

        if explicit_id is not None:
            existing = await self.store.get_event(explicit_id, scope)
            if existing is not None:
                return self._edit_action(existing, result.intent, result.message)
            self.logger.warning("Ignoring unknown event id %s from extraction", explicit_id)

        for title in (event.title if event else None, hint):
            if title:
                action = await self._resolve_title(title, scope, result.intent)
                if action is not None:
                    return action

        return ResolvedAction(action=ActionType.NONE, message=result.message,
                              intent=result.intent)

    async def _resolve_title(self, title: str, scope: OwnerScope,
                             intent: Intent) -> Optional[ResolvedAction]:
        """EDIT on a match, SEARCH on a miss, None for titles too short to search."""
        title = title.strip()
        existing = await self.matcher.find_event(title, scope)
        if existing is not None:
            return self._edit_action(existing, intent)

        if len(title) < self.matcher.min_length:
            return None

        candidates = await self.matcher.search_events(title, scope)
        return self._search_action(title, candidates, intent)

    def _edit_action(self, event: CalendarEvent, intent: Intent,
                     message: Optional[str] = None) -> ResolvedAction:
        return ResolvedAction(
            action=ActionType.EDIT,
            message=message or f'Found "{event.title}". What would you like to change?',
            intent=intent,
            event_id=event.id,
            candidates=[event],
        )

    def _search_action(self, title: str, candidates: List[CalendarEvent],
                       intent: Intent) -> ResolvedAction:
        if candidates:
            message = f'I found {len(candidates)} events matching "{title}". Which one did you mean?'
        else:
            message = (f'I couldn\'t find an event called "{title}". '
                       "Try searching with a different name.")
        return ResolvedAction(
            action=ActionType.SEARCH,
            message=message,
            intent=intent,
            search_term=title,
            candidates=candidates,
        )

