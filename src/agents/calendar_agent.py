"""
Calendar Agent for the Family Calendar Assistant
Persists what the IntentResolver decided: confirmed previews, edits,
deletions and events extracted from forwarded emails.

All store access is scoped by the caller's OwnerScope, passed in the
request context as ``scope``.
"""

from datetime import date, datetime, timedelta, time as dt_time
from typing import Any, Dict, List, Optional
import json

from .base_agent import BaseAgent, AgentResponse
from .intent_resolver import build_event_preview, coerce_event_id
from ..core.errors import EventValidationError
from ..core.models import EventPreview, ExtractedEvent, OwnerScope
from ..nlp.datetime_normalizer import DateTimeNormalizer, format_date, format_time, parse_time


class CalendarAgent(BaseAgent):
    """
    Specialized agent for calendar persistence.

    Handles intents:
    - preview_event: Build a preview from raw event fields
    - confirm_event: Save a confirmed preview (insert, or update when it has an id)
    - get_event: Get event details by ID
    - update_event: Patch fields of an existing event
    - delete_event: Delete an event
    - search_events: Substring title search for disambiguation
    - ingest_email: Extract events from an email and save the valid ones
    """

    INTENTS = [
        "preview_event",
        "confirm_event",
        "get_event",
        "update_event",
        "delete_event",
        "search_events",
        "ingest_email",
    ]

    # Default duration in minutes when no end time is given
    DEFAULT_DURATION_MINUTES = 60

    # Fields of update_event that are written as-is
    TEXT_FIELDS = ("title", "description", "location")

    def __init__(self, store, config, extractor=None, matcher=None,
                 normalizer: Optional[DateTimeNormalizer] = None):
        """Initialize the Calendar Agent."""
        super().__init__(store, config, "calendar")
        self.extractor = extractor
        self.matcher = matcher
        self.normalizer = normalizer or DateTimeNormalizer(
            self.get_config_value("default_date_policy", default="tomorrow")
        )
        self.default_duration = self.get_config_value(
            "default_event_duration_minutes", default=self.DEFAULT_DURATION_MINUTES
        )

    def get_supported_intents(self) -> List[str]:
        """Return list of supported intents."""
        return self.INTENTS

    async def process(self, intent: str, context: Dict[str, Any]) -> AgentResponse:
        """
        Process a calendar intent.

        Args:
            intent: One of the supported calendar intents
            context: Request context; must contain ``scope``

        Returns:
            AgentResponse with operation result
        """
        self.log_action(f"processing_{intent}", {"context_keys": sorted(context.keys())})

        handlers = {
            "preview_event": self._handle_preview_event,
            "confirm_event": self._handle_confirm_event,
            "get_event": self._handle_get_event,
            "update_event": self._handle_update_event,
            "delete_event": self._handle_delete_event,
            "search_events": self._handle_search_events,
            "ingest_email": self._handle_ingest_email,
        }

        handler = handlers.get(intent)
        if not handler:
            return AgentResponse.error(f"Unknown intent: {intent}")

        if intent != "preview_event":
            validation = self.validate_required_params(context, ["scope"])
            if validation:
                return validation

        try:
            return await handler(context)
        except EventValidationError as e:
            self.logger.warning(f"Validation failed for {intent}: {e.message}")
            return AgentResponse.error(e.message, errors=[e.to_dict()])

    # =========================================================================
    # Intent Handlers
    # =========================================================================

    async def _handle_preview_event(self, context: Dict[str, Any]) -> AgentResponse:
        """
        Build a preview from raw event fields.

        Context params:
            event (dict): title, date, start_time, end_time, location, ...
            now (datetime, optional): Reference time for relative dates
        """
        validation = self.validate_required_params(context, ["event"])
        if validation:
            return validation

        preview = self.create_preview_from_api_data(context["event"], context.get("now"))
        return AgentResponse.ok(
            message=f"Preview for {preview.title} on {format_date(preview.date)}",
            data={"preview": preview.to_dict()}
        )

    async def _handle_confirm_event(self, context: Dict[str, Any]) -> AgentResponse:
        """
        Save a confirmed preview.

        Context params:
            scope (OwnerScope): Owner of the event
            preview (EventPreview | dict): The preview the user confirmed
        """
        validation = self.validate_required_params(context, ["preview"])
        if validation:
            return validation

        preview = context["preview"]
        if isinstance(preview, dict):
            preview = EventPreview.from_dict(preview)
        scope: OwnerScope = context["scope"]

        if preview.has_errors:
            first = preview.field_errors[0]
            raise EventValidationError(first.get("field", "event"), first.get("message", "Invalid event"))

        fields = self.prepare_event_for_saving(preview, scope)

        if preview.is_new:
            event_id = await self.store.insert_event(fields)
            self.log_action("event_created", {"event_id": event_id, "source": fields.get("source")})
            event = await self.store.get_event(event_id, scope)
            return AgentResponse.ok(
                message=f"Added {preview.title} to your calendar",
                data={"event": event.to_dict() if event else None, "created": True}
            )

        for owner_field in ("user_id", "family_id"):
            fields.pop(owner_field, None)
        updated = await self.store.update_event(preview.id, scope, fields)
        if not updated:
            return AgentResponse.error(f"Event {preview.id} not found")

        self.log_action("event_updated", {"event_id": preview.id})
        event = await self.store.get_event(preview.id, scope)
        return AgentResponse.ok(
            message=f"Updated {preview.title}",
            data={"event": event.to_dict() if event else None, "created": False}
        )

    async def _handle_get_event(self, context: Dict[str, Any]) -> AgentResponse:
        """
        Get a single event by ID.

        Context params:
            event_id (int): Event ID to retrieve
        """
        validation = self.validate_required_params(context, ["event_id"])
        if validation:
            return validation

        event = await self.store.get_event(context["event_id"], context["scope"])
        if event:
            return AgentResponse.ok(
                message=f"Event: {event.title}",
                data={"event": event.to_dict()}
            )
        else:
            return AgentResponse.error(f"Event {context['event_id']} not found")

    async def _handle_update_event(self, context: Dict[str, Any]) -> AgentResponse:
        """
        Update event properties.

        Context params:
            event_id (int): Event to update
            title, description, location (str, optional): New values
            date (str, optional): New date (ISO or natural language)
            start_time, end_time (str, optional): New times, "H[:MM] [AM|PM]"
            is_recurring (bool, optional), recurrence_pattern (optional)
        """
        validation = self.validate_required_params(context, ["event_id"])
        if validation:
            return validation

        event_id = context["event_id"]
        scope: OwnerScope = context["scope"]

        existing = await self.store.get_event(event_id, scope)
        if existing is None:
            return AgentResponse.error(f"Event {event_id} not found")

        update_fields: Dict[str, Any] = {}
        for key in self.TEXT_FIELDS:
            if context.get(key) is not None:
                update_fields[key] = context[key]

        if any(context.get(key) for key in ("date", "start_time", "end_time")):
            start, end = self._merge_times(existing, context)
            self.normalizer.check_time_range(start, end)
            update_fields["start_time"] = start
            update_fields["end_time"] = end

        if "is_recurring" in context:
            update_fields["is_recurring"] = bool(context["is_recurring"])
            update_fields["recurrence_pattern"] = self._parse_recurrence(
                context.get("recurrence_pattern")
            ) if context["is_recurring"] else None

        if not update_fields:
            return AgentResponse.error("No fields to update provided")

        update_fields["updated_at"] = datetime.now().isoformat()
        await self.store.update_event(event_id, scope, update_fields)
        updated_event = await self.store.get_event(event_id, scope)
        self.log_action("event_updated", {"event_id": event_id, "fields": sorted(update_fields)})
        return AgentResponse.ok(
            message=f"Event {event_id} updated",
            data={"event": updated_event.to_dict() if updated_event else None}
        )

    async def _handle_delete_event(self, context: Dict[str, Any]) -> AgentResponse:
        """
        Delete an event.

        Context params:
            event_id (int): Event to delete
        """
        validation = self.validate_required_params(context, ["event_id"])
        if validation:
            return validation

        event_id = context["event_id"]
        deleted = await self.store.delete_event(event_id, context["scope"])
        if deleted:
            self.log_action("event_deleted", {"event_id": event_id})
            return AgentResponse.ok(
                message=f"Event {event_id} deleted",
                data={"event_id": event_id, "action": "deleted"}
            )
        return AgentResponse.error(f"Event {event_id} not found")

    async def _handle_search_events(self, context: Dict[str, Any]) -> AgentResponse:
        """
        Search events by title fragment.

        Context params:
            query (str): Title fragment
            limit (int, optional): Maximum number of results
        """
        validation = self.validate_required_params(context, ["query"])
        if validation:
            return validation
        if self.matcher is None:
            return AgentResponse.error("Search is not available")

        events = await self.matcher.search_events(
            context["query"], context["scope"], limit=context.get("limit")
        )
        return AgentResponse.ok(
            message=f"Found {len(events)} events",
            data={"events": [e.to_dict() for e in events], "count": len(events)}
        )

    async def _handle_ingest_email(self, context: Dict[str, Any]) -> AgentResponse:
        """
        Extract events from an email and save the valid ones.

        Events missing a mandatory field are dropped by the extractor;
        events whose end time is not after the start time are skipped here.

        Context params:
            email_text (str): Formatted email (see llm.extraction.format_email)
            now (datetime, optional): Reference time for relative dates
        """
        validation = self.validate_required_params(context, ["email_text"])
        if validation:
            return validation
        if self.extractor is None:
            return AgentResponse.error("Email extraction is not available")

        scope: OwnerScope = context["scope"]
        now = context.get("now")
        extracted = await self.extractor.extract_batch(context["email_text"], now=now)

        created = []
        skipped = []
        for event in extracted:
            preview = build_event_preview(event, self.normalizer, now)
            if preview.has_errors:
                self.logger.warning(f"Skipping email event '{preview.title}': {preview.field_errors}")
                skipped.append({"title": preview.title, "errors": preview.field_errors})
                continue

            fields = self.prepare_event_for_saving(preview, scope, source="email")
            if event.description:
                fields["description"] = event.description
            event_id = await self.store.insert_event(fields)
            saved = await self.store.get_event(event_id, scope)
            if saved:
                created.append(saved.to_dict())

        self.log_action("email_processed", {"created": len(created), "skipped": len(skipped)})
        return AgentResponse.ok(
            message=f"Email processed successfully. Created {len(created)} events.",
            data={"events": created, "events_created": len(created), "skipped": skipped}
        )

    # =========================================================================
    # Preview helpers
    # =========================================================================

    def create_preview_from_api_data(self, event_data: Dict[str, Any],
                                     now: Optional[datetime] = None) -> EventPreview:
        """
        Build a preview from raw API event fields.

        A missing date falls back to the default-date policy and a missing
        title becomes "New Event". An id is kept only if it is a valid event id.
        """
        event = ExtractedEvent.from_dict(event_data or {})
        return build_event_preview(
            event, self.normalizer, now, event_id=coerce_event_id(event.id)
        )

    def prepare_event_for_saving(self, preview: EventPreview, scope: OwnerScope,
                                 source: str = "chat") -> Dict[str, Any]:
        """
        Convert a preview into store fields.

        Ownership follows the scope: family events carry only family_id,
        personal events only user_id. New events are tagged with ``source``.

        Raises:
            EventValidationError: if the end time is not after the start time
        """
        start = self._combine(preview.date, preview.start_time)
        end = self._combine(preview.date, preview.end_time, "end_time") if preview.end_time else None
        self.normalizer.check_time_range(start, end)
        if end is None:
            end = start + timedelta(minutes=self.default_duration)

        recurrence = None
        if preview.is_recurring and preview.recurrence_pattern:
            recurrence = self._parse_recurrence(preview.recurrence_pattern)

        fields = {
            "user_id": None if scope.is_shared else scope.user_id,
            "family_id": scope.family_id if scope.is_shared else None,
            "title": preview.title,
            "description": preview.description or "",
            "start_time": start,
            "end_time": end,
            "location": preview.location or None,
            "is_recurring": bool(preview.is_recurring),
            "recurrence_pattern": recurrence,
            "updated_at": datetime.now().isoformat(),
        }
        if preview.is_new:
            fields["source"] = source
        return fields

    def _combine(self, event_date: date, time_text: Optional[str],
                 field: str = "start_time") -> datetime:
        """
        Date plus "H[:MM] [AM|PM]" time. No time means midnight.

        Raises:
            EventValidationError: if a time is given but cannot be read
        """
        if not time_text:
            return datetime.combine(event_date, dt_time(0, 0))
        parsed = parse_time(time_text)
        if parsed is None:
            raise EventValidationError(field, f"Could not understand {field.replace('_', ' ')} '{time_text}'")
        return datetime.combine(event_date, dt_time(parsed[0], parsed[1]))

    def _merge_times(self, existing, context: Dict[str, Any]):
        """New start/end from patched date/time fields over the stored values."""
        current_start = existing.start_time.replace(tzinfo=None)
        current_end = existing.end_time.replace(tzinfo=None) if existing.end_time else None

        if context.get("date"):
            new_date = self.normalizer.resolve_date(context["date"])
        else:
            new_date = current_start.date()

        start_text = context.get("start_time") or format_time(current_start.time())
        start = self._combine(new_date, start_text)

        if context.get("end_time"):
            end = self._combine(new_date, context["end_time"], "end_time")
        elif current_end is not None:
            # Keep the original duration
            end = start + (current_end - current_start)
        else:
            end = start + timedelta(minutes=self.default_duration)
        return start, end

    def _parse_recurrence(self, pattern: Any) -> Optional[Dict[str, Any]]:
        """
        Structured recurrence from a preview value.

        Strings starting with "{" are parsed as JSON; any other string is
        kept as a freeform description.
        """
        if not pattern:
            return None
        if isinstance(pattern, dict):
            return pattern
        text = str(pattern).strip()
        if text.startswith("{"):
            try:
                parsed = json.loads(text)
            except json.JSONDecodeError:
                self.logger.warning(f"Unparseable recurrence pattern kept as text: {text}")
                return {"description": text}
            if isinstance(parsed, dict):
                return parsed
        return {"description": text}
