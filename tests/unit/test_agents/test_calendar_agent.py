"""
Unit tests for the CalendarAgent.
Tests preview building, confirmation, owner-scoped updates and deletes,
recurrence handling and email ingestion against a temporary database.
"""

import pytest
from datetime import datetime
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent.parent))

from src.agents.calendar_agent import CalendarAgent
from src.agents.base_agent import AgentResponse
from src.core.database import SQLiteDatabase
from src.core.event_store import EventStore
from src.core.models import EventPreview, ExtractedEvent, OwnerScope
from src.nlp.title_matcher import TitleMatcher


NOW = datetime(2025, 3, 18, 10, 30)
SCOPE = OwnerScope("u1")
FAMILY = OwnerScope("u1", family_id="fam")


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def store(tmp_path):
    """EventStore over a fresh SQLite database."""
    return EventStore(SQLiteDatabase(tmp_path / "calendar.db", create=True))


@pytest.fixture
def mock_config():
    """Create a mock config object with default assistant settings."""
    config = MagicMock()

    def config_get(key, section="assistant", default=None):
        config_values = {
            "default_date_policy": "tomorrow",
            "default_event_duration_minutes": 60,
        }
        return config_values.get(key, default)

    config.get.side_effect = config_get
    return config


@pytest.fixture
def extractor():
    extractor = MagicMock()
    extractor.extract_batch = AsyncMock(return_value=[])
    return extractor


@pytest.fixture
def calendar_agent(store, mock_config, extractor):
    """Create a CalendarAgent instance with test store and config."""
    return CalendarAgent(store, mock_config, extractor=extractor, matcher=TitleMatcher(store))


async def confirm(agent, scope=SCOPE, **preview):
    preview.setdefault("title", "Dance")
    preview.setdefault("date", "2025-03-21")
    preview.setdefault("start_time", "16:00")
    return await agent.process("confirm_event", {"scope": scope, "preview": preview})


# =============================================================================
# Intent dispatch
# =============================================================================

class TestDispatch:

    def test_supported_intents(self, calendar_agent):
        assert calendar_agent.can_handle("confirm_event")
        assert calendar_agent.can_handle("ingest_email")
        assert not calendar_agent.can_handle("create_task")

    @pytest.mark.asyncio
    async def test_unknown_intent(self, calendar_agent):
        response = await calendar_agent.process("create_task", {"scope": SCOPE})

        assert isinstance(response, AgentResponse)
        assert not response.success
        assert "Unknown intent" in response.message

    @pytest.mark.asyncio
    async def test_scope_is_required(self, calendar_agent):
        response = await calendar_agent.process("get_event", {"event_id": 1})

        assert not response.success
        assert "scope" in response.message


# =============================================================================
# Preview
# =============================================================================

class TestPreview:

    @pytest.mark.asyncio
    async def test_preview_defaults(self, calendar_agent):
        response = await calendar_agent.process(
            "preview_event", {"event": {"start_time": "4pm"}, "now": NOW}
        )

        preview = response.data["preview"]
        assert response.success
        assert preview["title"] == "New Event"
        assert preview["date"] == "2025-03-19"
        assert preview["start_time"] == "16:00"
        assert preview["id"] is None

    @pytest.mark.asyncio
    async def test_preview_keeps_valid_id(self, calendar_agent):
        response = await calendar_agent.process(
            "preview_event", {"event": {"id": "12", "title": "Dentist", "date": "2025-03-21"}, "now": NOW}
        )

        assert response.data["preview"]["id"] == 12
        assert "March 21, 2025" in response.message

    @pytest.mark.asyncio
    async def test_preview_drops_invalid_id(self, calendar_agent):
        response = await calendar_agent.process(
            "preview_event", {"event": {"id": "abc", "title": "Dentist"}, "now": NOW}
        )

        assert response.data["preview"]["id"] is None


# =============================================================================
# Confirm
# =============================================================================

class TestConfirm:

    @pytest.mark.asyncio
    async def test_new_event_is_inserted(self, calendar_agent):
        response = await confirm(calendar_agent, end_time="17:30", location="Studio")

        event = response.data["event"]
        assert response.success
        assert response.data["created"] is True
        assert event["start_time"] == "2025-03-21T16:00:00"
        assert event["end_time"] == "2025-03-21T17:30:00"
        assert event["source"] == "chat"
        assert event["user_id"] == "u1"
        assert event["family_id"] is None
        assert event["location"] == "Studio"

    @pytest.mark.asyncio
    async def test_missing_end_uses_default_duration(self, calendar_agent):
        response = await confirm(calendar_agent)

        assert response.data["event"]["end_time"] == "2025-03-21T17:00:00"

    @pytest.mark.asyncio
    async def test_family_event_ownership(self, calendar_agent):
        response = await confirm(calendar_agent, scope=FAMILY)

        event = response.data["event"]
        assert event["family_id"] == "fam"
        assert event["user_id"] is None

    @pytest.mark.asyncio
    async def test_end_before_start_is_rejected(self, calendar_agent, store):
        response = await confirm(calendar_agent, end_time="15:00")

        assert not response.success
        assert response.errors[0]["field"] == "end_time"
        assert await store.find_by_title(SCOPE, "Dance") == []

    @pytest.mark.asyncio
    async def test_preview_with_field_errors_is_rejected(self, calendar_agent, store):
        errors = [{"field": "start_time", "message": "Could not understand start time '25:99'"}]

        response = await confirm(calendar_agent, start_time=None, field_errors=errors)

        assert not response.success
        assert response.errors == errors
        assert await store.find_by_title(SCOPE, "Dance") == []

    @pytest.mark.asyncio
    async def test_unreadable_start_time_is_rejected(self, calendar_agent, store):
        response = await confirm(calendar_agent, start_time="25:99")

        assert not response.success
        assert response.errors[0]["field"] == "start_time"
        assert await store.find_by_title(SCOPE, "Dance") == []

    @pytest.mark.asyncio
    async def test_preview_object_is_accepted(self, calendar_agent):
        preview = EventPreview(title="Piano", date=datetime(2025, 3, 21).date(), start_time="09:00")

        response = await calendar_agent.process("confirm_event", {"scope": SCOPE, "preview": preview})

        assert response.success
        assert response.data["event"]["title"] == "Piano"

    @pytest.mark.asyncio
    async def test_existing_event_is_updated(self, calendar_agent):
        created = await confirm(calendar_agent)
        event_id = created.data["event"]["id"]

        response = await confirm(calendar_agent, id=event_id, title="Ballet", start_time="17:00")

        event = response.data["event"]
        assert response.success
        assert response.data["created"] is False
        assert event["id"] == event_id
        assert event["title"] == "Ballet"
        assert event["start_time"] == "2025-03-21T17:00:00"
        assert event["source"] == "chat"

    @pytest.mark.asyncio
    async def test_update_of_other_users_event_fails(self, calendar_agent):
        created = await confirm(calendar_agent)
        event_id = created.data["event"]["id"]

        response = await confirm(calendar_agent, scope=OwnerScope("u2"), id=event_id, title="Mine")

        assert not response.success
        assert "not found" in response.message

    @pytest.mark.asyncio
    async def test_free_text_recurrence(self, calendar_agent):
        response = await confirm(calendar_agent, is_recurring=True, recurrence_pattern="every Tuesday")

        assert response.data["event"]["is_recurring"] is True
        assert response.data["event"]["recurrence_pattern"] == {"description": "every Tuesday"}

    @pytest.mark.asyncio
    async def test_json_recurrence(self, calendar_agent):
        response = await confirm(
            calendar_agent, is_recurring=True, recurrence_pattern='{"frequency": "weekly"}'
        )

        assert response.data["event"]["recurrence_pattern"] == {"frequency": "weekly"}

    @pytest.mark.asyncio
    async def test_recurrence_ignored_when_not_recurring(self, calendar_agent):
        response = await confirm(calendar_agent, recurrence_pattern="every Tuesday")

        assert response.data["event"]["recurrence_pattern"] is None


# =============================================================================
# Get / update / delete / search
# =============================================================================

class TestEventManagement:

    @pytest.mark.asyncio
    async def test_get_event(self, calendar_agent):
        created = await confirm(calendar_agent)

        response = await calendar_agent.process(
            "get_event", {"scope": SCOPE, "event_id": created.data["event"]["id"]}
        )

        assert response.success
        assert response.data["event"]["title"] == "Dance"

    @pytest.mark.asyncio
    async def test_get_unknown_event(self, calendar_agent):
        response = await calendar_agent.process("get_event", {"scope": SCOPE, "event_id": 42})

        assert not response.success
        assert "not found" in response.message

    @pytest.mark.asyncio
    async def test_update_start_keeps_duration(self, calendar_agent):
        created = await confirm(calendar_agent, end_time="17:30")
        event_id = created.data["event"]["id"]

        response = await calendar_agent.process(
            "update_event", {"scope": SCOPE, "event_id": event_id, "start_time": "6pm"}
        )

        event = response.data["event"]
        assert event["start_time"] == "2025-03-21T18:00:00"
        assert event["end_time"] == "2025-03-21T19:30:00"

    @pytest.mark.asyncio
    async def test_update_date_keeps_times(self, calendar_agent):
        created = await confirm(calendar_agent)
        event_id = created.data["event"]["id"]

        response = await calendar_agent.process(
            "update_event", {"scope": SCOPE, "event_id": event_id, "date": "2025-03-25"}
        )

        assert response.data["event"]["start_time"] == "2025-03-25T16:00:00"
        assert response.data["event"]["end_time"] == "2025-03-25T17:00:00"

    @pytest.mark.asyncio
    async def test_update_rejects_inverted_range(self, calendar_agent):
        created = await confirm(calendar_agent)
        event_id = created.data["event"]["id"]

        response = await calendar_agent.process(
            "update_event", {"scope": SCOPE, "event_id": event_id, "end_time": "15:00"}
        )

        assert not response.success
        assert response.errors == [{"field": "end_time", "message": response.message}]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["start_time", "end_time"])
    async def test_update_rejects_unreadable_time(self, calendar_agent, field):
        created = await confirm(calendar_agent, start_time="09:00", end_time="10:00")
        event_id = created.data["event"]["id"]

        response = await calendar_agent.process(
            "update_event", {"scope": SCOPE, "event_id": event_id, field: "25:99"}
        )

        assert not response.success
        assert response.errors[0]["field"] == field
        stored = await calendar_agent.process("get_event", {"scope": SCOPE, "event_id": event_id})
        assert stored.data["event"]["start_time"] == "2025-03-21T09:00:00"
        assert stored.data["event"]["end_time"] == "2025-03-21T10:00:00"

    @pytest.mark.asyncio
    async def test_update_text_fields(self, calendar_agent):
        created = await confirm(calendar_agent)
        event_id = created.data["event"]["id"]

        response = await calendar_agent.process(
            "update_event", {"scope": SCOPE, "event_id": event_id, "location": "Gym"}
        )

        assert response.data["event"]["location"] == "Gym"
        assert response.data["event"]["start_time"] == "2025-03-21T16:00:00"

    @pytest.mark.asyncio
    async def test_update_without_fields(self, calendar_agent):
        created = await confirm(calendar_agent)

        response = await calendar_agent.process(
            "update_event", {"scope": SCOPE, "event_id": created.data["event"]["id"]}
        )

        assert not response.success
        assert "No fields" in response.message

    @pytest.mark.asyncio
    async def test_delete_event(self, calendar_agent):
        created = await confirm(calendar_agent)
        event_id = created.data["event"]["id"]

        first = await calendar_agent.process("delete_event", {"scope": SCOPE, "event_id": event_id})
        second = await calendar_agent.process("delete_event", {"scope": SCOPE, "event_id": event_id})

        assert first.success
        assert first.data == {"event_id": event_id, "action": "deleted"}
        assert not second.success

    @pytest.mark.asyncio
    async def test_delete_is_scoped(self, calendar_agent):
        created = await confirm(calendar_agent)

        response = await calendar_agent.process(
            "delete_event", {"scope": OwnerScope("u2"), "event_id": created.data["event"]["id"]}
        )

        assert not response.success

    @pytest.mark.asyncio
    async def test_search_events(self, calendar_agent):
        await confirm(calendar_agent, title="Swim Lessons")
        await confirm(calendar_agent, title="Swim Meet", date="2025-03-22")
        await confirm(calendar_agent, title="Dentist")

        response = await calendar_agent.process("search_events", {"scope": SCOPE, "query": "swim"})

        assert response.data["count"] == 2
        assert [e["title"] for e in response.data["events"]] == ["Swim Meet", "Swim Lessons"]


# =============================================================================
# Email ingestion
# =============================================================================

class TestIngestEmail:

    @pytest.mark.asyncio
    async def test_valid_events_are_saved(self, calendar_agent, extractor, store):
        extractor.extract_batch.return_value = [
            ExtractedEvent(title="Bake Sale", date="2025-03-22", start_time="09:00",
                           end_time="12:00", description="Bring cookies"),
            ExtractedEvent(title="Broken", date="2025-03-22", start_time="10:00", end_time="09:00"),
        ]

        response = await calendar_agent.process(
            "ingest_email", {"scope": SCOPE, "email_text": "From: pta\n\n...", "now": NOW}
        )

        assert response.success
        assert response.data["events_created"] == 1
        assert response.data["skipped"][0]["title"] == "Broken"
        saved = response.data["events"][0]
        assert saved["source"] == "email"
        assert saved["description"] == "Bring cookies"
        assert saved["end_time"] == "2025-03-22T12:00:00"
        extractor.extract_batch.assert_awaited_once_with("From: pta\n\n...", now=NOW)

    @pytest.mark.asyncio
    async def test_no_events(self, calendar_agent):
        response = await calendar_agent.process(
            "ingest_email", {"scope": SCOPE, "email_text": "Hi!", "now": NOW}
        )

        assert response.success
        assert response.data["events_created"] == 0

    @pytest.mark.asyncio
    async def test_requires_extractor(self, store, mock_config):
        agent = CalendarAgent(store, mock_config)

        response = await agent.process("ingest_email", {"scope": SCOPE, "email_text": "Hi"})

        assert not response.success
