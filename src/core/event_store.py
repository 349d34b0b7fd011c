"""
Owner-scoped access to the events table.

Every query is filtered by an explicit OwnerScope. The underlying
Database calls are blocking DB-API calls, so each one runs in a worker
thread and is awaited by the caller.
"""

import asyncio
import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from .database import OPERATIONAL_ERRORS
from .errors import UpstreamUnavailable
from .models import CalendarEvent, OwnerScope

logger = logging.getLogger(__name__)

# Columns a caller may write through insert_event / update_event
WRITABLE_COLUMNS = (
    "user_id", "family_id", "title", "description", "location",
    "start_time", "end_time", "is_recurring", "recurrence_pattern",
    "source", "updated_at",
)


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so the term is matched literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class EventStore:
    """Async, owner-scoped CRUD and title queries over ``events``."""

    def __init__(self, db):
        self.db = db

    async def _run(self, func, *args):
        try:
            return await asyncio.to_thread(func, *args)
        except OPERATIONAL_ERRORS as e:
            logger.error(f"Database unavailable: {e}", exc_info=True)
            raise UpstreamUnavailable("database", str(e)) from e

    # =========================================================================
    # Queries
    # =========================================================================

    async def find_by_title(self, scope: OwnerScope, title: str, exact: bool = True,
                            limit: int = 1) -> List[CalendarEvent]:
        """
        Case-insensitive title lookup, most recent start_time first.

        Args:
            scope: Owner filter
            title: Title (exact) or fragment (contains) to look for
            exact: Equality match when True, substring match otherwise
            limit: Maximum number of rows
        """
        column, owner = scope.owner_filter()
        if exact:
            condition = "lower(title) = lower(?)"
            term = title
        else:
            condition = "lower(title) LIKE lower(?) ESCAPE '\\'"
            term = f"%{escape_like(title)}%"

        query = f"""
            SELECT * FROM events
            WHERE {column} = ? AND {condition}
            ORDER BY start_time DESC
            LIMIT ?
        """
        rows = await self._run(self.db.execute, query, (owner, term, limit))
        return [CalendarEvent.from_dict(row) for row in rows]

    async def get_event(self, event_id: int, scope: OwnerScope) -> Optional[CalendarEvent]:
        column, owner = scope.owner_filter()
        query = f"SELECT * FROM events WHERE id = ? AND {column} = ?"
        row = await self._run(self.db.execute_one, query, (event_id, owner))
        return CalendarEvent.from_dict(row) if row else None

    async def list_upcoming(self, scope: OwnerScope, start: datetime,
                            limit: int = 50) -> List[CalendarEvent]:
        column, owner = scope.owner_filter()
        query = f"""
            SELECT * FROM events
            WHERE {column} = ? AND end_time >= ?
            ORDER BY start_time ASC
            LIMIT ?
        """
        rows = await self._run(self.db.execute, query, (owner, start.isoformat(), limit))
        return [CalendarEvent.from_dict(row) for row in rows]

    # =========================================================================
    # Writes
    # =========================================================================

    async def insert_event(self, fields: Dict[str, Any]) -> int:
        """Insert a new event and return its ID."""
        values = self._prepare_fields(fields)
        if not values.get("user_id") and not values.get("family_id"):
            raise ValueError("An event must be owned by a user or a family")

        columns = ", ".join(values.keys())
        placeholders = ", ".join("?" for _ in values)
        query = f"INSERT INTO events ({columns}) VALUES ({placeholders})"
        return await self._run(self.db.execute_write, query, tuple(values.values()))

    async def update_event(self, event_id: int, scope: OwnerScope,
                           fields: Dict[str, Any]) -> bool:
        """Update specified event fields. Returns False when nothing matched."""
        values = self._prepare_fields(fields)
        if not values:
            return False

        column, owner = scope.owner_filter()
        set_clause = ", ".join(f"{key} = ?" for key in values.keys())
        query = f"UPDATE events SET {set_clause} WHERE id = ? AND {column} = ?"
        params = tuple(values.values()) + (event_id, owner)
        result = await self._run(self.db.execute_write, query, params)
        return result > 0

    async def delete_event(self, event_id: int, scope: OwnerScope) -> bool:
        column, owner = scope.owner_filter()
        query = f"DELETE FROM events WHERE id = ? AND {column} = ?"
        result = await self._run(self.db.execute_write, query, (event_id, owner))
        return result > 0

    def _prepare_fields(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        values = {}
        for key, value in fields.items():
            if key not in WRITABLE_COLUMNS:
                continue
            if isinstance(value, datetime):
                value = value.isoformat()
            elif key == "recurrence_pattern" and isinstance(value, dict):
                value = json.dumps(value)
            values[key] = value
        return values
