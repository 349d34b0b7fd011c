"""
Conversation log persistence.

Messages are appended per conversation; the resolver only ever sees the
most recent window of them as a ConversationContext.
"""

import asyncio
import logging
import uuid
from typing import Optional

from .database import OPERATIONAL_ERRORS
from .errors import UpstreamUnavailable
from .models import ConversationContext, RawMessage

logger = logging.getLogger(__name__)


class ConversationStore:
    """Append-only message log in ``conversation_messages``."""

    def __init__(self, db, window: int = 10):
        self.db = db
        self.window = window

    @staticmethod
    def new_conversation_id() -> str:
        return uuid.uuid4().hex

    async def append(self, conversation_id: str, user_id: str, message: RawMessage) -> int:
        query = """
            INSERT INTO conversation_messages (conversation_id, user_id, role, content, created_at)
            VALUES (?, ?, ?, ?, ?)
        """
        params = (
            conversation_id,
            user_id,
            message.role.value,
            message.text,
            message.timestamp.isoformat(),
        )
        try:
            return await asyncio.to_thread(self.db.execute_write, query, params)
        except OPERATIONAL_ERRORS as e:
            raise UpstreamUnavailable("database", str(e)) from e

    async def latest_conversation_id(self, user_id: str) -> Optional[str]:
        query = """
            SELECT conversation_id FROM conversation_messages
            WHERE user_id = ?
            ORDER BY id DESC
            LIMIT 1
        """
        try:
            row = await asyncio.to_thread(self.db.execute_one, query, (user_id,))
        except OPERATIONAL_ERRORS as e:
            raise UpstreamUnavailable("database", str(e)) from e
        return row["conversation_id"] if row else None

    async def load_context(self, conversation_id: str, user_id: str) -> ConversationContext:
        """Return the last ``window`` messages of a conversation, oldest first."""
        query = """
            SELECT role, content, created_at FROM conversation_messages
            WHERE conversation_id = ? AND user_id = ?
            ORDER BY id DESC
            LIMIT ?
        """
        try:
            rows = await asyncio.to_thread(
                self.db.execute, query, (conversation_id, user_id, self.window)
            )
        except OPERATIONAL_ERRORS as e:
            raise UpstreamUnavailable("database", str(e)) from e

        messages = [RawMessage.from_dict(row) for row in reversed(rows)]
        logger.debug(f"Loaded {len(messages)} messages for conversation {conversation_id}")
        return ConversationContext(tuple(messages), max_messages=self.window)
