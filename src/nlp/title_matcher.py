"""
Title Matcher

Resolves a free-text candidate title to a stored event of the current
owner scope. Lookup stages run strictly one after another and the first
stage that returns a row wins:

1. case-insensitive exact title match
2. case-insensitive substring match
3. per-word substring match (words of 2 characters or fewer are skipped)

Within a stage the event with the latest start_time wins.
"""

import logging
from typing import List, Optional

from ..core.models import CalendarEvent, OwnerScope

logger = logging.getLogger(__name__)


class TitleMatcher:
    """
    Fuzzy title lookup over an EventStore.

    Args:
        store: EventStore (or any object with an async find_by_title)
        min_length: Titles shorter than this after trimming are ignored
        search_limit: Default number of candidates for search_events()
    """

    MIN_WORD_LENGTH = 3

    def __init__(self, store, min_length: int = 2, search_limit: int = 5):
        self.store = store
        self.min_length = min_length
        self.search_limit = search_limit

    async def find_event_id(self, search_title: Optional[str],
                            scope: OwnerScope) -> Optional[int]:
        """
        Return the id of the best matching event, or None.

        No query is issued for titles shorter than ``min_length``.
        """
        event = await self.find_event(search_title, scope)
        return event.id if event else None

    async def find_event(self, search_title: Optional[str],
                         scope: OwnerScope) -> Optional[CalendarEvent]:
        title = (search_title or "").strip()
        if len(title) < self.min_length:
            return None

        matches = await self.store.find_by_title(scope, title, exact=True, limit=1)
        if matches:
            logger.debug(f"Exact title match for '{title}': {matches[0].id}")
            return matches[0]

        matches = await self.store.find_by_title(scope, title, exact=False, limit=1)
        if matches:
            logger.debug(f"Substring title match for '{title}': {matches[0].id}")
            return matches[0]

        for word in self._significant_words(title):
            matches = await self.store.find_by_title(scope, word, exact=False, limit=1)
            if matches:
                logger.debug(f"Word match '{word}' for '{title}': {matches[0].id}")
                return matches[0]

        logger.debug(f"No event matches '{title}'")
        return None

    async def search_events(self, search_term: Optional[str], scope: OwnerScope,
                            limit: Optional[int] = None) -> List[CalendarEvent]:
        """Substring matches for the disambiguation list, newest first."""
        term = (search_term or "").strip()
        if len(term) < self.min_length:
            return []
        return await self.store.find_by_title(
            scope, term, exact=False, limit=limit or self.search_limit
        )

    def _significant_words(self, title: str) -> List[str]:
        return [word for word in title.split() if len(word) >= self.MIN_WORD_LENGTH]
