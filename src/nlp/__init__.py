"""
Natural-language helpers for the calendar assistant

- datetime_normalizer: date/time fragments -> datetimes
- edit_intent: edit/reschedule phrasing -> candidate event title
- title_matcher: candidate title -> stored event id
"""

from .datetime_normalizer import DateTimeNormalizer, parse_time, format_date, format_time
from .edit_intent import EditDetection, detect, extract_event_title
from .title_matcher import TitleMatcher

__all__ = [
    'DateTimeNormalizer',
    'parse_time',
    'format_date',
    'format_time',
    'EditDetection',
    'detect',
    'extract_event_title',
    'TitleMatcher',
]
