"""
Date/Time Normalizer

Turns the loose date and time fragments produced by the extraction step
("2025-03-21", "tomorrow", "next friday", "4pm", "16:30") into absolute
datetimes.

A date that cannot be understood never fails the request. It resolves to
the configured default-date policy ("tomorrow" unless configured
otherwise) and a warning is logged, since the preview lets the user
correct it before anything is saved. A malformed time degrades to a
date-only value.
"""

import logging
import re
from datetime import date, datetime, time as dt_time, timedelta
from typing import Optional, Tuple

import dateparser

from ..core.errors import EventValidationError

logger = logging.getLogger(__name__)

ISO_DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')
ISO_DATETIME_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}[T ]\d{1,2}:\d{2}')

# H[:MM[:SS]] [AM|PM], also accepts "a.m."/"p.m." and 24-hour "16:00"
TIME_PATTERN = re.compile(
    r'^(\d{1,2})(?::(\d{2}))?(?::(\d{2}))?\s*([ap])?\.?\s*(?:m\.?)?$',
    re.IGNORECASE
)

TIME_KEYWORDS = {
    "noon": (12, 0),
    "midday": (12, 0),
    "midnight": (0, 0),
}


def parse_time(fragment: Optional[str]) -> Optional[Tuple[int, int]]:
    """
    Parse a time fragment into a 24-hour (hour, minute) tuple.

    PM with hour < 12 adds 12, AM with hour == 12 maps to 0, missing
    minutes default to 0. Returns None for anything malformed.

    >>> parse_time("2:30pm")
    (14, 30)
    >>> parse_time("12:00am")
    (0, 0)
    """
    if not fragment:
        return None

    text = fragment.strip().lower()
    if text in TIME_KEYWORDS:
        return TIME_KEYWORDS[text]

    match = TIME_PATTERN.match(text)
    if not match:
        return None

    hour = int(match.group(1))
    minute = int(match.group(2)) if match.group(2) else 0
    meridiem = match.group(4)

    if minute > 59:
        return None

    if meridiem:
        if hour < 1 or hour > 12:
            return None
        if meridiem == "p" and hour != 12:
            hour += 12
        elif meridiem == "a" and hour == 12:
            hour = 0
    elif hour > 23:
        return None

    return (hour, minute)


def format_time(value: Optional[dt_time]) -> Optional[str]:
    """24-hour HH:MM representation used in previews and storage"""
    if value is None:
        return None
    return f"{value.hour:02d}:{value.minute:02d}"


def format_date(value: date) -> str:
    """Human-readable date, e.g. "March 21, 2025"."""
    return f"{value:%B} {value.day}, {value.year}"


class DateTimeNormalizer:
    """
    Resolves date and time fragments relative to a base date.

    Args:
        default_date_policy: Phrase used when a date cannot be parsed
            ("tomorrow", "today", or any phrase the parser understands)
    """

    def __init__(self, default_date_policy: str = "tomorrow"):
        self.default_date_policy = default_date_policy or "tomorrow"

    def normalize(self, date_fragment: Optional[str], time_fragment: Optional[str] = None,
                  base_date: Optional[datetime] = None) -> datetime:
        """
        Combine a date fragment and an optional time fragment into a datetime.

        Args:
            date_fragment: ISO date, "today"/"tomorrow", or a natural phrase
            time_fragment: "H[:MM] [AM|PM]" or 24-hour "HH:MM"
            base_date: Reference "now"; defaults to the current local time

        Returns:
            Naive datetime. Midnight when no usable time was given.
        """
        base = base_date or datetime.now()
        resolved_date, embedded_time = self._resolve_date(date_fragment, base)

        parsed = parse_time(time_fragment) if time_fragment else None
        if time_fragment and parsed is None:
            logger.info(f"Ignoring malformed time '{time_fragment}', using date only")

        if parsed is None and embedded_time is not None:
            parsed = (embedded_time.hour, embedded_time.minute)

        if parsed is None:
            return datetime.combine(resolved_date, dt_time(0, 0))
        return datetime.combine(resolved_date, dt_time(parsed[0], parsed[1]))

    def resolve_date(self, date_fragment: Optional[str],
                     base_date: Optional[datetime] = None) -> date:
        """Date part only, with the same fallback policy as normalize()."""
        resolved, _ = self._resolve_date(date_fragment, base_date or datetime.now())
        return resolved

    def has_valid_time(self, time_fragment: Optional[str]) -> bool:
        return parse_time(time_fragment) is not None

    def check_time_range(self, start: datetime, end: Optional[datetime]) -> None:
        """
        Raise EventValidationError when end is not after start.

        The values are never adjusted; the caller decides whether to skip
        the event or flag the field for correction.
        """
        if end is not None and end <= start:
            raise EventValidationError(
                "end_time",
                f"End time {format_time(end.time())} must be after start time "
                f"{format_time(start.time())}"
            )

    # =========================================================================
    # Internals
    # =========================================================================

    def _resolve_date(self, fragment: Optional[str],
                      base: datetime) -> Tuple[date, Optional[dt_time]]:
        parsed = self._parse_date_fragment(fragment, base)
        if parsed is not None:
            return parsed

        fallback = self._parse_date_fragment(self.default_date_policy, base)
        if fallback is None:
            fallback = ((base + timedelta(days=1)).date(), None)
        logger.warning(
            f"Could not parse date '{fragment}', defaulting to "
            f"{self.default_date_policy} ({fallback[0].isoformat()})"
        )
        return fallback[0], None

    def _parse_date_fragment(self, fragment: Optional[str],
                             base: datetime) -> Optional[Tuple[date, Optional[dt_time]]]:
        if not fragment or not fragment.strip():
            return None

        text = fragment.strip()
        lowered = text.lower()

        if ISO_DATE_PATTERN.match(text):
            try:
                return date.fromisoformat(text), None
            except ValueError:
                return None

        if ISO_DATETIME_PATTERN.match(text):
            try:
                parsed = datetime.fromisoformat(text.replace('Z', '+00:00'))
                return parsed.date(), parsed.time()
            except ValueError:
                pass

        if lowered == "today":
            return base.date(), None
        if lowered == "tomorrow":
            return (base + timedelta(days=1)).date(), None

        parsed = dateparser.parse(
            text,
            settings={
                'RELATIVE_BASE': base.replace(tzinfo=None),
                'PREFER_DATES_FROM': 'future',
                'RETURN_AS_TIMEZONE_AWARE': False,
            }
        )
        if parsed:
            return parsed.date(), None
        return None
