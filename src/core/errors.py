"""
Error types for the Family Calendar Assistant.

The resolver pipeline distinguishes between failures it recovers from
locally (parse failures, validation problems) and failures that belong to
the caller (missing identity, upstream outages).
"""

from typing import Optional


class CalendarAssistantError(Exception):
    """Base class for all assistant errors."""


class ExtractionParseError(CalendarAssistantError):
    """The completion service returned text that could not be parsed as a JSON object."""

    def __init__(self, message: str, raw_text: Optional[str] = None):
        super().__init__(message)
        self.raw_text = raw_text


class EventValidationError(CalendarAssistantError):
    """
    An extracted or submitted event failed validation.

    Attributes:
        field: Name of the offending field (e.g. "end_time")
    """

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message

    def to_dict(self):
        return {"field": self.field, "message": self.message}


class AuthenticationRequired(CalendarAssistantError):
    """Raised when an operation is invoked without a resolved actor identity."""


class UpstreamUnavailable(CalendarAssistantError):
    """
    A network or service failure from the completion service or persistence.

    Never retried by the core; retry policy belongs to the caller.
    """

    def __init__(self, service: str, message: str):
        super().__init__(f"{service} unavailable: {message}")
        self.service = service
