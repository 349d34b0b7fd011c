"""
Completion-service integration

- extraction: EventExtractor (chat and email extraction over OpenAI)
- json_parsing: strict-then-scavenging JSON object parsing
"""

from .extraction import EventExtractor, ExtractionResult, format_email
from .json_parsing import parse_json_object

__all__ = ['EventExtractor', 'ExtractionResult', 'format_email', 'parse_json_object']
