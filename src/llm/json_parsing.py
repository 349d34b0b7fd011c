"""
Two-stage JSON object parsing for completion-service output.

Stage 1 is a strict json.loads of the whole text. Stage 2 scavenges the
text for embedded objects (code fences, prose around the payload). The
scan only looks at the first ``max_chars`` characters and the first
well-formed object wins.
"""

import json
import logging
import re
from typing import Any, Dict, Iterator, Optional

from ..core.errors import ExtractionParseError

logger = logging.getLogger(__name__)

DEFAULT_MAX_SCAN_CHARS = 20000
MAX_DECODE_ATTEMPTS = 50

# Objects nested up to three levels deep, e.g. {"event": {"recurrence_pattern": {...}}}
JSON_OBJECT_PATTERN = re.compile(r'\{(?:[^{}]|\{(?:[^{}]|\{[^{}]*\})*\})*\}')
CODE_FENCE_PATTERN = re.compile(r'```(?:json)?\s*(.*?)```', re.IGNORECASE | re.DOTALL)


def parse_json_object(text: Optional[str],
                      max_chars: int = DEFAULT_MAX_SCAN_CHARS) -> Dict[str, Any]:
    """
    Parse a JSON object out of completion text.

    Args:
        text: Raw completion content
        max_chars: Upper bound on the text scanned in the fallback stage

    Returns:
        The parsed object

    Raises:
        ExtractionParseError: if neither stage yields a JSON object
    """
    if text is None or not text.strip():
        raise ExtractionParseError("Empty completion content", raw_text=text)

    strict = _try_json_object(text.strip())
    if strict is not None:
        return strict

    logger.warning("Completion content is not strict JSON, scanning for an embedded object")
    scanned = scan_first_json_object(text[:max_chars])
    if scanned is not None:
        return scanned

    raise ExtractionParseError("No JSON object found in completion content", raw_text=text)


def scan_first_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Return the first candidate that parses to a JSON object, or None."""
    for candidate in _candidates(text):
        parsed = _try_json_object(candidate)
        if parsed is not None:
            return parsed
    return _raw_decode_scan(text)


def _candidates(text: str) -> Iterator[str]:
    for match in CODE_FENCE_PATTERN.finditer(text):
        yield match.group(1).strip()
    for match in JSON_OBJECT_PATTERN.finditer(text):
        yield match.group(0)


def _raw_decode_scan(text: str) -> Optional[Dict[str, Any]]:
    """Objects nested deeper than the pattern allows."""
    decoder = json.JSONDecoder()
    attempts = 0
    for index, char in enumerate(text):
        if char != "{":
            continue
        attempts += 1
        if attempts > MAX_DECODE_ATTEMPTS:
            break
        try:
            value, _ = decoder.raw_decode(text[index:])
        except json.JSONDecodeError:
            continue
        if isinstance(value, dict):
            return value
    return None


def _try_json_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        value: Any = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None
    return value if isinstance(value, dict) else None
