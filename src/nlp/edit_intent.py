"""
Edit-Intent Detector

Pure text -> candidate-title extraction for requests that refer to an
existing event ("edit Maya's soccer practice", "can you update my dentist
appointment", "reschedule soccer practice to Friday 5pm").

Detection is driven by ordered rule tables. Each rule pairs a pattern with
the shape used to turn its captures into a title, and the first matching
rule wins. Reschedule/postpone/move phrasing is checked in a second,
independent pass. Nothing here touches storage; turning a candidate title
into an event id is the job of the TitleMatcher.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Pattern

EDIT_VERBS = r"(?:edit|modify|update|change)"

# Title-extraction shapes
SHAPE_TRAILING = "trailing"        # group(1) is the title
SHAPE_POSSESSIVE = "possessive"    # group(1) owner + group(2) remainder


@dataclass(frozen=True)
class EditRule:
    """One linguistic template of the detector."""
    name: str
    pattern: Pattern
    shape: str = SHAPE_TRAILING


@dataclass(frozen=True)
class EditDetection:
    """
    Result of detect().

    Attributes:
        candidate_title: Unverified title fragment, or None
        is_edit_intent: Whether the message asks to change an existing event
        rule: Name of the rule that matched, for logging and tests
    """
    candidate_title: Optional[str]
    is_edit_intent: bool
    rule: Optional[str] = None


def _rule(name: str, pattern: str, shape: str = SHAPE_TRAILING) -> EditRule:
    return EditRule(name, re.compile(pattern, re.IGNORECASE), shape)


# Order matters: first match wins.
EDIT_RULES: List[EditRule] = [
    # "edit Maya's soccer practice"
    _rule("possessive",
          rf"\b{EDIT_VERBS}\s+(?:my\s+|the\s+|our\s+)?([a-z][a-z']*?)'s\s+(.+)",
          SHAPE_POSSESSIVE),
    # "update the time of the dentist appointment"
    _rule("field_of",
          rf"\b{EDIT_VERBS}\s+the\s+(?:start\s+time|end\s+time|time|date|location|place|details)"
          rf"\s+(?:of|for)\s+(.+)"),
    # "edit the soccer practice", "please change dentist appointment"
    _rule("direct",
          rf"^\s*(?:(?:hey|ok|okay|please)[,!]?\s+)*{EDIT_VERBS}\s+(.+)"),
    # "open editor for book club"
    _rule("open_editor",
          r"\bopen\s+(?:the\s+)?(?:event\s+)?editor\s+(?:for|on)\s+(.+)"),
    # "make changes to the school play"
    _rule("make_changes",
          r"\bmake\s+(?:some\s+|a\s+few\s+)?changes?\s+to\s+(.+)"),
    # "let me edit piano lessons"
    _rule("let_me_edit",
          rf"\blet\s+me\s+{EDIT_VERBS}\s+(.+)"),
    # "I need to update the vet visit", "I want to change swim class"
    _rule("indirect_need",
          rf"\b(?:need|want|would\s+like|'d\s+like|have)\s+to\s+{EDIT_VERBS}\s+(.+)"),
    # "can you change my dentist appointment", "can we update the vet visit"
    _rule("indirect_request",
          rf"\b(?:can|could|would|will)\s+(?:you|i|we)\s+(?:please\s+)?{EDIT_VERBS}\s+(.+)"),
]

RESCHEDULE_RULES: List[EditRule] = [
    # "reschedule soccer practice to Friday 5pm", "postpone my dentist appointment"
    _rule("reschedule",
          r"\b(?:reschedule|postpone|push\s+back|move)\s+(?:my\s+|the\s+|our\s+)?(.+)"),
]

# Looser pattern kept for title extraction only: "change the kids swim lessons"
LEGACY_TITLE_PATTERN = re.compile(
    r"(?:update|change|move|reschedule|edit)(?:\s+the)?\s+([a-z']+(?:'s|s))\s+([a-z\s]+)",
    re.IGNORECASE
)

# A title ends where a date, time or destination clause starts
TRAILING_CLAUSE = re.compile(
    r"\s+(?:to|on|at|from|until|till|by|tomorrow|today|tonight|next|this|"
    r"instead|so\s+that|because)\b.*$",
    re.IGNORECASE
)
LEADING_FILLER = re.compile(r"^(?:my|the|our|a|an|this|that)\s+", re.IGNORECASE)
TRAILING_FILLER = re.compile(r"\s+(?:event|please|for\s+me|for|with)$", re.IGNORECASE)

# References that only the conversation can resolve
PRONOUNS = frozenset({"it", "that", "this", "them", "those", "these", "one", "they"})


def normalize_title(fragment: Optional[str]) -> Optional[str]:
    """
    Reduce a captured fragment to a bare event title.

    "my dentist appointment?" -> "dentist appointment"
    "soccer practice to Friday 5pm" -> "soccer practice"
    "it to Friday" -> None
    """
    if not fragment:
        return None

    text = re.sub(r"\s+", " ", fragment).strip()
    text = TRAILING_CLAUSE.sub("", text)
    text = text.strip(" \t?!.,;:\"")

    previous = None
    while previous != text:
        previous = text
        text = LEADING_FILLER.sub("", text)
        text = TRAILING_FILLER.sub("", text)
        text = text.strip(" \t?!.,;:\"")

    if text.lower() == "event" or text.lower() in PRONOUNS:
        return None
    return text or None


def _apply_rule(rule: EditRule, message: str) -> Optional[EditDetection]:
    match = rule.pattern.search(message)
    if not match:
        return None

    if rule.shape == SHAPE_POSSESSIVE:
        owner = match.group(1).strip("'")
        remainder = normalize_title(match.group(2))
        title = f"{owner} {remainder}" if remainder else None
    else:
        title = normalize_title(match.group(1))

    return EditDetection(candidate_title=title, is_edit_intent=True, rule=rule.name)


def _normalize_message(message: str) -> str:
    return message.replace("’", "'").replace("‘", "'").strip()


def detect(message: Optional[str]) -> EditDetection:
    """
    Detect whether a message refers to an existing event and extract its title.

    Args:
        message: Raw user text

    Returns:
        EditDetection with the candidate title of the first matching rule
    """
    if not message or not message.strip():
        return EditDetection(candidate_title=None, is_edit_intent=False)

    text = _normalize_message(message)

    for rules in (EDIT_RULES, RESCHEDULE_RULES):
        for rule in rules:
            detection = _apply_rule(rule, text)
            if detection is not None:
                return detection

    return EditDetection(candidate_title=None, is_edit_intent=False)


def extract_event_title(message: Optional[str]) -> Optional[str]:
    """
    Extract a candidate event title from a message, without classifying intent.

    Uses the detector rules first and then a looser legacy pattern.
    """
    detection = detect(message)
    if detection.candidate_title:
        return detection.candidate_title

    if not message:
        return None

    match = LEGACY_TITLE_PATTERN.search(_normalize_message(message))
    if not match:
        return None

    owner = re.sub(r"'s$", "", match.group(1), flags=re.IGNORECASE)
    remainder = normalize_title(match.group(2))
    title = f"{owner} {remainder}" if remainder else owner
    return normalize_title(title)
