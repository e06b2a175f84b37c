"""
LingoTutor - Support Policy
Decides whether feedback carries bilingual support/explanation text.
The support level itself (0..1, high/medium/low) is a host setting.
"""

from enum import Enum
from typing import Optional

from lingotutor.config import DEFAULT_SUPPORT_LEVEL, MAX_ATTEMPTS


class SupportEvent(str, Enum):
    SESSION_START = "SESSION_START"
    INTRO_NEW_CONCEPT = "INTRO_NEW_CONCEPT"
    CORRECT_FEEDBACK = "CORRECT_FEEDBACK"
    ALMOST_FEEDBACK = "ALMOST_FEEDBACK"
    WRONG_FEEDBACK = "WRONG_FEEDBACK"
    HINT_AUTO = "HINT_AUTO"
    HINT_REQUESTED = "HINT_REQUESTED"
    FORCED_ADVANCE = "FORCED_ADVANCE"
    USER_CONFUSED = "USER_CONFUSED"
    USER_REQUESTED_EXPLAIN = "USER_REQUESTED_EXPLAIN"
    SESSION_SUMMARY = "SESSION_SUMMARY"


HIGH = 0.75
MEDIUM = 0.4

MEDIUM_EVENTS = frozenset({
    SupportEvent.INTRO_NEW_CONCEPT,
    SupportEvent.ALMOST_FEEDBACK,
    SupportEvent.WRONG_FEEDBACK,
    SupportEvent.HINT_AUTO,
    SupportEvent.HINT_REQUESTED,
    SupportEvent.FORCED_ADVANCE,
    SupportEvent.USER_CONFUSED,
    SupportEvent.SESSION_SUMMARY,
})


def clamp_support_level(value) -> float:
    try:
        n = float(value)
    except (TypeError, ValueError):
        return DEFAULT_SUPPORT_LEVEL
    if n != n or n in (float("inf"), float("-inf")):
        return DEFAULT_SUPPORT_LEVEL
    return max(0.0, min(1.0, n))


def support_char_limit(level) -> int:
    s = clamp_support_level(level)
    if s >= HIGH:
        return 280
    if s >= MEDIUM:
        return 200
    return 120


def should_include_support(
    event_type: SupportEvent,
    support_level,
    question_index: int = 0,
    repeated_confusion: bool = False,
    explicit_request: bool = False,
    force_no_support: bool = False,
) -> bool:
    if force_no_support:
        return False
    if explicit_request or event_type == SupportEvent.USER_REQUESTED_EXPLAIN:
        return True

    level = clamp_support_level(support_level)
    if level >= HIGH:
        if event_type == SupportEvent.CORRECT_FEEDBACK:
            return question_index % 2 == 0
        return True

    if level >= MEDIUM:
        if event_type == SupportEvent.CORRECT_FEEDBACK:
            return False
        if event_type == SupportEvent.SESSION_START:
            return question_index == 0
        return event_type in MEDIUM_EVENTS

    if repeated_confusion:
        return True
    return event_type in (SupportEvent.USER_CONFUSED, SupportEvent.FORCED_ADVANCE)


def resolve_include_support(
    attempt_count: int,
    support_level,
    recent_confusion: bool,
    include_support_override: Optional[bool] = None,
) -> bool:
    """
    Support decision for a hint/forced-advance turn.

    include_support_override, when a bool, replaces the computed decision.
    It carries no other meaning.
    """
    level = clamp_support_level(support_level)
    hint_event = attempt_count >= 2
    forced_advance = attempt_count >= MAX_ATTEMPTS

    if level >= MEDIUM:
        include = hint_event or forced_advance
    else:
        include = forced_advance or (hint_event and recent_confusion)

    if isinstance(include_support_override, bool):
        include = include_support_override
    return include
