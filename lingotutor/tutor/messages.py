"""
LingoTutor - Static Tutor Messages
Deterministic texts. Used as-is when text generation is off, and as the
fallback whenever it fails.
"""

from typing import Optional

from lingotutor.tutor.answer_evaluator import ReasonCode


def end_lesson_message() -> str:
    return "Great job! You've completed this session."


def forced_advance_message() -> str:
    return "That one was tricky - here's the correct answer, then we'll continue."


def retry_message(reason_code: Optional[ReasonCode], attempt_count: int, repeated_same_wrong: bool) -> str:
    # Same wrong answer again: change strategy
    if repeated_same_wrong:
        if attempt_count <= 2:
            return "You gave the same answer again - try changing one part of it."
        if attempt_count == 3:
            return "Same answer again - use the hint and adjust your wording."
        return "Let's move on - this one needs a different review."

    late = attempt_count >= 3
    if reason_code == ReasonCode.TYPO:
        return "Close - check spelling carefully." if late else "Close - check spelling."
    if reason_code == ReasonCode.ARTICLE:
        return "Almost - watch the article and noun." if late else "Watch the article."
    if reason_code == ReasonCode.WORD_ORDER:
        return "Almost - check word order and structure." if late else "Check word order."
    if reason_code == ReasonCode.WRONG_LANGUAGE:
        return "Answer in the selected language."
    if reason_code == ReasonCode.MISSING_SLOT:
        return "Almost - something is missing." if late else "Add the missing part."
    return "Not quite - try again using the expected structure." if late else "Not quite - try again."


def hint_lead_in(attempt_count: int) -> str:
    if attempt_count <= 2:
        return "Here's a small hint to help you."
    if attempt_count == 3:
        return "This hint should make it clearer."
    return "Here's the answer."


def review_hint(reason_code: Optional[ReasonCode], attempt_count: int) -> Optional[str]:
    """Hint for review practice; nothing on the first attempt."""
    if attempt_count < 2:
        return None
    hints = {
        ReasonCode.ARTICLE: "Check the article.",
        ReasonCode.WORD_ORDER: "Check word order.",
        ReasonCode.WRONG_LANGUAGE: "Answer in the target language.",
        ReasonCode.TYPO: "Check spelling or small typos.",
        ReasonCode.MISSING_SLOT: "Something is missing - add the missing word.",
        ReasonCode.OTHER: "Try a simple, natural response.",
    }
    return hints.get(reason_code, "Try again with a simple, natural response.")


def review_correct_message() -> str:
    return "Nice work. Let's keep going."
