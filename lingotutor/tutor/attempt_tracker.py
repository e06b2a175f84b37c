"""
LingoTutor - Lesson Progression State Machine
THE BRAIN of a lesson. Every transition is deterministic.

States:
    USER_INPUT  → retry the current question
    ADVANCE     → moved to the next question
    COMPLETE    → lesson finished (terminal)

Per question:
    correct                      → reset attempts, next question (or COMPLETE)
    almost/wrong, attempts < max → stay on USER_INPUT, hint by attempt number
                                   (1: none, 2: hint 1, 3: hint 2)
    almost/wrong, attempts ≥ max → forced advance, mark_needs_review, reveal hint
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from lingotutor.content.lesson_loader import Lesson, Question
from lingotutor.state.session import LessonSessionState, LessonState
from lingotutor.tutor.answer_evaluator import AnswerEvaluation, EvalResult, evaluate_answer
from lingotutor.tutor.normalizer import normalize

logger = logging.getLogger(__name__)

SESSION_OUT_OF_SYNC = "SESSION_OUT_OF_SYNC"
DEFAULT_EXPLANATION = "this is the expected structure for this question."


@dataclass(frozen=True)
class Hint:
    level: int  # 1-2 hints, 3 reveal
    text: str

    def to_dict(self) -> dict:
        return {"level": self.level, "text": self.text}


@dataclass
class AdvanceOutcome:
    """What the host needs after one submission."""
    next_state: LessonState
    question_index: int
    attempt_count: int = 0
    hint: Optional[Hint] = None
    mark_needs_review: bool = False
    repeated_same_wrong: bool = False
    evaluation: Optional[AnswerEvaluation] = None
    question_id: Optional[str] = None
    restart_required: bool = False
    error_code: Optional[str] = None

    @property
    def forced_advance(self) -> bool:
        return self.mark_needs_review


# ─── Hints ───────────────────────────────────────────────────────────────────

def reveal_text(question: Question) -> str:
    explanation = question.explanation or DEFAULT_EXPLANATION
    return f"Answer: {question.answer}. Explanation: {explanation}"


def choose_hint(question: Question, attempt_count: int, max_attempts: int = 4) -> Optional[Hint]:
    """
    Pick the hint for this attempt number.

    Hints come from question.hints (least → most revealing), falling back to
    the legacy single question.hint. Missing text means no hint.
    """
    if attempt_count <= 1:
        return None

    if attempt_count >= max_attempts:
        return Hint(3, reveal_text(question))

    hints = question.hints
    legacy = question.hint
    if attempt_count == 2:
        text = (hints[0] if hints else legacy).strip()
        return Hint(1, text) if text else None

    text = (hints[1] if len(hints) > 1 else hints[0] if hints else legacy).strip()
    return Hint(2, text) if text else None


# ─── Transitions ─────────────────────────────────────────────────────────────

def _move_forward(session: LessonSessionState, lesson: Lesson, index: int) -> None:
    if index + 1 >= len(lesson.questions):
        session.state = LessonState.COMPLETE
        logger.info(f"Lesson {session.lesson_id} complete for user {session.user_id}")
    else:
        session.current_question_index = index + 1
        session.state = LessonState.ADVANCE


def current_question(session: LessonSessionState, lesson: Lesson) -> Optional[Question]:
    return lesson.question_at(session.current_question_index)


def desync_outcome(session: LessonSessionState) -> AdvanceOutcome:
    logger.warning(
        f"Session desync: user {session.user_id} at index {session.current_question_index} "
        f"of lesson {session.lesson_id}"
    )
    return AdvanceOutcome(
        next_state=session.state,
        question_index=session.current_question_index,
        restart_required=True,
        error_code=SESSION_OUT_OF_SYNC,
    )


def register_attempt(session: LessonSessionState, question: Question, user_answer: str) -> tuple[int, bool]:
    """
    Increment the attempt counter for the question.

    Returns:
        (attempt_count, repeated_same_wrong)
    """
    record = session.attempt_for(question.id)
    record.attempt_count += 1
    answer_norm = normalize(user_answer)
    repeated = bool(record.last_answer_normalized) and record.last_answer_normalized == answer_norm
    return record.attempt_count, repeated


def advance_session(
    session: LessonSessionState,
    lesson: Lesson,
    evaluation: AnswerEvaluation,
    attempt_count: int,
    user_answer: str = "",
    repeated_same_wrong: bool = False,
    now: Optional[datetime] = None,
) -> AdvanceOutcome:
    """
    Apply one evaluated answer to the session.

    Args:
        session: Mutable session state (mutated in place)
        lesson: Loaded lesson the session is playing
        evaluation: Evaluator output for the current question
        attempt_count: Attempt number for this question, already incremented
        user_answer: Raw answer, remembered to detect repeats
        repeated_same_wrong: Side channel for tutor messaging only
        now: Clock for confusion tracking

    Returns:
        AdvanceOutcome; restart_required=True when the session index does not
        fit the lesson.
    """
    if session.is_complete:
        return AdvanceOutcome(next_state=LessonState.COMPLETE, question_index=session.current_question_index)

    index = session.current_question_index
    question = lesson.question_at(index)
    if question is None:
        return desync_outcome(session)

    now = now or datetime.now(timezone.utc)
    record = session.attempt_for(question.id)
    hint = None
    mark_needs_review = False

    if evaluation.is_correct:
        record.reset()
        record.last_answer_normalized = ""
        _move_forward(session, lesson, index)
    else:
        record.last_answer_normalized = normalize(user_answer)
        record.attempt_count = max(record.attempt_count, attempt_count)
        if evaluation.result == EvalResult.ALMOST:
            session.almost_count += 1
        else:
            session.wrong_count += 1
        if question.concept_tag:
            tag = question.concept_tag
            session.mistake_count_by_concept[tag] = session.mistake_count_by_concept.get(tag, 0) + 1
            session.add_recent_confusion(tag, now)

        hint = choose_hint(question, attempt_count, session.max_attempts)
        if attempt_count >= session.max_attempts:
            mark_needs_review = True
            session.forced_advance_count += 1
            record.reset()
            logger.info(f"Forced advance past question {question.id} for user {session.user_id}")
            _move_forward(session, lesson, index)
        else:
            session.state = LessonState.USER_INPUT
            if hint is not None:
                record.hint_level = hint.level
                session.hints_used_count += 1

    return AdvanceOutcome(
        next_state=session.state,
        question_index=session.current_question_index,
        attempt_count=attempt_count,
        hint=hint,
        mark_needs_review=mark_needs_review,
        repeated_same_wrong=repeated_same_wrong and not evaluation.is_correct,
        evaluation=evaluation,
        question_id=question.id,
    )


def process_answer(
    session: LessonSessionState,
    lesson: Lesson,
    user_answer: str,
    now: Optional[datetime] = None,
) -> AdvanceOutcome:
    """Evaluate the learner's answer to the current question and advance."""
    if session.is_complete:
        return AdvanceOutcome(next_state=LessonState.COMPLETE, question_index=session.current_question_index)

    question = current_question(session, lesson)
    if question is None:
        return desync_outcome(session)

    attempt_count, repeated = register_attempt(session, question, user_answer)
    evaluation = evaluate_answer(question, user_answer, session.language)
    return advance_session(
        session, lesson, evaluation, attempt_count,
        user_answer=user_answer, repeated_same_wrong=repeated, now=now,
    )
