"""
LingoTutor - adaptive answer evaluation and lesson progression.

Main components:
- evaluate_answer: classify a learner answer (correct / almost / wrong)
- advance_session: per-question attempt and hint state machine
- review scheduler: scored review candidates and a due-date review queue
"""

from lingotutor.tutor.answer_evaluator import AnswerEvaluation, EvalResult, ReasonCode, evaluate_answer
from lingotutor.tutor.attempt_tracker import AdvanceOutcome, advance_session
from lingotutor.review.scheduler import (
    compute_next_review_due_at,
    enqueue_review_items,
    pick_due_review_queue_items,
    pick_suggested_review_items,
    suggest_review_items,
)

__all__ = [
    "AnswerEvaluation",
    "EvalResult",
    "ReasonCode",
    "evaluate_answer",
    "AdvanceOutcome",
    "advance_session",
    "compute_next_review_due_at",
    "enqueue_review_items",
    "pick_due_review_queue_items",
    "pick_suggested_review_items",
    "suggest_review_items",
]
