"""
LingoTutor - Lesson Service
Host-boundary orchestration. Full pipeline for one submission:
load session → evaluate → advance → record profile → tutor text → save

The core (evaluator, attempt tracker, scheduler) is pure; this module owns
the two suspension points: persistence, and the optional time-boxed explain
call. The host serializes calls per (user_id, language).
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from lingotutor.config import (
    DEFAULT_SUGGESTED_ITEMS, ENABLE_LLM_EXPLAIN, MAX_REVIEW_ITEMS, SUPPORTED_LANGUAGES,
)
from lingotutor.content.lesson_loader import Lesson, Question, load_lesson_cached
from lingotutor.review import memory
from lingotutor.review.scheduler import (
    SuggestedReviewItem, compute_next_review_due_at, enqueue_review_items,
    find_queue_entry, pick_due_review_queue_items, pick_suggested_review_items,
)
from lingotutor.state.profile import LearnerProfile, ReviewKey, ReviewQueueEntry
from lingotutor.state.session import LessonSessionState, LessonState
from lingotutor.storage import ProfileStore, SessionStore
from lingotutor.tutor import messages
from lingotutor.tutor.answer_evaluator import AnswerEvaluation, EvalResult, evaluate_answer
from lingotutor.tutor.attempt_tracker import AdvanceOutcome, SESSION_OUT_OF_SYNC, process_answer
from lingotutor.tutor.llm import ExplainContext, Explainer, explain_with_fallback, get_explainer
from lingotutor.tutor.support import resolve_include_support, support_char_limit

logger = logging.getLogger(__name__)


class UnsupportedLanguageError(ValueError):
    pass


class NoActiveSessionError(LookupError):
    pass


class ReviewItemNotFoundError(LookupError):
    pass


def normalize_language(value) -> str:
    lang = value.strip().lower() if isinstance(value, str) else ""
    if lang not in SUPPORTED_LANGUAGES:
        raise UnsupportedLanguageError(f"language must be one of: {', '.join(SUPPORTED_LANGUAGES)}")
    return lang


# ─── Results ─────────────────────────────────────────────────────────────────

@dataclass
class Progress:
    current_question_index: int
    total_questions: int
    status: str  # in_progress | completed | needs_review

    def to_dict(self) -> dict:
        return {
            "currentQuestionIndex": self.current_question_index,
            "totalQuestions": self.total_questions,
            "status": self.status,
        }


@dataclass
class StartResult:
    session: LessonSessionState
    tutor_message: str
    progress: Progress
    resumed: bool = False


@dataclass
class SubmitResult:
    session: LessonSessionState
    progress: Progress
    tutor_message: str = ""
    outcome: Optional[AdvanceOutcome] = None
    evaluation: Optional[AnswerEvaluation] = None
    restart_required: bool = False
    error_code: Optional[str] = None


@dataclass
class ReviewSubmitResult:
    result: EvalResult
    tutor_message: str
    next_item: Optional[ReviewQueueEntry]
    remaining: int
    evaluation: AnswerEvaluation = field(default_factory=lambda: AnswerEvaluation(EvalResult.WRONG))


def build_progress(session: LessonSessionState, lesson: Lesson, status: Optional[str] = None) -> Progress:
    total = max(1, len(lesson.questions))
    idx = max(0, min(total - 1, session.current_question_index))
    if status is None:
        status = "completed" if session.is_complete else "in_progress"
    return Progress(current_question_index=idx, total_questions=total, status=status)


def tutor_intent(state: LessonState, is_correct: bool, mark_needs_review: bool) -> str:
    if state == LessonState.COMPLETE:
        return "END_LESSON"
    if state == LessonState.ADVANCE:
        return "FORCED_ADVANCE" if mark_needs_review else "ADVANCE_LESSON"
    if not is_correct:
        return "ENCOURAGE_RETRY"
    return "ASK_QUESTION"


# ─── Service ─────────────────────────────────────────────────────────────────

class LessonService:
    def __init__(
        self,
        sessions: SessionStore,
        profiles: ProfileStore,
        catalog: Callable[[str, str], Lesson] = load_lesson_cached,
        explainer: Optional[Explainer] = None,
        enable_explain: bool = ENABLE_LLM_EXPLAIN,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.sessions = sessions
        self.profiles = profiles
        self.catalog = catalog
        if explainer is None and enable_explain:
            explainer = get_explainer()
        self.explainer = explainer
        self.enable_explain = enable_explain
        self.clock = clock

    # ── Lessons ──────────────────────────────────────────────────────────

    def start_lesson(self, user_id: str, language: str, lesson_id: str, restart: bool = False) -> StartResult:
        """Start a lesson, or resume the active one when it is the same lesson."""
        lang = normalize_language(language)
        lesson = self.catalog(lang, lesson_id)

        existing = self.sessions.get_session_state(user_id, lang)
        if existing is not None and existing.lesson_id == lesson_id and not restart:
            question = lesson.question_at(existing.current_question_index)
            if existing.is_complete:
                text = messages.end_lesson_message()
            elif question is not None:
                text = question.prompt_text
            else:
                text = "This lesson changed since your last visit. Please restart the lesson."
            logger.info(f"Resuming lesson {lesson_id} for user {user_id}")
            return StartResult(existing, text, build_progress(existing, lesson), resumed=True)

        if existing is not None:
            self.sessions.delete_session_state(user_id, lang)

        session = LessonSessionState(user_id=user_id, lesson_id=lesson_id, language=lang, started_at=self.clock())
        first = lesson.questions[0]
        session.add_message("assistant", first.prompt_text)
        self.sessions.save_session_state(session)
        logger.info(f"Started lesson {lesson_id} ({lang}) for user {user_id}")
        return StartResult(session, first.prompt_text, build_progress(session, lesson))

    async def submit_answer(
        self,
        user_id: str,
        language: str,
        answer: str,
        support_level: Optional[float] = None,
        include_support_override: Optional[bool] = None,
    ) -> SubmitResult:
        lang = normalize_language(language)
        session = self.sessions.get_session_state(user_id, lang)
        if session is None:
            raise NoActiveSessionError(f"No active session for user {user_id}")
        lesson = self.catalog(lang, session.lesson_id)

        if session.is_complete:
            return SubmitResult(session, build_progress(session, lesson, "completed"))

        now = self.clock()
        question = lesson.question_at(session.current_question_index)
        outcome = process_answer(session, lesson, answer, now=now)
        if outcome.restart_required:
            return SubmitResult(
                session, build_progress(session, lesson),
                tutor_message="Session out of sync with lesson content. Please restart the lesson.",
                outcome=outcome, restart_required=True, error_code=SESSION_OUT_OF_SYNC,
            )

        session.add_message("user", answer)
        evaluation = outcome.evaluation
        profile = self._record_profile(session, question, evaluation, outcome, now)

        status = "in_progress"
        if session.is_complete:
            status = "needs_review" if outcome.mark_needs_review else "completed"

        fallback = self._templated_message(session, lesson, question, outcome)
        text = fallback
        if self._wants_explain(session, question, outcome, support_level, include_support_override, now):
            intent = tutor_intent(session.state, evaluation.is_correct, outcome.mark_needs_review)
            context = ExplainContext(
                intent=intent,
                language=lang,
                question_text=question.prompt_text,
                user_answer=answer,
                expected_answer=question.answer,
                reason_code=evaluation.reason_code.value if evaluation.reason_code else None,
                hint_text=outcome.hint.text if outcome.hint else "",
                learner_summary=memory.profile_summary(profile) or "",
                max_chars=support_char_limit(support_level),
            )
            text = await explain_with_fallback(self.explainer, context, fallback)

        session.add_message("assistant", text)
        self.sessions.save_session_state(session)

        return SubmitResult(
            session=session,
            progress=build_progress(session, lesson, status),
            tutor_message=text,
            outcome=outcome,
            evaluation=evaluation,
        )

    def _record_profile(self, session, question: Question, evaluation, outcome: AdvanceOutcome, now) -> LearnerProfile:
        profile = self.profiles.get_or_create_profile(session.user_id, session.language)
        memory.record_lesson_attempt(
            profile,
            result=evaluation.result,
            reason_code=evaluation.reason_code,
            forced_advance=outcome.mark_needs_review,
            lesson_id=session.lesson_id,
            question_id=question.id,
            concept_tag=question.concept_tag,
            now=now,
        )
        self.profiles.save_learner_profile(profile)
        return profile

    def _wants_explain(self, session, question, outcome, support_level, include_support_override, now) -> bool:
        if not self.enable_explain or self.explainer is None:
            return False
        if outcome.evaluation.is_correct:
            return False
        recent = session.has_recent_confusion(question.concept_tag, now)
        return resolve_include_support(
            outcome.attempt_count,
            support_level,
            recent,
            include_support_override=include_support_override,
        )

    def _templated_message(self, session, lesson: Lesson, question: Question, outcome: AdvanceOutcome) -> str:
        evaluation = outcome.evaluation
        intent = tutor_intent(session.state, evaluation.is_correct, outcome.mark_needs_review)
        next_question = lesson.question_at(session.current_question_index)
        next_text = next_question.prompt_text if next_question and not session.is_complete else ""

        if intent == "ENCOURAGE_RETRY":
            parts = [messages.retry_message(evaluation.reason_code, outcome.attempt_count, outcome.repeated_same_wrong)]
            if outcome.hint:
                parts.append(messages.hint_lead_in(outcome.attempt_count))
                parts.append(outcome.hint.text)
            return " ".join(parts)

        parts = []
        if outcome.mark_needs_review:
            parts.append(messages.forced_advance_message())
            if outcome.hint:
                parts.append(outcome.hint.text)
        else:
            parts.append("Correct!")
        if intent == "END_LESSON":
            parts.append(messages.end_lesson_message())
        elif next_text:
            parts.append(f"Next: {next_text}")
        return " ".join(parts)

    # ── Review ───────────────────────────────────────────────────────────

    def suggest_review(self, user_id: str, language: str, max_items: int = DEFAULT_SUGGESTED_ITEMS) -> list[SuggestedReviewItem]:
        lang = normalize_language(language)
        profile = self.profiles.get_learner_profile(user_id, lang)
        if profile is None:
            return []
        return pick_suggested_review_items(profile.review_candidates.values(), self.clock(), max_items)

    def due_reviews(self, user_id: str, language: str, max_items: int = MAX_REVIEW_ITEMS) -> list[ReviewQueueEntry]:
        lang = normalize_language(language)
        profile = self.profiles.get_learner_profile(user_id, lang)
        if profile is None:
            return []
        return pick_due_review_queue_items(profile.review_queue, self.clock(), max_items)

    def generate_review(self, user_id: str, language: str, lesson_id: str) -> int:
        """Queue review items for the weakest questions of a lesson. Returns how many were added."""
        lang = normalize_language(language)
        lesson = self.catalog(lang, lesson_id)
        now = self.clock()
        profile = self.profiles.get_or_create_profile(user_id, lang)

        entries = memory.build_review_entries(profile, lesson, now)
        before = len(profile.review_queue)
        profile.review_queue = enqueue_review_items(profile.review_queue, entries)
        profile.last_summary = memory.build_lesson_summary(lesson_id, entries, now)
        profile.last_active_at = now
        self.profiles.save_learner_profile(profile)

        added = max(0, len(profile.review_queue) - before)
        logger.info(f"Queued {added} review item(s) from lesson {lesson_id} for user {user_id}")
        return added

    def submit_review(self, user_id: str, language: str, item_id: str, answer: str) -> ReviewSubmitResult:
        lang = normalize_language(language)
        profile = self.profiles.get_or_create_profile(user_id, lang)
        idx = find_queue_entry(profile.review_queue, item_id)
        if idx is None:
            raise ReviewItemNotFoundError(f"Review item {item_id} not found")

        item = profile.review_queue[idx]
        question = Question(id=item.id, question=item.prompt, answer=item.expected)
        evaluation = evaluate_answer(question, answer, lang)

        now = self.clock()
        item.attempts += 1
        item.last_result = evaluation.result.value
        item.due_at = compute_next_review_due_at(item.attempts, evaluation.result, now)

        lesson_question = self._question_for_review(lang, item)
        if lesson_question is not None:
            memory.record_review_outcome(profile, ReviewKey(item.lesson_id, lesson_question.id), evaluation.result, now)
        self.profiles.save_learner_profile(profile)

        due = pick_due_review_queue_items(profile.review_queue, now, MAX_REVIEW_ITEMS)
        next_item = next((e for e in due if e.id != item_id), None)
        if next_item is None and not evaluation.is_correct:
            next_item = item

        if evaluation.is_correct:
            text = messages.review_correct_message()
        else:
            retry = messages.retry_message(evaluation.reason_code, item.attempts, False)
            hint = (lesson_question.hint if lesson_question else "") or messages.review_hint(evaluation.reason_code, item.attempts)
            text = f"{retry}\nHint: {hint}" if hint else retry

        return ReviewSubmitResult(
            result=evaluation.result,
            tutor_message=text,
            next_item=next_item,
            remaining=len(due),
            evaluation=evaluation,
        )

    def _question_for_review(self, language: str, item: ReviewQueueEntry) -> Optional[Question]:
        try:
            lesson = self.catalog(language, item.lesson_id)
        except LookupError:
            return None
        for q in lesson.questions:
            if q.concept_tag and q.concept_tag == item.concept_tag and q.prompt_text == item.prompt:
                return q
        for q in lesson.questions:
            if q.prompt_text == item.prompt:
                return q
        return None
