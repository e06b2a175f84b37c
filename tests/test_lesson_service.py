"""
Integration tests for lesson_service.py: full submit pipeline over
in-memory stores and the bundled lessons.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from lingotutor.content.lesson_loader import LessonNotFoundError
from lingotutor.lesson_service import (
    LessonService, NoActiveSessionError, ReviewItemNotFoundError, UnsupportedLanguageError,
)
from lingotutor.state.profile import ReviewKey
from lingotutor.state.session import LessonState
from lingotutor.tutor.answer_evaluator import EvalResult, ReasonCode

NOW = datetime(2026, 6, 1, 9, 0, tzinfo=timezone.utc)


class Clock:
    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now


class RecordingExplainer:
    def __init__(self, text="Think of how you greet a friend."):
        self.text = text
        self.contexts = []

    async def explain(self, context):
        self.contexts.append(context)
        return self.text


class BrokenExplainer:
    async def explain(self, context):
        raise RuntimeError("provider down")


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def service(session_store, profile_store, clock):
    return LessonService(session_store, profile_store, clock=clock)


def submit(service, answer, user="u1", language="en", **kwargs):
    return asyncio.run(service.submit_answer(user, language, answer, **kwargs))


def force_past_first_question(service):
    for answer in ("banana", "apple", "cherry", "melon"):
        result = submit(service, answer)
    return result


# ─── Starting ────────────────────────────────────────────────────────────────

class TestStartLesson:
    def test_start(self, service):
        result = service.start_lesson("u1", "en", "basic-1")
        assert result.tutor_message == "Greet someone in English."
        assert result.progress.to_dict() == {"currentQuestionIndex": 0, "totalQuestions": 5, "status": "in_progress"}
        assert not result.resumed

    def test_resume_same_lesson(self, service):
        service.start_lesson("u1", "en", "basic-1")
        submit(service, "hello")
        result = service.start_lesson("u1", "EN", "basic-1")
        assert result.resumed
        assert result.progress.current_question_index == 1
        assert result.tutor_message == "Introduce yourself."

    def test_restart(self, service):
        service.start_lesson("u1", "en", "basic-1")
        submit(service, "hello")
        result = service.start_lesson("u1", "en", "basic-1", restart=True)
        assert not result.resumed
        assert result.session.current_question_index == 0

    def test_unsupported_language(self, service):
        with pytest.raises(UnsupportedLanguageError):
            service.start_lesson("u1", "xx", "basic-1")

    def test_unknown_lesson(self, service):
        with pytest.raises(LessonNotFoundError):
            service.start_lesson("u1", "en", "does-not-exist")


# ─── Submitting ──────────────────────────────────────────────────────────────

class TestSubmitAnswer:
    def test_no_session(self, service):
        with pytest.raises(NoActiveSessionError):
            submit(service, "hello")

    def test_correct(self, service):
        service.start_lesson("u1", "en", "basic-1")
        result = submit(service, "Hello!")
        assert result.evaluation.result == EvalResult.CORRECT
        assert result.tutor_message == "Correct! Next: Introduce yourself."
        assert result.progress.current_question_index == 1

    def test_retry_with_hint(self, service):
        service.start_lesson("u1", "en", "basic-1")
        first = submit(service, "banana")
        second = submit(service, "apple")
        assert first.tutor_message == "Not quite - try again."
        assert second.tutor_message == "Not quite - try again. Here's a small hint to help you. It starts with 'H'."
        assert second.session.state == LessonState.USER_INPUT

    def test_forced_advance_marks_review(self, service, profile_store):
        service.start_lesson("u1", "en", "basic-1")
        result = force_past_first_question(service)
        assert result.outcome.mark_needs_review
        assert "Answer: Hello." in result.tutor_message
        assert result.tutor_message.endswith("Next: Introduce yourself.")

        profile = profile_store.get_learner_profile("u1", "en")
        candidate = profile.review_candidates[ReviewKey("basic-1", "1")]
        assert candidate.mistake_count == 4
        assert candidate.last_outcome == "forced_advance"
        assert profile.forced_advance_count == 1

    def test_german_article(self, service):
        service.start_lesson("u1", "de", "basic-1")
        result = submit(service, "die Tisch", language="de")
        assert (result.evaluation.result, result.evaluation.reason_code) == (EvalResult.ALMOST, ReasonCode.ARTICLE)
        assert result.tutor_message == "Watch the article."

    def test_completion(self, service):
        service.start_lesson("u1", "en", "basic-1")
        for answer in ("hello", "I am Anna", "what's your name", "fine", "morning"):
            result = submit(service, answer)
        assert result.progress.status == "completed"
        assert result.tutor_message == "Correct! Great job! You've completed this session."

        again = submit(service, "hello")
        assert again.progress.status == "completed"
        assert again.outcome is None

    def test_completion_after_forced_advance_needs_review(self, service, session_store):
        service.start_lesson("u1", "en", "basic-1")
        state = session_store.get_session_state("u1", "en")
        state.current_question_index = 4
        session_store.save_session_state(state)
        for answer in ("x", "y", "z", "w"):
            result = submit(service, answer)
        assert result.progress.status == "needs_review"

    def test_desync_requests_restart(self, service, session_store):
        service.start_lesson("u1", "en", "basic-1")
        state = session_store.get_session_state("u1", "en")
        state.current_question_index = 42
        session_store.save_session_state(state)

        result = submit(service, "hello")
        assert result.restart_required
        assert result.error_code == "SESSION_OUT_OF_SYNC"


class TestExplainer:
    def test_explainer_used_on_hint_turn(self, session_store, profile_store, clock):
        explainer = RecordingExplainer()
        service = LessonService(session_store, profile_store, explainer=explainer, enable_explain=True, clock=clock)
        service.start_lesson("u1", "en", "basic-1")

        first = submit(service, "banana")
        second = submit(service, "apple")
        assert first.tutor_message == "Not quite - try again."
        assert second.tutor_message.endswith("Think of how you greet a friend.")
        assert explainer.contexts[0].intent == "ENCOURAGE_RETRY"
        assert explainer.contexts[0].hint_text == "It starts with 'H'."
        assert explainer.contexts[0].learner_summary.startswith("Focus areas: general (2).")

    def test_override_disables_explainer(self, session_store, profile_store, clock):
        explainer = RecordingExplainer()
        service = LessonService(session_store, profile_store, explainer=explainer, enable_explain=True, clock=clock)
        service.start_lesson("u1", "en", "basic-1")
        submit(service, "banana")
        submit(service, "apple", include_support_override=False)
        assert explainer.contexts == []

    def test_disabled_by_default(self, session_store, profile_store, clock):
        explainer = RecordingExplainer()
        service = LessonService(session_store, profile_store, explainer=explainer, clock=clock)
        service.start_lesson("u1", "en", "basic-1")
        submit(service, "banana")
        submit(service, "apple")
        assert explainer.contexts == []

    def test_failure_keeps_templated_text(self, session_store, profile_store, clock):
        service = LessonService(session_store, profile_store, explainer=BrokenExplainer(), enable_explain=True, clock=clock)
        service.start_lesson("u1", "en", "basic-1")
        submit(service, "banana")
        result = submit(service, "apple")
        assert result.tutor_message == "Not quite - try again. Here's a small hint to help you. It starts with 'H'."
        assert result.progress.current_question_index == 0


# ─── Review ──────────────────────────────────────────────────────────────────

class TestReviewFlow:
    def test_no_profile(self, service):
        assert service.suggest_review("u1", "en") == []
        assert service.due_reviews("u1", "en") == []

    def test_suggest_after_mistakes(self, service):
        service.start_lesson("u1", "en", "basic-1")
        force_past_first_question(service)
        suggested = service.suggest_review("u1", "en")
        assert [s.key for s in suggested] == [ReviewKey("basic-1", "1")]

    def test_generate_and_practice(self, service, profile_store, clock):
        service.start_lesson("u1", "en", "basic-1")
        force_past_first_question(service)

        assert service.generate_review("u1", "en", "basic-1") == 1
        assert service.generate_review("u1", "en", "basic-1") == 0
        due = service.due_reviews("u1", "en")
        assert [e.prompt for e in due] == ["Greet someone in English."]

        result = service.submit_review("u1", "en", due[0].id, "Hello")
        assert result.result == EvalResult.CORRECT
        assert result.tutor_message == "Nice work. Let's keep going."
        assert result.next_item is None

        profile = profile_store.get_learner_profile("u1", "en")
        assert profile.review_queue[0].due_at == NOW + timedelta(hours=24)
        assert profile.review_queue[0].attempts == 1
        assert profile.review_candidates[ReviewKey("basic-1", "1")].last_reviewed_at == NOW
        assert profile.last_summary.focus_next == ["greetings"]
        assert service.due_reviews("u1", "en") == []
        # reviewed just now: in cooldown
        assert service.suggest_review("u1", "en") == []

        clock.now = NOW + timedelta(days=1)
        assert len(service.due_reviews("u1", "en")) == 1

    def test_wrong_review_stays_due(self, service):
        service.start_lesson("u1", "en", "basic-1")
        force_past_first_question(service)
        service.generate_review("u1", "en", "basic-1")
        item = service.due_reviews("u1", "en")[0]

        result = service.submit_review("u1", "en", item.id, "banana")
        assert result.result == EvalResult.WRONG
        assert result.next_item.id == item.id
        assert result.remaining == 1

    def test_unknown_item(self, service):
        with pytest.raises(ReviewItemNotFoundError):
            service.submit_review("u1", "en", "missing", "Hello")
