"""
Tests for tutor/support.py and tutor/messages.py.
"""

import pytest
from lingotutor.tutor import messages
from lingotutor.tutor.answer_evaluator import ReasonCode
from lingotutor.tutor.support import (
    SupportEvent, clamp_support_level, resolve_include_support,
    should_include_support, support_char_limit,
)


class TestSupportLevel:
    @pytest.mark.parametrize("raw,expected", [(0.5, 0.5), (2, 1.0), (-1, 0.0), ("x", 0.85), (None, 0.85), (float("nan"), 0.85)])
    def test_clamp(self, raw, expected):
        assert clamp_support_level(raw) == expected

    def test_char_limits(self):
        assert support_char_limit(0.9) == 280
        assert support_char_limit(0.5) == 200
        assert support_char_limit(0.1) == 120


class TestShouldIncludeSupport:
    def test_force_no_support_wins(self):
        assert not should_include_support(SupportEvent.USER_REQUESTED_EXPLAIN, 1.0, force_no_support=True)

    def test_explicit_request(self):
        assert should_include_support(SupportEvent.CORRECT_FEEDBACK, 0.0, explicit_request=True)

    def test_high_level_correct_feedback_alternates(self):
        assert should_include_support(SupportEvent.CORRECT_FEEDBACK, 0.9, question_index=0)
        assert not should_include_support(SupportEvent.CORRECT_FEEDBACK, 0.9, question_index=1)

    def test_medium_level(self):
        assert should_include_support(SupportEvent.WRONG_FEEDBACK, 0.5)
        assert not should_include_support(SupportEvent.CORRECT_FEEDBACK, 0.5)

    def test_low_level_needs_confusion(self):
        assert not should_include_support(SupportEvent.WRONG_FEEDBACK, 0.1)
        assert should_include_support(SupportEvent.WRONG_FEEDBACK, 0.1, repeated_confusion=True)
        assert should_include_support(SupportEvent.FORCED_ADVANCE, 0.1)


class TestResolveIncludeSupport:
    def test_hint_turn_medium(self):
        assert resolve_include_support(2, 0.5, recent_confusion=False)
        assert not resolve_include_support(1, 0.5, recent_confusion=False)

    def test_low_level(self):
        assert not resolve_include_support(2, 0.1, recent_confusion=False)
        assert resolve_include_support(2, 0.1, recent_confusion=True)
        assert resolve_include_support(4, 0.1, recent_confusion=False)

    def test_override_replaces_decision(self):
        assert not resolve_include_support(4, 1.0, False, include_support_override=False)
        assert resolve_include_support(1, 0.0, False, include_support_override=True)

    def test_non_bool_override_ignored(self):
        assert resolve_include_support(2, 0.5, False, include_support_override="no")


class TestMessages:
    def test_retry_by_reason(self):
        assert messages.retry_message(ReasonCode.ARTICLE, 1, False) == "Watch the article."
        assert messages.retry_message(ReasonCode.TYPO, 3, False) == "Close - check spelling carefully."
        assert messages.retry_message(None, 1, False) == "Not quite - try again."

    def test_repeated_answer_changes_strategy(self):
        assert "same answer" in messages.retry_message(ReasonCode.TYPO, 2, True)

    def test_review_hint_not_on_first_attempt(self):
        assert messages.review_hint(ReasonCode.ARTICLE, 1) is None
        assert messages.review_hint(ReasonCode.ARTICLE, 2) == "Check the article."
