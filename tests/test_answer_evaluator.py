"""
Tests for answer_evaluator.py: the rule chain, one class per rule family.
"""

import pytest
from lingotutor.content.lesson_loader import Question
from lingotutor.tutor.answer_evaluator import (
    EVALUATION_RULES, NAMED_EQUIVALENCE_RULES, EvalResult, ReasonCode,
    derive_blank_answers, evaluate_answer, has_article_mismatch,
    has_word_order_mismatch, is_wrong_language,
)


def q(answer, **kwargs):
    return Question(id="1", question=kwargs.pop("question", "Q?"), answer=answer, **kwargs)


def check(question, user_answer, language="en"):
    out = evaluate_answer(question, user_answer, language)
    return out.result, out.reason_code


HELLO = q("Hello", examples=["Hello", "Hi", "Hey"])
NAME = q("My name is [Your name]")
ASK_NAME = q("What is your name")
FINE = q("I am fine", examples=["I am fine", "I'm doing well"])
MORNING = q("Good morning", hint="A greeting used before noon.")
TISCH = q("der Tisch")
MUEDE = q("ich bin müde")
BLANK = Question(id="4", question="Complete: Ich ___ Anna.", answer="Ich heiße Anna.", expectedInput="blank")


# ─── Rule Order ──────────────────────────────────────────────────────────────

class TestRuleOrder:
    def test_order_is_fixed(self):
        assert [name for name, _ in EVALUATION_RULES] == [
            "blank_fill", "exact_match", "placeholder_template", "named_equivalence",
            "wrong_language", "article", "word_order", "typo", "fallback",
        ]

    def test_named_equivalences_listed(self):
        assert [name for name, _ in NAMED_EQUIVALENCE_RULES] == [
            "introduce_yourself", "ask_name", "short_fine", "greeting_there", "good_morning_short",
        ]

    def test_exact_beats_typo(self):
        # "hey" is an example; an exact example match is never reported as a typo
        assert check(HELLO, "hey") == (EvalResult.CORRECT, None)


# ─── Exact Match ─────────────────────────────────────────────────────────────

class TestExactMatch:
    def test_case_and_punctuation_insensitive(self):
        assert check(HELLO, "  HELLO!! ") == (EvalResult.CORRECT, None)

    def test_example_accepted(self):
        assert check(HELLO, "Hi") == (EvalResult.CORRECT, None)

    def test_accepted_answers(self):
        question = q("What is your name", acceptedAnswers=["What's your name?"])
        assert check(question, "whats your name") == (EvalResult.CORRECT, None)

    def test_german_umlaut_folding(self):
        assert check(MUEDE, "Ich bin muede", "de") == (EvalResult.CORRECT, None)

    def test_no_folding_outside_german(self):
        question = q("müde")
        result, _ = check(question, "muede", "en")
        assert result != EvalResult.CORRECT


# ─── Placeholder / Named Equivalence ─────────────────────────────────────────

class TestPlaceholder:
    def test_prefix_only_is_missing_slot(self):
        assert check(NAME, "My name is") == (EvalResult.ALMOST, ReasonCode.MISSING_SLOT)

    def test_prefix_with_name(self):
        assert check(NAME, "My name is Anna") == (EvalResult.CORRECT, None)

    def test_i_am_form(self):
        assert check(NAME, "I am Hillary") == (EvalResult.CORRECT, None)

    def test_contraction_form(self):
        assert check(NAME, "I'm Hillary") == (EvalResult.CORRECT, None)

    def test_i_am_alone_is_missing_slot(self):
        assert check(NAME, "I am") == (EvalResult.ALMOST, ReasonCode.MISSING_SLOT)

    def test_your_name_phrase(self):
        question = q("Ich heiße (your name)")
        assert check(question, "ich heiße Anna", "de") == (EvalResult.CORRECT, None)


class TestNamedEquivalence:
    def test_hi_there(self):
        assert check(HELLO, "Hi there") == (EvalResult.CORRECT, None)

    def test_hey_there(self):
        assert check(HELLO, "hey there!") == (EvalResult.CORRECT, None)

    def test_hi_there_needs_informal_examples(self):
        result, _ = check(q("Hello"), "hi there")
        assert result != EvalResult.CORRECT

    def test_whats_your_name(self):
        assert check(ASK_NAME, "What's your name?") == (EvalResult.CORRECT, None)

    def test_short_fine(self):
        assert check(FINE, "Fine.") == (EvalResult.CORRECT, None)

    def test_morning_short(self):
        assert check(MORNING, "Morning!") == (EvalResult.CORRECT, None)


# ─── Diagnosis ───────────────────────────────────────────────────────────────

class TestWrongLanguage:
    def test_german_in_english_lesson(self):
        assert check(FINE, "ich bin müde") == (EvalResult.WRONG, ReasonCode.WRONG_LANGUAGE)

    def test_english_in_german_lesson(self):
        assert check(TISCH, "the table is", "de") == (EvalResult.WRONG, ReasonCode.WRONG_LANGUAGE)

    def test_single_marker_not_enough(self):
        assert not is_wrong_language("de", "the Tisch")

    def test_unknown_language_never_flags(self):
        assert not is_wrong_language("xx", "ich bin nicht müde")


class TestArticle:
    def test_die_tisch(self):
        assert check(TISCH, "die Tisch", "de") == (EvalResult.ALMOST, ReasonCode.ARTICLE)

    def test_only_for_german(self):
        result, reason = check(TISCH, "die Tisch", "en")
        assert reason != ReasonCode.ARTICLE

    def test_rest_must_match(self):
        assert not has_article_mismatch("der Tisch", "die Stuhl")


class TestWordOrder:
    def test_swapped(self):
        assert check(FINE, "fine am I") == (EvalResult.ALMOST, ReasonCode.WORD_ORDER)

    def test_same_order_is_not_word_order(self):
        assert not has_word_order_mismatch("I am fine", "i am fine")

    def test_single_word(self):
        assert not has_word_order_mismatch("hello", "hello")


class TestTypo:
    def test_short_answer_one_edit(self):
        assert check(HELLO, "Helo") == (EvalResult.ALMOST, ReasonCode.TYPO)

    def test_short_answer_two_edits_is_wrong(self):
        assert check(q("Hello"), "Hxllx") == (EvalResult.WRONG, ReasonCode.OTHER)

    def test_long_answer_two_edits(self):
        assert check(MORNING, "Good mornnig") == (EvalResult.ALMOST, ReasonCode.TYPO)

    def test_typo_against_example(self):
        assert check(FINE, "I'm doing wel") == (EvalResult.ALMOST, ReasonCode.TYPO)


# ─── Blank Fill ──────────────────────────────────────────────────────────────

class TestBlankFill:
    def test_derive(self):
        assert derive_blank_answers("Complete: Ich ___ Anna.", "Ich heiße Anna.") == ["heiße"]

    def test_derive_no_blank(self):
        assert derive_blank_answers("Say hello.", "Hello") == []

    def test_filled_value(self):
        assert check(BLANK, "heiße", "de") == (EvalResult.CORRECT, None)

    def test_filled_value_folded(self):
        assert check(BLANK, "heisse", "de") == (EvalResult.CORRECT, None)

    def test_full_sentence_still_correct(self):
        assert check(BLANK, "Ich heiße Anna", "de") == (EvalResult.CORRECT, None)

    def test_explicit_blank_answers(self):
        question = Question(id="9", question="Ich ___ müde.", answer="Ich bin müde.", blankAnswers=["bin"])
        assert check(question, "bin", "de") == (EvalResult.CORRECT, None)


# ─── Edge Cases ──────────────────────────────────────────────────────────────

class TestEdgeCases:
    def test_empty_answer(self):
        assert check(HELLO, "   ") == (EvalResult.WRONG, ReasonCode.OTHER)

    def test_missing_canonical_answer(self):
        assert check(q(""), "hello") == (EvalResult.WRONG, ReasonCode.OTHER)

    def test_non_string_answer(self):
        assert check(HELLO, None) == (EvalResult.WRONG, ReasonCode.OTHER)

    def test_unrelated_answer(self):
        assert check(HELLO, "banana bread") == (EvalResult.WRONG, ReasonCode.OTHER)

    def test_to_dict(self):
        out = evaluate_answer(TISCH, "die Tisch", "de")
        assert out.to_dict() == {"result": "almost", "reasonCode": "ARTICLE"}
