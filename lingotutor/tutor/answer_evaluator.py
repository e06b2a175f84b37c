"""
LingoTutor - Answer Evaluator
Classifies a learner's free-text answer to a known question.

DETERMINISTIC PYTHON. No LLM. The rules below run in a fixed order and the
first rule that returns an evaluation decides the result:

    1. blank_fill          filled value matches an accepted blank answer
    2. exact_match         canonical answer / accepted answers / examples
    3. placeholder         "My name is [Your name]" style templates
    4. named_equivalence   known phrasing classes (contractions, short replies)
    5. wrong_language      marker words of another language dominate
    6. article             German article swapped, rest identical
    7. word_order          same words, different order
    8. typo                small edit distance
    9. fallback            wrong / OTHER
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from lingotutor.content.lesson_loader import Question
from lingotutor.tutor.edit_distance import levenshtein, typo_budget
from lingotutor.tutor.normalizer import normalize, normalize_for_compare, tokenize

logger = logging.getLogger(__name__)


class EvalResult(str, Enum):
    CORRECT = "correct"
    ALMOST = "almost"
    WRONG = "wrong"


class ReasonCode(str, Enum):
    TYPO = "TYPO"
    ARTICLE = "ARTICLE"
    WORD_ORDER = "WORD_ORDER"
    WRONG_LANGUAGE = "WRONG_LANGUAGE"
    MISSING_SLOT = "MISSING_SLOT"
    OTHER = "OTHER"


@dataclass(frozen=True)
class AnswerEvaluation:
    """Result of answer evaluation. Value type."""
    result: EvalResult
    reason_code: Optional[ReasonCode] = None

    @property
    def is_correct(self) -> bool:
        return self.result == EvalResult.CORRECT

    def to_dict(self) -> dict:
        return {
            "result": self.result.value,
            "reasonCode": self.reason_code.value if self.reason_code else None,
        }


CORRECT = AnswerEvaluation(EvalResult.CORRECT)


def _almost(reason: ReasonCode) -> AnswerEvaluation:
    return AnswerEvaluation(EvalResult.ALMOST, reason)


# ─── Marker Sets ─────────────────────────────────────────────────────────────

GERMAN_ARTICLES = frozenset({
    "der", "die", "das", "ein", "eine", "einen", "einem", "einer", "den", "dem", "des",
})
ENGLISH_MARKERS = frozenset({"the", "a", "an", "my", "is", "are", "i", "you", "we", "they"})
GERMAN_MARKERS = frozenset({"ich", "bin", "du", "wir", "sie", "nicht", "mein", "meine", "und", "aber"})

PLACEHOLDER_PATTERNS = (
    re.compile(r"\[[^\]]+\]"),
    re.compile(r"\{[^}]+\}"),
    re.compile(r"<[^>]+>"),
    re.compile(r"\(\s*your name\s*\)", re.IGNORECASE),
)


# ─── Inputs shared by all rules ──────────────────────────────────────────────

@dataclass(frozen=True)
class NormalizedInputs:
    language: str
    user_raw: str
    user_norm: str       # normalize(user answer)
    user_compare: str    # normalize + language folding
    expected_norm: str   # normalize(canonical answer)


Rule = Callable[[Question, NormalizedInputs], Optional[AnswerEvaluation]]


# ─── Helpers ─────────────────────────────────────────────────────────────────

def _strip_prompt_prefix(prompt: str) -> str:
    """'Complete: Ich ___ Anna.' -> 'Ich ___ Anna.'"""
    raw = (prompt or "").strip()
    idx = raw.rfind(":")
    if idx != -1:
        after = raw[idx + 1:].strip()
        if "___" in after:
            return after
    return raw


def derive_blank_answers(prompt: str, answer: str) -> list[str]:
    """Recover the blank's value by matching the answer against the prompt template."""
    template = _strip_prompt_prefix(prompt)
    if "___" not in template:
        return []
    pattern = re.sub(r"_+", "(.+?)", re.escape(template).replace(r"\_", "_"))
    match = re.match(f"^{pattern}$", (answer or "").strip(), re.IGNORECASE)
    if not match:
        return []
    candidate = (match.group(1) or "").strip()
    return [candidate] if candidate else []


def is_blank_question(question: Question) -> bool:
    return question.expected_input.lower() == "blank" or "___" in question.prompt_text


def blank_answers_for(question: Question) -> list[str]:
    if question.blank_answers:
        return list(question.blank_answers)
    if not question.answer:
        return []
    return derive_blank_answers(question.prompt_text, question.answer)


def _exact_candidates(question: Question) -> list[str]:
    return [*question.accepted_answers, question.answer, *question.examples]


def _prefix_match(user_norm: str, prefix: str) -> Optional[EvalResult]:
    """prefix only -> ALMOST, prefix + something -> CORRECT, else None."""
    if user_norm == prefix:
        return EvalResult.ALMOST
    if not user_norm.startswith(prefix + " "):
        return None
    remainder = user_norm[len(prefix):].strip()
    return EvalResult.CORRECT if remainder else EvalResult.ALMOST


def _slot_result(outcome: Optional[EvalResult]) -> Optional[AnswerEvaluation]:
    if outcome == EvalResult.CORRECT:
        return CORRECT
    if outcome == EvalResult.ALMOST:
        return _almost(ReasonCode.MISSING_SLOT)
    return None


# ─── Rules 1-3 ───────────────────────────────────────────────────────────────

def rule_blank_fill(question: Question, inputs: NormalizedInputs) -> Optional[AnswerEvaluation]:
    if not is_blank_question(question):
        return None
    for blank in blank_answers_for(question):
        expected = normalize_for_compare(blank, inputs.language)
        if expected and inputs.user_compare == expected:
            return CORRECT
    return None


def rule_exact_match(question: Question, inputs: NormalizedInputs) -> Optional[AnswerEvaluation]:
    for candidate in _exact_candidates(question):
        expected = normalize_for_compare(candidate, inputs.language)
        if expected and inputs.user_compare == expected:
            return CORRECT
    return None


def rule_placeholder_template(question: Question, inputs: NormalizedInputs) -> Optional[AnswerEvaluation]:
    raw = question.answer
    if not any(p.search(raw) for p in PLACEHOLDER_PATTERNS):
        return None
    literal = raw
    for p in PLACEHOLDER_PATTERNS:
        literal = p.sub("", literal)
    prefix = normalize_for_compare(literal, inputs.language)
    if not prefix:
        return None
    return _slot_result(_prefix_match(inputs.user_compare, prefix))


# ─── Rule 4: named equivalences ──────────────────────────────────────────────

def _examples_norm(question: Question) -> list[str]:
    return [normalize(e) for e in question.examples]


def equiv_introduce_yourself(question: Question, inputs: NormalizedInputs) -> Optional[AnswerEvaluation]:
    """'My name is [Your name]' also accepts 'I am X' / 'I'm X'."""
    if "[your name]" not in question.answer.lower():
        return None
    if not inputs.expected_norm.startswith("my name is"):
        return None
    for prefix in ("i am", "im"):
        outcome = _prefix_match(inputs.user_norm, prefix)
        if outcome is not None:
            return _slot_result(outcome)
    return None


def equiv_ask_name(question: Question, inputs: NormalizedInputs) -> Optional[AnswerEvaluation]:
    forms = ("what is your name", "whats your name")
    if inputs.expected_norm in forms and inputs.user_norm in forms:
        return CORRECT
    return None


def equiv_short_fine(question: Question, inputs: NormalizedInputs) -> Optional[AnswerEvaluation]:
    if inputs.expected_norm != "i am fine":
        return None
    if not any("doing well" in e for e in _examples_norm(question)):
        return None
    return CORRECT if inputs.user_norm == "fine" else None


def equiv_greeting_there(question: Question, inputs: NormalizedInputs) -> Optional[AnswerEvaluation]:
    if inputs.expected_norm != "hello":
        return None
    if not any(e in ("hi", "hey") for e in _examples_norm(question)):
        return None
    return CORRECT if inputs.user_norm in ("hi there", "hey there") else None


def equiv_good_morning_short(question: Question, inputs: NormalizedInputs) -> Optional[AnswerEvaluation]:
    if inputs.expected_norm != "good morning":
        return None
    hinted = "before noon" in normalize(question.hint)
    if not hinted and "morning" not in _examples_norm(question):
        return None
    return CORRECT if inputs.user_norm == "morning" else None


NAMED_EQUIVALENCE_RULES: list[tuple[str, Rule]] = [
    ("introduce_yourself", equiv_introduce_yourself),
    ("ask_name", equiv_ask_name),
    ("short_fine", equiv_short_fine),
    ("greeting_there", equiv_greeting_there),
    ("good_morning_short", equiv_good_morning_short),
]


def rule_named_equivalence(question: Question, inputs: NormalizedInputs) -> Optional[AnswerEvaluation]:
    for _name, rule in NAMED_EQUIVALENCE_RULES:
        out = rule(question, inputs)
        if out is not None:
            return out
    return None


# ─── Rules 5-8: error diagnosis ──────────────────────────────────────────────

def is_wrong_language(language: str, user_answer: str) -> bool:
    lang = (language or "").strip().lower()
    tokens = tokenize(user_answer)
    if not tokens:
        return False

    hits_english = sum(1 for t in tokens if t in ENGLISH_MARKERS)
    hits_german = sum(1 for t in tokens if t in GERMAN_MARKERS or t in GERMAN_ARTICLES)

    if lang == "en":
        return hits_german >= 2 and hits_german > hits_english
    if lang == "de":
        return hits_english >= 2 and hits_english > hits_german
    # No curated markers for es/fr: only flag an obviously English answer
    if lang in ("es", "fr"):
        return hits_english >= 3
    return False


def rule_wrong_language(question: Question, inputs: NormalizedInputs) -> Optional[AnswerEvaluation]:
    if is_wrong_language(inputs.language, inputs.user_raw):
        return AnswerEvaluation(EvalResult.WRONG, ReasonCode.WRONG_LANGUAGE)
    return None


def has_article_mismatch(expected: str, user: str) -> bool:
    exp_tokens = tokenize(expected)
    usr_tokens = tokenize(user)
    if len(exp_tokens) < 2 or len(usr_tokens) < 2:
        return False
    exp_art, usr_art = exp_tokens[0], usr_tokens[0]
    if exp_art not in GERMAN_ARTICLES or usr_art not in GERMAN_ARTICLES:
        return False
    if exp_art == usr_art:
        return False
    return exp_tokens[1:] == usr_tokens[1:]


def rule_article(question: Question, inputs: NormalizedInputs) -> Optional[AnswerEvaluation]:
    if inputs.language != "de":
        return None
    if has_article_mismatch(question.answer, inputs.user_raw):
        return _almost(ReasonCode.ARTICLE)
    return None


def has_word_order_mismatch(expected: str, user: str) -> bool:
    exp_tokens = tokenize(expected)
    usr_tokens = tokenize(user)
    if len(exp_tokens) < 2 or len(exp_tokens) != len(usr_tokens):
        return False
    if exp_tokens == usr_tokens:
        return False
    return sorted(exp_tokens) == sorted(usr_tokens)


def rule_word_order(question: Question, inputs: NormalizedInputs) -> Optional[AnswerEvaluation]:
    if has_word_order_mismatch(question.answer, inputs.user_raw):
        return _almost(ReasonCode.WORD_ORDER)
    return None


def _within_typo_budget(user_norm: str, expected_norm: str) -> bool:
    if not expected_norm:
        return False
    dist = levenshtein(user_norm, expected_norm)
    return 0 < dist <= typo_budget(expected_norm)


def rule_typo(question: Question, inputs: NormalizedInputs) -> Optional[AnswerEvaluation]:
    if _within_typo_budget(inputs.user_norm, inputs.expected_norm):
        return _almost(ReasonCode.TYPO)
    for example in question.examples:
        if _within_typo_budget(inputs.user_norm, normalize(example)):
            return _almost(ReasonCode.TYPO)
    return None


def rule_fallback(question: Question, inputs: NormalizedInputs) -> Optional[AnswerEvaluation]:
    return AnswerEvaluation(EvalResult.WRONG, ReasonCode.OTHER)


# Order matters: first non-None result wins.
EVALUATION_RULES: list[tuple[str, Rule]] = [
    ("blank_fill", rule_blank_fill),
    ("exact_match", rule_exact_match),
    ("placeholder_template", rule_placeholder_template),
    ("named_equivalence", rule_named_equivalence),
    ("wrong_language", rule_wrong_language),
    ("article", rule_article),
    ("word_order", rule_word_order),
    ("typo", rule_typo),
    ("fallback", rule_fallback),
]


# ─── Main Evaluator ──────────────────────────────────────────────────────────

def evaluate_answer(question: Question, user_answer: str, language: str) -> AnswerEvaluation:
    """
    Classify a learner answer. Never raises for learner input.

    Args:
        question: Loaded lesson question
        user_answer: Raw text typed by the learner
        language: Target language code ("en", "de", ...)

    Returns:
        AnswerEvaluation (result + optional reason code)
    """
    if not normalize(question.answer) and not question.accepted_answers and not question.blank_answers:
        logger.warning(f"Question {question.id} has no canonical answer")
        return AnswerEvaluation(EvalResult.WRONG, ReasonCode.OTHER)

    lang = (language or "").strip().lower()
    user_answer = user_answer if isinstance(user_answer, str) else ""
    inputs = NormalizedInputs(
        language=lang,
        user_raw=user_answer,
        user_norm=normalize(user_answer),
        user_compare=normalize_for_compare(user_answer, lang),
        expected_norm=normalize(question.answer),
    )

    if not inputs.user_norm:
        return AnswerEvaluation(EvalResult.WRONG, ReasonCode.OTHER)

    for name, rule in EVALUATION_RULES:
        out = rule(question, inputs)
        if out is not None:
            logger.debug(f"Question {question.id}: rule '{name}' -> {out.result.value}")
            return out

    # rule_fallback always answers; kept for type checkers
    return AnswerEvaluation(EvalResult.WRONG, ReasonCode.OTHER)
