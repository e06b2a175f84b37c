"""
LingoTutor - Memory (Learner Profile Read/Write)
Updates the learner's long-term review data after every lesson attempt and
every review-practice answer. Also builds queue entries and the short
profile summary used in tutor prompts.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from lingotutor.config import MASTERY_CONFIDENCE, MAX_MISTAKE_COUNT
from lingotutor.content.lesson_loader import Lesson
from lingotutor.review.scheduler import pick_weak_question_ids, trim_review_candidates
from lingotutor.state.profile import (
    LearnerProfile, LessonSummary, ReviewCandidate, ReviewKey, ReviewQueueEntry, clamp_float, coerce_datetime,
)
from lingotutor.tutor.answer_evaluator import EvalResult, ReasonCode

logger = logging.getLogger(__name__)

# Confidence deltas for a review-practice answer
REVIEW_CONFIDENCE_DELTA = {
    EvalResult.CORRECT: 0.15,
    EvalResult.ALMOST: -0.05,
    EvalResult.WRONG: -0.2,
}
LESSON_MISTAKE_CONFIDENCE_DELTA = -0.1

REASON_LABELS = {
    "ARTICLE": "articles",
    "WORD_ORDER": "word order",
    "TYPO": "spelling/typos",
    "WRONG_LANGUAGE": "wrong language",
    "MISSING_SLOT": "missing word/slot",
    "OTHER": "general",
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _reason_key(reason_code: Optional[ReasonCode]) -> Optional[str]:
    if reason_code is None:
        return None
    return str(getattr(reason_code, "value", reason_code)).strip().upper() or None


# ─── Write ───────────────────────────────────────────────────────────────────

def record_lesson_attempt(
    profile: LearnerProfile,
    result: EvalResult,
    reason_code: Optional[ReasonCode],
    forced_advance: bool,
    lesson_id: str,
    question_id: str,
    concept_tag: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Optional[ReviewCandidate]:
    """
    Fold one lesson submission into the profile.

    Non-correct answers (and every forced advance) upsert the question's
    review candidate. Returns the touched candidate, if any.
    """
    now = coerce_datetime(now) or _now()
    profile.attempts_total += 1
    profile.last_active_at = now
    if forced_advance:
        profile.forced_advance_count += 1

    key = ReviewKey(lesson_id, str(question_id))
    candidate = profile.review_candidates.get(key)

    if result == EvalResult.CORRECT and not forced_advance:
        if candidate is not None:
            candidate.last_seen_at = now
            candidate.last_outcome = EvalResult.CORRECT.value
        return candidate

    reason = _reason_key(reason_code)
    if reason:
        profile.mistake_counts_by_reason[reason] = profile.mistake_counts_by_reason.get(reason, 0) + 1

    if candidate is None:
        candidate = ReviewCandidate(
            lesson_id=lesson_id,
            question_id=str(question_id),
            concept_tag=concept_tag or f"lesson-{lesson_id}-q{question_id}",
            last_seen_at=now,
        )
        profile.review_candidates[key] = candidate

    candidate.mistake_count = min(MAX_MISTAKE_COUNT, candidate.mistake_count + 1)
    candidate.confidence = clamp_float(candidate.confidence + LESSON_MISTAKE_CONFIDENCE_DELTA, 0.5, 0.0, 1.0)
    candidate.last_seen_at = now
    candidate.last_outcome = "forced_advance" if forced_advance else str(getattr(result, "value", result))
    if concept_tag:
        candidate.concept_tag = concept_tag

    profile.review_candidates = trim_review_candidates(profile.review_candidates)
    return profile.review_candidates.get(key)


def record_review_outcome(
    profile: LearnerProfile,
    key: ReviewKey,
    result: EvalResult,
    now: Optional[datetime] = None,
) -> Optional[ReviewCandidate]:
    """
    Adjust confidence after review practice. A correct review that lifts
    confidence to MASTERY_CONFIDENCE removes the candidate (returns None).
    """
    now = coerce_datetime(now) or _now()
    profile.practice_attempts_total += 1
    profile.last_active_at = now

    candidate = profile.review_candidates.get(key)
    if candidate is None:
        return None

    delta = REVIEW_CONFIDENCE_DELTA.get(EvalResult(result), 0.0)
    candidate.confidence = round(clamp_float(candidate.confidence + delta, 0.5, 0.0, 1.0), 4)
    candidate.last_reviewed_at = now
    candidate.last_outcome = EvalResult(result).value

    if EvalResult(result) == EvalResult.CORRECT and candidate.confidence >= MASTERY_CONFIDENCE:
        del profile.review_candidates[key]
        logger.info(f"Review item {key.lesson_id}/{key.question_id} mastered for user {profile.user_id}")
        return None
    return candidate


def build_review_entries(
    profile: LearnerProfile,
    lesson: Lesson,
    now: Optional[datetime] = None,
) -> list[ReviewQueueEntry]:
    """Queue entries (due now) for the weakest questions of a lesson."""
    now = coerce_datetime(now) or _now()
    weak_ids = pick_weak_question_ids(profile.review_candidates.values(), lesson.lesson_id)
    stamp = int(now.timestamp() * 1000)

    entries = []
    for qid in weak_ids:
        question = lesson.find_question(qid)
        if question is None:
            continue
        entries.append(ReviewQueueEntry(
            id=f"{lesson.lesson_id}-{qid}-{stamp}",
            lesson_id=lesson.lesson_id,
            concept_tag=question.concept_tag or f"lesson-{lesson.lesson_id}-q{qid}",
            prompt=question.prompt_text,
            expected=question.answer,
            created_at=now,
            due_at=now,
        ))
    return entries


def build_lesson_summary(lesson_id: str, entries: list[ReviewQueueEntry], now: datetime) -> LessonSummary:
    return LessonSummary(
        lesson_id=lesson_id,
        completed_at=now,
        did_well="You completed the lesson.",
        focus_next=[e.concept_tag for e in entries][:3],
    )


# ─── Read ────────────────────────────────────────────────────────────────────

def reason_label(code: str) -> str:
    c = code.strip().upper()
    return REASON_LABELS.get(c, c.lower())


def profile_summary(profile: LearnerProfile, max_reasons: int = 3, max_chars: int = 260) -> Optional[str]:
    """One-line summary for tutor prompts, e.g. 'Focus areas: articles (3). ...'"""
    entries = [(k, n) for k, n in profile.mistake_counts_by_reason.items() if k and n > 0]
    entries.sort(key=lambda e: e[0])
    entries.sort(key=lambda e: e[1], reverse=True)
    entries = entries[:max(0, max_reasons)]

    parts = []
    if entries:
        parts.append("Focus areas: " + ", ".join(f"{reason_label(k)} ({n})" for k, n in entries) + ".")
    parts.append(f"Forced advances: {profile.forced_advance_count}.")
    parts.append(f"Practice attempts: {profile.practice_attempts_total}.")

    out = " ".join(parts).strip()
    if not out:
        return None
    return out[:max_chars].strip() if len(out) > max_chars else out
