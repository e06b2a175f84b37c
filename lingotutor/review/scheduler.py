"""
LingoTutor - Review Scheduler
Two jobs:

(a) Candidate scoring: which struggled-with questions to suggest for review.
        score = mistakes * 10 + age_days (0..30) + (1 - confidence) * 5
    Candidates reviewed within the last 12 hours are skipped.

(b) Due-date queue: spaced intervals for concrete review items.
        correct after 1 attempt → +24h, 2 → +72h, 3+ → +168h
        anything else           → due now

All orderings carry an explicit tie-break chain so output is reproducible.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from lingotutor.config import (
    DEFAULT_SUGGESTED_ITEMS, MAX_AGE_DAYS, MAX_REVIEW_ITEMS, REVIEW_CANDIDATE_CAP,
    REVIEW_COOLDOWN_HOURS, REVIEW_QUEUE_CAP,
)
from lingotutor.state.profile import (
    ReviewCandidate, ReviewKey, ReviewQueueEntry, clamp_int,
    normalize_review_candidates, normalize_review_queue,
)

REVIEW_COOLDOWN = timedelta(hours=REVIEW_COOLDOWN_HOURS)
ONE_DAY = timedelta(days=1)

# attempts → interval after a correct review
REVIEW_INTERVALS = {
    1: timedelta(hours=24),
    2: timedelta(hours=72),
}
LONGEST_INTERVAL = timedelta(hours=168)


@dataclass(frozen=True)
class SuggestedReviewItem:
    candidate: ReviewCandidate
    score: float

    @property
    def key(self) -> ReviewKey:
        return self.candidate.key

    def to_dict(self) -> dict:
        c = self.candidate
        return {
            "lessonId": c.lesson_id,
            "questionId": c.question_id,
            "conceptTag": c.concept_tag,
            "score": self.score,
            "lastSeenAt": c.last_seen_at.isoformat(),
            "mistakeCount": c.mistake_count,
            "confidence": c.confidence,
        }


def _safe_now(now: Optional[datetime]) -> datetime:
    if not isinstance(now, datetime):
        return datetime.now(timezone.utc)
    return now if now.tzinfo else now.replace(tzinfo=timezone.utc)


# ─── (a) Candidate scoring ───────────────────────────────────────────────────

def score_candidate(candidate: ReviewCandidate, now: datetime) -> float:
    age_days = math.floor((now - candidate.last_seen_at) / ONE_DAY)
    age_days = max(0, min(MAX_AGE_DAYS, age_days))
    return candidate.mistake_count * 10 + age_days + (1 - candidate.confidence) * 5


def in_cooldown(candidate: ReviewCandidate, now: datetime) -> bool:
    reviewed = candidate.last_reviewed_at
    return reviewed is not None and now - reviewed < REVIEW_COOLDOWN


def pick_suggested_review_items(
    candidates: Iterable[ReviewCandidate],
    now: Optional[datetime] = None,
    limit: int = DEFAULT_SUGGESTED_ITEMS,
) -> list[SuggestedReviewItem]:
    """
    Top-scored review candidates.

    Skips candidates without mistakes and those reviewed within the cooldown.
    Ties: newer last_seen_at first, then concept_tag, lesson_id, question_id
    ascending. Returns at most clamp(limit, 1, 5) items.
    """
    now = _safe_now(now)
    max_items = clamp_int(limit, DEFAULT_SUGGESTED_ITEMS, 1, MAX_REVIEW_ITEMS)

    scored = [
        SuggestedReviewItem(c, score_candidate(c, now))
        for c in candidates
        if c.mistake_count > 0 and not in_cooldown(c, now)
    ]
    # Stable multi-pass sort: least significant key first
    scored.sort(key=lambda s: (s.candidate.concept_tag, s.candidate.lesson_id, s.candidate.question_id))
    scored.sort(key=lambda s: (s.score, s.candidate.last_seen_at), reverse=True)
    return scored[:max_items]


def suggest_review_items(raw_candidates, now: Optional[datetime] = None, max_items: int = DEFAULT_SUGGESTED_ITEMS) -> list[SuggestedReviewItem]:
    """pick_suggested_review_items over stored (possibly malformed) candidate rows."""
    return pick_suggested_review_items(normalize_review_candidates(raw_candidates), now, max_items)


def trim_review_candidates(
    candidates: dict[ReviewKey, ReviewCandidate],
    cap: int = REVIEW_CANDIDATE_CAP,
) -> dict[ReviewKey, ReviewCandidate]:
    """Keep the `cap` most recently seen candidates."""
    if len(candidates) <= cap:
        return candidates
    ordered = sorted(candidates.values(), key=lambda c: (c.last_seen_at, c.key), reverse=True)
    return {c.key: c for c in ordered[:cap]}


def pick_weak_question_ids(
    candidates: Iterable[ReviewCandidate],
    lesson_id: str,
    limit: int = MAX_REVIEW_ITEMS,
) -> list[str]:
    """Weakest questions of one lesson: most mistakes, then most recent, then id."""
    rows = [c for c in candidates if c.lesson_id == lesson_id]
    rows.sort(key=lambda c: c.question_id)
    rows.sort(key=lambda c: (max(1, c.mistake_count), c.last_seen_at), reverse=True)
    max_items = clamp_int(limit, MAX_REVIEW_ITEMS, 1, MAX_REVIEW_ITEMS)
    return [c.question_id for c in rows[:max_items]]


# ─── (b) Due-date queue ──────────────────────────────────────────────────────

def compute_next_review_due_at(attempts: int, result: str, now: Optional[datetime] = None) -> datetime:
    now = _safe_now(now)
    if str(getattr(result, "value", result)) != "correct":
        return now
    count = max(1, math.floor(attempts or 0))
    return now + REVIEW_INTERVALS.get(count, LONGEST_INTERVAL)


def pick_due_review_queue_items(
    queue: Iterable[ReviewQueueEntry],
    now: Optional[datetime] = None,
    limit: int = MAX_REVIEW_ITEMS,
) -> list[ReviewQueueEntry]:
    """Entries with due_at <= now, in queue order, at most min(5, limit)."""
    now = _safe_now(now)
    max_items = clamp_int(limit, MAX_REVIEW_ITEMS, 1, MAX_REVIEW_ITEMS)
    due = [entry for entry in queue if entry.due_at <= now]
    return due[:max_items]


def enqueue_review_items(
    queue: Iterable[ReviewQueueEntry],
    new_items: Iterable[ReviewQueueEntry],
    cap: int = REVIEW_QUEUE_CAP,
) -> list[ReviewQueueEntry]:
    """
    Append new items, dropping ones whose (lesson_id, concept_tag, prompt)
    is already queued, then trim the oldest (by created_at) beyond `cap`.
    Queue order is preserved.
    """
    merged = list(normalize_review_queue(queue))
    seen = {entry.dedupe_key for entry in merged}
    for item in normalize_review_queue(new_items):
        if item.dedupe_key in seen:
            continue
        seen.add(item.dedupe_key)
        merged.append(item)

    if len(merged) <= cap:
        return merged

    # Sort-then-truncate on a copy, then restore queue order
    by_age = sorted(range(len(merged)), key=lambda i: (merged[i].created_at, i), reverse=True)
    keep = set(by_age[:cap])
    return [entry for i, entry in enumerate(merged) if i in keep]


def find_queue_entry(queue: list[ReviewQueueEntry], item_id: str) -> Optional[int]:
    for idx, entry in enumerate(queue):
        if entry.id == item_id:
            return idx
    return None
