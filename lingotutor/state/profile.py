"""
LingoTutor - Learner Profile State
Long-term, per (user, language) learning data: mistake statistics, scored
review candidates, and the due-dated review queue.

Stored review data is untrusted: rows that cannot be read back (missing ids,
invalid dates) are dropped on load instead of failing the whole profile.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from lingotutor.config import MAX_MISTAKE_COUNT

logger = logging.getLogger(__name__)


# ─── Helpers ─────────────────────────────────────────────────────────────────

def _now() -> datetime:
    return datetime.now(timezone.utc)


def coerce_datetime(value) -> Optional[datetime]:
    """datetime / ISO string / epoch millis → aware UTC datetime, else None."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(raw)
        except ValueError:
            return None
    elif isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value):
        try:
            dt = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    else:
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def clamp_int(value, fallback: int, low: int, high: int) -> int:
    try:
        n = float(value)
    except (TypeError, ValueError):
        return fallback
    if not math.isfinite(n):
        return fallback
    return max(low, min(high, math.floor(n)))


def clamp_float(value, fallback: float, low: float, high: float) -> float:
    try:
        n = float(value)
    except (TypeError, ValueError):
        return fallback
    if not math.isfinite(n):
        return fallback
    return max(low, min(high, n))


def _clean_str(value) -> str:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    return value.strip() if isinstance(value, str) else ""


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


# ─── Review Candidates ───────────────────────────────────────────────────────

@dataclass(frozen=True, order=True)
class ReviewKey:
    """Composite identity of a review candidate."""
    lesson_id: str
    question_id: str


@dataclass
class ReviewCandidate:
    """Scored, unscheduled signal that a question's concept needs review."""
    lesson_id: str
    question_id: str
    concept_tag: str = ""
    last_seen_at: datetime = field(default_factory=_now)
    last_reviewed_at: Optional[datetime] = None
    mistake_count: int = 0
    confidence: float = 0.5
    last_outcome: Optional[str] = None

    def __post_init__(self):
        self.mistake_count = clamp_int(self.mistake_count, 0, 0, MAX_MISTAKE_COUNT)
        self.confidence = clamp_float(self.confidence, 0.5, 0.0, 1.0)
        # Stored datetimes are always aware; naive input is taken as UTC
        self.last_seen_at = coerce_datetime(self.last_seen_at) or _now()
        self.last_reviewed_at = coerce_datetime(self.last_reviewed_at)

    @property
    def key(self) -> ReviewKey:
        return ReviewKey(self.lesson_id, self.question_id)

    def to_dict(self) -> dict:
        return {
            "lessonId": self.lesson_id,
            "questionId": self.question_id,
            "conceptTag": self.concept_tag,
            "lastSeenAt": _iso(self.last_seen_at),
            "lastReviewedAt": _iso(self.last_reviewed_at),
            "mistakeCount": self.mistake_count,
            "confidence": self.confidence,
            "lastOutcome": self.last_outcome,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Optional["ReviewCandidate"]:
        """Returns None for rows that cannot be repaired."""
        if not isinstance(data, dict):
            return None
        lesson_id = _clean_str(data.get("lessonId"))
        question_id = _clean_str(data.get("questionId"))
        if not lesson_id or not question_id:
            return None

        last_seen_raw = data.get("lastSeenAt")
        last_seen = coerce_datetime(last_seen_raw)
        if last_seen_raw is not None and last_seen is None:
            return None
        reviewed_raw = data.get("lastReviewedAt")
        last_reviewed = coerce_datetime(reviewed_raw)
        if reviewed_raw is not None and last_reviewed is None:
            return None

        return cls(
            lesson_id=lesson_id,
            question_id=question_id,
            concept_tag=_clean_str(data.get("conceptTag")),
            last_seen_at=last_seen or _now(),
            last_reviewed_at=last_reviewed,
            mistake_count=data.get("mistakeCount", 0),
            confidence=data.get("confidence", 0.5),
            last_outcome=data.get("lastOutcome") if isinstance(data.get("lastOutcome"), str) else None,
        )


# ─── Review Queue ────────────────────────────────────────────────────────────

@dataclass
class ReviewQueueEntry:
    """Concrete, due-dated practice item."""
    id: str
    lesson_id: str
    concept_tag: str
    prompt: str
    expected: str
    created_at: datetime
    due_at: datetime
    attempts: int = 0
    last_result: Optional[str] = None

    def __post_init__(self):
        self.attempts = max(0, int(self.attempts or 0))
        self.created_at = coerce_datetime(self.created_at) or _now()
        self.due_at = coerce_datetime(self.due_at) or self.created_at

    @property
    def dedupe_key(self) -> tuple[str, str, str]:
        return (self.lesson_id, self.concept_tag, self.prompt)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "lessonId": self.lesson_id,
            "conceptTag": self.concept_tag,
            "prompt": self.prompt,
            "expected": self.expected,
            "createdAt": _iso(self.created_at),
            "dueAt": _iso(self.due_at),
            "attempts": self.attempts,
            "lastResult": self.last_result,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Optional["ReviewQueueEntry"]:
        if not isinstance(data, dict):
            return None
        item_id = _clean_str(data.get("id"))
        lesson_id = _clean_str(data.get("lessonId"))
        prompt = _clean_str(data.get("prompt"))
        created_at = coerce_datetime(data.get("createdAt"))
        due_at = coerce_datetime(data.get("dueAt"))
        if not item_id or not lesson_id or not prompt or created_at is None or due_at is None:
            return None
        return cls(
            id=item_id,
            lesson_id=lesson_id,
            concept_tag=_clean_str(data.get("conceptTag")),
            prompt=prompt,
            expected=_clean_str(data.get("expected")),
            created_at=created_at,
            due_at=due_at,
            attempts=clamp_int(data.get("attempts"), 0, 0, 10_000),
            last_result=data.get("lastResult") if isinstance(data.get("lastResult"), str) else None,
        )


def normalize_review_candidates(raw) -> list[ReviewCandidate]:
    """Best-effort repair pass over stored candidates (list or legacy mapping)."""
    if not raw:
        return []
    rows = list(raw.values()) if isinstance(raw, dict) else list(raw)
    out = []
    for row in rows:
        candidate = row if isinstance(row, ReviewCandidate) else ReviewCandidate.from_dict(row)
        if candidate is not None:
            out.append(candidate)
    dropped = len(rows) - len(out)
    if dropped:
        logger.warning(f"Dropped {dropped} malformed review candidate(s)")
    return out


def normalize_review_queue(raw) -> list[ReviewQueueEntry]:
    if not raw:
        return []
    rows = list(raw)
    out = []
    for row in rows:
        entry = row if isinstance(row, ReviewQueueEntry) else ReviewQueueEntry.from_dict(row)
        if entry is not None:
            out.append(entry)
    dropped = len(rows) - len(out)
    if dropped:
        logger.warning(f"Dropped {dropped} malformed review queue item(s)")
    return out


# ─── Learner Profile ─────────────────────────────────────────────────────────

@dataclass
class LessonSummary:
    lesson_id: str
    completed_at: datetime
    did_well: str = ""
    focus_next: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "lessonId": self.lesson_id,
            "completedAt": _iso(self.completed_at),
            "didWell": self.did_well,
            "focusNext": list(self.focus_next),
        }

    @classmethod
    def from_dict(cls, data) -> Optional["LessonSummary"]:
        if not isinstance(data, dict):
            return None
        lesson_id = _clean_str(data.get("lessonId"))
        completed = coerce_datetime(data.get("completedAt"))
        if not lesson_id or completed is None:
            return None
        return cls(
            lesson_id=lesson_id,
            completed_at=completed,
            did_well=_clean_str(data.get("didWell")),
            focus_next=[t for t in data.get("focusNext") or [] if isinstance(t, str)],
        )


@dataclass
class LearnerProfile:
    user_id: str
    language: str
    mistake_counts_by_reason: dict[str, int] = field(default_factory=dict)
    forced_advance_count: int = 0
    attempts_total: int = 0
    practice_attempts_total: int = 0
    review_candidates: dict[ReviewKey, ReviewCandidate] = field(default_factory=dict)
    review_queue: list[ReviewQueueEntry] = field(default_factory=list)
    last_summary: Optional[LessonSummary] = None
    last_active_at: datetime = field(default_factory=_now)

    def to_dict(self) -> dict:
        return {
            "userId": self.user_id,
            "language": self.language,
            "mistakeCountsByReason": dict(self.mistake_counts_by_reason),
            "forcedAdvanceCount": self.forced_advance_count,
            "attemptsTotal": self.attempts_total,
            "practiceAttemptsTotal": self.practice_attempts_total,
            "reviewCandidates": [c.to_dict() for c in self.review_candidates.values()],
            "reviewQueue": [e.to_dict() for e in self.review_queue],
            "lastSummary": self.last_summary.to_dict() if self.last_summary else None,
            "lastActiveAt": _iso(self.last_active_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LearnerProfile":
        profile = cls(user_id=data["userId"], language=data["language"])
        profile.mistake_counts_by_reason = {
            str(k): clamp_int(v, 0, 0, 1_000_000)
            for k, v in (data.get("mistakeCountsByReason") or {}).items()
        }
        profile.forced_advance_count = clamp_int(data.get("forcedAdvanceCount"), 0, 0, 1_000_000)
        profile.attempts_total = clamp_int(data.get("attemptsTotal"), 0, 0, 1_000_000)
        profile.practice_attempts_total = clamp_int(data.get("practiceAttemptsTotal"), 0, 0, 1_000_000)
        for candidate in normalize_review_candidates(data.get("reviewCandidates")):
            profile.review_candidates[candidate.key] = candidate
        profile.review_queue = normalize_review_queue(data.get("reviewQueue"))
        profile.last_summary = LessonSummary.from_dict(data.get("lastSummary"))
        profile.last_active_at = coerce_datetime(data.get("lastActiveAt")) or _now()
        return profile
