"""
LingoTutor - Lesson Session State

One LessonSessionState per (user, language). The attempt tracker is the only
code that mutates it; the host persists it after every submission.

Persistence Rules:
- attempts: per question id, reset to 0 on a correct answer or forced advance.
- last_answer_normalized: per question id, only used to spot a repeated wrong answer.
- recent_confusions: newest last, capped at RECENT_CONFUSION_CAP.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from lingotutor.config import MAX_ATTEMPTS, RECENT_CONFUSION_CAP, RECENT_CONFUSION_WINDOW_MINUTES


class LessonState(str, Enum):
    USER_INPUT = "USER_INPUT"  # waiting for (another) answer to the current question
    ADVANCE = "ADVANCE"        # moved on to the next question
    COMPLETE = "COMPLETE"      # lesson finished


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_dt(value) -> Optional[datetime]:
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        try:
            dt = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    else:
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


@dataclass
class AttemptRecord:
    """Per user x question attempt bookkeeping."""
    attempt_count: int = 0
    last_answer_normalized: str = ""
    hint_level: int = 0  # 0 none, 1-2 hints, 3 reveal

    def reset(self) -> None:
        self.attempt_count = 0
        self.hint_level = 0

    def to_dict(self) -> dict:
        return {
            "attempt_count": self.attempt_count,
            "last_answer_normalized": self.last_answer_normalized,
            "hint_level": self.hint_level,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AttemptRecord":
        return cls(
            attempt_count=max(0, int(data.get("attempt_count", 0) or 0)),
            last_answer_normalized=str(data.get("last_answer_normalized", "") or ""),
            hint_level=min(3, max(0, int(data.get("hint_level", 0) or 0))),
        )


@dataclass
class RecentConfusion:
    concept_tag: str
    timestamp: datetime


@dataclass
class LessonSessionState:
    # ─── Identity ────────────────────────────────────────────────────────────
    user_id: str
    lesson_id: str
    language: str
    started_at: datetime = field(default_factory=_now)

    # ─── FSM ─────────────────────────────────────────────────────────────────
    state: LessonState = LessonState.USER_INPUT
    current_question_index: int = 0
    max_attempts: int = MAX_ATTEMPTS
    attempts: dict[str, AttemptRecord] = field(default_factory=dict)

    # ─── Session counters ────────────────────────────────────────────────────
    wrong_count: int = 0
    almost_count: int = 0
    forced_advance_count: int = 0
    hints_used_count: int = 0
    mistake_count_by_concept: dict[str, int] = field(default_factory=dict)
    recent_confusions: list[RecentConfusion] = field(default_factory=list)

    # ─── Conversation ────────────────────────────────────────────────────────
    messages: list[dict] = field(default_factory=list)

    def attempt_for(self, question_id: str) -> AttemptRecord:
        """Get (creating on first answer) the attempt record for a question."""
        record = self.attempts.get(question_id)
        if record is None:
            record = AttemptRecord()
            self.attempts[question_id] = record
        return record

    def add_recent_confusion(self, concept_tag: str, when: datetime) -> None:
        self.recent_confusions.append(RecentConfusion(concept_tag, when))
        # Sort-then-truncate keeps the newest entries
        self.recent_confusions.sort(key=lambda c: c.timestamp)
        del self.recent_confusions[:-RECENT_CONFUSION_CAP]

    def has_recent_confusion(self, concept_tag: Optional[str], now: datetime) -> bool:
        """Same concept confused at least twice within the recent window."""
        if not concept_tag:
            return False
        cutoff = now - timedelta(minutes=RECENT_CONFUSION_WINDOW_MINUTES)
        hits = [c for c in self.recent_confusions if c.concept_tag == concept_tag and c.timestamp >= cutoff]
        return len(hits) >= 2

    def add_message(self, role: str, content: str) -> None:
        self.messages.append({"role": role, "content": content})

    @property
    def is_complete(self) -> bool:
        return self.state == LessonState.COMPLETE

    def to_dict(self) -> dict:
        """Serialize to dictionary for storage/logging."""
        return {
            "user_id": self.user_id,
            "lesson_id": self.lesson_id,
            "language": self.language,
            "started_at": self.started_at.isoformat(),
            "state": self.state.value,
            "current_question_index": self.current_question_index,
            "max_attempts": self.max_attempts,
            "attempts": {qid: rec.to_dict() for qid, rec in self.attempts.items()},
            "wrong_count": self.wrong_count,
            "almost_count": self.almost_count,
            "forced_advance_count": self.forced_advance_count,
            "hints_used_count": self.hints_used_count,
            "mistake_count_by_concept": dict(self.mistake_count_by_concept),
            "recent_confusions": [
                {"concept_tag": c.concept_tag, "timestamp": c.timestamp.isoformat()}
                for c in self.recent_confusions
            ],
            "messages": list(self.messages),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LessonSessionState":
        """Deserialize from dictionary."""
        state = cls(
            user_id=data["user_id"],
            lesson_id=data["lesson_id"],
            language=data["language"],
        )
        started = _parse_dt(data.get("started_at"))
        if started:
            state.started_at = started
        if data.get("state"):
            state.state = LessonState(data["state"])
        state.current_question_index = int(data.get("current_question_index", 0) or 0)
        state.max_attempts = int(data.get("max_attempts", MAX_ATTEMPTS) or MAX_ATTEMPTS)
        state.attempts = {
            str(qid): AttemptRecord.from_dict(rec or {})
            for qid, rec in (data.get("attempts") or {}).items()
        }
        state.wrong_count = data.get("wrong_count", 0)
        state.almost_count = data.get("almost_count", 0)
        state.forced_advance_count = data.get("forced_advance_count", 0)
        state.hints_used_count = data.get("hints_used_count", 0)
        state.mistake_count_by_concept = dict(data.get("mistake_count_by_concept") or {})
        for raw in data.get("recent_confusions") or []:
            when = _parse_dt((raw or {}).get("timestamp"))
            tag = (raw or {}).get("concept_tag")
            if when and tag:
                state.recent_confusions.append(RecentConfusion(tag, when))
        state.messages = list(data.get("messages") or [])
        return state
