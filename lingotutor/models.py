"""
LingoTutor - ORM Models
Session and learner-profile documents, one row per (user, language).
The documents themselves are JSON; their shape lives on the state dataclasses.
"""

from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from lingotutor.database import Base


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ─── Lesson Sessions ─────────────────────────────────────────────────────────

class LessonSessionRecord(Base):
    __tablename__ = "lesson_sessions"
    __table_args__ = (UniqueConstraint("user_id", "language", name="uq_session_user_language"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(100), index=True)
    language: Mapped[str] = mapped_column(String(10))
    lesson_id: Mapped[str] = mapped_column(String(100))
    state: Mapped[str] = mapped_column(String(20), default="USER_INPUT")
    document: Mapped[dict] = mapped_column(JSON, default=dict)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now, onupdate=_now)


# ─── Learner Profiles ────────────────────────────────────────────────────────

class LearnerProfileRecord(Base):
    __tablename__ = "learner_profiles"
    __table_args__ = (UniqueConstraint("user_id", "language", name="uq_profile_user_language"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(100), index=True)
    language: Mapped[str] = mapped_column(String(10))
    document: Mapped[dict] = mapped_column(JSON, default=dict)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now, onupdate=_now)
