"""
LingoTutor - Persistence
Session and learner-profile stores over SQLAlchemy. Each call runs in its own
DB session; writes are whole-document upserts per (user, language) key, so the
last writer wins. Callers serialize submissions per key.
"""

import logging
from typing import Optional, Protocol

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from lingotutor.database import SessionLocal
from lingotutor.models import LearnerProfileRecord, LessonSessionRecord
from lingotutor.state.profile import LearnerProfile
from lingotutor.state.session import LessonSessionState

logger = logging.getLogger(__name__)


class SessionStore(Protocol):
    def get_session_state(self, user_id: str, language: str) -> Optional[LessonSessionState]: ...
    def save_session_state(self, state: LessonSessionState) -> None: ...
    def delete_session_state(self, user_id: str, language: str) -> None: ...


class ProfileStore(Protocol):
    def get_learner_profile(self, user_id: str, language: str) -> Optional[LearnerProfile]: ...
    def get_or_create_profile(self, user_id: str, language: str) -> LearnerProfile: ...
    def save_learner_profile(self, profile: LearnerProfile) -> None: ...


# ─── Sessions ────────────────────────────────────────────────────────────────

class SqlSessionStore:
    def __init__(self, session_factory: sessionmaker = SessionLocal):
        self._session_factory = session_factory

    def get_session_state(self, user_id: str, language: str) -> Optional[LessonSessionState]:
        with self._session_factory() as db:
            row = db.scalars(
                select(LessonSessionRecord).where(
                    LessonSessionRecord.user_id == user_id,
                    LessonSessionRecord.language == language,
                )
            ).first()
            if row is None:
                return None
            try:
                return LessonSessionState.from_dict(row.document or {})
            except (KeyError, ValueError, TypeError) as e:
                # Unreadable session: treat as absent so the host starts fresh
                logger.warning(f"Unreadable session for user {user_id}/{language}: {e}")
                return None

    def save_session_state(self, state: LessonSessionState) -> None:
        with self._session_factory() as db:
            row = db.scalars(
                select(LessonSessionRecord).where(
                    LessonSessionRecord.user_id == state.user_id,
                    LessonSessionRecord.language == state.language,
                )
            ).first()
            if row is None:
                row = LessonSessionRecord(user_id=state.user_id, language=state.language)
                db.add(row)
            row.lesson_id = state.lesson_id
            row.state = state.state.value
            row.document = state.to_dict()
            db.commit()

    def delete_session_state(self, user_id: str, language: str) -> None:
        with self._session_factory() as db:
            for row in db.scalars(
                select(LessonSessionRecord).where(
                    LessonSessionRecord.user_id == user_id,
                    LessonSessionRecord.language == language,
                )
            ):
                db.delete(row)
            db.commit()


# ─── Learner Profiles ────────────────────────────────────────────────────────

class SqlProfileStore:
    def __init__(self, session_factory: sessionmaker = SessionLocal):
        self._session_factory = session_factory

    def get_learner_profile(self, user_id: str, language: str) -> Optional[LearnerProfile]:
        with self._session_factory() as db:
            row = db.scalars(
                select(LearnerProfileRecord).where(
                    LearnerProfileRecord.user_id == user_id,
                    LearnerProfileRecord.language == language,
                )
            ).first()
            if row is None:
                return None
            document = dict(row.document or {})
            document.setdefault("userId", user_id)
            document.setdefault("language", language)
            return LearnerProfile.from_dict(document)

    def get_or_create_profile(self, user_id: str, language: str) -> LearnerProfile:
        return self.get_learner_profile(user_id, language) or LearnerProfile(user_id=user_id, language=language)

    def save_learner_profile(self, profile: LearnerProfile) -> None:
        with self._session_factory() as db:
            row = db.scalars(
                select(LearnerProfileRecord).where(
                    LearnerProfileRecord.user_id == profile.user_id,
                    LearnerProfileRecord.language == profile.language,
                )
            ).first()
            if row is None:
                row = LearnerProfileRecord(user_id=profile.user_id, language=profile.language)
                db.add(row)
            row.document = profile.to_dict()
            db.commit()
