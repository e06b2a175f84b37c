"""
LingoTutor - Content Catalog
Loads lesson JSON files (<LESSONS_DIR>/<language>/<lessonId>.json) into
immutable pydantic models. Light sanitizing only; authoring correctness is
not validated here.
"""

import json
import logging
import re
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from lingotutor.config import LESSONS_DIR

logger = logging.getLogger(__name__)


class LessonNotFoundError(LookupError):
    """No lesson file for (language, lesson_id)."""


class LessonContentError(ValueError):
    """Lesson exists but cannot be played (e.g. no questions)."""


def _clean_strings(value) -> list[str]:
    if not isinstance(value, list):
        return []
    return [s.strip() for s in value if isinstance(s, str) and s.strip()]


def _clean_concept_tag(value) -> Optional[str]:
    if not isinstance(value, str) or not value.strip():
        return None
    tag = value.strip().lower()
    tag = re.sub(r"[.$]", "_", tag)
    tag = re.sub(r"\s+", "_", tag)
    return tag[:48]


# ─── Models ──────────────────────────────────────────────────────────────────

class Question(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    question: str = ""
    prompt: str = ""
    answer: str = ""
    accepted_answers: list[str] = Field(default_factory=list, alias="acceptedAnswers")
    blank_answers: list[str] = Field(default_factory=list, alias="blankAnswers")
    expected_input: str = Field(default="", alias="expectedInput")
    hint: str = ""
    hints: list[str] = Field(default_factory=list)
    examples: list[str] = Field(default_factory=list)
    explanation: str = ""
    concept_tag: Optional[str] = Field(default=None, alias="conceptTag")

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, v):
        return str(v).strip()

    @field_validator("answer", mode="before")
    @classmethod
    def _answer_as_str(cls, v):
        # Numeric answers appear in counting lessons
        if v is None:
            return ""
        return str(v)

    @field_validator("question", "prompt", "hint", "explanation", "expected_input", mode="before")
    @classmethod
    def _strip_text(cls, v):
        return v.strip() if isinstance(v, str) else ""

    @field_validator("accepted_answers", "blank_answers", "hints", "examples", mode="before")
    @classmethod
    def _strip_lists(cls, v):
        return _clean_strings(v)

    @field_validator("concept_tag", mode="before")
    @classmethod
    def _concept_tag(cls, v):
        return _clean_concept_tag(v)

    @property
    def prompt_text(self) -> str:
        """The text shown to the learner: prompt, falling back to question."""
        return self.prompt or self.question


class Lesson(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    lesson_id: str = Field(alias="lessonId")
    title: str = ""
    description: str = ""
    questions: list[Question] = Field(default_factory=list)

    def question_at(self, index: int) -> Optional[Question]:
        if 0 <= index < len(self.questions):
            return self.questions[index]
        return None

    def find_question(self, question_id: str) -> Optional[Question]:
        for q in self.questions:
            if q.id == str(question_id):
                return q
        return None


# ─── Loading ─────────────────────────────────────────────────────────────────

def lesson_path(language: str, lesson_id: str, base_dir: Path = LESSONS_DIR) -> Path:
    lang = (language or "").strip().lower()
    lid = (lesson_id or "").strip()
    return Path(base_dir) / lang / f"{lid}.json"


def parse_lesson(raw: dict) -> Lesson:
    lesson = Lesson.model_validate(raw)
    if not lesson.questions:
        raise LessonContentError(f"Lesson '{lesson.lesson_id}' has no questions")
    return lesson


def load_lesson(language: str, lesson_id: str, base_dir: Path = LESSONS_DIR) -> Lesson:
    """
    Load and parse one lesson.

    Raises:
        LessonNotFoundError: missing or unreadable lesson file
        LessonContentError: the lesson has no questions
    """
    path = lesson_path(language, lesson_id, base_dir)
    if not path.is_file():
        logger.warning(f"Lesson file not found: {path}")
        raise LessonNotFoundError(f"Lesson '{lesson_id}' not found for language '{language}'")

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        return parse_lesson(raw)
    except (json.JSONDecodeError, ValidationError) as e:
        logger.warning(f"Lesson file unreadable: {path}: {e}")
        raise LessonNotFoundError(f"Lesson '{lesson_id}' could not be parsed") from e


@lru_cache(maxsize=64)
def load_lesson_cached(language: str, lesson_id: str) -> Lesson:
    """Catalog lookup against the configured LESSONS_DIR, memoized per process."""
    return load_lesson(language, lesson_id)
