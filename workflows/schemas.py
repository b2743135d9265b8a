"""Parameter models for workflow runs."""
from pydantic import BaseModel, Field, field_validator

from shared.models.domain import Difficulty
from shared.utils.constants import (
    MAX_QUIZ_QUESTIONS,
    MAX_SESSION_DURATION,
    MIN_QUIZ_QUESTIONS,
    MIN_SESSION_DURATION,
)


def _not_blank(value: str) -> str:
    if not value or not value.strip():
        raise ValueError("must not be blank")
    return value


class StudySessionParams(BaseModel):
    session_id: str
    topic: str
    duration: int = Field(ge=MIN_SESSION_DURATION, le=MAX_SESSION_DURATION, description="Minutes")
    difficulty: Difficulty
    user_id: str

    @field_validator("session_id", "topic", "user_id")
    @classmethod
    def required_text(cls, value: str) -> str:
        return _not_blank(value)


class QuizGenerationParams(BaseModel):
    topic: str
    question_count: int = Field(ge=MIN_QUIZ_QUESTIONS, le=MAX_QUIZ_QUESTIONS)
    difficulty: Difficulty
    user_id: str

    @field_validator("topic", "user_id")
    @classmethod
    def required_text(cls, value: str) -> str:
        return _not_blank(value)
