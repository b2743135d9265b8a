"""Pydantic models for API requests and responses."""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, field_validator

from shared.models.domain import ChatMessage, Difficulty, QuizQuestion, StudySession
from shared.utils.constants import (
    MAX_QUIZ_QUESTIONS,
    MAX_SESSION_DURATION,
    MIN_QUIZ_QUESTIONS,
    MIN_SESSION_DURATION,
)


def _require_text(value: str, field_name: str) -> str:
    if not value or not value.strip():
        raise ValueError(f"{field_name} is required")
    return value


class ChatRequest(BaseModel):
    message: str = Field(max_length=10000)
    session_id: str
    user_id: Optional[str] = None

    @field_validator("message")
    @classmethod
    def message_required(cls, value: str) -> str:
        return _require_text(value, "message")


class ChatResponse(BaseModel):
    response: str
    session_id: str


class ChatHistoryResponse(BaseModel):
    history: List[ChatMessage]


class StartStudyRequest(BaseModel):
    topic: str
    duration: int = Field(ge=MIN_SESSION_DURATION, le=MAX_SESSION_DURATION)
    difficulty: Difficulty
    user_id: Optional[str] = None

    @field_validator("topic")
    @classmethod
    def topic_required(cls, value: str) -> str:
        return _require_text(value, "topic")


class StartStudyResponse(BaseModel):
    session: StudySession
    workflow_id: Optional[str] = None


class CurrentSessionResponse(BaseModel):
    session: Optional[StudySession] = None


class CompleteSessionRequest(BaseModel):
    session_id: str
    user_id: Optional[str] = None

    @field_validator("session_id")
    @classmethod
    def session_id_required(cls, value: str) -> str:
        return _require_text(value, "session_id")


class SuccessResponse(BaseModel):
    success: bool = True


class GenerateQuizRequest(BaseModel):
    topic: str
    question_count: int = Field(default=5, ge=MIN_QUIZ_QUESTIONS, le=MAX_QUIZ_QUESTIONS)
    difficulty: Difficulty
    user_id: Optional[str] = None

    @field_validator("topic")
    @classmethod
    def topic_required(cls, value: str) -> str:
        return _require_text(value, "topic")


class GenerateQuizResponse(BaseModel):
    workflow_id: str
    message: str = "Quiz generation started"


class SubmitQuizRequest(BaseModel):
    quiz_id: str
    answers: Dict[str, str]
    user_id: Optional[str] = None

    @field_validator("quiz_id")
    @classmethod
    def quiz_id_required(cls, value: str) -> str:
        return _require_text(value, "quiz_id")


class QuizView(BaseModel):
    """Quiz as returned to the learner (answers included, the UI hides them)."""
    id: str
    topic: str
    difficulty: Difficulty
    questions: List[QuizQuestion]
    total_points: int
    estimated_time: int


class WorkflowStatusResponse(BaseModel):
    run_id: str
    workflow_type: str
    status: str
    resume_at: Optional[int] = None
    output: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    completed_steps: List[str] = Field(default_factory=list)
