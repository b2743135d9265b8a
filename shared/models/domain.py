"""
Domain Models

Per-user study state: sessions, chat histories, quizzes, quiz results,
aggregate progress and the spaced-repetition queue. A UserState is owned by
exactly one StudyStateStore and serialized as a single JSON document.

All timestamps are epoch milliseconds.
"""

from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, Field, field_validator

from shared.utils.constants import MAX_SESSION_DURATION, MIN_SESSION_DURATION


Difficulty = Literal["beginner", "intermediate", "advanced"]
SessionStatus = Literal["active", "completed", "paused"]
MessageRole = Literal["user", "assistant", "system"]
QuestionType = Literal["multiple-choice", "true-false", "short-answer"]
ActivityType = Literal["session", "quiz"]


class ChatMessage(BaseModel):
    """A single tutor chat message."""

    role: MessageRole
    content: str
    timestamp: int


class StudySession(BaseModel):
    """A timed study session on one topic."""

    id: str
    topic: str = Field(min_length=1)
    duration: int = Field(ge=MIN_SESSION_DURATION, le=MAX_SESSION_DURATION, description="Planned length in minutes")
    difficulty: Difficulty
    start_time: int
    end_time: Optional[int] = None
    status: SessionStatus = "active"
    summary: Optional[str] = Field(default=None, description="Written by the study session workflow")

    @field_validator("topic")
    @classmethod
    def topic_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("topic must not be blank")
        return value


class QuizQuestion(BaseModel):
    """A validated quiz question."""

    id: str
    question: str
    type: QuestionType = "short-answer"
    options: Optional[List[str]] = None
    correct_answer: str
    explanation: str
    points: int = Field(default=10, gt=0)


class Quiz(BaseModel):
    """A generated quiz."""

    id: str
    topic: str
    difficulty: Difficulty
    questions: List[QuizQuestion] = Field(default_factory=list)
    created_at: int

    @property
    def max_score(self) -> int:
        return sum(q.points for q in self.questions)


class QuizResult(BaseModel):
    """Outcome of one quiz submission."""

    quiz_id: str
    score: int
    max_score: int
    percentage: float
    completed_at: int
    answers: Dict[str, str] = Field(default_factory=dict)


class ActivityRecord(BaseModel):
    """Entry in the recent-activity feed."""

    type: ActivityType
    topic: str
    timestamp: int
    duration: Optional[float] = None
    score: Optional[float] = None


class TopicProgress(BaseModel):
    """Per-topic aggregate of time, sessions, quiz performance and mastery."""

    topic: str
    mastery_level: float = Field(default=0.0, ge=0.0, le=100.0)
    time_spent: float = 0.0
    sessions_count: int = 0
    quiz_average: float = 0.0
    last_studied: int
    next_review: Optional[int] = None


class ProgressData(BaseModel):
    """Aggregate progress shown on the dashboard."""

    user_id: str
    total_study_time: float = 0.0
    total_sessions: int = 0
    total_quizzes: int = 0
    average_score: float = 0.0
    current_streak: int = 0
    longest_streak: int = 0
    last_study_day: Optional[str] = Field(default=None, description="ISO date of the last completed session (UTC)")
    topics_studied: List[TopicProgress] = Field(default_factory=list)
    recent_activity: List[ActivityRecord] = Field(default_factory=list)

    def find_topic(self, topic: str) -> Optional[TopicProgress]:
        for entry in self.topics_studied:
            if entry.topic == topic:
                return entry
        return None


class SpacedRepetitionItem(BaseModel):
    """A scheduled review of a topic."""

    topic: str
    next_review: int
    interval: int = Field(description="Days until the review")
    ease_factor: float = 2.5
    repetitions: int = 0
    last_session_id: Optional[str] = None


class UserState(BaseModel):
    """Complete persisted state for one user."""

    user_id: str
    sessions: Dict[str, StudySession] = Field(default_factory=dict)
    active_session_id: Optional[str] = None
    chat_histories: Dict[str, List[ChatMessage]] = Field(default_factory=dict)
    quizzes: Dict[str, Quiz] = Field(default_factory=dict)
    quiz_results: List[QuizResult] = Field(default_factory=list)
    progress: ProgressData
    spaced_repetition_queue: List[SpacedRepetitionItem] = Field(default_factory=list)

    @classmethod
    def empty(cls, user_id: str) -> "UserState":
        return cls(user_id=user_id, progress=ProgressData(user_id=user_id))
