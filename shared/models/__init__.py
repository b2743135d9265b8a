"""Shared models: ORM entities, domain state and API schemas."""
from .entities import Base, UserStateRecord, CacheEntry, WorkflowRun, WorkflowStep
from .domain import (
    ActivityRecord,
    ChatMessage,
    ProgressData,
    Quiz,
    QuizQuestion,
    QuizResult,
    SpacedRepetitionItem,
    StudySession,
    TopicProgress,
    UserState,
)

__all__ = [
    "Base",
    "UserStateRecord",
    "CacheEntry",
    "WorkflowRun",
    "WorkflowStep",
    "ActivityRecord",
    "ChatMessage",
    "ProgressData",
    "Quiz",
    "QuizQuestion",
    "QuizResult",
    "SpacedRepetitionItem",
    "StudySession",
    "TopicProgress",
    "UserState",
]
