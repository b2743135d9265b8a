"""FastAPI dependency providers."""
from typing import Optional

from config import get_settings
from shared.services.llm_service import get_llm_service
from study.services.tutor_service import TutorService
from workflows.runner import WorkflowRunner, get_workflow_runner


def resolve_user_id(user_id: Optional[str] = None) -> str:
    """The named user, or the configured default user."""
    return user_id or get_settings().default_user_id


def get_tutor_service() -> TutorService:
    return TutorService(get_llm_service())


def get_runner() -> WorkflowRunner:
    return get_workflow_runner()
