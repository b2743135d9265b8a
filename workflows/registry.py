"""Wiring of the workflow runner with the application's workflows."""
from typing import Callable, Dict, Optional

from sqlalchemy.orm import Session

from shared.services.llm_service import LLMService
from shared.utils.clock import now_ms
from workflows.engine import Workflow
from workflows.quiz_generation import QuizGenerationWorkflow
from workflows.runner import Dispatch, WorkflowRunner
from workflows.study_session import StudySessionWorkflow


def build_workflows(llm: LLMService, quiz_cache_ttl_seconds: int) -> Dict[str, Workflow]:
    workflows = [
        StudySessionWorkflow(llm),
        QuizGenerationWorkflow(llm, cache_ttl_seconds=quiz_cache_ttl_seconds),
    ]
    return {workflow.workflow_type: workflow for workflow in workflows}


def build_workflow_runner(
    session_factory: Callable[[], Session],
    llm: LLMService,
    settings,
    clock: Callable[[], int] = now_ms,
    dispatch: Optional[Dispatch] = None,
) -> WorkflowRunner:
    """Create a runner for both workflows from application settings."""
    return WorkflowRunner(
        session_factory=session_factory,
        workflows=build_workflows(llm, settings.quiz_cache_ttl_seconds),
        clock=clock,
        dispatch=dispatch,
        step_max_attempts=settings.workflow_step_max_attempts,
    )
