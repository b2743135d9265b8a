"""Workflow run status API endpoints."""
from fastapi import APIRouter, Depends

from shared.api.dependencies import get_runner
from shared.models.schemas import WorkflowStatusResponse
from shared.utils.exceptions import StudyBuddyException
from workflows.runner import WorkflowRunner

router = APIRouter(prefix="/api/workflows", tags=["workflows"])


@router.get("/{run_id}", response_model=WorkflowStatusResponse)
def workflow_status(run_id: str, runner: WorkflowRunner = Depends(get_runner)):
    """Status, completed steps and (once completed) the output of a run."""
    try:
        return WorkflowStatusResponse(**runner.get_status(run_id))
    except StudyBuddyException as e:
        raise e.to_http_exception()


@router.post("/{run_id}/cancel", response_model=WorkflowStatusResponse)
def cancel_workflow(run_id: str, runner: WorkflowRunner = Depends(get_runner)):
    """Cancel a run that has not finished. 409 if it already has."""
    try:
        return WorkflowStatusResponse(**runner.cancel(run_id))
    except StudyBuddyException as e:
        raise e.to_http_exception()
