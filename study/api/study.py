"""Study session API endpoints."""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session as DBSession

from database import get_db
from shared.api.dependencies import get_runner, resolve_user_id
from shared.models.domain import StudySession
from shared.models.schemas import (
    CompleteSessionRequest,
    CurrentSessionResponse,
    StartStudyRequest,
    StartStudyResponse,
    SuccessResponse,
)
from shared.utils.clock import make_id, now_ms
from shared.utils.constants import STUDY_SESSION_WORKFLOW
from shared.utils.exceptions import StudyBuddyException
from study.services.study_state_store import StudyStateStore
from workflows.runner import WorkflowRunner

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/study", tags=["study"])


@router.post("/start", response_model=StartStudyResponse)
def start_session(
    request: StartStudyRequest,
    db: DBSession = Depends(get_db),
    runner: WorkflowRunner = Depends(get_runner),
):
    """Create a study session and start its orchestration workflow."""
    user_id = resolve_user_id(request.user_id)
    start_time = now_ms()
    session = StudySession(
        id=make_id("session", start_time),
        topic=request.topic,
        duration=request.duration,
        difficulty=request.difficulty,
        start_time=start_time,
    )
    try:
        StudyStateStore(db, user_id).create_session(session)
    except StudyBuddyException as e:
        raise e.to_http_exception()

    workflow_id = None
    try:
        workflow_id = runner.start(
            STUDY_SESSION_WORKFLOW,
            {
                "session_id": session.id,
                "topic": session.topic,
                "duration": session.duration,
                "difficulty": session.difficulty,
                "user_id": user_id,
            },
            user_id,
        )
    except Exception as e:
        logger.error(f"Failed to start study session workflow for {session.id}: {e}", exc_info=True)

    return StartStudyResponse(session=session, workflow_id=workflow_id)


@router.get("/current", response_model=CurrentSessionResponse)
def current_session(user_id: str = Depends(resolve_user_id), db: DBSession = Depends(get_db)):
    """The user's active session, if any."""
    return CurrentSessionResponse(session=StudyStateStore(db, user_id).get_current_session())


@router.post("/complete", response_model=SuccessResponse)
def complete_session(request: CompleteSessionRequest, db: DBSession = Depends(get_db)):
    """Complete a session. Unknown or already completed ids succeed without effect."""
    try:
        StudyStateStore(db, resolve_user_id(request.user_id)).complete_session(request.session_id)
    except StudyBuddyException as e:
        raise e.to_http_exception()
    return SuccessResponse()
