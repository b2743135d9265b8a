"""Quiz API endpoints."""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session as DBSession

from database import get_db
from shared.api.dependencies import get_runner, resolve_user_id
from shared.models.domain import QuizResult
from shared.models.schemas import GenerateQuizRequest, GenerateQuizResponse, QuizView, SubmitQuizRequest
from shared.utils.constants import MINUTES_PER_QUESTION, QUIZ_GENERATION_WORKFLOW
from shared.utils.exceptions import StudyBuddyException
from study.services.study_state_store import StudyStateStore
from workflows.runner import WorkflowRunner

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/quiz", tags=["quiz"])


@router.post("/generate", response_model=GenerateQuizResponse)
def generate_quiz(request: GenerateQuizRequest, runner: WorkflowRunner = Depends(get_runner)):
    """Start quiz generation. Poll /api/workflows/{workflow_id} for the quiz id."""
    user_id = resolve_user_id(request.user_id)
    try:
        workflow_id = runner.start(
            QUIZ_GENERATION_WORKFLOW,
            {
                "topic": request.topic,
                "question_count": request.question_count,
                "difficulty": request.difficulty,
                "user_id": user_id,
            },
            user_id,
        )
    except Exception as e:
        logger.error(f"Failed to start quiz generation for '{request.topic}': {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to start quiz generation: {str(e)}")

    return GenerateQuizResponse(workflow_id=workflow_id)


@router.post("/submit", response_model=QuizResult)
def submit_quiz(request: SubmitQuizRequest, db: DBSession = Depends(get_db)):
    """Score a submission. Every submission is recorded, repeats included."""
    try:
        store = StudyStateStore(db, resolve_user_id(request.user_id))
        return store.submit_quiz(request.quiz_id, request.answers)
    except StudyBuddyException as e:
        raise e.to_http_exception()


@router.get("/results", response_model=List[QuizResult])
def quiz_results(user_id: str = Depends(resolve_user_id), db: DBSession = Depends(get_db)):
    return StudyStateStore(db, user_id).get_quiz_results()


@router.get("/{quiz_id}", response_model=QuizView)
def get_quiz(quiz_id: str, user_id: str = Depends(resolve_user_id), db: DBSession = Depends(get_db)):
    try:
        quiz = StudyStateStore(db, user_id).get_quiz(quiz_id)
    except StudyBuddyException as e:
        raise e.to_http_exception()

    return QuizView(
        id=quiz.id,
        topic=quiz.topic,
        difficulty=quiz.difficulty,
        questions=quiz.questions,
        total_points=quiz.max_score,
        estimated_time=len(quiz.questions) * MINUTES_PER_QUESTION,
    )
