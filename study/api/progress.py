"""Progress dashboard API endpoints."""
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session as DBSession

from database import get_db
from shared.api.dependencies import resolve_user_id
from shared.models.domain import ProgressData, SpacedRepetitionItem, TopicProgress
from study.services.study_state_store import StudyStateStore

router = APIRouter(prefix="/api/progress", tags=["progress"])


@router.get("", response_model=ProgressData)
def overall_progress(user_id: str = Depends(resolve_user_id), db: DBSession = Depends(get_db)):
    return StudyStateStore(db, user_id).get_overall_progress()


@router.get("/topics", response_model=List[TopicProgress])
def topic_progress(user_id: str = Depends(resolve_user_id), db: DBSession = Depends(get_db)):
    return StudyStateStore(db, user_id).get_topic_progress()


@router.get("/reviews", response_model=List[SpacedRepetitionItem])
def review_queue(
    due_before: Optional[int] = None,
    user_id: str = Depends(resolve_user_id),
    db: DBSession = Depends(get_db),
):
    """Scheduled topic reviews, soonest first. due_before is epoch ms."""
    return StudyStateStore(db, user_id).get_review_queue(due_before)
