"""Tutor chat API endpoints."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session as DBSession

from database import get_db
from shared.api.dependencies import get_tutor_service, resolve_user_id
from shared.models.schemas import ChatHistoryResponse, ChatRequest, ChatResponse
from shared.utils.exceptions import StudyBuddyException
from study.services.study_state_store import StudyStateStore
from study.services.tutor_service import TutorService

router = APIRouter(prefix="/api/chat", tags=["chat"])


@router.post("", response_model=ChatResponse)
def chat(
    request: ChatRequest,
    db: DBSession = Depends(get_db),
    tutor: TutorService = Depends(get_tutor_service),
):
    """Send a message to the tutor and record both sides of the turn."""
    store = StudyStateStore(db, resolve_user_id(request.user_id))
    try:
        history = store.get_chat_history(request.session_id)
        reply = tutor.chat(request.message, history)
        store.append_chat_turn(request.session_id, request.message, reply)
    except StudyBuddyException as e:
        raise e.to_http_exception()
    return ChatResponse(response=reply, session_id=request.session_id)


@router.get("/history", response_model=ChatHistoryResponse)
def chat_history(
    session_id: str,
    user_id: str = Depends(resolve_user_id),
    db: DBSession = Depends(get_db),
):
    """Messages of one chat session, oldest first."""
    history = StudyStateStore(db, user_id).get_chat_history(session_id)
    return ChatHistoryResponse(history=history)
