"""Health check API endpoints."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session as DBSession

from database import get_db, get_db_manager
from workflows.run_repository import WorkflowRunRepository

router = APIRouter(tags=["health"])


@router.get("/")
def read_root():
    return {
        "status": "ok",
        "service": "Study Buddy Backend",
        "version": "1.0.0"
    }


@router.get("/health/db")
def database_health():
    if get_db_manager().health_check():
        return {"status": "ok", "database": "connected"}
    return {"status": "error", "database": "connection_failed"}


@router.get("/health/workflows")
def workflow_health(db: DBSession = Depends(get_db)):
    """Workflow run counts by status; in_flight covers every non-terminal run."""
    counts = WorkflowRunRepository(db).status_counts()
    return {
        "status": "ok",
        "runs": counts,
        "in_flight": sum(counts.get(s, 0) for s in ("pending", "running", "sleeping")),
    }
