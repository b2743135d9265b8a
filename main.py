"""
Study Buddy Backend - FastAPI Application

Entry point for the study assistant API: tutor chat, study sessions, quizzes
and the progress dashboard. Long-running work (session orchestration, quiz
generation) runs as durable background workflows.
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import get_settings, validate_required_settings
from database import get_db_manager
from quiz import api as quiz_api
from shared.api import health
from shared.services.cache_service import CacheService
from shared.services.llm_service import get_llm_service
from study.api import chat, progress, study
from workflows import api as workflows_api
from workflows.registry import build_workflow_runner
from workflows.runner import WorkflowScheduler, set_workflow_runner

logger = logging.getLogger(__name__)

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Initialize FastAPI app
app = FastAPI(
    title="Study Buddy Backend",
    description="AI study assistant API with durable background workflows",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router)
app.include_router(chat.router)
app.include_router(study.router)
app.include_router(quiz_api.router)
app.include_router(progress.router)
app.include_router(workflows_api.router)

_scheduler: WorkflowScheduler | None = None


@app.on_event("startup")
def startup_event():
    """Create tables, start the workflow runner and resume interrupted runs."""
    global _scheduler
    logger.info("Starting Study Buddy Backend...")

    if settings.environment != "test":
        validate_required_settings()

    db_manager = get_db_manager()
    if not db_manager.health_check():
        logger.warning("Database health check failed on startup")
    db_manager.create_all()

    with db_manager.session_scope() as db:
        removed = CacheService(db).purge_expired()
    if removed:
        logger.info(f"Purged {removed} expired cache entries")

    runner = build_workflow_runner(db_manager.session_factory, get_llm_service(), settings)
    set_workflow_runner(runner)
    runner.recover()

    _scheduler = WorkflowScheduler(runner, settings.workflow_poll_interval_seconds)
    _scheduler.start()

    logger.info("Application started successfully")


@app.on_event("shutdown")
def shutdown_event():
    global _scheduler
    if _scheduler is not None:
        _scheduler.stop()
        _scheduler = None
    set_workflow_runner(None)
    get_db_manager().close()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=True
    )
