"""SQLAlchemy ORM database models."""
from datetime import datetime
from sqlalchemy import Column, String, Integer, Float, Text, DateTime, ForeignKey, Index, BigInteger
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class UserStateRecord(Base):
    """User state table - one serialized UserState document per user id."""
    __tablename__ = "user_states"

    user_id = Column(String, primary_key=True)
    state_json = Column(Text, nullable=False)  # Full UserState serialized
    version = Column(Integer, default=1, nullable=False)  # Bumped on every save
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class CacheEntry(Base):
    """Key-value cache with per-entry expiry (epoch ms)."""
    __tablename__ = "cache_entries"

    key = Column(String, primary_key=True)
    value_json = Column(Text, nullable=False)
    expires_at = Column(BigInteger, nullable=False)

    __table_args__ = (
        Index("idx_cache_expires", "expires_at"),
    )


class WorkflowRun(Base):
    """
    Workflow run table - one row per durable workflow execution.

    State machine: pending → running → sleeping → running → completed|failed
    """
    __tablename__ = "workflow_runs"

    id = Column(String, primary_key=True)
    workflow_type = Column(String, nullable=False)  # study_session, quiz_generation
    user_id = Column(String, nullable=False)
    params_json = Column(Text, nullable=False)
    status = Column(String, nullable=False, default="pending")
    resume_at = Column(BigInteger, nullable=True)  # Epoch ms; set while sleeping
    result_json = Column(Text, nullable=True)
    error_message = Column(Text, nullable=True)
    attempts = Column(Integer, default=0, nullable=False)  # Number of executions (including resumes)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    completed_at = Column(DateTime, nullable=True)

    steps = relationship("WorkflowStep", back_populates="run", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_workflow_status_resume", "status", "resume_at"),
        Index("idx_workflow_user", "user_id"),
    )


class WorkflowStep(Base):
    """Step log - checkpointed output of each completed workflow step."""
    __tablename__ = "workflow_steps"

    run_id = Column(String, ForeignKey("workflow_runs.id"), primary_key=True)
    step_name = Column(String, primary_key=True)
    sequence = Column(Integer, nullable=False)  # Order of completion within the run
    output_json = Column(Text, nullable=False)
    duration_ms = Column(Float, nullable=True)
    completed_at = Column(DateTime, default=datetime.utcnow)

    run = relationship("WorkflowRun", back_populates="steps")
