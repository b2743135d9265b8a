"""
Workflow run repository with state machine enforcement.

State machine: pending → running → sleeping → running → completed|failed
Any non-terminal run may be failed (errors, cancellation).

All run state transitions go through this repository. Claims are
compare-and-set updates, so at most one worker executes a run at a time.
"""
import json
import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session

from shared.models.entities import WorkflowRun, WorkflowStep
from shared.utils.clock import now_ms
from shared.utils.exceptions import InvalidStateTransition

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = ("completed", "failed")
CANCELLED_MESSAGE = "cancelled"


class WorkflowRunRepository:
    """Persistence and state transitions for workflow runs and their step log."""

    def __init__(self, db: Session, clock: Callable[[], int] = now_ms):
        self.db = db
        self.clock = clock

    # ─── Runs ─────────────────────────────────────────────────────────

    def create(self, workflow_type: str, user_id: str, params: Dict[str, Any]) -> WorkflowRun:
        """Create a run in 'pending' state."""
        run = WorkflowRun(
            id=f"wf_{uuid.uuid4().hex}",
            workflow_type=workflow_type,
            user_id=user_id,
            params_json=json.dumps(params),
            status="pending",
            attempts=0,
        )
        self.db.add(run)
        self.db.commit()
        logger.info(f"Workflow run {run.id} created: type={workflow_type} user={user_id}")
        return run

    def get(self, run_id: str) -> Optional[WorkflowRun]:
        return (
            self.db.query(WorkflowRun)
            .populate_existing()
            .filter(WorkflowRun.id == run_id)
            .first()
        )

    def claim(self, run_id: str, from_statuses: Sequence[str] = ("pending",)) -> bool:
        """
        Atomically transition a run to 'running'.

        Sleeping runs are only claimable once their resume time has passed.

        Returns:
            True if this caller now owns the run
        """
        query = self.db.query(WorkflowRun).filter(
            WorkflowRun.id == run_id,
            WorkflowRun.status.in_(list(from_statuses)),
        )
        if "sleeping" in from_statuses:
            query = query.filter(
                (WorkflowRun.status != "sleeping") | (WorkflowRun.resume_at <= self.clock())
            )
        updated = query.update(
            {
                WorkflowRun.status: "running",
                WorkflowRun.resume_at: None,
                WorkflowRun.attempts: WorkflowRun.attempts + 1,
                WorkflowRun.updated_at: datetime.utcnow(),
            },
            synchronize_session=False,
        )
        self.db.commit()
        if updated:
            logger.info(f"Workflow run {run_id} claimed ({'/'.join(from_statuses)} → running)")
        return updated == 1

    def mark_sleeping(self, run_id: str, resume_at: int) -> None:
        """Transition running → sleeping until resume_at (epoch ms)."""
        run = self._require(run_id, ("running",), "sleeping")
        run.status = "sleeping"
        run.resume_at = resume_at
        self.db.commit()
        logger.info(f"Workflow run {run_id} transitioned running → sleeping (resume_at={resume_at})")

    def complete(self, run_id: str, result: Dict[str, Any]) -> None:
        """Transition running → completed. Terminal state."""
        run = self._require(run_id, ("running",), "completed")
        run.status = "completed"
        run.result_json = json.dumps(result)
        run.completed_at = datetime.utcnow()
        self.db.commit()
        logger.info(f"Workflow run {run_id} transitioned running → completed")

    def fail(self, run_id: str, error: str) -> None:
        """Transition any non-terminal state → failed. Terminal state."""
        run = self._require(run_id, ("pending", "running", "sleeping"), "failed")
        old_status = run.status
        run.status = "failed"
        run.resume_at = None
        run.error_message = error
        run.completed_at = datetime.utcnow()
        self.db.commit()
        logger.info(f"Workflow run {run_id} transitioned {old_status} → failed: {error}")

    def is_active(self, run_id: str) -> bool:
        """True while the run has not reached a terminal state."""
        run = self.get(run_id)
        return run is not None and run.status not in TERMINAL_STATUSES

    def due_sleeping_ids(self) -> List[str]:
        """Ids of sleeping runs whose resume time has passed."""
        rows = (
            self.db.query(WorkflowRun.id)
            .filter(WorkflowRun.status == "sleeping", WorkflowRun.resume_at <= self.clock())
            .order_by(WorkflowRun.resume_at)
            .all()
        )
        return [row.id for row in rows]

    def interrupted_ids(self) -> List[str]:
        """Ids of runs left pending or running (e.g. by a process restart)."""
        rows = (
            self.db.query(WorkflowRun.id)
            .filter(WorkflowRun.status.in_(["pending", "running"]))
            .order_by(WorkflowRun.created_at)
            .all()
        )
        return [row.id for row in rows]

    def status_counts(self) -> Dict[str, int]:
        """Number of runs in each status."""
        rows = (
            self.db.query(WorkflowRun.status, func.count(WorkflowRun.id))
            .group_by(WorkflowRun.status)
            .all()
        )
        return {status: count for status, count in rows}

    def _require(self, run_id: str, allowed: Sequence[str], target: str) -> WorkflowRun:
        run = self.get(run_id)
        if run is None:
            raise InvalidStateTransition(f"Workflow run {run_id} not found")
        if run.status not in allowed:
            raise InvalidStateTransition(f"Cannot move workflow run {run_id} from '{run.status}' to '{target}'")
        return run

    # ─── Step log ─────────────────────────────────────────────────────

    def get_steps(self, run_id: str) -> Dict[str, Any]:
        """Checkpointed outputs keyed by step name, in completion order."""
        rows = (
            self.db.query(WorkflowStep)
            .filter(WorkflowStep.run_id == run_id)
            .order_by(WorkflowStep.sequence)
            .all()
        )
        return {row.step_name: json.loads(row.output_json) for row in rows}

    def record_step(self, run_id: str, step_name: str, output: Any, duration_ms: Optional[float] = None) -> None:
        """Checkpoint a completed step's output."""
        sequence = self.db.query(WorkflowStep).filter(WorkflowStep.run_id == run_id).count() + 1
        self.db.add(WorkflowStep(
            run_id=run_id,
            step_name=step_name,
            sequence=sequence,
            output_json=json.dumps(output),
            duration_ms=duration_ms,
            completed_at=datetime.utcnow(),
        ))
        self.db.commit()

    # ─── Views ────────────────────────────────────────────────────────

    def to_dict(self, run: WorkflowRun) -> Dict[str, Any]:
        """Convert a run to a status dict."""
        return {
            "run_id": run.id,
            "workflow_type": run.workflow_type,
            "user_id": run.user_id,
            "status": run.status,
            "resume_at": run.resume_at,
            "output": json.loads(run.result_json) if run.result_json else None,
            "error": run.error_message,
            "attempts": run.attempts or 0,
            "completed_steps": list(self.get_steps(run.id).keys()),
            "created_at": run.created_at.isoformat() if run.created_at else None,
            "completed_at": run.completed_at.isoformat() if run.completed_at else None,
        }
