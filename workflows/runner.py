"""
Workflow runner and resume scheduler.

Runs execute on background threads with their own DB sessions, the same way
request handlers hand long work off to threads. Sleeping runs are picked up
again by ``WorkflowScheduler``, which polls for runs whose resume time has
passed; ``recover()`` re-dispatches runs a previous process left behind.
"""
import json
import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from shared.utils.clock import now_ms
from shared.utils.exceptions import InvalidStateTransition, WorkflowRunNotFoundException
from workflows.engine import Workflow, WorkflowCancelled, WorkflowContext, WorkflowSuspended
from workflows.run_repository import CANCELLED_MESSAGE, WorkflowRunRepository

logger = logging.getLogger(__name__)

Dispatch = Callable[..., Any]


def run_in_background(target_fn: Callable, *args, **kwargs) -> threading.Thread:
    """
    Run a function on a daemon thread, logging anything it raises.

    Returns:
        threading.Thread instance
    """
    def wrapper():
        try:
            target_fn(*args, **kwargs)
        except Exception as e:
            logger.error(f"Background task {target_fn.__name__} failed: {e}", exc_info=True)

    thread = threading.Thread(target=wrapper, daemon=True)
    thread.start()
    logger.info(f"Launched background task: {target_fn.__name__} (args={args})")
    return thread


class WorkflowRunner:
    """Starts, executes, resumes and cancels durable workflow runs."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        workflows: Dict[str, Workflow],
        clock: Callable[[], int] = now_ms,
        dispatch: Optional[Dispatch] = None,
        step_max_attempts: int = 3,
        step_retry_delay: float = 1.0,
    ):
        self.session_factory = session_factory
        self.workflows = workflows
        self.clock = clock
        self.dispatch = dispatch or run_in_background
        self.step_max_attempts = step_max_attempts
        self.step_retry_delay = step_retry_delay

    def _repository(self, session: Session) -> WorkflowRunRepository:
        return WorkflowRunRepository(session, clock=self.clock)

    def start(self, workflow_type: str, params: Dict[str, Any], user_id: str) -> str:
        """
        Create a run and dispatch it.

        Args:
            workflow_type: Registered workflow name
            params: Run parameters (validated by the workflow)
            user_id: Owner of the run

        Returns:
            The new run id

        Raises:
            ValueError: Unknown workflow type
            pydantic.ValidationError: Invalid params
        """
        workflow = self.workflows.get(workflow_type)
        if workflow is None:
            raise ValueError(f"Unknown workflow type: {workflow_type}")
        validated = workflow.validate_params(params)

        session = self.session_factory()
        try:
            run_id = self._repository(session).create(workflow_type, user_id, validated).id
        finally:
            session.close()

        self.dispatch(self.execute, run_id)
        return run_id

    def execute(self, run_id: str, claim_from: Sequence[str] = ("pending",)) -> Optional[str]:
        """
        Claim a run and replay its workflow from the top.

        Returns:
            The run's status after this execution, or None if the run could
            not be claimed (another worker owns it, or it is not due)
        """
        session = self.session_factory()
        try:
            repository = self._repository(session)
            if not repository.claim(run_id, claim_from):
                logger.info(f"Workflow run {run_id} not claimable from {tuple(claim_from)}, skipping")
                return None

            run = repository.get(run_id)
            workflow = self.workflows.get(run.workflow_type)
            if workflow is None:
                repository.fail(run_id, f"Unknown workflow type: {run.workflow_type}")
                return "failed"

            ctx = WorkflowContext(
                run_id=run_id,
                db=session,
                params=json.loads(run.params_json),
                repository=repository,
                clock=self.clock,
                max_attempts=self.step_max_attempts,
                initial_retry_delay=self.step_retry_delay,
            )
            try:
                result = workflow.run(ctx)
            except WorkflowSuspended as suspended:
                try:
                    repository.mark_sleeping(run_id, suspended.resume_at)
                except InvalidStateTransition:
                    logger.warning(f"Workflow run {run_id} left 'running' before it could sleep")
                    return "failed"
                return "sleeping"
            except WorkflowCancelled:
                logger.info(f"Workflow run {run_id} stopped: no longer active")
                return "failed"
            except Exception as e:
                logger.error(f"Workflow run {run_id} ({run.workflow_type}) failed: {e}", exc_info=True)
                session.rollback()
                try:
                    repository.fail(run_id, str(e))
                except InvalidStateTransition:
                    logger.warning(f"Workflow run {run_id} already terminal, failure not recorded")
                return "failed"

            try:
                repository.complete(run_id, result)
            except InvalidStateTransition:
                logger.warning(f"Workflow run {run_id} finished after leaving 'running', result dropped")
                return "failed"
            return "completed"
        finally:
            session.close()

    def resume_due_runs(self) -> List[str]:
        """Dispatch every sleeping run whose resume time has passed."""
        session = self.session_factory()
        try:
            run_ids = self._repository(session).due_sleeping_ids()
        finally:
            session.close()

        for run_id in run_ids:
            self.dispatch(self.execute, run_id, ("sleeping",))
        return run_ids

    def recover(self) -> List[str]:
        """
        Re-dispatch runs left pending or running by a previous process,
        then resume any sleeping runs that are already due.
        """
        session = self.session_factory()
        try:
            run_ids = self._repository(session).interrupted_ids()
        finally:
            session.close()

        if run_ids:
            logger.info(f"Recovering {len(run_ids)} interrupted workflow runs")
        for run_id in run_ids:
            self.dispatch(self.execute, run_id, ("pending", "running"))
        return run_ids + self.resume_due_runs()

    def get_status(self, run_id: str) -> Dict[str, Any]:
        """
        Raises:
            WorkflowRunNotFoundException: Unknown run id
        """
        session = self.session_factory()
        try:
            repository = self._repository(session)
            run = repository.get(run_id)
            if run is None:
                raise WorkflowRunNotFoundException(run_id)
            return repository.to_dict(run)
        finally:
            session.close()

    def cancel(self, run_id: str) -> Dict[str, Any]:
        """
        Fail a non-terminal run with the message "cancelled".

        A cancelled sleeping run is never resumed; a running one stops
        before its next step.

        Raises:
            WorkflowRunNotFoundException: Unknown run id
            InvalidStateTransition: Run already completed or failed
        """
        session = self.session_factory()
        try:
            repository = self._repository(session)
            run = repository.get(run_id)
            if run is None:
                raise WorkflowRunNotFoundException(run_id)
            repository.fail(run_id, CANCELLED_MESSAGE)
            return repository.to_dict(repository.get(run_id))
        finally:
            session.close()


class WorkflowScheduler:
    """Daemon thread that periodically resumes due sleeping runs."""

    def __init__(self, runner: WorkflowRunner, interval_seconds: float = 5.0):
        self.runner = runner
        self.interval_seconds = interval_seconds
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self):
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="workflow-scheduler", daemon=True)
        self._thread.start()
        logger.info(f"Workflow scheduler started (interval={self.interval_seconds}s)")

    def stop(self, timeout: float = 5.0):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        logger.info("Workflow scheduler stopped")

    def tick(self) -> List[str]:
        """One polling pass; errors are logged so the loop keeps running."""
        try:
            return self.runner.resume_due_runs()
        except Exception as e:
            logger.error(f"Workflow scheduler tick failed: {e}", exc_info=True)
            return []

    def _loop(self):
        while not self._stop.wait(self.interval_seconds):
            self.tick()


# Global runner instance, installed on application startup
_runner: Optional[WorkflowRunner] = None


def get_workflow_runner() -> WorkflowRunner:
    """
    Get the global workflow runner.

    Raises:
        RuntimeError: No runner has been installed
    """
    if _runner is None:
        raise RuntimeError("Workflow runner not initialized")
    return _runner


def set_workflow_runner(runner: Optional[WorkflowRunner]):
    """Install (or clear, with None) the global workflow runner."""
    global _runner
    _runner = runner
