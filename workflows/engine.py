"""
Durable step execution for background workflows.

A workflow is plain Python code that calls ``ctx.step(name, fn)`` for each
unit of work. Completed steps are checkpointed to the ``workflow_steps``
table, so re-executing a run replays from the top and returns checkpointed
outputs instead of re-running finished steps.

``ctx.sleep(name, seconds)`` records a wake timestamp and suspends the run
(``WorkflowSuspended``) until the scheduler resumes it; no thread blocks.
"""
import json
import logging
import time
from typing import Any, Callable, Dict, Optional, Type

from pydantic import BaseModel
from sqlalchemy.orm import Session

from shared.utils.clock import now_ms
from workflows.run_repository import WorkflowRunRepository

logger = logging.getLogger(__name__)


class WorkflowSuspended(Exception):
    """Raised inside a run to park it until ``resume_at`` (epoch ms)."""

    def __init__(self, resume_at: int):
        self.resume_at = resume_at
        super().__init__(f"Workflow suspended until {resume_at}")


class WorkflowCancelled(Exception):
    """Raised when a run was moved to a terminal state while executing."""
    pass


class StepFailedError(Exception):
    """A step raised on every allowed attempt."""

    def __init__(self, step_name: str, attempts: int, original_error: Exception):
        self.step_name = step_name
        self.attempts = attempts
        self.original_error = original_error
        super().__init__(f"Step '{step_name}' failed after {attempts} attempts: {original_error}")


class WorkflowContext:
    """Per-execution handle a workflow uses to run checkpointed steps."""

    def __init__(
        self,
        run_id: str,
        db: Session,
        params: Dict[str, Any],
        repository: WorkflowRunRepository,
        clock: Callable[[], int] = now_ms,
        max_attempts: int = 3,
        initial_retry_delay: float = 1.0,
        sleep_fn: Callable[[float], None] = time.sleep,
    ):
        self.run_id = run_id
        self.db = db
        self.params = params
        self.repository = repository
        self.clock = clock
        self.max_attempts = max_attempts
        self.initial_retry_delay = initial_retry_delay
        self._sleep_fn = sleep_fn
        self._completed = repository.get_steps(run_id)

    @property
    def completed_steps(self):
        return list(self._completed.keys())

    def now(self) -> int:
        return self.clock()

    def step(self, name: str, fn: Callable[[], Any]) -> Any:
        """
        Run a named step once, returning its checkpointed output on replay.

        The output must be JSON-serializable; the value returned is the
        JSON round-tripped output in both the first run and any replay.

        Raises:
            WorkflowCancelled: The run is no longer active
            StepFailedError: fn raised on every attempt
        """
        if name in self._completed:
            logger.info(json.dumps({
                "step": name,
                "status": "replayed",
                "run_id": self.run_id,
            }))
            return self._completed[name]

        self._ensure_active()
        delay = self.initial_retry_delay
        for attempt in range(1, self.max_attempts + 1):
            start = time.time()
            try:
                output = fn()
            except Exception as e:
                logger.warning(json.dumps({
                    "step": name,
                    "status": "error",
                    "run_id": self.run_id,
                    "attempt": attempt,
                    "error": str(e),
                }))
                if attempt == self.max_attempts:
                    raise StepFailedError(name, attempt, e) from e
                self._sleep_fn(delay)
                delay *= 2
                continue

            duration_ms = round((time.time() - start) * 1000, 2)
            return self._checkpoint(name, output, duration_ms)

    def sleep(self, name: str, seconds: float) -> None:
        """
        Suspend the run for a duration, recorded as a step.

        Raises:
            WorkflowSuspended: The wake time has not been reached yet
        """
        if name in self._completed:
            wake_at = self._completed[name]["wake_at"]
        else:
            self._ensure_active()
            wake_at = self.clock() + int(seconds * 1000)
            self._checkpoint(name, {"wake_at": wake_at}, None)

        if self.clock() < wake_at:
            logger.info(json.dumps({
                "step": name,
                "status": "sleeping",
                "run_id": self.run_id,
                "wake_at": wake_at,
            }))
            raise WorkflowSuspended(wake_at)

    def _checkpoint(self, name: str, output: Any, duration_ms: Optional[float]) -> Any:
        stored = json.loads(json.dumps(output))
        self.repository.record_step(self.run_id, name, stored, duration_ms)
        self._completed[name] = stored
        logger.info(json.dumps({
            "step": name,
            "status": "complete",
            "run_id": self.run_id,
            "duration_ms": duration_ms,
        }))
        return stored

    def _ensure_active(self) -> None:
        if not self.repository.is_active(self.run_id):
            raise WorkflowCancelled(f"Workflow run {self.run_id} is no longer active")


class Workflow:
    """
    Base class for durable workflows.

    Subclasses set ``workflow_type`` and ``params_model`` and implement
    ``run(ctx)``. ``run`` must be deterministic given its params and
    checkpointed step outputs, since it is replayed on every resume.
    """

    workflow_type: str = ""
    params_model: Type[BaseModel]

    def validate_params(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Validate and normalize run params (raises pydantic.ValidationError)."""
        return self.params_model.model_validate(params).model_dump()

    def run(self, ctx: WorkflowContext) -> Dict[str, Any]:
        raise NotImplementedError
