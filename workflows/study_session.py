"""
Study Session Workflow

Orchestrates one timed study session:

    initialize-session → load-progress → generate-learning-path
    → monitor-duration (sleep) → generate-summary → update-mastery
    → schedule-repetition → finalize-workflow

The sleep parks the run for the session's duration; the remaining steps run
when the scheduler resumes it.
"""
import json
import logging
from typing import Any, Dict, List

from shared.services.llm_service import LLMService
from shared.utils.constants import (
    ADVANCED_APPROACH,
    DEFAULT_REVIEW_INTERVAL_DAYS,
    INTRODUCTION_APPROACH,
    MASTERY_MAX,
    MS_PER_DAY,
    REINFORCEMENT_APPROACH,
    REINFORCEMENT_THRESHOLD,
    REVIEW_INTERVALS,
    SESSION_MASTERY_BONUS,
    SESSION_TIME_BONUS_CAP,
    STUDY_SESSION_WORKFLOW,
    SUMMARY_MAX_TOKENS,
)
from study.prompts import SESSION_SUMMARY_PROMPT
from study.services.study_state_store import StudyStateStore
from workflows.engine import Workflow, WorkflowContext
from workflows.schemas import StudySessionParams

logger = logging.getLogger(__name__)

EMPTY_SUMMARY = "Session completed successfully."


def choose_approach(sessions_count: int, mastery_level: float) -> str:
    if sessions_count == 0:
        return INTRODUCTION_APPROACH
    if mastery_level < REINFORCEMENT_THRESHOLD:
        return REINFORCEMENT_APPROACH
    return ADVANCED_APPROACH


def focus_areas(approach: str, topic: str) -> List[str]:
    if approach == INTRODUCTION_APPROACH:
        return [
            f"Basic concepts of {topic}",
            "Fundamental principles",
            "Simple examples",
            "Common terminology",
        ]
    if approach == REINFORCEMENT_APPROACH:
        return [
            f"Review core concepts of {topic}",
            "Practice problems",
            "Common misconceptions",
            "Real-world applications",
        ]
    return [
        f"Advanced aspects of {topic}",
        "Complex scenarios",
        "Edge cases",
        "Integration with other concepts",
    ]


def mastery_after_session(previous_level: float, duration: int) -> float:
    """previous + 5 + min(10, duration // 10), capped at 100."""
    time_bonus = min(SESSION_TIME_BONUS_CAP, duration // 10)
    return min(MASTERY_MAX, previous_level + SESSION_MASTERY_BONUS + time_bonus)


def review_interval_days(mastery_level: float) -> int:
    for threshold, days in REVIEW_INTERVALS:
        if mastery_level >= threshold:
            return days
    return DEFAULT_REVIEW_INTERVAL_DAYS


class StudySessionWorkflow(Workflow):
    """Durable orchestration of a single study session."""

    workflow_type = STUDY_SESSION_WORKFLOW
    params_model = StudySessionParams

    def __init__(self, llm: LLMService):
        self.llm = llm

    def run(self, ctx: WorkflowContext) -> Dict[str, Any]:
        params = StudySessionParams.model_validate(ctx.params)
        store = StudyStateStore(ctx.db, params.user_id, clock=ctx.clock)

        ctx.step("initialize-session", lambda: {
            "session_id": params.session_id,
            "topic": params.topic,
            "start_time": ctx.now(),
            "status": "initialized",
        })

        previous = ctx.step("load-progress", lambda: self._load_progress(store, params.topic))

        learning_path = ctx.step("generate-learning-path", lambda: self._learning_path(previous, params))

        ctx.sleep("monitor-duration", params.duration * 60)

        summary = ctx.step(
            "generate-summary",
            lambda: self._generate_summary(store, params, learning_path["approach"]),
        )

        mastery_update = ctx.step("update-mastery", lambda: self._mastery_update(previous, params.duration))

        repetition_schedule = ctx.step(
            "schedule-repetition",
            lambda: self._schedule_repetition(ctx, store, params, mastery_update["new_level"]),
        )

        return ctx.step("finalize-workflow", lambda: {
            "success": True,
            "session_id": params.session_id,
            "summary": summary,
            "mastery_update": mastery_update,
            "repetition_schedule": repetition_schedule,
            "learning_path": learning_path,
        })

    # ─── Steps ────────────────────────────────────────────────────────

    @staticmethod
    def _load_progress(store: StudyStateStore, topic: str) -> Dict[str, Any]:
        entry = store.find_topic_progress(topic)
        if entry is None:
            return {"mastery_level": 0, "time_spent": 0, "sessions_count": 0}
        return {
            "mastery_level": entry.mastery_level,
            "time_spent": entry.time_spent,
            "sessions_count": entry.sessions_count,
        }

    @staticmethod
    def _learning_path(previous: Dict[str, Any], params: StudySessionParams) -> Dict[str, Any]:
        approach = choose_approach(previous["sessions_count"], previous["mastery_level"])
        return {
            "approach": approach,
            "suggested_duration": params.duration,
            "focus_areas": focus_areas(approach, params.topic),
        }

    def _generate_summary(self, store: StudyStateStore, params: StudySessionParams, approach: str) -> str:
        history = store.get_chat_history(params.session_id)
        messages = SESSION_SUMMARY_PROMPT.messages(
            topic=params.topic,
            approach=approach,
            message_count=len(history),
            duration=params.duration,
        )
        try:
            summary = self.llm.generate(messages, max_tokens=SUMMARY_MAX_TOKENS) or EMPTY_SUMMARY
        except Exception as e:
            logger.warning(json.dumps({
                "step": "generate-summary",
                "status": "fallback",
                "session_id": params.session_id,
                "error": str(e),
            }))
            summary = f"Completed {params.duration}-minute study session on {params.topic}."

        store.record_session_summary(params.session_id, summary)
        return summary

    @staticmethod
    def _mastery_update(previous: Dict[str, Any], duration: int) -> Dict[str, Any]:
        previous_level = previous["mastery_level"]
        new_level = mastery_after_session(previous_level, duration)
        return {
            "previous_level": previous_level,
            "new_level": new_level,
            "increase": new_level - previous_level,
        }

    @staticmethod
    def _schedule_repetition(
        ctx: WorkflowContext,
        store: StudyStateStore,
        params: StudySessionParams,
        mastery_level: float,
    ) -> Dict[str, Any]:
        interval_days = review_interval_days(mastery_level)
        next_review = ctx.now() + interval_days * MS_PER_DAY
        store.schedule_review(params.topic, next_review, interval_days, session_id=params.session_id)
        return {
            "topic": params.topic,
            "next_review": next_review,
            "interval_days": interval_days,
            "mastery_level": mastery_level,
        }
