"""
Tests for workflows/study_session.py

Runs execute inline against a SQLite file; the fake clock drives the
session-length sleep.
"""

import pytest
from pydantic import ValidationError

from shared.models.domain import StudySession
from shared.services.llm_service import LLMServiceError
from study.services.study_state_store import StudyStateStore
from workflows.study_session import (
    choose_approach,
    focus_areas,
    mastery_after_session,
    review_interval_days,
)

DAY_MS = 86_400_000


def _params(duration=30, topic="Physics", session_id="s1"):
    return {
        "session_id": session_id,
        "topic": topic,
        "duration": duration,
        "difficulty": "beginner",
        "user_id": "user-1",
    }


def _run_to_completion(runner, clock, params):
    run_id = runner.start("study_session", params, params["user_id"])
    clock.advance(minutes=params["duration"])
    runner.resume_due_runs()
    return runner.get_status(run_id)


def _study_topic(store, clock, topic, times):
    for i in range(times):
        store.create_session(StudySession(
            id=f"prior-{i}", topic=topic, duration=30, difficulty="beginner", start_time=clock.now,
        ))
        store.complete_session(f"prior-{i}")


# ---------------------------------------------------------------------------
# Pure rules
# ---------------------------------------------------------------------------

class TestRules:
    @pytest.mark.parametrize("sessions,mastery,expected", [
        (0, 0, "introduction"),
        (0, 90, "introduction"),
        (1, 49.9, "reinforcement"),
        (3, 50, "advanced"),
    ])
    def test_choose_approach(self, sessions, mastery, expected):
        assert choose_approach(sessions, mastery) == expected

    def test_focus_areas(self):
        assert focus_areas("introduction", "Physics")[0] == "Basic concepts of Physics"
        assert focus_areas("reinforcement", "Physics")[0] == "Review core concepts of Physics"
        assert focus_areas("advanced", "Physics")[0] == "Advanced aspects of Physics"
        assert len(focus_areas("advanced", "Physics")) == 4

    @pytest.mark.parametrize("previous,duration,expected", [
        (0, 30, 8),
        (0, 5, 5),
        (0, 120, 15),
        (95, 60, 100),
    ])
    def test_mastery_after_session(self, previous, duration, expected):
        assert mastery_after_session(previous, duration) == expected

    @pytest.mark.parametrize("mastery,days", [
        (8, 1), (39.9, 1), (40, 2), (59, 2), (60, 3), (79, 3), (80, 7), (100, 7),
    ])
    def test_review_interval_days(self, mastery, days):
        assert review_interval_days(mastery) == days


# ---------------------------------------------------------------------------
# Workflow runs
# ---------------------------------------------------------------------------

class TestStudySessionWorkflow:
    def test_suspends_for_session_duration(self, runner, clock, mock_llm):
        run_id = runner.start("study_session", _params(), "user-1")
        status = runner.get_status(run_id)

        assert status["status"] == "sleeping"
        assert status["resume_at"] == clock.now + 30 * 60_000
        assert status["completed_steps"] == [
            "initialize-session", "load-progress", "generate-learning-path", "monitor-duration",
        ]
        mock_llm.generate.assert_not_called()

    def test_new_topic_scenario(self, runner, clock, mock_llm):
        mock_llm.generate.return_value = "We covered Newton's laws."
        status = _run_to_completion(runner, clock, _params())
        output = status["output"]

        assert status["status"] == "completed"
        assert status["completed_steps"][-4:] == [
            "generate-summary", "update-mastery", "schedule-repetition", "finalize-workflow",
        ]
        assert output["success"] is True
        assert output["session_id"] == "s1"
        assert output["summary"] == "We covered Newton's laws."
        assert output["learning_path"] == {
            "approach": "introduction",
            "suggested_duration": 30,
            "focus_areas": [
                "Basic concepts of Physics",
                "Fundamental principles",
                "Simple examples",
                "Common terminology",
            ],
        }
        assert output["mastery_update"] == {"previous_level": 0, "new_level": 8, "increase": 8}
        assert output["repetition_schedule"] == {
            "topic": "Physics",
            "next_review": clock.now + DAY_MS,
            "interval_days": 1,
            "mastery_level": 8,
        }

    def test_summary_prompt(self, runner, clock, mock_llm, db_session):
        store = StudyStateStore(db_session, "user-1", clock=clock)
        store.append_chat_turn("s1", "q", "a")
        store.append_chat_turn("s1", "q2", "a2")

        _run_to_completion(runner, clock, _params())

        messages = mock_llm.generate.call_args.args[0]
        assert messages[0] == {"role": "system", "content": "You are a study session summarizer."}
        assert "Number of interactions: 4" in messages[1]["content"]
        assert "Session approach: introduction" in messages[1]["content"]
        assert mock_llm.generate.call_args.kwargs["max_tokens"] == 300

    def test_empty_summary(self, runner, clock, mock_llm):
        mock_llm.generate.return_value = ""
        assert _run_to_completion(runner, clock, _params())["output"]["summary"] == "Session completed successfully."

    def test_generator_failure_falls_back(self, runner, clock, mock_llm):
        mock_llm.generate.side_effect = LLMServiceError("down")
        status = _run_to_completion(runner, clock, _params())

        assert status["status"] == "completed"
        assert status["output"]["summary"] == "Completed 30-minute study session on Physics."

    def test_summary_recorded_on_session(self, runner, clock, mock_llm, db_session):
        store = StudyStateStore(db_session, "user-1", clock=clock)
        store.create_session(StudySession(
            id="s1", topic="Physics", duration=30, difficulty="beginner", start_time=clock.now,
        ))
        mock_llm.generate.return_value = "Summary text"

        _run_to_completion(runner, clock, _params())
        assert store.get_current_session().summary == "Summary text"

    def test_review_scheduled(self, runner, clock, db_session):
        _run_to_completion(runner, clock, _params())

        queue = StudyStateStore(db_session, "user-1", clock=clock).get_review_queue()
        assert len(queue) == 1
        assert queue[0].topic == "Physics"
        assert queue[0].interval == 1
        assert queue[0].next_review == clock.now + DAY_MS
        assert queue[0].last_session_id == "s1"

    def test_reinforcement_for_low_mastery(self, runner, clock, db_session):
        _study_topic(StudyStateStore(db_session, "user-1", clock=clock), clock, "Physics", 1)

        output = _run_to_completion(runner, clock, _params())["output"]
        assert output["learning_path"]["approach"] == "reinforcement"
        assert output["mastery_update"] == {"previous_level": 10.0, "new_level": 18.0, "increase": 8.0}

    def test_advanced_for_high_mastery(self, runner, clock, db_session):
        _study_topic(StudyStateStore(db_session, "user-1", clock=clock), clock, "Physics", 5)

        output = _run_to_completion(runner, clock, _params(duration=120))["output"]
        assert output["learning_path"]["approach"] == "advanced"
        assert output["mastery_update"]["new_level"] == 65.0
        assert output["repetition_schedule"]["interval_days"] == 3

    def test_cancel_during_sleep(self, runner, clock, mock_llm, db_session):
        run_id = runner.start("study_session", _params(), "user-1")
        runner.cancel(run_id)
        clock.advance(minutes=30)
        runner.resume_due_runs()

        assert runner.get_status(run_id)["status"] == "failed"
        mock_llm.generate.assert_not_called()
        assert StudyStateStore(db_session, "user-1", clock=clock).get_review_queue() == []

    def test_invalid_duration_rejected(self, runner):
        with pytest.raises(ValidationError):
            runner.start("study_session", _params(duration=200), "user-1")

    def test_blank_topic_rejected(self, runner):
        with pytest.raises(ValidationError):
            runner.start("study_session", _params(topic="  "), "user-1")
