"""
Unit tests for study/services/study_state_store.py

Covers chat history, session lifecycle, quiz scoring and aggregation,
streaks, the spaced-repetition queue and per-user serialization.
"""

import threading
import pytest
from unittest.mock import MagicMock

from shared.models.domain import Quiz, QuizQuestion, StudySession, UserState
from shared.models.entities import UserStateRecord
from shared.repositories.user_state_repository import UserStateRepository
from shared.utils.exceptions import DatabaseException, QuizNotFoundException
from study.services.study_state_store import StudyStateStore, compute_mastery
from tests.helpers import START_MS


def _session(session_id="s1", topic="Physics", start_time=START_MS, duration=30):
    return StudySession(
        id=session_id,
        topic=topic,
        duration=duration,
        difficulty="beginner",
        start_time=start_time,
    )


def _quiz(quiz_id="quiz1", topic="Physics", questions=None):
    if questions is None:
        questions = [
            QuizQuestion(id="q1", question="Pick A", type="multiple-choice",
                         options=["A", "B"], correct_answer="A", explanation="A it is", points=10),
            QuizQuestion(id="q2", question="True?", type="true-false",
                         correct_answer="True", explanation="It is", points=15),
        ]
    return Quiz(id=quiz_id, topic=topic, difficulty="beginner", questions=questions, created_at=START_MS)


@pytest.fixture
def store(db_session, clock):
    return StudyStateStore(db_session, "user-1", clock=clock)


# ---------------------------------------------------------------------------
# compute_mastery
# ---------------------------------------------------------------------------

class TestComputeMastery:
    def test_formula(self):
        assert compute_mastery(2, 40.0) == 40.0

    def test_capped_at_100(self):
        assert compute_mastery(12, 90.0) == 100.0

    def test_zero(self):
        assert compute_mastery(0, 0.0) == 0.0


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------

class TestChatHistory:
    def test_unknown_session_is_empty(self, store):
        assert store.get_chat_history("nope") == []

    def test_append_turn(self, store, clock):
        store.append_chat_turn("s1", "What is gravity?", "A force.")
        history = store.get_chat_history("s1")

        assert [(m.role, m.content) for m in history] == [
            ("user", "What is gravity?"),
            ("assistant", "A force."),
        ]
        assert history[0].timestamp == clock.now
        assert history[1].timestamp == clock.now + 1

    def test_histories_are_per_session(self, store):
        store.append_chat_turn("s1", "a", "b")
        store.append_chat_turn("s2", "c", "d")
        assert len(store.get_chat_history("s1")) == 2
        assert len(store.get_chat_history("s2")) == 2

    def test_state_persists_across_store_instances(self, store, session_factory, clock):
        store.append_chat_turn("s1", "hello", "hi")
        other = StudyStateStore(session_factory(), "user-1", clock=clock)
        assert len(other.get_chat_history("s1")) == 2

    def test_users_are_isolated(self, store, db_session, clock):
        store.append_chat_turn("s1", "hello", "hi")
        assert StudyStateStore(db_session, "user-2", clock=clock).get_chat_history("s1") == []


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

class TestSessions:
    def test_create_session_counts_and_logs_activity(self, store):
        store.create_session(_session())
        progress = store.get_overall_progress()

        assert progress.total_sessions == 1
        assert progress.recent_activity[0].type == "session"
        assert progress.recent_activity[0].topic == "Physics"

    def test_recreating_session_is_not_recounted(self, store):
        store.create_session(_session())
        store.create_session(_session())
        assert store.get_overall_progress().total_sessions == 1

    def test_current_session_is_latest_created(self, store):
        store.create_session(_session("s1"))
        store.create_session(_session("s2", topic="Chemistry"))
        assert store.get_current_session().id == "s2"

    def test_no_current_session(self, store):
        assert store.get_current_session() is None

    def test_complete_session_accumulates_progress(self, store, clock):
        store.create_session(_session())
        clock.advance(minutes=30)

        completed = store.complete_session("s1")
        progress = store.get_overall_progress()
        topic = progress.topics_studied[0]

        assert completed.status == "completed"
        assert completed.end_time == clock.now
        assert progress.total_study_time == pytest.approx(30.0)
        assert topic.topic == "Physics"
        assert topic.sessions_count == 1
        assert topic.time_spent == pytest.approx(30.0)
        assert topic.mastery_level == 10.0
        assert topic.last_studied == clock.now

    def test_completed_session_is_no_longer_current(self, store, clock):
        store.create_session(_session("s1"))
        store.create_session(_session("s2"))
        store.complete_session("s2")
        assert store.get_current_session().id == "s1"

        store.complete_session("s1")
        assert store.get_current_session() is None

    def test_complete_unknown_session_is_silent_noop(self, store):
        assert store.complete_session("missing") is None
        assert store.get_overall_progress().total_study_time == 0

    def test_complete_twice_counts_once(self, store, clock):
        store.create_session(_session())
        clock.advance(minutes=10)
        store.complete_session("s1")
        clock.advance(minutes=10)

        assert store.complete_session("s1") is None
        assert store.get_topic_progress()[0].sessions_count == 1
        assert store.get_overall_progress().total_study_time == pytest.approx(10.0)

    def test_clock_skew_never_negative(self, store, clock):
        store.create_session(_session(start_time=clock.now + 60_000))
        store.complete_session("s1")
        assert store.get_overall_progress().total_study_time == 0

    def test_record_session_summary(self, store):
        store.create_session(_session())
        store.record_session_summary("s1", "Covered forces.")
        assert store.get_current_session().summary == "Covered forces."


class TestStreaks:
    def test_consecutive_days(self, store, clock):
        for day in range(3):
            store.create_session(_session(f"s{day}", start_time=clock.now))
            store.complete_session(f"s{day}")
            clock.advance(days=1)

        progress = store.get_overall_progress()
        assert progress.current_streak == 3
        assert progress.longest_streak == 3

    def test_same_day_counts_once(self, store, clock):
        store.create_session(_session("s1"))
        store.complete_session("s1")
        store.create_session(_session("s2"))
        store.complete_session("s2")
        assert store.get_overall_progress().current_streak == 1

    def test_gap_resets_current_keeps_longest(self, store, clock):
        for i in range(2):
            store.create_session(_session(f"a{i}", start_time=clock.now))
            store.complete_session(f"a{i}")
            clock.advance(days=1)
        clock.advance(days=3)
        store.create_session(_session("b", start_time=clock.now))
        store.complete_session("b")

        progress = store.get_overall_progress()
        assert progress.current_streak == 1
        assert progress.longest_streak == 2


# ---------------------------------------------------------------------------
# Quizzes
# ---------------------------------------------------------------------------

class TestQuizzes:
    def test_submit_scores_case_insensitively(self, store):
        store.save_quiz(_quiz())
        result = store.submit_quiz("quiz1", {"q1": "a", "q2": "False"})

        assert result.score == 10
        assert result.max_score == 25
        assert result.percentage == 40.0

    def test_unanswered_questions_score_zero(self, store):
        store.save_quiz(_quiz())
        assert store.submit_quiz("quiz1", {}).score == 0

    def test_submit_unknown_quiz_raises(self, store):
        with pytest.raises(QuizNotFoundException):
            store.submit_quiz("missing", {"q1": "A"})

    def test_get_unknown_quiz_raises(self, store):
        with pytest.raises(QuizNotFoundException):
            store.get_quiz("missing")

    def test_unknown_ids_are_handled_asymmetrically(self, store):
        # Completing an unknown session succeeds silently; submitting an
        # unknown quiz is an explicit not-found error.
        assert store.complete_session("missing") is None
        with pytest.raises(QuizNotFoundException):
            store.submit_quiz("missing", {})

    def test_duplicate_submissions_append(self, store):
        store.save_quiz(_quiz())
        store.submit_quiz("quiz1", {"q1": "A", "q2": "True"})
        store.submit_quiz("quiz1", {"q1": "A", "q2": "True"})

        assert len(store.get_quiz_results()) == 2
        assert store.get_overall_progress().total_quizzes == 2

    def test_average_score_is_mean_over_all_results(self, store):
        store.save_quiz(_quiz())
        store.submit_quiz("quiz1", {"q1": "A", "q2": "True"})   # 100
        store.submit_quiz("quiz1", {"q1": "A", "q2": "False"})  # 40
        assert store.get_overall_progress().average_score == pytest.approx(70.0)

    def test_quiz_updates_topic_mastery(self, store, clock):
        store.create_session(_session())
        store.complete_session("s1")
        store.save_quiz(_quiz())
        store.submit_quiz("quiz1", {"q1": "A", "q2": "True"})

        topic = store.find_topic_progress("Physics")
        assert topic.quiz_average == 100.0
        assert topic.mastery_level == 60.0

    def test_quiz_on_unstudied_topic_creates_progress(self, store):
        store.save_quiz(_quiz(topic="Chemistry"))
        store.submit_quiz("quiz1", {"q1": "A", "q2": "False"})

        topic = store.find_topic_progress("Chemistry")
        assert topic.sessions_count == 0
        assert topic.quiz_average == 40.0
        assert topic.mastery_level == 20.0

    def test_empty_quiz_scores_zero_percent(self, store):
        store.save_quiz(_quiz(questions=[]))
        result = store.submit_quiz("quiz1", {})
        assert result.max_score == 0
        assert result.percentage == 0.0

    def test_quiz_activity_recorded(self, store):
        store.save_quiz(_quiz())
        store.submit_quiz("quiz1", {"q1": "A"})
        activity = store.get_overall_progress().recent_activity[0]
        assert activity.type == "quiz"
        assert activity.score == 40.0


class TestRecentActivity:
    def test_capped_at_fifty_most_recent_first(self, store, clock):
        for i in range(55):
            store.create_session(_session(f"s{i}", start_time=clock.now))
            clock.advance(ms=1)

        activity = store.get_overall_progress().recent_activity
        assert len(activity) == 50
        timestamps = [a.timestamp for a in activity]
        assert timestamps == sorted(timestamps, reverse=True)
        assert timestamps[0] == START_MS + 54


# ---------------------------------------------------------------------------
# Spaced repetition
# ---------------------------------------------------------------------------

class TestSpacedRepetition:
    def test_schedule_new_item(self, store, clock):
        item = store.schedule_review("Physics", clock.now + 86_400_000, 1, session_id="s1")
        assert item.repetitions == 1
        assert item.interval == 1
        assert item.ease_factor == 2.5
        assert store.get_review_queue() == [item]

    def test_same_session_does_not_count_twice(self, store, clock):
        store.schedule_review("Physics", clock.now + 1, 1, session_id="s1")
        item = store.schedule_review("Physics", clock.now + 2, 1, session_id="s1")
        assert item.repetitions == 1
        assert item.next_review == clock.now + 2

    def test_new_session_increments_repetitions(self, store, clock):
        store.schedule_review("Physics", clock.now + 1, 1, session_id="s1")
        item = store.schedule_review("Physics", clock.now + 3, 3, session_id="s2")
        assert item.repetitions == 2
        assert item.interval == 3

    def test_mirrors_next_review_on_topic(self, store, clock):
        store.create_session(_session())
        store.complete_session("s1")
        store.schedule_review("Physics", clock.now + 5, 1, session_id="s1")
        assert store.find_topic_progress("Physics").next_review == clock.now + 5

    def test_queue_sorted_and_filtered(self, store, clock):
        store.schedule_review("Late", clock.now + 300, 3)
        store.schedule_review("Soon", clock.now + 100, 1)

        assert [i.topic for i in store.get_review_queue()] == ["Soon", "Late"]
        assert [i.topic for i in store.get_review_queue(due_before=clock.now + 200)] == ["Soon"]


# ---------------------------------------------------------------------------
# Persistence and serialization
# ---------------------------------------------------------------------------

class TestPersistence:
    def test_save_failure_raises_database_exception(self, clock):
        repository = MagicMock(spec=UserStateRepository)
        repository.load.return_value = UserState.empty("u")
        repository.save.side_effect = RuntimeError("disk full")
        store = StudyStateStore(MagicMock(), "u", clock=clock, repository=repository)

        with pytest.raises(DatabaseException):
            store.append_chat_turn("s1", "a", "b")

    def test_every_operation_writes_through(self, store, db_session):
        store.append_chat_turn("s1", "a", "b")
        store.create_session(_session())

        record = db_session.query(UserStateRecord).filter_by(user_id="user-1").one()
        assert record.version == 2

    def test_concurrent_operations_for_one_user_are_serialized(self, session_factory, clock):
        def worker(prefix):
            session = session_factory()
            try:
                store = StudyStateStore(session, "shared-user", clock=clock)
                for i in range(10):
                    store.append_chat_turn("s1", f"{prefix}-{i}", "ok")
            finally:
                session.close()

        threads = [threading.Thread(target=worker, args=(p,)) for p in ("a", "b")]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        session = session_factory()
        try:
            history = StudyStateStore(session, "shared-user", clock=clock).get_chat_history("s1")
        finally:
            session.close()
        assert len(history) == 40
