"""
Study State Store

Sole mutator of a user's UserState. Every operation takes the user's lock,
loads the state, mutates it in memory and writes it back before returning,
so operations for one user are serialized while different users proceed
independently.

Aggregation rules:
- total_study_time accumulates elapsed minutes of completed sessions
- average_score is the mean percentage over all quiz results
- topic mastery = min(100, sessions_count * 10 + quiz_average * 0.5)
- recent_activity is most-recent-first and capped at 50 entries
- streak counts consecutive UTC days with at least one completed session
"""

import logging
import threading
from datetime import date, timedelta
from typing import Callable, Dict, List, Optional, TypeVar

from sqlalchemy.orm import Session as DBSession

from shared.models.domain import (
    ActivityRecord,
    ChatMessage,
    ProgressData,
    Quiz,
    QuizResult,
    SpacedRepetitionItem,
    StudySession,
    TopicProgress,
    UserState,
)
from shared.repositories.user_state_repository import UserStateRepository
from shared.utils.clock import now_ms, utc_day
from shared.utils.constants import (
    DEFAULT_EASE_FACTOR,
    MASTERY_MAX,
    MASTERY_PER_SESSION,
    MASTERY_QUIZ_WEIGHT,
    MS_PER_MINUTE,
    RECENT_ACTIVITY_LIMIT,
)
from shared.utils.exceptions import DatabaseException, QuizNotFoundException

logger = logging.getLogger(__name__)

T = TypeVar("T")

_registry_lock = threading.Lock()
_user_locks: Dict[str, threading.RLock] = {}


def _lock_for(user_id: str) -> threading.RLock:
    """Return the process-wide lock owning a user's state."""
    with _registry_lock:
        lock = _user_locks.get(user_id)
        if lock is None:
            lock = threading.RLock()
            _user_locks[user_id] = lock
        return lock


def compute_mastery(sessions_count: int, quiz_average: float) -> float:
    """Topic mastery from session count and quiz average, capped at 100."""
    return min(MASTERY_MAX, sessions_count * MASTERY_PER_SESSION + quiz_average * MASTERY_QUIZ_WEIGHT)


class StudyStateStore:
    """Serialized read/write operations over one user's study state."""

    def __init__(
        self,
        db: DBSession,
        user_id: str,
        clock: Callable[[], int] = now_ms,
        repository: Optional[UserStateRepository] = None,
    ):
        self.user_id = user_id
        self.clock = clock
        self.repository = repository or UserStateRepository(db)

    # ─── Plumbing ─────────────────────────────────────────────────────

    def _read(self, fn: Callable[[UserState], T]) -> T:
        with _lock_for(self.user_id):
            state = self.repository.load(self.user_id)
            return fn(state)

    def _mutate(self, fn: Callable[[UserState], T]) -> T:
        with _lock_for(self.user_id):
            state = self.repository.load(self.user_id)
            result = fn(state)
            self._save(state)
            return result

    def _save(self, state: UserState) -> None:
        try:
            self.repository.save(self.user_id, state)
        except Exception as e:
            logger.error(f"Failed to persist study state for user {self.user_id}: {e}", exc_info=True)
            raise DatabaseException("save", e) from e

    @staticmethod
    def _push_activity(progress: ProgressData, record: ActivityRecord) -> None:
        progress.recent_activity.insert(0, record)
        del progress.recent_activity[RECENT_ACTIVITY_LIMIT:]

    # ─── Chat ─────────────────────────────────────────────────────────

    def get_chat_history(self, session_id: str) -> List[ChatMessage]:
        """Return a session's messages in append order (empty if none)."""
        return self._read(lambda state: list(state.chat_histories.get(session_id, [])))

    def append_chat_turn(self, session_id: str, user_text: str, ai_text: str) -> None:
        """Append a user message and the assistant reply (timestamps t, t+1)."""
        def apply(state: UserState) -> None:
            timestamp = self.clock()
            history = state.chat_histories.setdefault(session_id, [])
            history.append(ChatMessage(role="user", content=user_text, timestamp=timestamp))
            history.append(ChatMessage(role="assistant", content=ai_text, timestamp=timestamp + 1))

        self._mutate(apply)

    # ─── Sessions ─────────────────────────────────────────────────────

    def create_session(self, session: StudySession) -> StudySession:
        """
        Store a new session and make it the current one.

        Re-creating an existing session id replaces it without counting it
        again.
        """
        def apply(state: UserState) -> StudySession:
            is_new = session.id not in state.sessions
            state.sessions[session.id] = session
            if session.status == "active":
                state.active_session_id = session.id
            if is_new:
                state.progress.total_sessions += 1
                self._push_activity(
                    state.progress,
                    ActivityRecord(type="session", topic=session.topic, timestamp=session.start_time),
                )
            logger.info(f"Created session {session.id} on '{session.topic}' for user {self.user_id}")
            return session

        return self._mutate(apply)

    def get_current_session(self) -> Optional[StudySession]:
        """The most recently created session that is still active, or None."""
        def read(state: UserState) -> Optional[StudySession]:
            session = state.sessions.get(state.active_session_id) if state.active_session_id else None
            if session is None or session.status != "active":
                return None
            return session

        return self._read(read)

    def complete_session(self, session_id: str) -> Optional[StudySession]:
        """
        Mark a session completed and fold its elapsed time into progress.

        Unknown or already completed sessions are a silent no-op.

        Returns:
            The completed session, or None if nothing changed
        """
        with _lock_for(self.user_id):
            state = self.repository.load(self.user_id)
            session = state.sessions.get(session_id)
            if session is None or session.status == "completed":
                logger.info(f"complete_session no-op for {session_id} (user {self.user_id})")
                return None

            end_time = self.clock()
            session.status = "completed"
            session.end_time = end_time
            duration = max(0.0, (end_time - session.start_time) / MS_PER_MINUTE)

            state.progress.total_study_time += duration
            self._update_topic_progress(state.progress, session.topic, duration, end_time)
            self._update_streak(state.progress, end_time)

            if state.active_session_id == session_id:
                state.active_session_id = self._latest_active_session_id(state)

            self._save(state)
            logger.info(
                f"Completed session {session_id}: {duration:.2f} min on '{session.topic}' "
                f"(user {self.user_id})"
            )
            return session

    def record_session_summary(self, session_id: str, summary: str) -> None:
        """Attach a generated summary to a session (no-op for unknown ids)."""
        with _lock_for(self.user_id):
            state = self.repository.load(self.user_id)
            session = state.sessions.get(session_id)
            if session is None:
                return
            session.summary = summary
            self._save(state)

    @staticmethod
    def _latest_active_session_id(state: UserState) -> Optional[str]:
        latest = None
        for session_id, session in state.sessions.items():
            if session.status == "active":
                latest = session_id
        return latest

    @staticmethod
    def _update_topic_progress(progress: ProgressData, topic: str, duration: float, studied_at: int) -> None:
        entry = progress.find_topic(topic)
        if entry is None:
            entry = TopicProgress(topic=topic, last_studied=studied_at)
            progress.topics_studied.append(entry)

        entry.time_spent += duration
        entry.sessions_count += 1
        entry.last_studied = studied_at
        entry.mastery_level = compute_mastery(entry.sessions_count, entry.quiz_average)

    @staticmethod
    def _update_streak(progress: ProgressData, completed_at: int) -> None:
        today = utc_day(completed_at)
        if progress.last_study_day == today:
            return

        yesterday = (date.fromisoformat(today) - timedelta(days=1)).isoformat()
        if progress.last_study_day == yesterday:
            progress.current_streak += 1
        else:
            progress.current_streak = 1
        progress.last_study_day = today
        progress.longest_streak = max(progress.longest_streak, progress.current_streak)

    # ─── Quizzes ──────────────────────────────────────────────────────

    def save_quiz(self, quiz: Quiz) -> Quiz:
        """Store a quiz by id, replacing any previous quiz with that id."""
        def apply(state: UserState) -> Quiz:
            state.quizzes[quiz.id] = quiz
            return quiz

        return self._mutate(apply)

    def get_quiz(self, quiz_id: str) -> Quiz:
        """
        Return a stored quiz.

        Raises:
            QuizNotFoundException: If quiz_id is unknown
        """
        def read(state: UserState) -> Quiz:
            quiz = state.quizzes.get(quiz_id)
            if quiz is None:
                raise QuizNotFoundException(quiz_id)
            return quiz

        return self._read(read)

    def submit_quiz(self, quiz_id: str, answers: Dict[str, str]) -> QuizResult:
        """
        Score a submission and fold it into progress.

        Answers match when equal ignoring case. Every submission appends a
        new result, including repeats with identical answers.

        Raises:
            QuizNotFoundException: If quiz_id is unknown
        """
        with _lock_for(self.user_id):
            state = self.repository.load(self.user_id)
            quiz = state.quizzes.get(quiz_id)
            if quiz is None:
                raise QuizNotFoundException(quiz_id)

            score = 0
            for question in quiz.questions:
                submitted = answers.get(question.id)
                if submitted is not None and submitted.lower() == question.correct_answer.lower():
                    score += question.points

            max_score = quiz.max_score
            completed_at = self.clock()
            result = QuizResult(
                quiz_id=quiz_id,
                score=score,
                max_score=max_score,
                percentage=(score / max_score) * 100 if max_score else 0.0,
                completed_at=completed_at,
                answers=dict(answers),
            )

            progress = state.progress
            state.quiz_results.append(result)
            progress.total_quizzes += 1
            progress.average_score = sum(r.percentage for r in state.quiz_results) / len(state.quiz_results)
            self._push_activity(
                progress,
                ActivityRecord(type="quiz", topic=quiz.topic, timestamp=completed_at, score=result.percentage),
            )
            self._update_topic_quiz_average(state, quiz.topic, completed_at)

            self._save(state)
            logger.info(
                f"Quiz {quiz_id} submitted by user {self.user_id}: "
                f"{score}/{max_score} ({result.percentage:.1f}%)"
            )
            return result

    @staticmethod
    def _update_topic_quiz_average(state: UserState, topic: str, studied_at: int) -> None:
        entry = state.progress.find_topic(topic)
        if entry is None:
            entry = TopicProgress(topic=topic, last_studied=studied_at)
            state.progress.topics_studied.append(entry)

        topic_results = [
            r for r in state.quiz_results
            if r.quiz_id in state.quizzes and state.quizzes[r.quiz_id].topic == topic
        ]
        entry.quiz_average = sum(r.percentage for r in topic_results) / len(topic_results)
        entry.mastery_level = compute_mastery(entry.sessions_count, entry.quiz_average)

    def get_quiz_results(self) -> List[QuizResult]:
        return self._read(lambda state: list(state.quiz_results))

    # ─── Progress ─────────────────────────────────────────────────────

    def get_overall_progress(self) -> ProgressData:
        return self._read(lambda state: state.progress)

    def get_topic_progress(self) -> List[TopicProgress]:
        return self._read(lambda state: list(state.progress.topics_studied))

    def find_topic_progress(self, topic: str) -> Optional[TopicProgress]:
        """TopicProgress for one topic, or None if never studied."""
        return self._read(lambda state: state.progress.find_topic(topic))

    # ─── Spaced repetition ────────────────────────────────────────────

    def schedule_review(
        self,
        topic: str,
        next_review: int,
        interval_days: int,
        session_id: Optional[str] = None,
    ) -> SpacedRepetitionItem:
        """
        Upsert the topic's review in the spaced-repetition queue.

        Repetitions count once per session, so re-scheduling for the same
        session only refreshes the dates.
        """
        def apply(state: UserState) -> SpacedRepetitionItem:
            item = next((i for i in state.spaced_repetition_queue if i.topic == topic), None)
            if item is None:
                item = SpacedRepetitionItem(
                    topic=topic,
                    next_review=next_review,
                    interval=interval_days,
                    ease_factor=DEFAULT_EASE_FACTOR,
                    repetitions=1,
                    last_session_id=session_id,
                )
                state.spaced_repetition_queue.append(item)
            else:
                if session_id is None or item.last_session_id != session_id:
                    item.repetitions += 1
                item.next_review = next_review
                item.interval = interval_days
                item.last_session_id = session_id

            entry = state.progress.find_topic(topic)
            if entry is not None:
                entry.next_review = next_review
            return item

        return self._mutate(apply)

    def get_review_queue(self, due_before: Optional[int] = None) -> List[SpacedRepetitionItem]:
        """Scheduled reviews ordered by date, optionally only those due by a time."""
        def read(state: UserState) -> List[SpacedRepetitionItem]:
            items = sorted(state.spaced_repetition_queue, key=lambda i: i.next_review)
            if due_before is not None:
                items = [i for i in items if i.next_review <= due_before]
            return items

        return self._read(read)
