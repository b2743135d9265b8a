"""
Quiz Generation Workflow

    analyze-content → identify-concepts → generate-questions
    → validate-questions → create-answer-key → store-quiz → finalize-quiz

Generator failures in identify-concepts and generate-questions degrade to
deterministic fallback content. A failure storing the quiz fails the run.
"""
import json
import logging
from typing import Any, Dict, List

from quiz.codec import decode_questions, fallback_questions, validate_questions
from quiz.prompts import KEY_CONCEPTS_PROMPT, QUIZ_QUESTIONS_PROMPT
from shared.models.domain import Quiz
from shared.services.cache_service import CacheService
from shared.services.llm_service import LLMService
from shared.utils.clock import make_id
from shared.utils.constants import (
    CONCEPTS_MAX_TOKENS,
    MINUTES_PER_QUESTION,
    QUESTIONS_MAX_TOKENS,
    QUESTIONS_TEMPERATURE,
    QUIZ_CACHE_TTL_SECONDS,
    QUIZ_GENERATION_WORKFLOW,
)
from study.services.study_state_store import StudyStateStore
from workflows.engine import Workflow, WorkflowContext
from workflows.schemas import QuizGenerationParams

logger = logging.getLogger(__name__)


def quiz_cache_key(topic: str, difficulty: str, question_count: int) -> str:
    return f"quiz:{topic}:{difficulty}:{question_count}"


def fallback_concepts(topic: str) -> List[str]:
    return [f"Core {topic} concepts", f"{topic} fundamentals", f"{topic} applications"]


class QuizGenerationWorkflow(Workflow):
    """Durable generation of a quiz from model output, with caching."""

    workflow_type = QUIZ_GENERATION_WORKFLOW
    params_model = QuizGenerationParams

    def __init__(self, llm: LLMService, cache_ttl_seconds: int = QUIZ_CACHE_TTL_SECONDS):
        self.llm = llm
        self.cache_ttl_seconds = cache_ttl_seconds

    def run(self, ctx: WorkflowContext) -> Dict[str, Any]:
        params = QuizGenerationParams.model_validate(ctx.params)
        store = StudyStateStore(ctx.db, params.user_id, clock=ctx.clock)

        ctx.step("analyze-content", lambda: self._analyze_content(store, params.topic))

        key_concepts = ctx.step("identify-concepts", lambda: self._identify_concepts(params))

        generated = ctx.step(
            "generate-questions",
            lambda: self._generate_questions(CacheService(ctx.db, clock=ctx.clock), params, key_concepts),
        )

        validated = ctx.step("validate-questions", lambda: [
            q.model_dump() for q in validate_questions(generated, params.question_count)
        ])

        answer_key = ctx.step("create-answer-key", lambda: {q["id"]: q["correct_answer"] for q in validated})

        stored = ctx.step("store-quiz", lambda: self._store_quiz(ctx, store, params, validated))

        return ctx.step("finalize-quiz", lambda: {
            "success": True,
            "quiz_id": stored["id"],
            "quiz": {
                "id": stored["id"],
                "topic": params.topic,
                "difficulty": params.difficulty,
                "questions": validated,
                "total_points": sum(q["points"] for q in validated),
                "estimated_time": len(validated) * MINUTES_PER_QUESTION,
            },
            "answer_key": answer_key,
            "key_concepts": key_concepts,
        })

    # ─── Steps ────────────────────────────────────────────────────────

    @staticmethod
    def _analyze_content(store: StudyStateStore, topic: str) -> Dict[str, Any]:
        entry = store.find_topic_progress(topic)
        if entry is None:
            return {"mastery_level": 0, "sessions_count": 0, "average_score": 0}
        return {
            "mastery_level": entry.mastery_level,
            "sessions_count": entry.sessions_count,
            "average_score": entry.quiz_average,
        }

    def _identify_concepts(self, params: QuizGenerationParams) -> List[str]:
        messages = KEY_CONCEPTS_PROMPT.messages(topic=params.topic, difficulty=params.difficulty)
        try:
            text = self.llm.generate(messages, max_tokens=CONCEPTS_MAX_TOKENS)
        except Exception as e:
            logger.warning(json.dumps({
                "step": "identify-concepts",
                "status": "fallback",
                "topic": params.topic,
                "error": str(e),
            }))
            return fallback_concepts(params.topic)

        return [concept.strip() for concept in (text or "").split(",") if concept.strip()]

    def _generate_questions(
        self,
        cache: CacheService,
        params: QuizGenerationParams,
        key_concepts: List[str],
    ) -> List[Dict[str, Any]]:
        cache_key = quiz_cache_key(params.topic, params.difficulty, params.question_count)
        cached = cache.get(cache_key)
        if cached is not None:
            logger.info(f"Using cached quiz questions for {cache_key}")
            return cached

        messages = QUIZ_QUESTIONS_PROMPT.messages(
            question_count=params.question_count,
            topic=params.topic,
            difficulty=params.difficulty,
            concepts=", ".join(key_concepts),
        )
        try:
            text = self.llm.generate(
                messages,
                max_tokens=QUESTIONS_MAX_TOKENS,
                temperature=QUESTIONS_TEMPERATURE,
            )
            questions = validate_questions(decode_questions(text), params.question_count)
        except Exception as e:
            logger.warning(json.dumps({
                "step": "generate-questions",
                "status": "fallback",
                "topic": params.topic,
                "error": str(e),
            }))
            return self._fallback(params, key_concepts)

        if not questions:
            logger.warning(json.dumps({
                "step": "generate-questions",
                "status": "fallback",
                "topic": params.topic,
                "error": "no valid questions in response",
            }))
            return self._fallback(params, key_concepts)

        payload = [q.model_dump() for q in questions]
        cache.put(cache_key, payload, self.cache_ttl_seconds)
        return payload

    @staticmethod
    def _fallback(params: QuizGenerationParams, key_concepts: List[str]) -> List[Dict[str, Any]]:
        return [
            q.model_dump()
            for q in fallback_questions(params.topic, params.question_count, key_concepts)
        ]

    @staticmethod
    def _store_quiz(
        ctx: WorkflowContext,
        store: StudyStateStore,
        params: QuizGenerationParams,
        questions: List[Dict[str, Any]],
    ) -> Dict[str, Any]:
        created_at = ctx.now()
        quiz = Quiz(
            id=make_id("quiz", created_at),
            topic=params.topic,
            difficulty=params.difficulty,
            questions=questions,
            created_at=created_at,
        )
        store.save_quiz(quiz)
        return {"id": quiz.id, "created_at": created_at}
