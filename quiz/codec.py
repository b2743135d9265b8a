"""
Quiz Question Codec

Turns free-text model output into validated quiz questions, with a
deterministic fallback when the output cannot be decoded.

    parse_questions(raw, count, topic, concepts)
        = validate_questions(decode_questions(raw), count)
        | fallback_questions(topic, count, concepts)   on QuizDecodeError

Everything here is pure: the same input always yields the same output.
"""

import json
import re
from typing import Any, Dict, List, Optional, Sequence, Set

from shared.models.domain import QuizQuestion
from shared.utils.constants import (
    DEFAULT_QUESTION_POINTS,
    DEFAULT_QUESTION_TYPE,
    MAX_FALLBACK_QUESTIONS,
    MAX_QUIZ_QUESTIONS,
    MIN_QUIZ_QUESTIONS,
)

# First "{" through the last "}"
_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")

_QUESTION_TYPES = {"multiple-choice", "true-false", "short-answer"}


class QuizDecodeError(ValueError):
    """Raised when model output does not contain a usable question list."""
    pass


def _check_count(count: int) -> None:
    if not MIN_QUIZ_QUESTIONS <= count <= MAX_QUIZ_QUESTIONS:
        raise ValueError(
            f"question count must be between {MIN_QUIZ_QUESTIONS} and {MAX_QUIZ_QUESTIONS}, got {count}"
        )


def extract_json_block(text: str) -> str:
    """
    Return the object literal embedded in surrounding prose.

    Raises:
        QuizDecodeError: No "{ ... }" span in the text
    """
    match = _JSON_BLOCK.search(text or "")
    if not match:
        raise QuizDecodeError("No JSON in response")
    return match.group(0)


def decode_questions(text: str) -> List[Any]:
    """
    Decode the raw candidate list under the "questions" key.

    Raises:
        QuizDecodeError: Missing block, invalid JSON, or no "questions" list
    """
    block = extract_json_block(text)
    try:
        parsed = json.loads(block)
    except json.JSONDecodeError as e:
        raise QuizDecodeError(f"Invalid JSON: {e}") from e

    if not isinstance(parsed, dict) or not isinstance(parsed.get("questions"), list):
        raise QuizDecodeError("Invalid format: expected an object with a 'questions' list")
    return parsed["questions"]


def _field(candidate: Dict[str, Any], *names: str) -> Any:
    for name in names:
        value = candidate.get(name)
        if value is not None:
            return value
    return None


def _as_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    if isinstance(value, bool):
        return "True" if value else "False"
    text = str(value)
    return text if text.strip() else None


def _as_points(value: Any) -> int:
    if isinstance(value, bool):
        return DEFAULT_QUESTION_POINTS
    if isinstance(value, int) and value > 0:
        return value
    if isinstance(value, float) and value.is_integer() and value > 0:
        return int(value)
    return DEFAULT_QUESTION_POINTS


def validate_question(candidate: Any, position: int) -> Optional[QuizQuestion]:
    """
    Validate one candidate question.

    Args:
        candidate: Decoded JSON value
        position: 1-based position among already validated questions,
            used for the synthetic id

    Returns:
        QuizQuestion, or None if question text, correct answer or
        explanation is missing
    """
    if not isinstance(candidate, dict):
        return None

    question = _as_text(candidate.get("question"))
    correct_answer = _as_text(_field(candidate, "correctAnswer", "correct_answer"))
    explanation = _as_text(candidate.get("explanation"))
    if not question or not correct_answer or not explanation:
        return None

    question_type = candidate.get("type")
    if question_type not in _QUESTION_TYPES:
        question_type = DEFAULT_QUESTION_TYPE

    options = None
    raw_options = candidate.get("options")
    if question_type == "multiple-choice" and isinstance(raw_options, list):
        options = [str(option) for option in raw_options]

    return QuizQuestion(
        id=_as_text(candidate.get("id")) or f"q{position}",
        question=question,
        type=question_type,
        options=options,
        correct_answer=correct_answer,
        explanation=explanation,
        points=_as_points(candidate.get("points")),
    )


def _unused_id(used_ids: Set[str], start: int) -> str:
    n = start
    while f"q{n}" in used_ids:
        n += 1
    return f"q{n}"


def validate_questions(candidates: Sequence[Any], count: int) -> List[QuizQuestion]:
    """
    Keep well-formed candidates with defaults applied, truncated to count.

    Never pads: fewer valid candidates than count yields a shorter list.
    Ids are unique: a taken id is replaced with the next free q{n}.
    """
    _check_count(count)
    validated: List[QuizQuestion] = []
    used_ids: Set[str] = set()
    for candidate in candidates:
        question = validate_question(candidate, len(validated) + 1)
        if question is None:
            continue
        if question.id in used_ids:
            question = question.model_copy(update={"id": _unused_id(used_ids, len(validated) + 1)})
        used_ids.add(question.id)
        validated.append(question)
    return validated[:count]


def fallback_questions(topic: str, count: int, concepts: Sequence[str]) -> List[QuizQuestion]:
    """
    Deterministic open-ended questions used when generation fails.

    Produces min(count, 5) short-answer questions cycling through the key
    concepts (or the topic itself when there are none).
    """
    _check_count(count)
    questions: List[QuizQuestion] = []
    for i in range(min(count, MAX_FALLBACK_QUESTIONS)):
        concept = concepts[i % len(concepts)] if concepts else topic
        questions.append(QuizQuestion(
            id=f"q{i + 1}",
            question=f"Explain your understanding of {concept}.",
            type="short-answer",
            correct_answer="Open-ended answer",
            explanation=f"This tests your understanding of {concept}.",
            points=DEFAULT_QUESTION_POINTS,
        ))
    return questions


def parse_questions(text: str, count: int, topic: str, concepts: Sequence[str]) -> List[QuizQuestion]:
    """
    Decode and validate model output, falling back on any decode failure.

    Args:
        text: Raw model output
        count: Requested question count (1-20)
        topic: Quiz topic, used by the fallback
        concepts: Key concepts, used by the fallback

    Returns:
        Validated questions (never raises for malformed text)
    """
    try:
        candidates = decode_questions(text)
    except QuizDecodeError:
        return fallback_questions(topic, count, concepts)
    return validate_questions(candidates, count)
