"""
Quiz Prompts

Prompts for key-concept identification and question generation.
"""

from shared.prompts.templates import PromptTemplate


CONCEPTS_SYSTEM_PROMPT = "You are a curriculum expert."

KEY_CONCEPTS_PROMPT = PromptTemplate(
    """List 5-10 key concepts for {topic} at {difficulty} level.
Return as a simple comma-separated list.""",
    name="key_concepts",
    system=CONCEPTS_SYSTEM_PROMPT,
)


QUESTIONS_SYSTEM_PROMPT = "You generate quiz questions. Return only valid JSON."

QUIZ_QUESTIONS_PROMPT = PromptTemplate(
    """Generate {question_count} quiz questions about {topic} at {difficulty} level.

Focus on these concepts: {concepts}

Return ONLY valid JSON (no markdown, no explanation):
{{
  "questions": [
    {{
      "id": "q1",
      "question": "What is...?",
      "type": "multiple-choice",
      "options": ["A", "B", "C", "D"],
      "correctAnswer": "A",
      "explanation": "Explanation here",
      "points": 10
    }}
  ]
}}

Requirements:
- Mix question types: multiple-choice, true-false, short-answer
- Clear, unambiguous questions
- Good distractors for multiple choice
- Comprehensive explanations
- Points: 10 (easy), 15 (medium), 20 (hard)""",
    name="quiz_questions",
    system=QUESTIONS_SYSTEM_PROMPT,
)
