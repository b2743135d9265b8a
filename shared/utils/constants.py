"""Application constants - all magic numbers centralized."""

# Session limits
MIN_SESSION_DURATION = 5  # minutes
MAX_SESSION_DURATION = 120  # minutes
DIFFICULTIES = ("beginner", "intermediate", "advanced")

# Progress aggregation
RECENT_ACTIVITY_LIMIT = 50  # Most-recent-first, oldest dropped
MASTERY_MAX = 100.0
MASTERY_PER_SESSION = 10  # Store formula: sessions_count * 10 + quiz_average * 0.5
MASTERY_QUIZ_WEIGHT = 0.5

# Study session workflow
SESSION_MASTERY_BONUS = 5
SESSION_TIME_BONUS_CAP = 10  # min(10, duration // 10)
INTRODUCTION_APPROACH = "introduction"
REINFORCEMENT_APPROACH = "reinforcement"
ADVANCED_APPROACH = "advanced"
REINFORCEMENT_THRESHOLD = 50  # mastery below this → reinforcement

# Spaced repetition: (minimum mastery, interval days), checked top-down
REVIEW_INTERVALS = (
    (80, 7),
    (60, 3),
    (40, 2),
)
DEFAULT_REVIEW_INTERVAL_DAYS = 1
DEFAULT_EASE_FACTOR = 2.5
MS_PER_MINUTE = 60 * 1000
MS_PER_DAY = 24 * 60 * MS_PER_MINUTE

# Quiz generation
MIN_QUIZ_QUESTIONS = 1
MAX_QUIZ_QUESTIONS = 20
MAX_FALLBACK_QUESTIONS = 5
DEFAULT_QUESTION_POINTS = 10
DEFAULT_QUESTION_TYPE = "short-answer"
QUIZ_CACHE_TTL_SECONDS = 3600
MINUTES_PER_QUESTION = 2
RANDOM_SUFFIX_LENGTH = 9

# LLM generation parameters
CHAT_CONTEXT_MESSAGES = 10  # Last N history messages sent with each chat turn
CHAT_MAX_TOKENS = 1024
CHAT_TEMPERATURE = 0.7
SUMMARY_MAX_TOKENS = 300
CONCEPTS_MAX_TOKENS = 200
QUESTIONS_MAX_TOKENS = 2500
QUESTIONS_TEMPERATURE = 0.8
DEFAULT_TEMPERATURE = 0.7

# Chat input
MAX_MESSAGE_LENGTH = 10000  # characters

# Workflow types
STUDY_SESSION_WORKFLOW = "study_session"
QUIZ_GENERATION_WORKFLOW = "quiz_generation"
