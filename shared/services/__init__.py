"""Shared services: text generation and the TTL cache."""
from .llm_service import LLMService, LLMServiceError
from .cache_service import CacheService

__all__ = [
    "LLMService",
    "LLMServiceError",
    "CacheService"
]
