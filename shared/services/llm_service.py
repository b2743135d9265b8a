"""
LLM Service: centralized interface for all text generation calls.

Acts as the AI Text Generator: takes a role-tagged message list plus
generation parameters and returns the full generated text, or raises
LLMServiceError. Callers decide whether a failure is recoverable.

Rate limits, timeouts and dropped connections are retried with exponential
backoff; any other provider error fails immediately.
"""

import json
import time
from typing import Any, Callable, Dict, List, Optional, Sequence
from openai import APIConnectionError, APITimeoutError, OpenAI, OpenAIError, RateLimitError
import logging

from shared.utils.constants import DEFAULT_TEMPERATURE

logger = logging.getLogger(__name__)

# Transient provider failures worth another attempt
RETRYABLE_ERRORS = (RateLimitError, APITimeoutError, APIConnectionError)


class LLMService:
    """
    Service for making LLM API calls with retry logic and error handling.

    The model id comes from Settings.llm_model; a single instance is shared
    by the chat endpoint and both workflows.
    """

    def __init__(
        self,
        api_key: str,
        *,
        model_id: str,
        max_retries: int = 3,
        initial_retry_delay: float = 1.0,
        timeout: int = 60,
    ):
        self.client = OpenAI(api_key=api_key)
        self.model_id = model_id
        self.max_retries = max_retries
        self.initial_retry_delay = initial_retry_delay
        self.timeout = timeout

    def generate(
        self,
        messages: Sequence[Dict[str, str]],
        max_tokens: int = 1024,
        temperature: float = DEFAULT_TEMPERATURE,
    ) -> str:
        """
        Generate text for a chat-style message list.

        Args:
            messages: Ordered ``{"role", "content"}`` dicts
            max_tokens: Upper bound on generated tokens
            temperature: Sampling temperature

        Returns:
            The generated text ("" if the provider returned no content)

        Raises:
            LLMServiceError: Provider error or retries exhausted
        """
        payload = self._normalize_messages(messages)

        logger.info(json.dumps({
            "step": "LLM_CALL",
            "status": "starting",
            "model": self.model_id,
            "params": {
                "messages": len(payload),
                "max_tokens": max_tokens,
                "temperature": temperature,
            }
        }))

        def _api_call():
            response = self.client.chat.completions.create(
                model=self.model_id,
                messages=payload,
                max_completion_tokens=max_tokens,
                temperature=temperature,
                timeout=self.timeout,
            )
            return response.choices[0].message.content or ""

        return self._execute_with_retry(_api_call, self.model_id)

    @staticmethod
    def _normalize_messages(messages: Sequence[Dict[str, Any]]) -> List[Dict[str, str]]:
        """Keep only role and content (chat history carries timestamps)."""
        return [{"role": m["role"], "content": m["content"]} for m in messages]

    def _execute_with_retry(self, api_call_fn: Callable[[], str], model_name: str) -> str:
        """
        Run a provider call, retrying transient failures with exponential backoff.

        No delay follows the final attempt.
        """
        started = time.time()
        last_error: Optional[Exception] = None
        delay = self.initial_retry_delay

        for attempt in range(1, self.max_retries + 1):
            try:
                text = api_call_fn()
            except RETRYABLE_ERRORS as e:
                last_error = e
                logger.warning(json.dumps({
                    "step": "LLM_CALL",
                    "status": "retrying" if attempt < self.max_retries else "exhausted",
                    "model": model_name,
                    "attempt": attempt,
                    "error_type": type(e).__name__,
                }))
                if attempt < self.max_retries:
                    time.sleep(delay)
                    delay *= 2
                continue
            except OpenAIError as e:
                logger.error(f"{model_name} rejected the request: {e}")
                raise LLMServiceError(f"{model_name} API error: {e}") from e
            except Exception as e:
                logger.error(f"{model_name} call raised {type(e).__name__}: {e}")
                raise LLMServiceError(f"{model_name} unexpected error: {e}") from e

            logger.info(json.dumps({
                "step": "LLM_CALL",
                "status": "complete",
                "model": model_name,
                "response_chars": len(text),
                "duration_ms": int((time.time() - started) * 1000),
                "attempts": attempt,
            }))
            return text

        raise LLMServiceError(
            f"{model_name} failed after {self.max_retries} attempts: {last_error}"
        ) from last_error


class LLMServiceError(Exception):
    """Custom exception for LLM service errors"""
    pass


def build_llm_service(settings) -> LLMService:
    """Create the LLM service from application settings."""
    return LLMService(
        api_key=settings.openai_api_key,
        model_id=settings.llm_model,
        max_retries=settings.llm_max_retries,
        timeout=settings.llm_timeout,
    )


_llm_service: Optional[LLMService] = None


def get_llm_service() -> LLMService:
    """Get or create the process-wide LLM service."""
    global _llm_service
    if _llm_service is None:
        from config import get_settings
        _llm_service = build_llm_service(get_settings())
    return _llm_service


def reset_llm_service():
    """Reset the global LLM service (useful for testing)."""
    global _llm_service
    _llm_service = None
