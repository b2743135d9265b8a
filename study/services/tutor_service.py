"""AI tutor chat: one reply per user message, with recent history as context."""
import logging
from typing import Sequence

from shared.models.domain import ChatMessage
from shared.services.llm_service import LLMService, LLMServiceError
from shared.utils.constants import CHAT_CONTEXT_MESSAGES, CHAT_MAX_TOKENS, CHAT_TEMPERATURE
from shared.utils.exceptions import LLMProviderException
from study.prompts import TUTOR_FALLBACK_RESPONSE, TUTOR_SYSTEM_PROMPT

logger = logging.getLogger(__name__)


class TutorService:
    """Builds the tutor conversation and calls the text generator."""

    def __init__(self, llm: LLMService):
        self.llm = llm

    def chat(self, message: str, history: Sequence[ChatMessage]) -> str:
        """
        Generate the tutor's reply.

        Args:
            message: The learner's message
            history: Prior messages of the session, oldest first

        Returns:
            Reply text (an apology if the model returned nothing)

        Raises:
            LLMProviderException: The generator failed
        """
        messages = [{"role": "system", "content": TUTOR_SYSTEM_PROMPT}]
        messages.extend(
            {"role": m.role, "content": m.content}
            for m in list(history)[-CHAT_CONTEXT_MESSAGES:]
        )
        messages.append({"role": "user", "content": message})

        try:
            reply = self.llm.generate(messages, max_tokens=CHAT_MAX_TOKENS, temperature=CHAT_TEMPERATURE)
        except LLMServiceError as e:
            logger.error(f"Tutor chat generation failed: {e}")
            raise LLMProviderException(e) from e

        return reply or TUTOR_FALLBACK_RESPONSE
