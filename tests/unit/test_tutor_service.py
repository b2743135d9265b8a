"""Unit tests for study/services/tutor_service.py"""

import pytest
from unittest.mock import Mock

from shared.models.domain import ChatMessage
from shared.services.llm_service import LLMServiceError
from shared.utils.exceptions import LLMProviderException
from study.prompts import TUTOR_FALLBACK_RESPONSE, TUTOR_SYSTEM_PROMPT
from study.services.tutor_service import TutorService


def _history(n):
    return [
        ChatMessage(role="user" if i % 2 == 0 else "assistant", content=f"m{i}", timestamp=i)
        for i in range(n)
    ]


class TestTutorChat:
    def test_builds_conversation(self):
        llm = Mock()
        llm.generate.return_value = "Gravity pulls masses together."

        reply = TutorService(llm).chat("What is gravity?", _history(2))

        assert reply == "Gravity pulls masses together."
        messages = llm.generate.call_args.args[0]
        assert messages[0] == {"role": "system", "content": TUTOR_SYSTEM_PROMPT}
        assert messages[1:3] == [
            {"role": "user", "content": "m0"},
            {"role": "assistant", "content": "m1"},
        ]
        assert messages[-1] == {"role": "user", "content": "What is gravity?"}
        assert llm.generate.call_args.kwargs == {"max_tokens": 1024, "temperature": 0.7}

    def test_only_last_ten_history_messages(self):
        llm = Mock()
        llm.generate.return_value = "ok"

        TutorService(llm).chat("next", _history(15))

        messages = llm.generate.call_args.args[0]
        assert len(messages) == 12
        assert messages[1]["content"] == "m5"

    def test_empty_reply_apologizes(self):
        llm = Mock()
        llm.generate.return_value = ""
        assert TutorService(llm).chat("hi", []) == TUTOR_FALLBACK_RESPONSE

    def test_generator_failure_raises_provider_exception(self):
        llm = Mock()
        llm.generate.side_effect = LLMServiceError("down")

        with pytest.raises(LLMProviderException) as exc_info:
            TutorService(llm).chat("hi", [])
        assert exc_info.value.to_http_exception().status_code == 503
