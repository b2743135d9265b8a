"""Test helpers shared across test modules."""

START_MS = 1_700_000_000_000  # 2023-11-14T22:13:20Z


class FakeClock:
    """Controllable epoch-ms clock."""

    def __init__(self, start: int = START_MS):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int = 0, minutes: float = 0, days: float = 0) -> int:
        self.now += int(ms + minutes * 60_000 + days * 86_400_000)
        return self.now


def inline_dispatch(fn, *args, **kwargs):
    """Run dispatched work synchronously on the calling thread."""
    return fn(*args, **kwargs)


def chat_response(content):
    """Mock object shaped like an OpenAI chat completion."""
    from unittest.mock import Mock

    response = Mock()
    response.choices = [Mock(message=Mock(content=content))]
    return response
