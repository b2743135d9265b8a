"""Timestamp and identifier utilities."""
import random
import string
import time
from datetime import datetime, timezone
from typing import Optional

from shared.utils.constants import RANDOM_SUFFIX_LENGTH

_BASE36 = string.digits + string.ascii_lowercase


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def utc_day(timestamp_ms: int) -> str:
    """ISO calendar date (UTC) of an epoch-ms timestamp."""
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).date().isoformat()


def random_suffix(length: int = RANDOM_SUFFIX_LENGTH) -> str:
    return "".join(random.choice(_BASE36) for _ in range(length))


def make_id(prefix: str, timestamp_ms: Optional[int] = None) -> str:
    """
    Build an id like ``quiz_1700000000000_k3j9x0a1b``.

    Args:
        prefix: Leading label (``session``, ``quiz``)
        timestamp_ms: Creation time; defaults to now
    """
    if timestamp_ms is None:
        timestamp_ms = now_ms()
    return f"{prefix}_{timestamp_ms}_{random_suffix()}"
