"""Time source shared by token and workflow services."""

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (matches what the database returns)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
