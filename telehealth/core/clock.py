"""Injectable clock."""

from collections.abc import Callable
from datetime import UTC, datetime

ClockFn = Callable[[], datetime]


def utc_now() -> datetime:
    """Current instant as an aware UTC datetime."""
    return datetime.now(UTC)
