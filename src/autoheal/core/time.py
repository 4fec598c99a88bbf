"""Time helpers."""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


def elapsed_ms(started: float, finished: float) -> int:
    """Convert a pair of ``time.monotonic()`` readings to whole milliseconds."""
    return max(0, int((finished - started) * 1000))
