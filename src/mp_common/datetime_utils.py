"""UTC datetime utilities.

Services take a `Clock` and read it once per operation so that expiry
comparisons and status-history timestamps within one transaction agree.
"""

from datetime import datetime, timedelta, timezone
from typing import Protocol


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


class Clock(Protocol):
    def __call__(self) -> datetime: ...


class FixedClock:
    """Clock pinned to one instant; `advance()` moves it forward."""

    def __init__(self, now: datetime) -> None:
        if now.tzinfo is None:
            raise ValueError("FixedClock requires a timezone-aware datetime")
        self._now = now

    def __call__(self) -> datetime:
        return self._now

    def advance(self, **kwargs: float) -> datetime:
        self._now = self._now + timedelta(**kwargs)
        return self._now
