"""
Clock collaborator.

Services never read the wall clock themselves: routers obtain a ``Clock``
through the ``get_clock`` dependency and pass ``now`` down explicitly, so
tests can pin time by overriding the dependency.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime: ...


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock(Clock):
    """Clock pinned to one instant."""

    def __init__(self, at: datetime) -> None:
        self._at = at if at.tzinfo else at.replace(tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._at


def to_naive_utc(dt: datetime) -> datetime:
    """Storage form for timestamps: UTC without tzinfo."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def utc_now() -> datetime:
    """Default for ``created_at``/``updated_at`` columns."""
    return to_naive_utc(datetime.now(timezone.utc))


_clock: Clock = SystemClock()


def get_clock() -> Clock:
    return _clock
