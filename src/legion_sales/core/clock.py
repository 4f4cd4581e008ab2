"""
Time sources for sale phase checks.

Sales never read the wall clock directly; they ask an injected clock so
phase boundaries can be exercised deterministically.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Protocol

logger = logging.getLogger(__name__)


class Clock(Protocol):
    def now(self) -> int:
        ...


class SystemClock:
    """Wall-clock time in whole seconds, never moving backwards."""

    def __init__(self, time_provider: Callable[[], float] | None = None) -> None:
        self._time_provider = time_provider or time.time
        self._last = 0

    def now(self) -> int:
        try:
            current = int(self._time_provider())
        except (TypeError, ValueError) as exc:
            raise ValueError("time_provider must return a numeric timestamp") from exc
        # Clock skew must not reopen a closed window
        self._last = max(self._last, current)
        return self._last


class ManualClock:
    """Explicitly advanced clock for simulations and tests."""

    def __init__(self, start: int = 0) -> None:
        if start < 0:
            raise ValueError("Clock cannot start before the epoch.")
        self._now = start

    def now(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("Clock cannot move backwards.")
        self._now += seconds
        return self._now

    def set_time(self, timestamp: int) -> int:
        if timestamp < self._now:
            raise ValueError(
                f"Clock cannot move backwards ({timestamp} < {self._now})."
            )
        self._now = timestamp
        logger.debug("Clock set", extra={"event": "clock.set", "timestamp": timestamp})
        return self._now
