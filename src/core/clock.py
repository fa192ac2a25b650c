# core/clock.py
from __future__ import annotations

import time
from typing import Callable, Optional


class Stopwatch:
    """
    Elapsed wall-clock time that excludes paused intervals.

    elapsed() = now - started - offset, where offset accumulates every
    paused interval plus any time explicitly discarded. While paused the
    reading is frozen at the pause timestamp.
    """

    def __init__(self, now: Callable[[], float] = time.monotonic):
        self._now = now
        self._started: Optional[float] = None
        self._offset: float = 0.0
        self._paused_at: Optional[float] = None

    @property
    def running(self) -> bool:
        return self._started is not None and self._paused_at is None

    @property
    def paused(self) -> bool:
        return self._paused_at is not None

    def start(self) -> None:
        self._started = self._now()
        self._offset = 0.0
        self._paused_at = None

    def reset(self) -> None:
        self._started = None
        self._offset = 0.0
        self._paused_at = None

    def elapsed(self) -> float:
        if self._started is None:
            return 0.0
        end = self._paused_at if self._paused_at is not None else self._now()
        return max(0.0, end - self._started - self._offset)

    def pause(self) -> None:
        if self._started is None or self._paused_at is not None:
            return
        self._paused_at = self._now()

    def resume(self) -> None:
        if self._paused_at is None:
            return
        self._offset += self._now() - self._paused_at
        self._paused_at = None

    def discard(self, amount: float) -> None:
        # never discard more than what has been counted
        self._offset += max(0.0, min(float(amount), self.elapsed()))


class SessionClock:
    """Round-scoped and session-scoped stopwatches sharing one time source."""

    def __init__(self, now: Callable[[], float] = time.monotonic):
        self.round = Stopwatch(now)
        self.session = Stopwatch(now)

    def start_session(self) -> None:
        self.session.start()

    def start_round(self) -> None:
        self.round.start()

    def pause(self) -> None:
        self.round.pause()
        self.session.pause()

    def resume(self) -> None:
        self.round.resume()
        self.session.resume()

    def discard_round(self) -> float:
        """Drop the current round's partial time from the session counter."""
        partial = self.round.elapsed()
        self.session.discard(partial)
        return partial
